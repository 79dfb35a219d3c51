"""InfluxDB target using the HTTP write API and line protocol."""

import asyncio
import logging
from typing import Dict, Optional

import aiohttp

from mqtt_gateway.shared.errors import RejectedWriteError, TransientWriteError
from mqtt_gateway.shared.models import FieldValue, Point

from .base import WriteAdapter

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 429}

_MEASUREMENT_ESCAPES = str.maketrans({",": r"\,", " ": r"\ ", "\n": r"\n"})
_KEY_ESCAPES = str.maketrans({",": r"\,", "=": r"\=", " ": r"\ ", "\n": r"\n"})
_STRING_ESCAPES = str.maketrans({'"': r"\"", "\\": r"\\", "\n": r"\n"})


def _field_value(value: FieldValue) -> str:
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        return repr(value)
    return f'"{value.translate(_STRING_ESCAPES)}"'


def to_line_protocol(point: Point) -> str:
    """Encode a point as one line of InfluxDB line protocol (second precision).

    Tags are sorted by key; tags with empty values are left out since the
    protocol cannot represent them.
    """
    parts = [point.measurement.translate(_MEASUREMENT_ESCAPES)]
    for key, value in sorted(point.tags.items()):
        if value:
            parts.append(f"{key.translate(_KEY_ESCAPES)}={value.translate(_KEY_ESCAPES)}")
    series = ",".join(parts)

    fields = ",".join(
        f"{key.translate(_KEY_ESCAPES)}={_field_value(value)}"
        for key, value in point.fields.items()
    )
    return f"{series} {fields} {point.timestamp}"


class InfluxDBWriter(WriteAdapter):
    """Writes points to ``{url}/write?db=<database>&precision=s``."""

    def __init__(
        self,
        url: str,
        database: str,
        user: Optional[str] = None,
        password: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the writer.

        Args:
            url: Base URL of the InfluxDB server, e.g. ``http://influx:8086``.
            database: Database (or bucket mapped through DBRP) to write to.
            user: User for basic auth, used together with password.
            password: Password for basic auth.
            token: API token, sent as ``Authorization: Token <token>``.
            timeout: Total timeout of one write request in seconds.
            session: Existing client session to use instead of creating one.
        """
        self.url = url.rstrip("/")
        self.database = database
        self.name = f"influxdb:{self.url}/{database}"
        self._auth = aiohttp.BasicAuth(user, password) if user and password else None
        self._headers: Dict[str, str] = {"Content-Type": "text/plain; charset=utf-8"}
        if token:
            self._headers["Authorization"] = f"Token {token}"
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

        logger.info(f"Initialized InfluxDB writer {self.name}")

    def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def write(self, point: Point) -> None:
        body = to_line_protocol(point)
        params = {"db": self.database, "precision": "s"}
        session = self._get_session()

        try:
            async with session.post(
                f"{self.url}/write",
                params=params,
                data=body.encode("utf-8"),
                headers=self._headers,
                auth=self._auth,
                timeout=self._timeout,
            ) as response:
                if response.status < 300:
                    logger.debug(f"Wrote to {self.name}: {body}")
                    return
                detail = (await response.text()).strip()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransientWriteError(f"{self.name}: {e!r}")

        message = f"{self.name} answered {response.status}: {detail}"
        if response.status in RETRYABLE_STATUS or response.status >= 500:
            raise TransientWriteError(message)
        raise RejectedWriteError(message)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
