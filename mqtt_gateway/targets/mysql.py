"""MySQL target writing the sensor_readings / current_readings tables."""

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

import pymysql
from pymysql.cursors import DictCursor

from mqtt_gateway.shared.errors import RejectedWriteError, TransientWriteError
from mqtt_gateway.shared.models import Point

from .base import WriteAdapter

logger = logging.getLogger(__name__)

# Tags tried in order for the sensor_id and location columns
SENSOR_ID_TAGS = ("device", "sensor", "gateway", "host")
LOCATION_TAGS = ("location", "device", "gateway")
METRIC_TYPE_TAGS = ("component", "type")

INSERT_SQL = """
    INSERT INTO sensor_readings
    (timestamp, source_type, sensor_id, location, metric, metric_type, value)
    VALUES (%s, %s, %s, %s, %s, %s, %s)
"""

UPSERT_SQL = """
    INSERT INTO current_readings
    (sensor_id, location, metric, metric_type, value, timestamp, source_type, updated_at)
    VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
    ON DUPLICATE KEY UPDATE
        value = VALUES(value),
        timestamp = VALUES(timestamp),
        source_type = VALUES(source_type),
        updated_at = NOW()
"""

Row = Tuple[Any, str, str, str, str, str, float]


def _first_tag(point: Point, names: Tuple[str, ...], default: str = "") -> str:
    for name in names:
        if point.tags.get(name):
            return point.tags[name]
    return default


def to_rows(point: Point, source_type: str) -> List[Row]:
    """Flatten a point into sensor_readings rows, one per numeric field.

    The ``value`` field keeps the measurement as metric name, other fields
    are stored as ``<measurement>_<field>``. Text and boolean fields have no
    column in these tables and are skipped.
    """
    sensor_id = _first_tag(point, SENSOR_ID_TAGS, default=point.measurement)
    location = _first_tag(point, LOCATION_TAGS)
    metric_type = _first_tag(point, METRIC_TYPE_TAGS, default=point.measurement)

    rows = []
    for name, value in point.fields.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        metric = point.measurement if name == "value" else f"{point.measurement}_{name}"
        rows.append(
            (point.time, source_type, sensor_id, location, metric, metric_type, float(value))
        )
    return rows


class MySQLWriter(WriteAdapter):
    """Stores points as readings in MySQL.

    Every write appends to sensor_readings and upserts current_readings in
    one transaction.
    """

    def __init__(
        self,
        host: str,
        database: str,
        user: str = "",
        password: str = "",
        port: int = 3306,
        source_type: str = "mqtt",
        connect: Callable[..., Any] = pymysql.connect,
    ):
        """Initialize the writer.

        Args:
            host: MySQL server host.
            database: Database holding the readings tables.
            user: Database user.
            password: Database password.
            port: MySQL server port.
            source_type: Value stored in the source_type column.
            connect: Connection factory, pymysql.connect by default.
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.source_type = source_type
        self.name = f"mysql:{host}:{port}/{database}"
        self._connect = connect
        self._connection: Optional[Any] = None
        self._lock = threading.Lock()

    def _get_connection(self):
        """Get or create database connection."""
        if self._connection is None or not self._connection.open:
            self._connection = self._connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                database=self.database,
                cursorclass=DictCursor,
            )
            logger.info(f"MySQL connected: {self.name}")
        return self._connection

    def _reset(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except pymysql.MySQLError as e:
                logger.debug(f"Error closing broken connection to {self.name}: {e}")
        self._connection = None

    def store(self, point: Point) -> None:
        """Store a point (blocking)."""
        rows = to_rows(point, self.source_type)
        if not rows:
            raise RejectedWriteError(f"{point} has no numeric field to store in {self.name}")

        with self._lock:
            try:
                conn = self._get_connection()
            except pymysql.MySQLError as e:
                raise TransientWriteError(f"cannot connect to {self.name}: {e}")

            try:
                with conn.cursor() as cursor:
                    cursor.executemany(INSERT_SQL, rows)
                    for timestamp, source_type, sensor_id, location, metric, metric_type, value in rows:
                        cursor.execute(
                            UPSERT_SQL,
                            (sensor_id, location, metric, metric_type, value, timestamp, source_type),
                        )
                conn.commit()
            except (pymysql.err.OperationalError, pymysql.err.InterfaceError) as e:
                logger.warning(f"Connection error on {self.name}: {e}. Reconnecting on next write")
                self._reset()
                raise TransientWriteError(f"{self.name}: {e}")
            except pymysql.MySQLError as e:
                try:
                    conn.rollback()
                except pymysql.MySQLError:
                    self._reset()
                raise RejectedWriteError(f"{self.name} rejected {point.measurement}: {e}")

    async def write(self, point: Point) -> None:
        await asyncio.to_thread(self.store, point)

    async def close(self) -> None:
        with self._lock:
            self._reset()
