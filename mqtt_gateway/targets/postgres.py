"""PostgreSQL target: one table per measurement.

Each point becomes one row of the table named after its measurement, with
a ``time`` column, one column per tag and one per field:

    insert into "powerdc" (time, component, device, month, year, year_month, value)
"""

import asyncio
import logging
import threading
from typing import Any, Callable, List, Optional, Tuple

import psycopg2
from psycopg2 import sql

from mqtt_gateway.shared.errors import RejectedWriteError, TransientWriteError
from mqtt_gateway.shared.models import Point

from .base import WriteAdapter

logger = logging.getLogger(__name__)


def build_insert(point: Point) -> Tuple[sql.Composed, List[Any]]:
    """Build the INSERT statement and its parameters for a point.

    Raises:
        RejectedWriteError: If a tag and a field share a column name.
    """
    tag_names = sorted(point.tags)
    field_names = sorted(point.fields)
    clashes = set(tag_names) & set(field_names) | {"time"} & (set(tag_names) | set(field_names))
    if clashes:
        raise RejectedWriteError(f"column name clash in {point}: {sorted(clashes)}")

    columns = ["time"] + tag_names + field_names
    params: List[Any] = [point.time]
    params += [point.tags[name] for name in tag_names]
    params += [point.fields[name] for name in field_names]

    statement = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
        table=sql.Identifier(point.measurement),
        columns=sql.SQL(", ").join(sql.Identifier(column) for column in columns),
        values=sql.SQL(", ").join(sql.Placeholder() for _ in columns),
    )
    return statement, params


class PostgresWriter(WriteAdapter):
    """Writes points to PostgreSQL with psycopg2.

    psycopg2 is blocking, so inserts run in a worker thread; a lock keeps
    the single connection to one statement at a time.
    """

    def __init__(
        self,
        host: str,
        database: str,
        user: str = "",
        password: str = "",
        port: int = 5432,
        connect: Callable[..., Any] = psycopg2.connect,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.name = f"postgresql:{host}:{port}/{database}"
        self._connect = connect
        self._connection: Optional[Any] = None
        self._lock = threading.Lock()

    def _get_connection(self):
        """Get or create database connection."""
        if self._connection is None or self._connection.closed:
            self._connection = self._connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                dbname=self.database,
            )
            logger.info(f"PostgreSQL connected: {self.name}")
        return self._connection

    def _reset(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except psycopg2.Error as e:
                logger.debug(f"Error closing broken connection to {self.name}: {e}")
        self._connection = None

    def insert(self, point: Point) -> None:
        """Insert a point (blocking)."""
        statement, params = build_insert(point)

        with self._lock:
            try:
                conn = self._get_connection()
            except psycopg2.Error as e:
                raise TransientWriteError(f"cannot connect to {self.name}: {e}")

            try:
                with conn.cursor() as cursor:
                    cursor.execute(statement, params)
                conn.commit()
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                logger.warning(f"Connection error on {self.name}: {e}. Reconnecting on next write")
                self._reset()
                raise TransientWriteError(f"{self.name}: {e}")
            except psycopg2.Error as e:
                try:
                    conn.rollback()
                except psycopg2.Error:
                    self._reset()
                raise RejectedWriteError(f"{self.name} rejected {point.measurement}: {e}")

    async def write(self, point: Point) -> None:
        await asyncio.to_thread(self.insert, point)

    async def close(self) -> None:
        with self._lock:
            self._reset()
