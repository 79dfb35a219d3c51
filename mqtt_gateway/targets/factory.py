"""Creation of write adapters from target configuration."""

from mqtt_gateway.config import (
    DebugTarget,
    InfluxDBTarget,
    MySQLTarget,
    PostgresTarget,
    TargetConfig,
)

from .base import WriteAdapter
from .debug import DebugWriter
from .influx import InfluxDBWriter
from .mysql import MySQLWriter
from .postgres import PostgresWriter


def create_adapter(target: TargetConfig) -> WriteAdapter:
    """Create the write adapter for a target configuration.

    Raises:
        TypeError: If the target kind has no adapter.
    """
    if isinstance(target, InfluxDBTarget):
        return InfluxDBWriter(
            url=target.url,
            database=target.database,
            user=target.user,
            password=target.password,
            token=target.token,
            timeout=target.timeout,
        )
    if isinstance(target, PostgresTarget):
        return PostgresWriter(
            host=target.host,
            database=target.database,
            user=target.user,
            password=target.password,
            port=target.port,
        )
    if isinstance(target, MySQLTarget):
        return MySQLWriter(
            host=target.host,
            database=target.database,
            user=target.user,
            password=target.password,
            port=target.port,
            source_type=target.source_type,
        )
    if isinstance(target, DebugTarget):
        return DebugWriter(target.name)
    raise TypeError(f"No write adapter for target {target!r}")
