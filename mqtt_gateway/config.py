"""Configuration loading for the MQTT gateway."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from mqtt_gateway.decoders import SourceType
from mqtt_gateway.dispatcher import DispatchConfig
from mqtt_gateway.shared.config import get_log_level, load_yaml_config
from mqtt_gateway.shared.errors import ConfigError
from mqtt_gateway.shared.mqtt import MQTTConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InfluxDBTarget:
    """InfluxDB (1.x write API, or 2.x through its 1.x compatibility API)."""
    url: str
    database: str
    user: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    timeout: float = 10.0

    kind = "influxdb"

    @property
    def label(self) -> str:
        return f"influxdb:{self.url}/{self.database}"


@dataclass(frozen=True)
class PostgresTarget:
    """PostgreSQL / TimescaleDB, one table per measurement."""
    host: str
    database: str
    user: str = ""
    password: str = ""
    port: int = 5432

    kind = "postgresql"

    @property
    def label(self) -> str:
        return f"postgresql:{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class MySQLTarget:
    """MySQL readings tables (sensor_readings / current_readings)."""
    host: str
    database: str
    user: str = ""
    password: str = ""
    port: int = 3306
    source_type: str = "mqtt"

    kind = "mysql"

    @property
    def label(self) -> str:
        return f"mysql:{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class DebugTarget:
    """Logs every point instead of storing it."""
    name: str = "debug"

    kind = "debug"

    @property
    def label(self) -> str:
        return f"debug:{self.name}"


TargetConfig = Union[InfluxDBTarget, PostgresTarget, MySQLTarget, DebugTarget]

TARGET_TYPES = {
    InfluxDBTarget.kind: InfluxDBTarget,
    PostgresTarget.kind: PostgresTarget,
    MySQLTarget.kind: MySQLTarget,
    DebugTarget.kind: DebugTarget,
}

TARGET_ALIASES = {
    "influx": InfluxDBTarget.kind,
    "postgres": PostgresTarget.kind,
}

_INT_KEYS = ("port",)
_FLOAT_KEYS = ("timeout",)


@dataclass(frozen=True)
class Source:
    """A configured topic tree: decoder selector, prefix and targets."""
    name: str
    type: SourceType
    prefix: str
    targets: Tuple[TargetConfig, ...] = ()

    @property
    def segments(self) -> Tuple[str, ...]:
        return tuple(self.prefix.split("/"))

    @property
    def subscription(self) -> str:
        return f"{self.prefix}/#"


@dataclass
class Config:
    """Main configuration container."""
    mqtt: MQTTConfig
    sources: List[Source]
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    log_level: str = "INFO"
    stats_interval: float = 300.0
    quiet_loggers: List[str] = field(default_factory=list)
    logger_levels: Dict[str, str] = field(default_factory=dict)


def parse_target(data: Dict[str, Any]) -> TargetConfig:
    """Build a target variant from its configuration mapping.

    Raises:
        ConfigError: On unknown type or missing/unknown keys.
    """
    if not isinstance(data, dict) or "type" not in data:
        raise ConfigError(f"Target needs a 'type': {data!r}")

    options = dict(data)
    kind = str(options.pop("type")).lower()
    kind = TARGET_ALIASES.get(kind, kind)
    target_class = TARGET_TYPES.get(kind)
    if target_class is None:
        raise ConfigError(
            f"Unknown target type '{kind}', expected one of {sorted(TARGET_TYPES)}"
        )

    options = {key: value for key, value in options.items() if value is not None}
    try:
        for key in _INT_KEYS:
            if key in options:
                options[key] = int(options[key])
        for key in _FLOAT_KEYS:
            if key in options:
                options[key] = float(options[key])
        return target_class(**options)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {kind} target {data!r}: {e}")


def parse_source(data: Dict[str, Any]) -> Source:
    """Build a Source from its configuration mapping."""
    if not isinstance(data, dict):
        raise ConfigError(f"Source must be a mapping: {data!r}")

    for key in ("name", "type", "prefix"):
        if not data.get(key):
            raise ConfigError(f"Source is missing '{key}': {data!r}")

    try:
        source_type = SourceType.parse(data["type"])
    except ValueError:
        raise ConfigError(
            f"Unknown source type '{data['type']}' for source '{data['name']}', "
            f"expected one of {[t.value for t in SourceType]}"
        )

    prefix = str(data["prefix"]).strip("/")
    if not prefix or "#" in prefix or "+" in prefix:
        raise ConfigError(f"Invalid prefix '{data['prefix']}' for source '{data['name']}'")

    targets = tuple(parse_target(target) for target in data.get("targets") or [])
    if source_type is SourceType.DEBUG and targets:
        logger.warning(f"debug source '{data['name']}' has targets defined: {targets}")

    return Source(
        name=str(data["name"]),
        type=source_type,
        prefix=prefix,
        targets=targets,
    )


def parse_logging(config_data: Dict[str, Any]) -> Tuple[List[str], Dict[str, str]]:
    """Read the optional 'quiet_loggers' list and 'logger_levels' mapping."""
    quiet = config_data.get("quiet_loggers") or []
    if isinstance(quiet, str) or not isinstance(quiet, list):
        raise ConfigError(f"'quiet_loggers' must be a list of logger names: {quiet!r}")

    levels = config_data.get("logger_levels") or {}
    if not isinstance(levels, dict):
        raise ConfigError(f"'logger_levels' must map logger names to levels: {levels!r}")
    for name, level in levels.items():
        if not isinstance(getattr(logging, str(level).upper(), None), int):
            raise ConfigError(f"Unknown log level '{level}' for logger '{name}'")

    return [str(name) for name in quiet], {str(name): str(level).upper() for name, level in levels.items()}


def parse_config(config_data: Dict[str, Any]) -> Config:
    """Build a Config from an already loaded configuration mapping."""
    # Build MQTT config; mqttUrl/mqttClientId is the older flat layout
    if "mqtt" in config_data:
        mqtt_config = MQTTConfig.from_dict(config_data.get("mqtt") or {})
    elif "mqttUrl" in config_data:
        mqtt_config = MQTTConfig.from_url(
            config_data["mqttUrl"],
            client_id=config_data.get("mqttClientId", "mqtt-gateway"),
        )
    else:
        mqtt_config = MQTTConfig()

    raw_sources = config_data.get("sources") or []
    if not isinstance(raw_sources, list) or not raw_sources:
        raise ConfigError("Configuration needs a non-empty 'sources' list")

    sources = [parse_source(source) for source in raw_sources]

    names = [source.name for source in sources]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate source names: {duplicates}")

    try:
        dispatch = DispatchConfig.from_dict(config_data.get("dispatch") or {})
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid dispatch settings: {e}")

    quiet_loggers, logger_levels = parse_logging(config_data)

    return Config(
        mqtt=mqtt_config,
        sources=sources,
        dispatch=dispatch,
        log_level=get_log_level(config_data),
        stats_interval=float(config_data.get("stats_interval", 300.0)),
        quiet_loggers=quiet_loggers,
        logger_levels=logger_levels,
    )


def load_config(config_path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to the YAML file. If not provided, uses
            MQTT_GATEWAY_CONFIG or config/mqtt-gateway.yaml in the repo.

    Returns:
        Config object with all settings loaded.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the file content is invalid.
    """
    config_data = load_yaml_config(config_path)
    config = parse_config(config_data)

    logger.debug(
        f"Loaded {len(config.sources)} sources from "
        f"{config_path or os.getenv('MQTT_GATEWAY_CONFIG', 'default config path')}"
    )
    return config
