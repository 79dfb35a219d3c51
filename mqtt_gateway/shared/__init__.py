"""Shared utilities for the gateway: point model, errors, payload parsing, config and logging."""

from .models import Point
from .errors import (
    ConfigError,
    DecodeError,
    MissingTimestampContext,
    PayloadParseError,
    RejectedWriteError,
    TransientWriteError,
    UnknownSuffix,
    UnroutableTopic,
    WriteError,
)
from .config import load_yaml_config, get_config_path
from .mqtt import MQTTConfig
from .logging import setup_logging

__all__ = [
    "Point",
    "ConfigError",
    "DecodeError",
    "MissingTimestampContext",
    "PayloadParseError",
    "RejectedWriteError",
    "TransientWriteError",
    "UnknownSuffix",
    "UnroutableTopic",
    "WriteError",
    "load_yaml_config",
    "get_config_path",
    "MQTTConfig",
    "setup_logging",
]
