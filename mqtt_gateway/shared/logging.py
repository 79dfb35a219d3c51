"""Logging setup for the gateway process."""

import logging
from typing import Iterable, Mapping, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO/DEBUG
NOISY_LOGGERS = ("asyncio", "aiohttp", "paho")


def to_level(level: str, default: int = logging.INFO) -> int:
    """Translate a level name such as ``"debug"`` to its logging constant."""
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else default


def setup_logging(
    level: str = "INFO",
    format_string: Optional[str] = None,
    quiet_loggers: Optional[Iterable[str]] = None,
    logger_levels: Optional[Mapping[str, str]] = None,
) -> None:
    """Configure logging for the gateway.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        format_string: Custom format string for log messages.
        quiet_loggers: Extra logger names to set to WARNING, on top of the
            noisy third-party ones.
        logger_levels: Per-logger levels, e.g.
            ``{"mqtt_gateway.decoders.debug": "WARNING"}`` to silence a
            debug source without touching the rest of the gateway.
    """
    logging.basicConfig(
        level=to_level(level),
        format=format_string or DEFAULT_FORMAT,
    )

    for logger_name in NOISY_LOGGERS + tuple(quiet_loggers or ()):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    for logger_name, logger_level in (logger_levels or {}).items():
        logging.getLogger(logger_name).setLevel(to_level(logger_level))
