"""MQTT Gateway - decodes device telemetry from MQTT and writes it to time-series stores."""

__version__ = "0.1.0"


def main():
    """Entry point for the gateway service.

    The configuration path is taken from MQTT_GATEWAY_CONFIG, falling back
    to config/mqtt-gateway.yaml at the repo root.
    """
    from .config import load_config
    from .service import run
    from .shared.logging import setup_logging

    config = load_config()
    setup_logging(
        config.log_level,
        quiet_loggers=config.quiet_loggers,
        logger_levels=config.logger_levels,
    )

    run(config)


__all__ = ["main", "__version__"]
