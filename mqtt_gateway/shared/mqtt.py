"""MQTT broker configuration."""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1883


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""
    broker: str = "localhost"
    port: int = DEFAULT_PORT
    client_id: str = "mqtt-gateway"
    keepalive: int = 60
    qos: int = 1
    username: Optional[str] = None
    password: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "MQTTConfig":
        """Create config from dictionary."""
        return cls(
            broker=data.get("broker", "localhost"),
            port=int(data.get("port", DEFAULT_PORT)),
            client_id=data.get("client_id", "mqtt-gateway"),
            keepalive=int(data.get("keepalive", 60)),
            qos=int(data.get("qos", 1)),
            username=data.get("username"),
            password=data.get("password"),
        )

    @classmethod
    def from_url(cls, url: str, client_id: str = "mqtt-gateway") -> "MQTTConfig":
        """Create config from a broker URL such as ``mqtt://mqtt:1883``.

        Args:
            url: Broker URL; ``tcp://`` and bare ``host:port`` are accepted too.
            client_id: Client identifier for a persistent session.

        Returns:
            MQTTConfig for the URL.
        """
        if "://" not in url:
            url = f"mqtt://{url}"
        parsed = urlparse(url)
        return cls(
            broker=parsed.hostname or "localhost",
            port=parsed.port or DEFAULT_PORT,
            client_id=client_id,
            username=parsed.username,
            password=parsed.password,
        )
