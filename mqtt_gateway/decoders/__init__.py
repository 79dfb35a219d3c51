"""Source decoders, one per device family."""

from enum import Enum
from typing import Dict

from . import debug, gateway, opendtu, sensor, shelly
from .base import Decoded, Decoder


class SourceType(str, Enum):
    """Closed set of supported source types."""
    SENSOR = "sensor"
    SHELLY = "shelly"
    OPENDTU = "opendtu"
    GATEWAY = "gateway"
    DEBUG = "debug"

    @classmethod
    def parse(cls, value: str) -> "SourceType":
        """Parse a configured type name, accepting legacy aliases."""
        name = str(value).strip().lower()
        return cls(ALIASES.get(name, name))


ALIASES = {
    "openmqttgateway": "gateway",
    "klimalogger": "sensor",
}

DECODERS: Dict[SourceType, Decoder] = {
    SourceType.SENSOR: sensor.DECODER,
    SourceType.SHELLY: shelly.DECODER,
    SourceType.OPENDTU: opendtu.DECODER,
    SourceType.GATEWAY: gateway.DECODER,
    SourceType.DEBUG: debug.DECODER,
}

assert set(DECODERS) == set(SourceType), "every source type needs a decoder"

__all__ = ["DECODERS", "Decoded", "Decoder", "SourceType"]
