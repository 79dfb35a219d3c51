"""Target that logs points instead of storing them."""

import logging

from mqtt_gateway.shared.models import Point

from .base import WriteAdapter

logger = logging.getLogger(__name__)


class DebugWriter(WriteAdapter):
    """Logs every point at INFO level."""

    def __init__(self, name: str = "debug"):
        self.name = f"debug:{name}"
        self.written = 0

    async def write(self, point: Point) -> None:
        self.written += 1
        logger.info(f"{self.name} #{self.written}: {point}")
