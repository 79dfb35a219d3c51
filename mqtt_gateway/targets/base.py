"""Base class for target write adapters."""

from abc import ABC, abstractmethod
import logging

from mqtt_gateway.shared.models import Point

logger = logging.getLogger(__name__)


class WriteAdapter(ABC):
    """Base class for all storage backends.

    ``write`` raises TransientWriteError for failures worth retrying and
    RejectedWriteError for permanent ones. Adapters may be called
    concurrently for different points.
    """

    name: str = "target"

    @abstractmethod
    async def write(self, point: Point) -> None:
        """Write a single point to the backend."""
        pass

    async def close(self) -> None:
        """Release connections held by the adapter."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"
