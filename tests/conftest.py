"""Shared fixtures for the gateway tests."""

import pytest

from mqtt_gateway.config import DebugTarget, Source
from mqtt_gateway.decoders import SourceType
from mqtt_gateway.shared.models import Point

DEVICE = "114190641177"
LAST_UPDATE = 1701271852
ARRIVAL = 1700000000


@pytest.fixture
def clock():
    """Fixed arrival time for messages."""
    return lambda: float(ARRIVAL)


@pytest.fixture
def solar_source() -> Source:
    return Source(name="solar", type=SourceType.OPENDTU, prefix="solar", targets=(DebugTarget(),))


@pytest.fixture
def make_point():
    """Factory for simple single-value points."""
    def _make(measurement="power", value=1.0, timestamp=LAST_UPDATE, **tags):
        return Point(
            measurement=measurement,
            fields={"value": value},
            tags=tags,
            timestamp=timestamp,
        )
    return _make
