"""Common types for source decoders."""

from dataclasses import dataclass
from typing import Callable, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from mqtt_gateway.shared.errors import PayloadParseError
from mqtt_gateway.shared.models import FieldValue, Point
from mqtt_gateway.state import DeviceState

Payload = Union[bytes, str]


@dataclass(frozen=True)
class Decoded:
    """Result of decoding one message.

    Attributes:
        points: Points to dispatch, possibly none.
        state: New state for the message's device, or None if unchanged.
    """
    points: Tuple[Point, ...] = ()
    state: Optional[DeviceState] = None


NOTHING = Decoded()


class Decoder(NamedTuple):
    """A decoder is a pair of pure functions over the topic suffix segments.

    device_key picks the device whose state the message reads or updates
    (None when the source keeps no state). decode maps
    (segments, payload, state, received_at) to a Decoded result and raises
    a DecodeError subclass when the message cannot be used.
    """
    device_key: Callable[[Sequence[str]], Optional[str]]
    decode: Callable[[Sequence[str], Payload, DeviceState, int], Decoded]


def stateless(segments: Sequence[str]) -> Optional[str]:
    """device_key for sources that publish self-contained readings."""
    return None


def build_point(
    measurement: str,
    fields: Mapping[str, FieldValue],
    tags: Mapping[str, str],
    timestamp: int,
) -> Point:
    """Construct a Point from decoded payload content.

    Raises:
        PayloadParseError: If the content does not make a valid Point.
    """
    try:
        return Point(measurement=measurement, fields=fields, tags=tags, timestamp=timestamp)
    except ValueError as e:
        raise PayloadParseError(str(e))


def points(*items: Point) -> Decoded:
    return Decoded(points=tuple(items))


def join_topic(segments: Sequence[str]) -> str:
    return "/".join(segments)


def split_channel(segment: str, kind: str) -> Optional[str]:
    """Split a ``kind:<channel>`` segment, e.g. ``switch:1`` -> ``1``."""
    prefix = f"{kind}:"
    if segment.startswith(prefix) and len(segment) > len(prefix):
        return segment[len(prefix):]
    return None
