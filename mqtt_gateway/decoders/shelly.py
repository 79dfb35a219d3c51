"""Decoder for Shelly smart plugs, switches and covers.

Gen2 devices publish an RPC status object per component:

    <location>/status/switch:<channel>   {"output": ..., "apower": ..., "aenergy": {...}, ...}
    <location>/status/cover:<channel>    {"current_pos": ..., "apower": ..., ...}

Gen1 devices publish one plain value per leaf:

    <location>/online                    "true" / "false"
    <location>/relay/<channel>           "on" / "off"
    <location>/relay/<channel>/<metric>  "12.5"
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from mqtt_gateway.shared.errors import PayloadParseError, UnknownSuffix
from mqtt_gateway.shared.models import FieldValue
from mqtt_gateway.shared.payload import (
    coerce_value,
    decode_text,
    parse_epoch_seconds,
    parse_json_object,
    parse_number,
)
from mqtt_gateway.state import DeviceState

from .base import Decoded, Decoder, Payload, build_point, join_topic, points, split_channel, stateless

logger = logging.getLogger(__name__)

FieldMapper = Callable[[Dict[str, Any]], Optional[FieldValue]]


def _float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        raise PayloadParseError(f"expected a number, got {value!r}")
    return parse_number(value)


def _int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        raise PayloadParseError(f"expected a number, got {value!r}")
    return int(parse_number(value))


# (measurement, mapper, unit) in publication order
SWITCH_FIELDS: List[Tuple[str, FieldMapper, str]] = [
    ("output", lambda data: int(bool(data["output"])), "bool"),
    ("power", lambda data: _float(data.get("apower")), "W"),
    ("current", lambda data: _float(data.get("current")), "A"),
    ("voltage", lambda data: _float(data.get("voltage")), "V"),
    ("total_energy", lambda data: _float(data["aenergy"]["total"]), "Wh"),
    ("temperature", lambda data: _float(data["temperature"]["tC"]), "°C"),
]

COVER_FIELDS: List[Tuple[str, FieldMapper, str]] = [
    ("position", lambda data: _int(data.get("current_pos")), "%"),
    ("power", lambda data: _float(data.get("apower")), "W"),
    ("current", lambda data: _float(data.get("current")), "A"),
    ("voltage", lambda data: _float(data.get("voltage")), "V"),
    ("total_energy", lambda data: _float(data["aenergy"]["total"]), "Wh"),
    ("temperature", lambda data: _float(data["temperature"]["tC"]), "°C"),
]

COMPONENTS = {
    "switch": (SWITCH_FIELDS, ("output", "aenergy", "temperature")),
    "cover": (COVER_FIELDS, ("aenergy", "temperature")),
}


def decode(
    segments: Sequence[str],
    payload: Payload,
    state: DeviceState,
    received_at: int,
) -> Decoded:
    if len(segments) == 3 and segments[1] == "status":
        location, _, component = segments
        for kind in COMPONENTS:
            channel = split_channel(component, kind)
            if channel is not None:
                return _decode_status(kind, location, channel, payload, received_at)
        raise UnknownSuffix(f"unsupported Shelly component {component!r}")

    if len(segments) == 2 and segments[1] == "online":
        return _plain(segments[0], None, "online", payload, received_at)

    if len(segments) in (3, 4) and segments[1] == "relay":
        measurement = segments[3] if len(segments) == 4 else "relay"
        return _plain(segments[0], segments[2], measurement, payload, received_at)

    raise UnknownSuffix(f"unexpected Shelly topic {join_topic(segments)}")


def _decode_status(
    kind: str,
    location: str,
    channel: str,
    payload: Payload,
    received_at: int,
) -> Decoded:
    fields, required = COMPONENTS[kind]
    data = parse_json_object(payload)

    for key in required:
        if key not in data:
            raise PayloadParseError(f"Shelly {kind} status without '{key}'")

    try:
        minute_ts = data["aenergy"].get("minute_ts")
        values = [(measurement, mapper(data), unit) for measurement, mapper, unit in fields]
    except (AttributeError, KeyError, TypeError) as e:
        raise PayloadParseError(f"malformed Shelly {kind} status: {e!r}")

    timestamp = received_at
    if minute_ts is not None:
        timestamp = parse_epoch_seconds(minute_ts)

    logger.debug(f"Shelly {location}:{channel} {kind} @{timestamp}")

    return points(*[
        build_point(
            measurement=measurement,
            fields={"value": value},
            tags={
                "location": location,
                "channel": channel,
                "sensor": "shelly",
                "type": kind,
                "unit": unit,
            },
            timestamp=timestamp,
        )
        for measurement, value, unit in values
        if value is not None
    ])


def _plain(
    location: str,
    channel: Optional[str],
    measurement: str,
    payload: Payload,
    received_at: int,
) -> Decoded:
    tags = {"location": location, "sensor": "shelly"}
    if channel is not None:
        tags["channel"] = channel

    return points(build_point(
        measurement=measurement,
        fields={"value": coerce_value(decode_text(payload))},
        tags=tags,
        timestamp=received_at,
    ))


DECODER = Decoder(device_key=stateless, decode=decode)
