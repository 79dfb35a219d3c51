"""Decoder for environmental sensors (klimalogger and plain sensor topics).

Two payload shapes are accepted:

    JSON record   {"time": ..., "host": ..., "location": ..., "type": ...,
                   "unit": ..., "sensor": ..., "calculated": ..., "value": ...}
    plain value   <prefix>/[<location>/...]<measurement>  ->  "21.5" or "online"
"""

import logging
from typing import Sequence

from mqtt_gateway.shared.errors import PayloadParseError, UnknownSuffix
from mqtt_gateway.shared.payload import (
    coerce_value,
    decode_text,
    parse_json_object,
    parse_number,
    parse_rfc3339,
)
from mqtt_gateway.state import DeviceState

from .base import Decoded, Decoder, Payload, build_point, join_topic, points, stateless

logger = logging.getLogger(__name__)

RECORD_TAGS = ("location", "host", "sensor", "unit")


def decode(
    segments: Sequence[str],
    payload: Payload,
    state: DeviceState,
    received_at: int,
) -> Decoded:
    text = decode_text(payload)
    if text.startswith("{"):
        return _decode_record(text, received_at)
    return _decode_plain(segments, text, received_at)


def _decode_record(text: str, received_at: int) -> Decoded:
    data = parse_json_object(text)

    measurement = data.get("type")
    if not isinstance(measurement, str) or not measurement:
        raise PayloadParseError(f"sensor record without 'type': {text}")
    if "value" not in data or isinstance(data["value"], bool):
        raise PayloadParseError(f"sensor record without numeric 'value': {text}")
    value = parse_number(data["value"])

    timestamp = parse_rfc3339(data["time"]) if data.get("time") else received_at

    tags = {
        key: str(data[key])
        for key in RECORD_TAGS
        if data.get(key) is not None and data.get(key) != ""
    }
    if "calculated" in data:
        tags["calculated"] = "true" if data["calculated"] else "false"

    logger.debug(f"Sensor {tags.get('location', '?')} {measurement}: {value}")

    return points(build_point(
        measurement=measurement,
        fields={"value": value},
        tags=tags,
        timestamp=timestamp,
    ))


def _decode_plain(segments: Sequence[str], text: str, received_at: int) -> Decoded:
    if not segments or not segments[-1]:
        raise UnknownSuffix(f"sensor topic without measurement: {join_topic(segments)!r}")

    measurement = segments[-1]
    tags = {}
    if len(segments) > 1:
        tags["location"] = join_topic(segments[:-1])

    return points(build_point(
        measurement=measurement,
        fields={"value": coerce_value(text)},
        tags=tags,
        timestamp=received_at,
    ))


DECODER = Decoder(device_key=stateless, decode=decode)
