"""Decoder for OpenDTU solar inverter gateways.

Topic grammar below the source prefix:

    dtu/<field>                          DTU-wide status, metadata only
    <device_id>/name                     inverter display name
    <device_id>/status/<field>           status; last_update dates the cycle
    <device_id>/device/<field>           hardware metadata
    <device_id>/<channel>/<metric>       channel reading (0 = AC, n >= 1 = DC string)

The firmware publishes one ``status/last_update`` per update cycle and then
the untimed channel readings, so every channel reading is stamped with the
last timestamp seen for its device.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Optional, Sequence

from mqtt_gateway.shared.errors import MissingTimestampContext, UnknownSuffix
from mqtt_gateway.shared.payload import decode_text, parse_epoch_seconds, parse_number
from mqtt_gateway.state import DeviceState

from .base import NOTHING, Decoded, Decoder, Payload, build_point, join_topic, points

logger = logging.getLogger(__name__)

DTU_SECTION = "dtu"
INVERTER_CHANNEL = "0"


def device_key(segments: Sequence[str]) -> Optional[str]:
    if not segments or segments[0] == DTU_SECTION:
        return None
    return segments[0]


def calendar_tags(timestamp: int) -> Dict[str, str]:
    """Year and month tags of a timestamp in UTC."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return {
        "year": str(moment.year),
        "month": str(moment.month),
        "year_month": f"{moment.year:04d}-{moment.month:02d}",
    }


def decode(
    segments: Sequence[str],
    payload: Payload,
    state: DeviceState,
    received_at: int,
) -> Decoded:
    if not segments:
        raise UnknownSuffix("empty topic suffix")

    if segments[0] == DTU_SECTION:
        logger.debug(f"OpenDTU dtu {join_topic(segments[1:])}: {decode_text(payload)!r}")
        return NOTHING

    device = segments[0]
    rest = segments[1:]

    if len(rest) == 1 and rest[0] == "name":
        return Decoded(state=state.with_name(decode_text(payload)))

    if len(rest) != 2:
        raise UnknownSuffix(f"unexpected OpenDTU topic {join_topic(segments)}")

    section, field = rest
    text = decode_text(payload)

    if section == "status":
        if field == "last_update":
            return Decoded(state=state.with_timestamp(parse_epoch_seconds(text)))
        logger.debug(f"OpenDTU {device} status {field}: {text!r}")
        return Decoded(state=state.with_attribute(f"status/{field}", text))

    if section == "device":
        logger.debug(f"OpenDTU {device} device {field}: {text!r}")
        return Decoded(state=state.with_attribute(f"device/{field}", text))

    if not (section.isascii() and section.isdigit()):
        raise UnknownSuffix(f"unknown OpenDTU section {section!r} in {join_topic(segments)}")

    channel = str(int(section))

    if field == "name":
        return Decoded(state=state.with_attribute(f"channel/{channel}/name", text))

    if not text:
        # Unsupported values are published as empty leaves
        return NOTHING

    value = parse_number(text)

    if state.last_timestamp is None:
        raise MissingTimestampContext(
            f"no last_update seen for OpenDTU device {device}, "
            f"cannot date {channel}/{field}"
        )

    tags = {"device": device}
    if channel == INVERTER_CHANNEL:
        tags["component"] = "inverter"
    else:
        tags["component"] = "string"
        tags["string"] = channel
    tags.update(calendar_tags(state.last_timestamp))

    label = state.name or device
    logger.debug(f"OpenDTU {label} {tags['component']} {channel} {field}: {value}")

    return points(build_point(
        measurement=field,
        fields={"value": value},
        tags=tags,
        timestamp=state.last_timestamp,
    ))


DECODER = Decoder(device_key=device_key, decode=decode)
