"""Decoder for OpenMQTTGateway BLE gateways.

    <gateway_id>/BTtoMQTT/<device_id>   JSON advertisement decoded by the gateway
    <gateway_id>/LWT                    gateway availability ("online" / "offline")
"""

import logging
from typing import Sequence

from mqtt_gateway.shared.errors import UnknownSuffix
from mqtt_gateway.shared.payload import coerce_value, decode_text, parse_json_object, parse_number
from mqtt_gateway.state import DeviceState

from .base import NOTHING, Decoded, Decoder, Payload, build_point, join_topic, points, stateless

logger = logging.getLogger(__name__)

BLE_CHANNEL = "BTtoMQTT"
BLE_MEASUREMENT = "btle"
IGNORED_KEYS = frozenset({"id"})


def decode(
    segments: Sequence[str],
    payload: Payload,
    state: DeviceState,
    received_at: int,
) -> Decoded:
    if len(segments) == 3 and segments[1] == BLE_CHANNEL:
        gateway_id, _, device_id = segments
        return _decode_ble(gateway_id, device_id, payload, received_at)

    if len(segments) == 2 and segments[1] == "LWT":
        return points(build_point(
            measurement="status",
            fields={"value": coerce_value(decode_text(payload))},
            tags={"gateway": segments[0]},
            timestamp=received_at,
        ))

    raise UnknownSuffix(f"unexpected OpenMQTTGateway topic {join_topic(segments)}")


def _decode_ble(gateway_id: str, device_id: str, payload: Payload, received_at: int) -> Decoded:
    data = parse_json_object(payload)

    fields = {}
    tags = {}
    for key, value in data.items():
        if not key or key in IGNORED_KEYS:
            continue
        if isinstance(value, bool):
            logger.debug(f"unhandled entry {key}: {value!r}")
        elif isinstance(value, (int, float)):
            fields[key] = parse_number(value)
        elif isinstance(value, str):
            tags[key] = value
        else:
            logger.debug(f"unhandled entry {key}: {value!r}")

    # Topic identity wins over payload entries of the same name
    tags["device"] = device_id
    tags["gateway"] = gateway_id

    if not fields:
        logger.debug(f"OpenMQTTGateway {gateway_id}/{device_id}: no numeric entries")
        return NOTHING

    return points(build_point(
        measurement=BLE_MEASUREMENT,
        fields=fields,
        tags=tags,
        timestamp=received_at,
    ))


DECODER = Decoder(device_key=stateless, decode=decode)
