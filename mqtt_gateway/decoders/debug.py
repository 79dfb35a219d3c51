"""Decoder that only logs what it receives, for exploring new topic trees."""

import itertools
import logging
from typing import Sequence

from mqtt_gateway.state import DeviceState

from .base import NOTHING, Decoded, Decoder, Payload, join_topic, stateless

logger = logging.getLogger(__name__)

_checked = itertools.count(1)


def decode(
    segments: Sequence[str],
    payload: Payload,
    state: DeviceState,
    received_at: int,
) -> Decoded:
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    logger.info(f"#{next(_checked)} '{join_topic(segments)}' with {payload}")
    return NOTHING


DECODER = Decoder(device_key=stateless, decode=decode)
