"""Matching of inbound messages to sources and their decoders."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from mqtt_gateway.config import Source
from mqtt_gateway.decoders import DECODERS, Decoded
from mqtt_gateway.decoders.base import Payload
from mqtt_gateway.shared.errors import (
    DecodeError,
    MissingTimestampContext,
    PayloadParseError,
    UnknownSuffix,
    UnroutableTopic,
)
from mqtt_gateway.shared.models import Point
from mqtt_gateway.state import EMPTY_STATE, DeviceStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Routed:
    """Points decoded from one message and the source they belong to."""
    source: Source
    points: Tuple[Point, ...]


@dataclass
class RouterStats:
    """Message counters, by outcome."""
    received: int = 0
    routed: int = 0
    unroutable: int = 0
    unknown_suffix: int = 0
    parse_errors: int = 0
    missing_timestamp: int = 0
    points: int = 0


class Router:
    """Routes ``(topic, payload)`` messages to the decoder of their source.

    A source matches when its prefix segments equal the leading segments of
    the topic; ``solar`` matches ``solar/x`` but not ``solarpanel/x``. When
    several prefixes match, the one with the most segments wins.
    """

    def __init__(
        self,
        sources: Sequence[Source],
        states: Optional[DeviceStateStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the router.

        Args:
            sources: Configured sources.
            states: Device state store; a new one is created if omitted.
            clock: Returns the arrival time of a message in epoch seconds.
        """
        # Longest prefix first so the first match is the most specific one
        self.sources: List[Source] = sorted(
            sources, key=lambda source: len(source.segments), reverse=True
        )
        self.states = states if states is not None else DeviceStateStore()
        self.stats = RouterStats()
        self._clock = clock

    def subscriptions(self) -> List[str]:
        """Topic filters covering every source."""
        return [source.subscription for source in self.sources]

    def match(self, topic: str) -> Optional[Tuple[Source, List[str]]]:
        """Find the source of a topic.

        Returns:
            The source and the remaining topic segments, or None.
        """
        segments = topic.split("/")
        for source in self.sources:
            prefix = source.segments
            if tuple(segments[:len(prefix)]) == prefix:
                return source, segments[len(prefix):]
        return None

    def resolve(self, topic: str) -> Tuple[Source, List[str]]:
        """Like match(), but raises UnroutableTopic when no source matches."""
        matched = self.match(topic)
        if matched is None:
            raise UnroutableTopic("no source for topic", topic=topic)
        return matched

    def route(self, topic: str, payload: Payload) -> Optional[Routed]:
        """Decode a message into points.

        Decode failures are logged and counted, never raised.

        Returns:
            The matched source and its points (possibly none), or None if
            no source matches or the message could not be decoded.
        """
        self.stats.received += 1

        try:
            source, suffix = self.resolve(topic)
            decoded = self._decode(source, topic, suffix, payload)
        except UnroutableTopic as e:
            self.stats.unroutable += 1
            logger.debug(f"No source for topic {e.topic}")
            return None
        except UnknownSuffix as e:
            self.stats.unknown_suffix += 1
            logger.debug(f"Ignoring {e.topic} for source {source.name}: {e}")
            return None
        except PayloadParseError as e:
            self.stats.parse_errors += 1
            logger.warning(f"Cannot parse payload of {e.topic} ({source.name}): {e}")
            return None
        except MissingTimestampContext as e:
            self.stats.missing_timestamp += 1
            logger.warning(f"Dropping {e.topic} ({source.name}): {e}")
            return None
        except DecodeError as e:
            self.stats.parse_errors += 1
            logger.warning(f"Cannot decode {e.topic} ({source.name}): {e}")
            return None

        self.stats.routed += 1
        self.stats.points += len(decoded.points)
        return Routed(source=source, points=decoded.points)

    def _decode(self, source: Source, topic: str, suffix: List[str], payload: Payload) -> Decoded:
        try:
            return self._run_decoder(source, suffix, payload)
        except DecodeError as e:
            e.topic = e.topic or topic
            raise

    def _run_decoder(self, source: Source, suffix: List[str], payload: Payload) -> Decoded:
        decoder = DECODERS[source.type]
        received_at = int(self._clock())

        device = decoder.device_key(suffix)
        if device is None:
            return decoder.decode(suffix, payload, EMPTY_STATE, received_at)

        with self.states.locked(source.name, device) as handle:
            decoded = decoder.decode(suffix, payload, handle.state, received_at)
            handle.update(decoded.state)
        return decoded
