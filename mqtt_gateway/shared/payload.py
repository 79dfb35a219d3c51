"""Payload coercion helpers used by all decoders."""

import json
import math
from datetime import datetime, timezone
from typing import Any, Dict, Union

from .errors import PayloadParseError

# Non-numeric payloads that are categorical states rather than broken numbers
STATUS_VALUES = frozenset({
    "online",
    "offline",
    "on",
    "off",
    "true",
    "false",
    "open",
    "closed",
    "opening",
    "closing",
    "stopped",
})


def decode_text(payload: Union[bytes, str]) -> str:
    """Decode a raw MQTT payload to stripped text.

    Raises:
        PayloadParseError: If the bytes are not valid UTF-8.
    """
    if isinstance(payload, str):
        return payload.strip()
    try:
        return payload.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise PayloadParseError(f"payload is not UTF-8: {e}")


def parse_number(text: str) -> float:
    """Parse numeric text as a float, whatever its apparent shape.

    ``"216"`` becomes ``216.0`` and ``"75.00"`` becomes ``75.0``.

    Raises:
        PayloadParseError: For non-numeric text, NaN or infinity.
    """
    try:
        value = float(text)
    except (TypeError, ValueError, OverflowError):
        raise PayloadParseError(f"not a number: {text!r}")
    if math.isnan(value) or math.isinf(value):
        raise PayloadParseError(f"not a finite number: {text!r}")
    return value


def parse_epoch_seconds(text: str) -> int:
    """Parse a Unix epoch seconds value, accepting integral float text.

    Raises:
        PayloadParseError: If the text is not integral or the instant cannot
            be represented as a UTC datetime.
    """
    try:
        seconds = int(text)
    except (TypeError, ValueError, OverflowError):
        value = parse_number(text)
        if not value.is_integer():
            raise PayloadParseError(f"not an epoch seconds value: {text!r}")
        seconds = int(value)

    try:
        datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        raise PayloadParseError(f"epoch seconds out of range: {text!r}")
    return seconds


def coerce_value(text: str) -> Union[float, str]:
    """Coerce a plain payload to a float or a categorical status word.

    Raises:
        PayloadParseError: If the text is neither numeric nor a known status.
    """
    lowered = text.lower()
    if lowered in STATUS_VALUES:
        return lowered
    return parse_number(text)


def parse_json_object(payload: Union[bytes, str]) -> Dict[str, Any]:
    """Parse a payload that must be a JSON object."""
    text = decode_text(payload)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise PayloadParseError(f"invalid JSON: {e}")
    if not isinstance(data, dict):
        raise PayloadParseError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_rfc3339(text: str) -> int:
    """Convert an RFC 3339 timestamp to Unix epoch seconds.

    Naive timestamps are taken as UTC.
    """
    if not isinstance(text, str):
        raise PayloadParseError(f"timestamp must be a string, got {text!r}")
    normalized = text.strip()
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        raise PayloadParseError(f"invalid RFC 3339 timestamp: {text!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())
