"""Core data model for decoded measurements."""

from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Mapping, Optional, Union

FieldValue = Union[float, int, str, bool]

FIELD_TYPES = (float, int, str, bool)


@dataclass(frozen=True)
class Point:
    """A single time-stamped measurement ready to be written to a target.

    Fields and tags are copied into read-only mappings on construction.
    """
    measurement: str
    fields: Mapping[str, FieldValue]
    tags: Mapping[str, str]
    timestamp: int

    def __post_init__(self):
        if not self.measurement:
            raise ValueError("Point measurement must not be empty")
        if not self.fields:
            raise ValueError(f"Point '{self.measurement}' needs at least one field")

        for key, value in self.fields.items():
            if not key:
                raise ValueError(f"Point '{self.measurement}' has an empty field name")
            if not isinstance(value, FIELD_TYPES):
                raise ValueError(
                    f"Field '{key}' of '{self.measurement}' has unsupported type "
                    f"{type(value).__name__}"
                )

        for key, value in self.tags.items():
            if not key:
                raise ValueError(f"Point '{self.measurement}' has an empty tag name")
            if not isinstance(value, str):
                raise ValueError(
                    f"Tag '{key}' of '{self.measurement}' must be a string, "
                    f"got {type(value).__name__}"
                )

        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))
        object.__setattr__(self, "timestamp", int(self.timestamp))

    @property
    def time(self) -> datetime:
        """Timestamp as an aware UTC datetime."""
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    @property
    def value(self) -> Optional[FieldValue]:
        """The conventional single ``value`` field, if present."""
        return self.fields.get("value")

    def __str__(self) -> str:
        tags = ",".join(f"{k}={v}" for k, v in sorted(self.tags.items()))
        fields = ",".join(f"{k}={v!r}" for k, v in self.fields.items())
        return f"{self.measurement}[{tags}] {fields} @{self.timestamp}"
