"""Per-device state used to correlate messages of one device.

Some devices publish a single authoritative timestamp per update cycle and
then several untimed readings. The store keeps the last timestamp and the
identity facts learned for each device so later readings can be dated.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

StateKey = Tuple[str, str]


@dataclass(frozen=True)
class DeviceState:
    """Immutable snapshot of what is known about one device."""
    last_timestamp: Optional[int] = None
    name: Optional[str] = None
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def with_timestamp(self, timestamp: int) -> "DeviceState":
        return replace(self, last_timestamp=timestamp)

    def with_name(self, name: str) -> "DeviceState":
        return replace(self, name=name)

    def with_attribute(self, key: str, value: str) -> "DeviceState":
        attributes = dict(self.attributes)
        attributes[key] = value
        return replace(self, attributes=attributes)


EMPTY_STATE = DeviceState()


class DeviceStateStore:
    """Keyed store of DeviceState, one entry per (source, device id).

    Entries are created lazily and live for the process lifetime. Each
    device has its own lock, so updates for different devices never contend
    while a read-modify-write for one device is serialized.
    """

    def __init__(self):
        self._states: Dict[StateKey, DeviceState] = {}
        self._locks: Dict[StateKey, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: StateKey) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def get(self, source: str, device_id: str) -> DeviceState:
        """Get the current state of a device (empty state if unseen)."""
        return self._states.get((source, device_id), EMPTY_STATE)

    def put(self, source: str, device_id: str, state: DeviceState) -> None:
        """Replace the state of a device."""
        with self._lock_for((source, device_id)):
            self._states[(source, device_id)] = state

    @contextmanager
    def locked(self, source: str, device_id: str) -> Iterator["StateHandle"]:
        """Hold the device lock while a decoder reads and updates its state.

        Usage:
            with store.locked("solar", "114190641177") as handle:
                decoded = decode(..., handle.state, ...)
                handle.update(decoded.state)
        """
        key = (source, device_id)
        with self._lock_for(key):
            handle = StateHandle(self._states.get(key, EMPTY_STATE))
            yield handle
            if handle.changed:
                self._states[key] = handle.state
                logger.debug(f"State of {source}/{device_id} updated: {handle.state}")

    def devices(self, source: str) -> List[str]:
        """Device ids known for a source."""
        return sorted(device for src, device in list(self._states) if src == source)

    def __len__(self) -> int:
        return len(self._states)


class StateHandle:
    """Mutable handle given out by DeviceStateStore.locked()."""

    def __init__(self, state: DeviceState):
        self.state = state
        self.changed = False

    def update(self, state: Optional[DeviceState]) -> None:
        if state is not None and state != self.state:
            self.state = state
            self.changed = True
