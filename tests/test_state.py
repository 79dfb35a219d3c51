"""Tests for the device state store."""

import threading

from mqtt_gateway.state import EMPTY_STATE, DeviceState, DeviceStateStore


def test_unknown_device_has_empty_state():
    store = DeviceStateStore()

    assert store.get("solar", "1") is EMPTY_STATE
    assert len(store) == 0


def test_state_updates_return_new_states():
    state = DeviceState()
    updated = state.with_timestamp(10).with_name("roof").with_attribute("device/hwversion", "E1")

    assert state.last_timestamp is None
    assert updated.last_timestamp == 10
    assert updated.name == "roof"
    assert dict(updated.attributes) == {"device/hwversion": "E1"}


def test_locked_commits_changed_state():
    store = DeviceStateStore()

    with store.locked("solar", "1") as handle:
        handle.update(handle.state.with_timestamp(10))

    assert store.get("solar", "1").last_timestamp == 10
    assert store.devices("solar") == ["1"]
    assert store.devices("other") == []


def test_locked_without_update_creates_nothing():
    store = DeviceStateStore()

    with store.locked("solar", "1") as handle:
        handle.update(None)

    assert len(store) == 0


def test_sources_are_kept_apart():
    store = DeviceStateStore()
    store.put("solar", "1", DeviceState(last_timestamp=1))
    store.put("garage", "1", DeviceState(last_timestamp=2))

    assert store.get("solar", "1").last_timestamp == 1
    assert store.get("garage", "1").last_timestamp == 2


def test_same_device_updates_are_serialized():
    store = DeviceStateStore()

    def bump():
        for _ in range(500):
            with store.locked("solar", "1") as handle:
                current = handle.state.last_timestamp or 0
                handle.update(handle.state.with_timestamp(current + 1))

    threads = [threading.Thread(target=bump) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert store.get("solar", "1").last_timestamp == 2000


def test_different_devices_do_not_contend():
    store = DeviceStateStore()
    entered = threading.Event()

    with store.locked("solar", "1"):
        def other():
            with store.locked("solar", "2") as handle:
                handle.update(handle.state.with_timestamp(5))
            entered.set()

        thread = threading.Thread(target=other)
        thread.start()
        assert entered.wait(timeout=2)
        thread.join()

    assert store.get("solar", "2").last_timestamp == 5
