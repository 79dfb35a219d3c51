"""Tests for the gateway service wiring, without a broker."""

import asyncio
from unittest.mock import MagicMock, patch

import pytest

from mqtt_gateway.config import parse_config
from mqtt_gateway.service import GatewayService

from .conftest import DEVICE, LAST_UPDATE


@pytest.fixture
def config():
    return parse_config({
        "mqtt": {"broker": "broker.local", "qos": 1},
        "stats_interval": 0,
        "dispatch": {"shutdown_grace": 0.5},
        "sources": [
            {"name": "solar", "type": "opendtu", "prefix": "solar", "targets": [{"type": "debug"}]},
            {"name": "explore", "type": "debug", "prefix": "sandbox"},
        ],
    })


def test_handle_message_dispatches_points(config):
    service = GatewayService(config)
    service.dispatcher = MagicMock()
    service.dispatcher.dispatch.return_value = 1

    assert service.handle_message(f"solar/{DEVICE}/status/last_update", b"1701271852") == 0
    assert service.handle_message(f"solar/{DEVICE}/0/powerdc", b"0.6") == 1

    source_name, point = service.dispatcher.dispatch.call_args.args
    assert source_name == "solar"
    assert point.measurement == "powerdc"
    assert point.timestamp == LAST_UPDATE


def test_handle_message_ignores_unroutable(config):
    service = GatewayService(config)
    service.dispatcher = MagicMock()

    assert service.handle_message("other/topic", b"1") == 0
    service.dispatcher.dispatch.assert_not_called()


def test_on_connect_subscribes_every_source(config):
    service = GatewayService(config)
    client = MagicMock()

    service._on_connect(client, None, None, 0, None)

    topics = sorted(call.args[0] for call in client.subscribe.call_args_list)
    assert topics == ["sandbox/#", "solar/#"]
    assert {call.kwargs["qos"] for call in client.subscribe.call_args_list} == {1}


def test_failed_connect_does_not_subscribe(config):
    service = GatewayService(config)
    client = MagicMock()

    service._on_connect(client, None, None, 5, None)

    client.subscribe.assert_not_called()


@pytest.mark.asyncio
async def test_messages_are_handed_to_the_loop(config):
    service = GatewayService(config)
    service._loop = asyncio.get_running_loop()
    service.dispatcher = MagicMock()
    message = MagicMock(topic="sandbox/x", payload=b"hello")

    service._on_message(None, None, message)
    await asyncio.sleep(0)

    assert service.router.stats.received == 1


@pytest.mark.asyncio
async def test_build_dispatcher_creates_workers(config):
    service = GatewayService(config)

    dispatcher = service.build_dispatcher()

    assert [worker.name for worker in dispatcher.workers] == ["solar->debug:debug"]


@pytest.mark.asyncio
async def test_run_until_stopped(config):
    service = GatewayService(config)

    with patch("mqtt_gateway.service.mqtt.Client") as client_class, \
            patch.object(GatewayService, "_setup_signal_handlers"):
        task = asyncio.create_task(service.run())
        await asyncio.sleep(0.01)

        client = client_class.return_value
        client.connect_async.assert_called_once_with("broker.local", 1883, keepalive=60)
        client.loop_start.assert_called_once()

        service.handle_message(f"solar/{DEVICE}/status/last_update", b"1701271852")
        service.handle_message(f"solar/{DEVICE}/1/voltage", b"14.1")

        service.stop()
        await asyncio.wait_for(task, timeout=2)

    client.disconnect.assert_called_once()
    client.loop_stop.assert_called_once()
    assert service.dispatcher.stats()["solar->debug:debug"]["written"] == 1
