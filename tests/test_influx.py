"""Tests for the InfluxDB line protocol encoder and HTTP writer."""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from mqtt_gateway.shared.errors import RejectedWriteError, TransientWriteError
from mqtt_gateway.shared.models import Point
from mqtt_gateway.targets.influx import InfluxDBWriter, to_line_protocol

from .conftest import DEVICE, LAST_UPDATE


@pytest.fixture
def point():
    return Point(
        measurement="powerdc",
        fields={"value": 0.6},
        tags={"device": DEVICE, "component": "inverter", "year": "2023", "month": "11", "year_month": "2023-11"},
        timestamp=LAST_UPDATE,
    )


def test_line_protocol(point):
    assert to_line_protocol(point) == (
        f"powerdc,component=inverter,device={DEVICE},month=11,year=2023,year_month=2023-11 "
        f"value=0.6 {LAST_UPDATE}"
    )


def test_line_protocol_escapes_and_types():
    point = Point(
        measurement="btle data",
        fields={"count": 3, "state": 'say "hi"', "on": True, "rssi": -92.0},
        tags={"location": "Kinderzimmer 1", "a,b": "c=d", "empty": ""},
        timestamp=10,
    )

    assert to_line_protocol(point) == (
        r'btle\ data,a\,b=c\=d,location=Kinderzimmer\ 1 '
        r'count=3i,state="say \"hi\"",on=true,rssi=-92.0 10'
    )


def make_session(status=204, text=""):
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    session = MagicMock()
    session.closed = False
    session.post.return_value.__aenter__ = AsyncMock(return_value=response)
    session.post.return_value.__aexit__ = AsyncMock(return_value=False)
    return session


@pytest.mark.asyncio
async def test_write_posts_line_protocol(point):
    session = make_session()
    writer = InfluxDBWriter("http://influx:8086/", "solar", user="gw", password="pw", session=session)

    await writer.write(point)

    args, kwargs = session.post.call_args
    assert args == ("http://influx:8086/write",)
    assert kwargs["params"] == {"db": "solar", "precision": "s"}
    assert kwargs["data"] == to_line_protocol(point).encode("utf-8")
    assert kwargs["auth"] == aiohttp.BasicAuth("gw", "pw")


@pytest.mark.asyncio
async def test_token_authorization(point):
    session = make_session()
    writer = InfluxDBWriter("http://influx:8086", "solar", token="abc", session=session)

    await writer.write(point)

    assert session.post.call_args.kwargs["headers"]["Authorization"] == "Token abc"
    assert session.post.call_args.kwargs["auth"] is None


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [408, 429, 500, 503])
async def test_retryable_status_is_transient(point, status):
    writer = InfluxDBWriter("http://influx:8086", "solar", session=make_session(status, "busy"))

    with pytest.raises(TransientWriteError):
        await writer.write(point)


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404])
async def test_client_errors_are_rejected(point, status):
    writer = InfluxDBWriter("http://influx:8086", "solar", session=make_session(status, "bad"))

    with pytest.raises(RejectedWriteError, match=str(status)):
        await writer.write(point)


@pytest.mark.asyncio
async def test_network_error_is_transient(point):
    session = make_session()
    session.post.side_effect = aiohttp.ClientConnectionError("refused")
    writer = InfluxDBWriter("http://influx:8086", "solar", session=session)

    with pytest.raises(TransientWriteError):
        await writer.write(point)


@pytest.mark.asyncio
async def test_close_leaves_borrowed_session_open():
    session = make_session()
    session.close = AsyncMock()
    writer = InfluxDBWriter("http://influx:8086", "solar", session=session)

    await writer.close()

    session.close.assert_not_called()
