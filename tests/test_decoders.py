"""Tests for the sensor, shelly, gateway and debug decoders."""

import logging

import pytest

from mqtt_gateway.decoders import DECODERS, SourceType, gateway, sensor, shelly
from mqtt_gateway.decoders import debug as debug_decoder
from mqtt_gateway.decoders.base import build_point
from mqtt_gateway.shared.errors import PayloadParseError, UnknownSuffix
from mqtt_gateway.state import EMPTY_STATE

from .conftest import ARRIVAL

KLIMALOGGER_RECORD = (
    '{"host": "dana", "location": "Kinderzimmer 1", "type": "temperature", '
    '"unit": "°C", "sensor": "BME680", "calculated": false, '
    '"time": "2023-11-29T21:16:32.511722+00:00", "value": 19.45}'
).encode("utf-8")

SWITCH_PAYLOAD = (
    b'{"id":0, "source":"timer", "output":false, "apower":0.0, "voltage":226.5, '
    b'"current":3.1, "aenergy":{"total":1094.865,"by_minute":[0.000,0.000,0.000],'
    b'"minute_ts":1703415907},"temperature":{"tC":36.4, "tF":97.5}}'
)

COVER_PAYLOAD = (
    b'{"id":0, "source":"limit_switch", "state":"open", "apower":0.0,"voltage":231.7,'
    b'"current":0.500,"pf":0.00,"freq":50.0,"aenergy":{"total":3.143,'
    b'"by_minute":[0.000,0.000,97.712],"minute_ts":1703414519},'
    b'"temperature":{"tC":30.7, "tF":87.3},"pos_control":true,'
    b'"last_direction":"open","current_pos":100}'
)

BLE_PAYLOAD = (
    b'{"id":"28:31:46:C1:76:16","name":"DHS","rssi":-92,"brand":"Oras",'
    b'"model":"Hydractiva Digital","model_id":"ADHS","type":"ENRG","session":67,'
    b'"seconds":115,"litres":9.1,"tempc":12,"tempf":53.6,"energy":0.03}'
)


def run(decoder, topic, payload):
    return decoder.decode(topic.split("/") if topic else [], payload, EMPTY_STATE, ARRIVAL)


def test_registry_covers_every_source_type():
    assert set(DECODERS) == set(SourceType)


def test_source_type_aliases():
    assert SourceType.parse("OpenMQTTGateway") is SourceType.GATEWAY
    assert SourceType.parse("klimalogger") is SourceType.SENSOR
    assert SourceType.parse("opendtu") is SourceType.OPENDTU

    with pytest.raises(ValueError):
        SourceType.parse("zigbee")


# Sensor

def test_sensor_record():
    (point,) = run(sensor, "", KLIMALOGGER_RECORD).points

    assert point.measurement == "temperature"
    assert point.value == 19.45
    assert point.timestamp == 1701292592
    assert dict(point.tags) == {
        "location": "Kinderzimmer 1",
        "host": "dana",
        "sensor": "BME680",
        "unit": "°C",
        "calculated": "false",
    }


def test_sensor_record_without_time_uses_arrival():
    (point,) = run(sensor, "", b'{"type": "humidity", "value": 48}').points

    assert point.timestamp == ARRIVAL
    assert point.value == 48.0


def test_sensor_record_without_type_is_rejected():
    with pytest.raises(PayloadParseError):
        run(sensor, "", b'{"value": 48}')


def test_sensor_plain_value():
    (point,) = run(sensor, "garden/shed/temperature", b"21.5").points

    assert point.measurement == "temperature"
    assert point.value == 21.5
    assert dict(point.tags) == {"location": "garden/shed"}
    assert point.timestamp == ARRIVAL


def test_sensor_status_word_stays_categorical():
    (point,) = run(sensor, "garden/state", b"online").points

    assert point.value == "online"


def test_sensor_garbage_is_parse_error():
    with pytest.raises(PayloadParseError):
        run(sensor, "garden/temperature", b"warm")


# Shelly

def test_shelly_switch_status():
    points = run(shelly, "loo-fan/status/switch:1", SWITCH_PAYLOAD).points

    assert [(p.measurement, p.value, p.tags["unit"]) for p in points] == [
        ("output", 0, "bool"),
        ("power", 0.0, "W"),
        ("current", 3.1, "A"),
        ("voltage", 226.5, "V"),
        ("total_energy", 1094.865, "Wh"),
        ("temperature", 36.4, "°C"),
    ]
    for point in points:
        assert point.timestamp == 1703415907
        assert point.tags["location"] == "loo-fan"
        assert point.tags["channel"] == "1"
        assert point.tags["sensor"] == "shelly"
        assert point.tags["type"] == "switch"


def test_shelly_cover_status():
    points = run(shelly, "bedroom-curtain/status/cover:0", COVER_PAYLOAD).points

    assert [(p.measurement, p.value) for p in points] == [
        ("position", 100),
        ("power", 0.0),
        ("current", 0.5),
        ("voltage", 231.7),
        ("total_energy", 3.143),
        ("temperature", 30.7),
    ]
    assert isinstance(points[0].value, int)
    assert {p.tags["type"] for p in points} == {"cover"}
    assert {p.timestamp for p in points} == {1703414519}


def test_shelly_without_minute_ts_uses_arrival():
    payload = b'{"output":true,"apower":5.0,"aenergy":{"total":1.0},"temperature":{"tC":20.0}}'

    points = run(shelly, "desk/status/switch:0", payload).points

    assert {p.timestamp for p in points} == {ARRIVAL}
    assert points[0].value == 1


def test_shelly_switch_without_energy_is_parse_error():
    with pytest.raises(PayloadParseError):
        run(shelly, "desk/status/switch:0", b'{"output":true,"temperature":{"tC":20.0}}')


@pytest.mark.parametrize(
    "topic, payload",
    [
        ("desk/status/switch:0", SWITCH_PAYLOAD.replace(b'"apower":0.0', b'"apower":Infinity')),
        ("desk/status/switch:0", SWITCH_PAYLOAD.replace(b'"voltage":226.5', b'"voltage":NaN')),
        ("blind/status/cover:0", COVER_PAYLOAD.replace(b'"current_pos":100', b'"current_pos":Infinity')),
        ("blind/status/cover:0", COVER_PAYLOAD.replace(b'"minute_ts":1703414519', b'"minute_ts":1e300')),
    ],
)
def test_shelly_non_finite_numbers_are_parse_errors(topic, payload):
    with pytest.raises(PayloadParseError):
        run(shelly, topic, payload)


def test_shelly_gen1_relay():
    (state,) = run(shelly, "pump/relay/0", b"on").points
    (power,) = run(shelly, "pump/relay/0/power", b"12.5").points
    (online,) = run(shelly, "pump/online", b"true").points

    assert (state.measurement, state.value, state.tags["channel"]) == ("relay", "on", "0")
    assert (power.measurement, power.value) == ("power", 12.5)
    assert online.measurement == "online"
    assert "channel" not in online.tags


@pytest.mark.parametrize(
    "topic", ["desk/status/input:0", "desk/announce", "desk/events/rpc"]
)
def test_shelly_unknown_suffix(topic):
    with pytest.raises(UnknownSuffix):
        run(shelly, topic, b"{}")


# OpenMQTTGateway

def test_gateway_ble_advertisement():
    (point,) = run(gateway, "D12331654712/BTtoMQTT/283146C17616", BLE_PAYLOAD).points

    assert point.measurement == "btle"
    assert point.fields["rssi"] == -92.0
    assert point.fields["seconds"] == 115.0
    assert point.fields["tempc"] == 12.0
    assert point.tags["device"] == "283146C17616"
    assert point.tags["gateway"] == "D12331654712"
    assert point.tags["name"] == "DHS"
    assert "id" not in point.tags
    assert point.timestamp == ARRIVAL


def test_gateway_ble_without_numbers_emits_nothing():
    assert run(gateway, "gw/BTtoMQTT/AA", b'{"id":"AA","name":"tag"}').points == ()


def test_gateway_ble_skips_entries_without_a_name():
    (point,) = run(gateway, "gw1/BTtoMQTT/dev1", b'{"": 1.5, "tempc": 20}').points

    assert dict(point.fields) == {"tempc": 20.0}


@pytest.mark.parametrize("payload", [b'{"tempc": NaN}', b'{"tempc": 20, "hum": -Infinity}'])
def test_gateway_ble_non_finite_number_is_parse_error(payload):
    with pytest.raises(PayloadParseError):
        run(gateway, "gw1/BTtoMQTT/dev1", payload)


def test_build_point_reports_invalid_content_as_parse_error():
    with pytest.raises(PayloadParseError):
        build_point("btle", {}, {"gateway": "gw1"}, ARRIVAL)
    with pytest.raises(PayloadParseError):
        build_point("btle", {"": 1.0}, {}, ARRIVAL)

    point = build_point("btle", {"tempc": 20.0}, {"gateway": "gw1"}, ARRIVAL)
    assert point.fields["tempc"] == 20.0


def test_gateway_lwt():
    (point,) = run(gateway, "gw/LWT", b"offline").points

    assert point.measurement == "status"
    assert point.value == "offline"
    assert dict(point.tags) == {"gateway": "gw"}


def test_gateway_unknown_suffix():
    with pytest.raises(UnknownSuffix):
        run(gateway, "gw/SYStoMQTT", b"{}")


# Debug

def test_debug_logs_and_emits_nothing(caplog):
    with caplog.at_level(logging.INFO, logger="mqtt_gateway.decoders.debug"):
        result = run(debug_decoder, "some/topic", b"hello")

    assert result.points == ()
    assert "'some/topic' with hello" in caplog.text
