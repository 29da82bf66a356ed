from __future__ import annotations

import json

import pytest
import requests

from bysykkel.config import STATION_INFORMATION_URL, STATION_STATUS_URL, Settings
from bysykkel.fetchers import gbfs
from bysykkel.fetchers.gbfs import (
    DecodeError,
    StationInformation,
    StationStatus,
    TransportError,
    decode_station_information,
    decode_station_status,
)


URL = "https://hostname.com/path/to"


def test_fetch_returns_body_and_identifies_client(gbfs_server, information_body: bytes) -> None:
    gbfs_server.respond(URL, 200, information_body)

    body = gbfs.fetch(URL, "test-test", 10)

    assert body == information_body
    assert gbfs_server.calls == [(URL, {"Client-Identifier": "test-test"}, 10)]


@pytest.mark.parametrize("body", [b"", b"{#$"])
def test_fetch_does_not_parse_the_body(gbfs_server, body: bytes) -> None:
    gbfs_server.respond(URL, 200, body)

    assert gbfs.fetch(URL, "test-test", 10) == body


def test_fetch_raises_transport_error_on_server_error(gbfs_server) -> None:
    gbfs_server.respond(URL, 500, b"Internal Server Error")

    with pytest.raises(TransportError) as excinfo:
        gbfs.fetch(URL, "test-test", 10)

    assert excinfo.value.status_code == 500
    assert excinfo.value.url == URL


def test_fetch_rejects_non_200_success_codes(gbfs_server) -> None:
    gbfs_server.respond(URL, 204, b"")

    with pytest.raises(TransportError):
        gbfs.fetch(URL, "test-test", 10)


def test_fetch_wraps_network_errors(gbfs_server) -> None:
    gbfs_server.fail(URL, requests.Timeout("read timed out"))

    with pytest.raises(TransportError) as excinfo:
        gbfs.fetch(URL, "test-test", 10)

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.__cause__, requests.Timeout)


def test_decode_station_information(information_body: bytes) -> None:
    feed = decode_station_information(information_body)

    assert feed.last_updated == 1553592653
    assert feed.stations[0] == StationInformation(
        station_id="627",
        name="Skøyen Stasjon",
        address="Skøyen Stasjon",
        lat=59.9226729,
        lon=10.6788129,
        capacity=20,
    )
    assert [station.station_id for station in feed.stations] == ["627", "623", "610"]


def test_decode_station_status_keeps_integer_flags(status_body: bytes) -> None:
    feed = decode_station_status(status_body)

    assert feed.last_updated == 1540219230
    assert feed.stations[0] == StationStatus(
        station_id="627",
        num_bikes_available=7,
        num_bikes_disabled=0,
        num_docks_available=5,
        num_docks_disabled=0,
        is_installed=1,
        is_renting=1,
        is_returning=1,
        last_reported=1540219230,
    )
    assert type(feed.stations[0].is_renting) is int


def test_decode_station_status_defaults_and_ignores_unknown_fields() -> None:
    payload = {
        "data": {
            "stations": [
                {"station_id": 42, "is_renting": True, "is_returning": False, "vehicle_types": []}
            ]
        }
    }

    feed = decode_station_status(json.dumps(payload).encode())

    station = feed.stations[0]
    assert feed.last_updated == 0
    assert station.station_id == "42"
    assert station.num_bikes_available == 0
    assert station.num_docks_available == 0
    assert station.is_renting == 1
    assert station.is_returning == 0
    assert type(station.is_renting) is int


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"{$#",
        b"[]",
        b'{"data": {}}',
        b'{"data": {"stations": {}}}',
        b'{"data": {"stations": ["627"]}}',
        b'{"data": {"stations": [{"station_id": "1", "capacity": "lots"}]}}',
    ],
)
def test_decode_station_information_rejects_malformed_bodies(body: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_station_information(body)


def test_decode_error_is_not_a_transport_error() -> None:
    with pytest.raises(DecodeError) as excinfo:
        decode_station_status(b"")

    assert not isinstance(excinfo.value, TransportError)


def test_fetch_station_status_uses_configured_feed(healthy_feeds, settings: Settings) -> None:
    feed = gbfs.fetch_station_status(settings)

    assert len(feed.stations) == 3
    assert healthy_feeds.calls[0][0] == STATION_STATUS_URL


def test_fetch_station_information_surfaces_decode_errors(gbfs_server, settings: Settings) -> None:
    gbfs_server.respond(STATION_INFORMATION_URL, 200, b"{#$")

    with pytest.raises(DecodeError):
        gbfs.fetch_station_information(settings)


@pytest.mark.parametrize("capacity", ["Infinity", "-Infinity", "1e400", "NaN", "7.9"])
def test_decode_station_information_rejects_non_integral_counts(capacity: str) -> None:
    body = ('{"data": {"stations": [{"station_id": "1", "capacity": %s}]}}' % capacity).encode()

    with pytest.raises(DecodeError):
        decode_station_information(body)


def test_decode_station_status_rejects_infinite_last_updated() -> None:
    with pytest.raises(DecodeError):
        decode_station_status(b'{"last_updated": 1e400, "data": {"stations": []}}')


def test_decode_station_status_accepts_whole_floats() -> None:
    feed = decode_station_status(
        b'{"data": {"stations": [{"station_id": "1", "num_bikes_available": 7.0}]}}'
    )

    assert feed.stations[0].num_bikes_available == 7
    assert type(feed.stations[0].num_bikes_available) is int


def test_decode_skips_entries_without_station_id() -> None:
    body = (
        b'{"data": {"stations": ['
        b'{"name": "no id"}, {"station_id": "", "name": "blank id"},'
        b'{"station_id": "627", "name": "Sk\\u00f8yen Stasjon"}]}}'
    )

    feed = decode_station_information(body)

    assert [station.station_id for station in feed.stations] == ["627"]
    assert feed.stations[0].name == "Skøyen Stasjon"
