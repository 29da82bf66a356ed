from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

import requests

from ..config import Settings


logger = logging.getLogger(__name__)

# The Oslo Bysykkel API asks every consumer to identify itself with this header.
CLIENT_IDENTIFIER_HEADER = "Client-Identifier"

T = TypeVar("T")


class GbfsError(RuntimeError):
    pass


class TransportError(GbfsError):
    """The feed could not be fetched (network failure, timeout, non-200)."""

    def __init__(self, message: str, *, url: str = "", status_code: Optional[int] = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class DecodeError(GbfsError):
    """The feed body was fetched but is not a valid GBFS document."""


@dataclass(frozen=True)
class StationInformation:
    station_id: str
    name: str
    address: str
    lat: float
    lon: float
    capacity: int


@dataclass(frozen=True)
class StationStatus:
    station_id: str
    num_bikes_available: int
    num_bikes_disabled: int
    num_docks_available: int
    num_docks_disabled: int
    # Oslo Bysykkel sends these as 0/1 integers rather than GBFS booleans.
    is_installed: int
    is_renting: int
    is_returning: int
    last_reported: int


@dataclass(frozen=True)
class Feed(Generic[T]):
    last_updated: int
    stations: Tuple[T, ...]


def fetch(url: str, client_identifier: str, timeout_seconds: float) -> bytes:
    try:
        response = requests.get(
            url,
            headers={CLIENT_IDENTIFIER_HEADER: client_identifier},
            timeout=timeout_seconds,
        )
    except requests.RequestException as exc:
        raise TransportError(f"Failed to fetch {url}: {exc}", url=url) from exc

    if response.status_code != 200:
        raise TransportError(
            f"HTTP GET to {url} failed with status code {response.status_code}",
            url=url,
            status_code=response.status_code,
        )
    return response.content


def _load_stations(raw: bytes, feed_name: str) -> Tuple[int, List[Any]]:
    if not raw:
        raise DecodeError(f"{feed_name} response body was empty.")
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise DecodeError(f"{feed_name} response was not valid JSON.") from exc

    if not isinstance(payload, dict):
        raise DecodeError(f"{feed_name} response root must be an object.")
    data = payload.get("data")
    stations = data.get("stations") if isinstance(data, dict) else None
    if not isinstance(stations, list):
        raise DecodeError(f"{feed_name} response missing data.stations list.")

    try:
        last_updated = _as_int(payload.get("last_updated"))
    except (OverflowError, TypeError, ValueError) as exc:
        raise DecodeError(f"{feed_name} has a malformed last_updated value.") from exc
    return last_updated, stations


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, float):
        # Counts and flags are whole numbers on the wire; 7.9 or Infinity is a broken feed.
        if not math.isfinite(value) or not value.is_integer():
            raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def _decode_feed(raw: bytes, feed_name: str, parse: Callable[[dict], T]) -> Feed[T]:
    last_updated, stations = _load_stations(raw, feed_name)
    results: List[T] = []
    skipped = 0
    for station in stations:
        if isinstance(station, dict) and station.get("station_id") in (None, ""):
            skipped += 1
            continue
        try:
            results.append(parse(station))
        except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as exc:
            raise DecodeError(f"Malformed {feed_name} entry: {station!r}") from exc
    if skipped:
        logger.warning("Skipped %s %s entries without a station_id.", skipped, feed_name)
    return Feed(last_updated=last_updated, stations=tuple(results))


def _parse_information(station: dict) -> StationInformation:
    return StationInformation(
        station_id=str(station["station_id"]),
        name=str(station.get("name") or ""),
        address=str(station.get("address") or ""),
        lat=float(station.get("lat") or 0.0),
        lon=float(station.get("lon") or 0.0),
        capacity=_as_int(station.get("capacity")),
    )


def _parse_status(station: dict) -> StationStatus:
    return StationStatus(
        station_id=str(station["station_id"]),
        num_bikes_available=_as_int(station.get("num_bikes_available")),
        num_bikes_disabled=_as_int(station.get("num_bikes_disabled")),
        num_docks_available=_as_int(station.get("num_docks_available")),
        num_docks_disabled=_as_int(station.get("num_docks_disabled")),
        is_installed=_as_int(station.get("is_installed")),
        is_renting=_as_int(station.get("is_renting")),
        is_returning=_as_int(station.get("is_returning")),
        last_reported=_as_int(station.get("last_reported")),
    )


def decode_station_information(raw: bytes) -> Feed[StationInformation]:
    return _decode_feed(raw, "Station information", _parse_information)


def decode_station_status(raw: bytes) -> Feed[StationStatus]:
    return _decode_feed(raw, "Station status", _parse_status)


def fetch_station_information(settings: Settings) -> Feed[StationInformation]:
    raw = fetch(
        settings.station_information_url,
        settings.client_identifier,
        settings.request_timeout_seconds,
    )
    feed = decode_station_information(raw)
    logger.debug("Decoded %s station information records", len(feed.stations))
    return feed


def fetch_station_status(settings: Settings) -> Feed[StationStatus]:
    raw = fetch(
        settings.station_status_url,
        settings.client_identifier,
        settings.request_timeout_seconds,
    )
    feed = decode_station_status(raw)
    logger.debug("Decoded %s station status records", len(feed.stations))
    return feed
