from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, TypedDict

from ..config import Settings
from .gbfs import (
    Feed,
    GbfsError,
    StationInformation,
    StationStatus,
    fetch_station_information,
    fetch_station_status,
)


MISSING_STATUS_MESSAGE = "We are missing the status for some stations."

logger = logging.getLogger(__name__)


class StationOutput(TypedDict):
    station_id: str
    name: str
    num_bikes_available: int
    num_docks_available: int


class JoinError(GbfsError):
    """One of the two feeds failed; ``cause`` is the first failure observed.

    ``cause`` is usually a TransportError or DecodeError; any other exception
    raised by a feed fetch is wrapped as well.
    """

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Fetching station data failed: {cause}")


@dataclass(frozen=True)
class JoinedStation:
    station_id: str
    name: str
    bikes_available: int
    docks_available: int

    def as_output(self) -> StationOutput:
        return {
            "station_id": self.station_id,
            "name": self.name,
            "num_bikes_available": self.bikes_available,
            "num_docks_available": self.docks_available,
        }


@dataclass(frozen=True)
class Snapshot:
    """One completed refresh: joined stations keyed by id plus an advisory message.

    ``stations`` is exposed through a read-only mapping so a Snapshot can be
    shared between the refresh thread and any number of readers.
    """

    stations: Mapping[str, JoinedStation]
    message: Optional[str] = None
    created_at: int = field(default_factory=lambda: int(time.time()))

    def __post_init__(self) -> None:
        object.__setattr__(self, "stations", MappingProxyType(dict(self.stations)))

    def __len__(self) -> int:
        return len(self.stations)

    def get(self, station_id: str) -> Optional[JoinedStation]:
        return self.stations.get(station_id)

    def sorted_by_name(self) -> List[JoinedStation]:
        return sorted(
            self.stations.values(),
            key=lambda station: (station.name.lower(), station.station_id),
        )


def join_stations(
    information: Feed[StationInformation],
    status: Feed[StationStatus],
) -> Snapshot:
    information_by_id = {station.station_id: station for station in information.stations}
    status_by_id = {station.station_id: station for station in status.stations}

    # Station information decides which stations exist; status-only ids are ignored.
    joined: Dict[str, JoinedStation] = {}
    missing = 0
    for station_id, info in information_by_id.items():
        live = status_by_id.get(station_id)
        if live is None:
            missing += 1
            continue
        joined[station_id] = JoinedStation(
            station_id=station_id,
            name=info.name,
            bikes_available=live.num_bikes_available,
            docks_available=live.num_docks_available,
        )

    message = None
    if missing:
        logger.warning("Station status missing for %s of %s stations.", missing, len(information_by_id))
        message = MISSING_STATUS_MESSAGE
    return Snapshot(stations=joined, message=message)


def fetch_and_join(settings: Settings) -> Snapshot:
    """Fetch both feeds concurrently and join them into a Snapshot.

    Both fetches always run to completion before this returns, even when the
    first one to finish has already failed.
    """

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="gbfs-fetch") as executor:
        information_future = executor.submit(fetch_station_information, settings)
        status_future = executor.submit(fetch_station_status, settings)
        futures: List[Future] = [information_future, status_future]

        first_error: Optional[BaseException] = None
        for future in as_completed(futures):
            exc = future.exception()
            if exc is None:
                continue
            if not isinstance(exc, GbfsError):
                logger.error("Unexpected feed failure: %r", exc)
            if first_error is None:
                first_error = exc
            else:
                logger.debug("Additional feed failure: %s", exc)

    if first_error is not None:
        raise JoinError(first_error) from first_error

    return join_stations(information_future.result(), status_future.result())
