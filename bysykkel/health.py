from __future__ import annotations

import time
from typing import Optional, TypedDict

from .cache import StationCache


START_TIME = time.time()


class SourceHealth(TypedDict):
    last_update: str
    status: str
    fetch_count: int
    error_count: int
    last_error: Optional[str]
    station_count: int
    message: Optional[str]


class HealthStatus(TypedDict):
    status: str
    uptime_seconds: int
    stations: SourceHealth


def format_age(last_updated: Optional[int], now: int) -> str:
    if not last_updated:
        return "never"
    delta = max(0, now - last_updated)
    return f"{delta}s ago"


def _source_status(
    last_updated: Optional[int],
    last_error_at: Optional[int],
    now: int,
    staleness_warning_sec: int,
    staleness_critical_sec: int,
) -> str:
    if last_updated is None:
        return "error"
    age = now - last_updated
    if age >= staleness_critical_sec:
        return "error"
    # A failed cycle after a good one still leaves servable data behind.
    if last_error_at and last_error_at >= last_updated:
        return "stale"
    if age >= staleness_warning_sec:
        return "stale"
    return "healthy"


def get_health_status(
    cache: StationCache,
    staleness_warning_sec: int,
    staleness_critical_sec: int,
) -> HealthStatus:
    now = int(time.time())
    entry = cache.metadata()
    snapshot = entry["snapshot"]
    status = _source_status(
        last_updated=entry["last_updated"],
        last_error_at=entry["last_error_at"],
        now=now,
        staleness_warning_sec=staleness_warning_sec,
        staleness_critical_sec=staleness_critical_sec,
    )
    stations: SourceHealth = {
        "last_update": format_age(entry["last_updated"], now),
        "status": status,
        "fetch_count": entry["fetch_count"],
        "error_count": entry["error_count"],
        "last_error": entry["last_error"],
        "station_count": len(snapshot) if snapshot is not None else 0,
        "message": snapshot.message if snapshot is not None else None,
    }

    overall_status = "healthy"
    if status == "error":
        overall_status = "down"
    elif status == "stale":
        overall_status = "degraded"

    return {
        "status": overall_status,
        "uptime_seconds": int(now - START_TIME),
        "stations": stations,
    }
