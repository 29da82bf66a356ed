from __future__ import annotations

import threading
import time
from typing import Optional, TypedDict

from .fetchers.stations import Snapshot


class CacheEntry(TypedDict):
    snapshot: Optional[Snapshot]
    last_updated: Optional[int]
    last_error: Optional[str]
    last_error_at: Optional[int]
    fetch_count: int
    error_count: int


class StationCache:
    """Holds the most recent Snapshot for the refresh job and its readers.

    Snapshots are immutable, so ``set`` swaps the whole reference under the
    lock and readers share the object without copying it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Optional[Snapshot] = None
        self._last_updated: Optional[int] = None
        self._last_error: Optional[str] = None
        self._last_error_at: Optional[int] = None
        self._fetch_count = 0
        self._error_count = 0

    def set(self, snapshot: Snapshot) -> None:
        now = int(time.time())
        with self._lock:
            self._snapshot = snapshot
            self._last_updated = now
            self._last_error = None
            self._last_error_at = None
            self._fetch_count += 1

    def get(self) -> Optional[Snapshot]:
        """Return the current Snapshot, or None if no refresh has succeeded yet."""
        with self._lock:
            return self._snapshot

    def record_error(self, error: str) -> None:
        now = int(time.time())
        with self._lock:
            self._last_error = error
            self._last_error_at = now
            self._error_count += 1

    def metadata(self) -> CacheEntry:
        with self._lock:
            return {
                "snapshot": self._snapshot,
                "last_updated": self._last_updated,
                "last_error": self._last_error,
                "last_error_at": self._last_error_at,
                "fetch_count": self._fetch_count,
                "error_count": self._error_count,
            }
