from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from .cache import StationCache
from .config import Settings
from .fetchers.stations import JoinError, Snapshot, fetch_and_join


JOB_ID = "refresh-stations"

logger = logging.getLogger(__name__)


class RefreshCycle:
    """Periodically fetches both feeds and publishes the joined Snapshot.

    This is the only writer of the cache. A failed cycle leaves the previous
    Snapshot in place and waits for the next tick.
    """

    def __init__(
        self,
        cache: StationCache,
        settings: Settings,
        fetch: Callable[[Settings], Snapshot] = fetch_and_join,
    ) -> None:
        self.cache = cache
        self.settings = settings
        self._fetch = fetch
        self._scheduler: Optional[BaseScheduler] = None

    def refresh_once(self) -> bool:
        logger.info("Fetching data from the Bysykkel API.")
        try:
            snapshot = self._fetch(self.settings)
        except JoinError as exc:
            self.cache.record_error(str(exc))
            logger.error("Station refresh failed: %s", exc)
            return False

        self.cache.set(snapshot)
        logger.info("Bysykkel: Fetched %s stations", len(snapshot))
        return True

    def _schedule(self, scheduler: BaseScheduler) -> BaseScheduler:
        scheduler.add_job(
            self.refresh_once,
            "interval",
            seconds=self.settings.refresh_interval_seconds,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler = scheduler
        return scheduler

    def start(self) -> BaseScheduler:
        """Run the refresh job on a background thread and return immediately."""
        scheduler = self._schedule(BackgroundScheduler())
        scheduler.start()
        logger.info(
            "Scheduler started: Bysykkel every %ss",
            self.settings.refresh_interval_seconds,
        )
        return scheduler

    def run(self) -> None:
        """Run the refresh job on the calling thread; blocks until shutdown."""
        scheduler = self._schedule(BlockingScheduler())
        logger.info(
            "Running refresh loop every %ss",
            self.settings.refresh_interval_seconds,
        )
        scheduler.start()

    def shutdown(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
