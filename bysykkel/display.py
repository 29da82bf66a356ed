from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence

from .cache import StationCache
from .config import load_config
from .fetchers.stations import Snapshot
from .health import format_age
from .refresh import RefreshCycle


NAME_WIDTH = 32
COUNT_WIDTH = 7
CLEAR_SCREEN = "\033[2J\033[H"

logger = logging.getLogger(__name__)


def _truncate(text: str, width: int) -> str:
    if len(text) <= width:
        return text
    return text[: width - 1] + "~"


def render_table(
    snapshot: Optional[Snapshot],
    now: Optional[int] = None,
    last_error: Optional[str] = None,
) -> str:
    """Render the Snapshot as a fixed-width table, stations sorted by name."""

    now = int(time.time()) if now is None else now
    if snapshot is None:
        lines = ["Waiting for station data..."]
        if last_error:
            lines.append(f"[WARN] {last_error}")
        return "\n".join(lines)

    rule = "=" * (NAME_WIDTH + 2 * COUNT_WIDTH + 4)
    lines: List[str] = [
        f"{'STATION':<{NAME_WIDTH}}  {'BIKES':>{COUNT_WIDTH}}  {'DOCKS':>{COUNT_WIDTH}}",
        rule,
    ]
    for station in snapshot.sorted_by_name():
        lines.append(
            f"{_truncate(station.name, NAME_WIDTH):<{NAME_WIDTH}}  "
            f"{station.bikes_available:>{COUNT_WIDTH}}  "
            f"{station.docks_available:>{COUNT_WIDTH}}"
        )
    lines.append(rule)
    lines.append(f"{len(snapshot)} stations, updated {format_age(snapshot.created_at, now)}")
    if snapshot.message:
        lines.append(f"[WARN] {snapshot.message}")
    if last_error:
        lines.append(f"[WARN] Latest refresh failed: {last_error}")
    return "\n".join(lines)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Show Oslo Bysykkel station availability.")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml.")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch a single time, print the table and exit.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        settings = load_config(args.config)
    except (OSError, ValueError) as exc:
        print(f"[ERROR] {exc}")
        return 1

    cache = StationCache()
    refresh = RefreshCycle(cache, settings)

    if args.once:
        ok = refresh.refresh_once()
        entry = cache.metadata()
        print(render_table(entry["snapshot"], last_error=entry["last_error"]))
        return 0 if ok else 1

    refresh.start()
    try:
        while True:
            entry = cache.metadata()
            sys.stdout.write(CLEAR_SCREEN)
            print(render_table(entry["snapshot"], last_error=entry["last_error"]))
            time.sleep(settings.display_refresh_seconds)
    except KeyboardInterrupt:
        return 0
    finally:
        refresh.shutdown()


if __name__ == "__main__":
    sys.exit(main())
