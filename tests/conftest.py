from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pytest
import requests

from bysykkel.config import STATION_INFORMATION_URL, STATION_STATUS_URL, Settings
from bysykkel.fetchers import gbfs


TESTDATA_DIR = Path(__file__).parent / "testdata"


class FakeResponse:
    def __init__(self, status_code: int, content: bytes) -> None:
        self.status_code = status_code
        self.content = content


class FakeGbfsServer:
    """Stands in for ``requests.get`` and serves canned bodies per URL."""

    def __init__(self) -> None:
        self.routes: Dict[str, Any] = {}
        self.calls: List[Tuple[str, Dict[str, str], float]] = []
        self._lock = threading.Lock()

    def respond(self, url: str, status_code: int, body: bytes) -> None:
        self.routes[url] = FakeResponse(status_code, body)

    def fail(self, url: str, exc: Exception) -> None:
        self.routes[url] = exc

    def get(self, url: str, headers: Dict[str, str], timeout: float) -> FakeResponse:
        with self._lock:
            self.calls.append((url, dict(headers), timeout))
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"no route for {url}")
        if isinstance(route, Exception):
            raise route
        return route


@pytest.fixture
def information_body() -> bytes:
    return (TESTDATA_DIR / "station_information.json").read_bytes()


@pytest.fixture
def status_body() -> bytes:
    return (TESTDATA_DIR / "station_status.json").read_bytes()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def gbfs_server(monkeypatch: pytest.MonkeyPatch) -> FakeGbfsServer:
    server = FakeGbfsServer()
    monkeypatch.setattr(gbfs.requests, "get", server.get)
    return server


@pytest.fixture
def healthy_feeds(
    gbfs_server: FakeGbfsServer,
    information_body: bytes,
    status_body: bytes,
) -> FakeGbfsServer:
    gbfs_server.respond(STATION_INFORMATION_URL, 200, information_body)
    gbfs_server.respond(STATION_STATUS_URL, 200, status_body)
    return gbfs_server
