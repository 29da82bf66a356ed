from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


ROOT_DIR = Path(__file__).resolve().parents[1]
CONFIG_PATH = ROOT_DIR / "config.yaml"

STATION_INFORMATION_URL = "https://gbfs.urbansharing.com/oslobysykkel.no/station_information.json"
STATION_STATUS_URL = "https://gbfs.urbansharing.com/oslobysykkel.no/station_status.json"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    station_information_url: str = STATION_INFORMATION_URL
    station_status_url: str = STATION_STATUS_URL
    client_identifier: str = "test-test"
    request_timeout_seconds: int = 10
    refresh_interval_seconds: int = 10
    host: str = "0.0.0.0"
    port: int = 8080
    display_refresh_seconds: int = 10
    staleness_warning_sec: int = 30
    staleness_critical_sec: int = 120


def _safe_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name, {})
    return value if isinstance(value, dict) else {}


def settings_from_mapping(config: Dict[str, Any]) -> Settings:
    defaults = Settings()
    gbfs = _section(config, "gbfs")
    refresh = _section(config, "refresh")
    server = _section(config, "server")
    display = _section(config, "display")

    warning = max(0, _safe_int(display.get("staleness_warning_sec"), defaults.staleness_warning_sec))
    critical = max(0, _safe_int(display.get("staleness_critical_sec"), defaults.staleness_critical_sec))
    if critical < warning:
        critical = warning

    return Settings(
        station_information_url=str(
            gbfs.get("station_information_url") or defaults.station_information_url
        ),
        station_status_url=str(gbfs.get("station_status_url") or defaults.station_status_url),
        client_identifier=str(gbfs.get("client_identifier") or defaults.client_identifier),
        request_timeout_seconds=max(
            1, _safe_int(gbfs.get("request_timeout_seconds"), defaults.request_timeout_seconds)
        ),
        refresh_interval_seconds=max(
            1, _safe_int(refresh.get("interval_seconds"), defaults.refresh_interval_seconds)
        ),
        host=str(server.get("host") or defaults.host),
        port=_safe_int(server.get("port"), defaults.port),
        display_refresh_seconds=max(
            1, _safe_int(display.get("refresh_interval_seconds"), defaults.display_refresh_seconds)
        ),
        staleness_warning_sec=warning,
        staleness_critical_sec=critical,
    )


def _apply_environment(settings: Settings, environ: Dict[str, str]) -> Settings:
    overrides: Dict[str, Any] = {}
    if environ.get("HOST"):
        overrides["host"] = environ["HOST"]
    if environ.get("PORT"):
        overrides["port"] = _safe_int(environ["PORT"], settings.port)
    if environ.get("CLIENT_IDENTIFIER"):
        overrides["client_identifier"] = environ["CLIENT_IDENTIFIER"]
    return replace(settings, **overrides) if overrides else settings


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """Read ``config.yaml`` and apply environment overrides.

    Without an explicit path the ``BYSYKKEL_CONFIG`` variable is consulted,
    then the repository default. Only the repository default may be absent,
    in which case the built-in defaults are used.
    """

    environ = dict(os.environ) if environ is None else environ
    if config_path is None and environ.get("BYSYKKEL_CONFIG"):
        config_path = Path(environ["BYSYKKEL_CONFIG"])

    data: Any = {}
    if config_path is None and not CONFIG_PATH.exists():
        logger.warning("Config file %s not found; using defaults.", CONFIG_PATH)
    else:
        path = config_path or CONFIG_PATH
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.info("Loading config from %s", path)
        with path.open() as handle:
            try:
                data = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Config root must be a mapping.")

    return _apply_environment(settings_from_mapping(data), environ)
