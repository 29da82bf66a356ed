from __future__ import annotations

import logging
from typing import Any, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from .cache import StationCache
from .config import Settings, load_config
from .fetchers.stations import Snapshot
from .health import get_health_status
from .refresh import RefreshCycle


logger = logging.getLogger(__name__)


def create_app(cache: StationCache, settings: Settings) -> Flask:
    """Build the HTTP API around a cache that some RefreshCycle keeps filled."""

    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": "*"}})
    app.config["STATION_CACHE"] = cache
    app.config["SETTINGS"] = settings

    cache_control = f"public, max-age={settings.refresh_interval_seconds}"

    def _current_snapshot() -> Optional[Snapshot]:
        snapshot = cache.get()
        if snapshot is None:
            logger.error("The cache failed when serving `%s`.", request.path)
        return snapshot

    def _not_ready() -> Any:
        return jsonify({"success": False, "error": "Station data is not available yet."}), 500

    @app.route("/")
    def index() -> Any:
        response = Response(
            f"I am listening... on :{settings.port}\n",
            mimetype="text/plain",
        )
        response.headers["Cache-Control"] = "no-store"
        return response

    @app.route("/api/v1/stations", methods=["GET"])
    @app.route("/api/v1/stations/", methods=["GET"])
    def api_stations() -> Any:
        snapshot = _current_snapshot()
        if snapshot is None:
            return _not_ready()
        response = jsonify([station.as_output() for station in snapshot.stations.values()])
        response.headers["Cache-Control"] = cache_control
        return response

    @app.route("/api/v1/stations/<station_id>", methods=["GET"])
    @app.route("/api/v1/stations/<station_id>/", methods=["GET"])
    def api_station(station_id: str) -> Any:
        snapshot = _current_snapshot()
        if snapshot is None:
            return _not_ready()
        station = snapshot.get(station_id)
        if station is None:
            return jsonify({"success": False, "error": f"Unknown station {station_id}"}), 404
        response = jsonify(station.as_output())
        response.headers["Cache-Control"] = cache_control
        return response

    @app.route("/health")
    def health_alias() -> Any:
        return api_health()

    @app.route("/api/health")
    def api_health() -> Any:
        status = get_health_status(
            cache,
            settings.staleness_warning_sec,
            settings.staleness_critical_sec,
        )
        return jsonify(status)

    return app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    try:
        settings = load_config()
    except (OSError, ValueError) as exc:
        logger.error("Failed to load config: %s", exc)
        return

    cache = StationCache()
    refresh = RefreshCycle(cache, settings)
    logger.info("Starting background scheduler...")
    refresh.start()

    app = create_app(cache, settings)
    logger.info("Flask server starting on http://%s:%s", settings.host, settings.port)
    try:
        app.run(host=settings.host, port=settings.port)
    finally:
        refresh.shutdown()


if __name__ == "__main__":
    main()
