"""
Workshop Tracker - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration and sets up logging
2. Loads the serial-number catalogue (built-in + optional JSON file)
3. Builds the resolver, stage tracker and filter engine
4. Starts the snapshot service (background refresh thread)
5. Creates the stage, preferences and worksheet services
6. Registers route blueprints and JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Flask request handling (reads the snapshot, runs writes)
    └── Cleanup on shutdown

    Snapshot Thread (background)
    └── 60-second refresh loop against the order store

    Write Threads (one per async stage write)
"""

from __future__ import annotations

import atexit
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from flask import Flask
from werkzeug.exceptions import HTTPException

from logging_config import setup_logging, get_logger
from core.api_client import PersistenceClient
from core.exceptions import (
    ConfigurationError,
    PersistenceError,
    RecordNotFoundError,
    SnapshotNotReadyError,
    StageWriteError,
    WorkshopTrackerError,
)
from models.serial_numbers import DEFAULT_SERIAL_NUMBERS, SerialNumberTable
from modules.attribute_resolver import AttributeResolver
from modules.filter_engine import FilterEngine
from modules.stage_tracker import StageTracker
from services.snapshot_service import SnapshotService
from services.stage_service import StageService
from services.preferences_store import PreferencesStore
from services.worksheet_service import WorksheetService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def load_serial_numbers(path: str) -> SerialNumberTable:
    """Built-in catalogue, with entries from the JSON file at `path` taking precedence."""
    if not path:
        return DEFAULT_SERIAL_NUMBERS
    return DEFAULT_SERIAL_NUMBERS.merged(SerialNumberTable.from_json_file(Path(path)))


def create_app(
    config_object: str = "config.Config",
    client: Optional[PersistenceClient] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the config class
        client: Order store client (tests pass one with a mock transport)
        clock: Returns "now" for stage timestamps and drying (tests pass a fixed clock)

    Returns:
        Configured Flask application

    Raises:
        ConfigurationError: If the order store URL is missing
    """
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Workshop Tracker in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # CORE INITIALIZATION (FAIL-FAST)
    # =========================================================================

    if client is None:
        base_url = app.config.get("PERSISTENCE_API_URL")
        if not base_url:
            raise ConfigurationError("PERSISTENCE_API_URL", base_url)
        client = PersistenceClient(
            base_url,
            timeout=app.config["PERSISTENCE_TIMEOUT_SECONDS"],
            max_retries=app.config["PERSISTENCE_MAX_RETRIES"],
        )

    serial_numbers = load_serial_numbers(app.config.get("SERIAL_DATABASE_PATH", ""))
    resolver = AttributeResolver(serial_numbers)
    stage_tracker = StageTracker(
        resolver,
        drying_period_days=app.config["DRYING_PERIOD_DAYS"],
        clock=clock,
    )
    filter_engine = FilterEngine(resolver, stage_tracker)

    app.config["PERSISTENCE_CLIENT"] = client
    app.config["ATTRIBUTE_RESOLVER"] = resolver
    app.config["STAGE_TRACKER"] = stage_tracker
    app.config["FILTER_ENGINE"] = filter_engine

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    snapshot_service = SnapshotService(
        client,
        refresh_interval_seconds=app.config["SNAPSHOT_REFRESH_SECONDS"],
    )
    if app.config.get("START_BACKGROUND_REFRESH"):
        snapshot_service.start()
        logger.info("Snapshot service started")
    app.config["SNAPSHOT_SERVICE"] = snapshot_service

    stage_service = StageService(snapshot_service, client, clock=clock)
    app.config["STAGE_SERVICE"] = stage_service

    preferences_store = PreferencesStore(Path(app.config["PREFERENCES_PATH"]))
    app.config["PREFERENCES_STORE"] = preferences_store

    app.config["WORKSHEET_SERVICE"] = WorksheetService(
        snapshot_service,
        resolver,
        stage_tracker,
        filter_engine,
        preferences_store,
        min_order_number=app.config.get("MIN_ORDER_NUMBER"),
        max_order_number=app.config.get("MAX_ORDER_NUMBER"),
    )

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        snapshot_service.stop()
        stage_service.shutdown()
        client.close()
        logger.info("Shutdown complete")

    # Test apps are torn down by their fixtures
    if not app.config.get("TESTING"):
        atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    def _error_response(e: WorkshopTrackerError, status_code: int):
        return {"error": e.message, "details": e.details}, status_code

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found_record(e):
        return _error_response(e, 404)

    @app.errorhandler(StageWriteError)
    def handle_write_failed(e):
        logger.warning(f"Write rolled back: {e}")
        return _error_response(e, 502)

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(e):
        logger.error(f"Order store error: {e}")
        return _error_response(e, 502)

    @app.errorhandler(SnapshotNotReadyError)
    def handle_not_ready(e):
        return _error_response(e, 503)

    @app.errorhandler(WorkshopTrackerError)
    def handle_bad_request(e):
        return _error_response(e, 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return {"error": e.name, "details": {"description": e.description}}, e.code

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return {"error": "Internal server error", "details": {}}, 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would start a second refresh thread
    app.run(debug=debug_mode, use_reloader=False)
