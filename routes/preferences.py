"""
Preferences routes.

Handles:
- GET /api/preferences - Current non-working periods and time window
- PUT /api/preferences - Partial update, saved to disk
"""

from flask import Blueprint, current_app, request

from core.exceptions import WorkshopTrackerError
from logging_config import get_logger


logger = get_logger(__name__)

preferences_bp = Blueprint("preferences", __name__)


@preferences_bp.route("/api/preferences", methods=["GET"])
def get_preferences():
    store = current_app.config["PREFERENCES_STORE"]
    return store.get().to_dict()


@preferences_bp.route("/api/preferences", methods=["PUT"])
def update_preferences():
    """Body may hold nonWorkingPeriods, timeWindowDays or both."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise WorkshopTrackerError("Request body must be a JSON object")

    store = current_app.config["PREFERENCES_STORE"]
    preferences = store.update(data)
    logger.info(
        f"Preferences updated: {len(preferences.non_working_periods)} non-working periods, "
        f"window {preferences.time_window_days} days"
    )
    return preferences.to_dict()
