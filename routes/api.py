"""
Service endpoints.

Handles:
- /health - Health check with snapshot age
- /api/writes/<write_id> - Poll the result of an async stage write
"""

from flask import Blueprint, current_app

from logging_config import get_logger


logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    snapshot_service = current_app.config.get("SNAPSHOT_SERVICE")
    if snapshot_service is None:
        health_status["checks"]["snapshot"] = "not_available"
        health_status["status"] = "degraded"
    else:
        snapshot = snapshot_service.get_snapshot()
        health_status["snapshot"] = snapshot.to_dict()
        if snapshot.is_empty:
            health_status["checks"]["snapshot"] = "empty"
            health_status["status"] = "degraded"
        elif snapshot.is_stale:
            health_status["checks"]["snapshot"] = "stale"
        else:
            health_status["checks"]["snapshot"] = "ok"
        health_status["checks"]["refresh_thread"] = "running" if snapshot_service.is_running else "stopped"

    if current_app.config.get("STAGE_SERVICE"):
        health_status["checks"]["stage_service"] = "ok"
    else:
        health_status["checks"]["stage_service"] = "not_available"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


@api_bp.route("/api/writes/<write_id>", methods=["GET"])
def write_status(write_id: str):
    """
    Poll an async stage write.

    Reads from the WriteResultStore populated by write threads. The result
    is consumed on read.
    """
    stage_service = current_app.config["STAGE_SERVICE"]

    result = stage_service.get_result(write_id)
    if result:
        logger.info(f"Write {write_id[:8]} finished: {result.status.value}")
        return {"complete": True, "result": result.to_dict()}

    if stage_service.is_write_pending(write_id):
        return {"complete": False, "status": "pending"}

    return {"complete": True, "status": "unknown", "error": "Write not found or already collected"}, 404
