"""
Worksheet routes.

Handles:
- /api/worksheet - Filtered worksheet rows and matched order ids
- /api/items/<id>/attributes - Resolved attributes of one item
- /api/waiting-time - Customer waiting-time estimate
- /api/not-started-items - Items waiting to be built, next one first
"""

from flask import Blueprint, current_app, request

from logging_config import get_logger


logger = get_logger(__name__)

worksheet_bp = Blueprint("worksheet", __name__)


@worksheet_bp.route("/api/worksheet", methods=["GET"])
def worksheet():
    """
    Filtered worksheet.

    Query args: type, tuning, color (repeatable or comma separated),
    frequency, reseller, stage, search, ids, includeArchived, minOrder,
    maxOrder.
    """
    worksheet_service = current_app.config["WORKSHEET_SERVICE"]

    colors = request.args.getlist("color")
    criteria = worksheet_service.criteria_from_query(request.args, colors=colors)
    logger.debug(f"Worksheet query: {criteria}")

    return worksheet_service.worksheet(criteria)


@worksheet_bp.route("/api/items/<int:item_id>/attributes", methods=["GET"])
def item_attributes(item_id: int):
    """Resolved type, tuning, color and frequency of one item, with sources."""
    worksheet_service = current_app.config["WORKSHEET_SERVICE"]
    attributes = worksheet_service.item_attributes(item_id)
    return {"itemId": item_id, "attributes": attributes.to_dict()}


@worksheet_bp.route("/api/waiting-time", methods=["GET"])
def waiting_time():
    worksheet_service = current_app.config["WORKSHEET_SERVICE"]
    return worksheet_service.waiting_time().to_dict()


@worksheet_bp.route("/api/not-started-items", methods=["GET"])
def not_started_items():
    worksheet_service = current_app.config["WORKSHEET_SERVICE"]
    return worksheet_service.not_started_items()
