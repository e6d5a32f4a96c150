"""
Write routes.

Handles:
- Stage toggles on items and orders (sync, or async with {"async": true})
- Notes (sanitized with bleach) and the archive flag
- Bag and box assignment, joint boxes

Every write is optimistic: the snapshot changes first and is rolled back
if the order store refuses. Failures come back as JSON errors from the
app-level error handlers.
"""

from typing import Any, Dict, Optional

import bleach
from flask import Blueprint, current_app, request

from core.exceptions import WorkshopTrackerError
from services.stage_service import RECORD_ITEM, RECORD_ORDER
from logging_config import get_logger


logger = get_logger(__name__)

stages_bp = Blueprint("stages", __name__)

# Constants
MAX_NOTES_LENGTH = 5000
MAX_LABEL_LENGTH = 100


def _sanitize_text(text: Any, max_length: Optional[int] = None) -> str:
    """Sanitize user input text."""
    if not text:
        return ""
    text = str(text).strip()
    text = bleach.clean(text, tags=[], strip=True)
    if max_length and len(text) > max_length:
        text = text[:max_length]
    return text


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise WorkshopTrackerError("Request body must be a JSON object")
    return body


def _require_bool(body: Dict[str, Any], key: str) -> bool:
    value = body.get(key)
    if not isinstance(value, bool):
        raise WorkshopTrackerError(f"'{key}' must be true or false", {"received": value})
    return value


def _optional_label(body: Dict[str, Any], key: str) -> Optional[str]:
    if key not in body or body[key] is None:
        return None
    return _sanitize_text(body[key], MAX_LABEL_LENGTH)


def _stage_service():
    return current_app.config["STAGE_SERVICE"]


def _set_stage(record_kind: str, record_id: int, stage: str):
    body = _json_body()
    complete = _require_bool(body, "complete")
    stage_service = _stage_service()

    if body.get("async") is True:
        write_id = stage_service.submit_stage_async(record_kind, record_id, stage, complete)
        return {"writeId": write_id, "status": "pending"}, 202

    record = stage_service.set_stage(record_kind, record_id, stage, complete)
    return {"status": "committed", record_kind: record.to_dict()}


# =============================================================================
# STAGES
# =============================================================================

@stages_bp.route("/api/items/<int:item_id>/stages/<stage>", methods=["POST"])
def set_item_stage(item_id: int, stage: str):
    """Tick or untick a stage on one item. Body: {complete: bool, async?: bool}."""
    return _set_stage(RECORD_ITEM, item_id, stage)


@stages_bp.route("/api/orders/<int:order_id>/stages/<stage>", methods=["POST"])
def set_order_stage(order_id: int, stage: str):
    """Order-level stage, for orders that move through the workshop without item rows."""
    return _set_stage(RECORD_ORDER, order_id, stage)


# =============================================================================
# NOTES / ARCHIVE
# =============================================================================

@stages_bp.route("/api/orders/<int:order_id>/notes", methods=["PUT"])
def set_order_notes(order_id: int):
    notes = _sanitize_text(_json_body().get("notes"), MAX_NOTES_LENGTH)
    order = _stage_service().set_notes(RECORD_ORDER, order_id, notes)
    return {"status": "committed", "order": order.to_dict()}


@stages_bp.route("/api/items/<int:item_id>/notes", methods=["PUT"])
def set_item_notes(item_id: int):
    notes = _sanitize_text(_json_body().get("notes"), MAX_NOTES_LENGTH)
    item = _stage_service().set_notes(RECORD_ITEM, item_id, notes)
    return {"status": "committed", "item": item.to_dict()}


@stages_bp.route("/api/orders/<int:order_id>/archive", methods=["PUT"])
def set_order_archived(order_id: int):
    archived = _require_bool(_json_body(), "archived")
    order = _stage_service().set_archived(RECORD_ORDER, order_id, archived)
    logger.info(f"Order {order_id} {'archived' if archived else 'unarchived'}")
    return {"status": "committed", "order": order.to_dict()}


# =============================================================================
# PACKAGING
# =============================================================================

@stages_bp.route("/api/items/<int:item_id>/packaging", methods=["PUT"])
def update_packaging(item_id: int):
    """Assign bag type, bag size and box size. Missing keys are left alone."""
    body = _json_body()
    item = _stage_service().update_packaging(
        item_id,
        bag_type=_optional_label(body, "bagType"),
        bag_size=_optional_label(body, "bagSize"),
        box_size=_optional_label(body, "boxSize"),
    )
    return {"status": "committed", "item": item.to_dict()}


@stages_bp.route("/api/orders/<int:order_id>/joint-box", methods=["POST"])
def assign_joint_box(order_id: int):
    """Pack several items of one order together. Body: {itemIds, boxSize, materialId?}."""
    body = _json_body()

    item_ids = body.get("itemIds")
    if not isinstance(item_ids, list) or not item_ids:
        raise WorkshopTrackerError("'itemIds' must be a non-empty list")
    if not all(isinstance(item_id, int) and not isinstance(item_id, bool) for item_id in item_ids):
        raise WorkshopTrackerError("'itemIds' must contain integer ids", {"received": item_ids})

    box_size = _sanitize_text(body.get("boxSize"), MAX_LABEL_LENGTH)
    if not box_size:
        raise WorkshopTrackerError("'boxSize' is required")

    material_id = body.get("materialId")
    if material_id is not None and (isinstance(material_id, bool) or not isinstance(material_id, int)):
        raise WorkshopTrackerError("'materialId' must be an integer", {"received": material_id})

    items = _stage_service().assign_joint_box(order_id, item_ids, box_size, material_id)
    return {"status": "committed", "items": [item.to_dict() for item in items]}
