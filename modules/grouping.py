"""
Item grouping and deduplication.

group_items() is the one place items are grouped by order. Every other
component (snapshot, filter, stage tracker, waiting time) consumes its
output instead of grouping on its own.

Rules:
    - orderId is coerced to int first, so 42, "42" and 42.0 land together
    - an item is skipped only if an item with the same id is already in
      that order's list; equal serial numbers or attributes never count
      as duplicates (several physical units can share a serial number)
    - items whose orderId cannot be coerced are dropped and logged
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from models.order import normalize_order_id
from logging_config import get_logger


logger = get_logger(__name__)


def group_items(items: Iterable[Any]) -> Dict[int, List[Any]]:
    """
    Group items by normalized order id, dropping repeated item ids.

    Accepts OrderItem instances or raw store dicts (``orderId``/``id`` keys).
    Order of first appearance is preserved within each group.

    Returns:
        Mapping of order id -> list of unique items
    """
    grouped: Dict[int, List[Any]] = {}
    seen: Dict[int, set] = {}
    duplicates = 0

    for item in items:
        if isinstance(item, dict):
            raw_order_id, item_id = item.get("orderId"), item.get("id")
        else:
            raw_order_id, item_id = getattr(item, "order_id", None), getattr(item, "id", None)

        order_id = normalize_order_id(raw_order_id)
        if order_id is None:
            logger.warning(f"Skipping item {item_id!r}: orderId {raw_order_id!r} is not numeric")
            continue

        ids_in_order = seen.setdefault(order_id, set())
        if item_id in ids_in_order:
            duplicates += 1
            continue

        ids_in_order.add(item_id)
        grouped.setdefault(order_id, []).append(item)

    if duplicates:
        logger.debug(f"Removed {duplicates} duplicate item record(s) while grouping")

    return grouped
