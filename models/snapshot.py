"""
Workshop snapshot model.

A WorkshopSnapshot is a point-in-time copy of every order and item fetched
from the order store, already normalized and grouped.

Thread Safety:
    - WorkshopSnapshot is a frozen dataclass (immutable)
    - The snapshot service swaps whole snapshots atomically
    - Optimistic writes build a NEW snapshot with one record replaced
      (with_item / with_order) and swap that in; rollback swaps the
      previous record back the same way

Usage:
    snapshot = WorkshopSnapshot.from_raw(orders_json, items_json)
    for item in snapshot.items_for_order(order.id):
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from models.order import Order, OrderItem
from modules.grouping import group_items
from logging_config import get_logger


logger = get_logger(__name__)

# Matches the background refresh interval with some slack
STALE_AFTER_SECONDS = 180.0


@dataclass(frozen=True)
class WorkshopSnapshot:
    """
    Immutable, grouped view of all orders and items.

    `items` holds each (order, item id) pair exactly once; `items_by_order`
    is the grouping produced by modules.grouping.group_items and is the
    only grouping any component uses.
    """

    fetched_at: datetime
    """When the records were fetched from the order store."""

    orders: Tuple[Order, ...]
    items: Tuple[OrderItem, ...]

    orders_by_id: Mapping[int, Order] = field(default_factory=lambda: MappingProxyType({}))
    items_by_order: Mapping[int, Tuple[OrderItem, ...]] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def age_seconds(self) -> float:
        """How old this snapshot is in seconds."""
        return (datetime.now(timezone.utc) - self.fetched_at).total_seconds()

    @property
    def is_stale(self) -> bool:
        return self.age_seconds > STALE_AFTER_SECONDS

    @property
    def is_empty(self) -> bool:
        return not self.orders and not self.items

    def get_order(self, order_id: int) -> Optional[Order]:
        return self.orders_by_id.get(order_id)

    def get_item(self, item_id: int) -> Optional[OrderItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def items_for_order(self, order_id: int) -> Tuple[OrderItem, ...]:
        return self.items_by_order.get(order_id, ())

    def with_item(self, updated: OrderItem) -> "WorkshopSnapshot":
        """New snapshot with the item of the same id (and order) replaced."""
        items = [
            updated if item.id == updated.id and item.order_id == updated.order_id else item
            for item in self.items
        ]
        return WorkshopSnapshot.build(self.orders, items, fetched_at=self.fetched_at)

    def with_order(self, updated: Order) -> "WorkshopSnapshot":
        """New snapshot with the order replaced; its items get the new owner."""
        orders = [updated if order.id == updated.id else order for order in self.orders]
        return WorkshopSnapshot.build(orders, self.items, fetched_at=self.fetched_at)

    def to_dict(self) -> Dict[str, Any]:
        """Summary for health checks (records themselves are excluded)."""
        return {
            "fetched_at": self.fetched_at.isoformat(),
            "orders": len(self.orders),
            "items": len(self.items),
            "age_seconds": self.age_seconds,
            "is_stale": self.is_stale,
        }

    @classmethod
    def build(
        cls,
        orders: Iterable[Order],
        items: Iterable[OrderItem],
        fetched_at: Optional[datetime] = None,
    ) -> "WorkshopSnapshot":
        """
        Group items under their orders and attach each item's owner.

        Items whose order is missing stay in the snapshot with no owner;
        the filter engine drops them as orphans.
        """
        order_list = list(orders)
        orders_by_id = {order.id: order for order in order_list}

        grouped: Dict[int, Tuple[OrderItem, ...]] = {}
        flat: List[OrderItem] = []
        for order_id, order_items in group_items(items).items():
            owner = orders_by_id.get(order_id)
            attached = tuple(item if item.owner is owner else replace(item, owner=owner) for item in order_items)
            grouped[order_id] = attached
            flat.extend(attached)

        return cls(
            fetched_at=fetched_at or datetime.now(timezone.utc),
            orders=tuple(order_list),
            items=tuple(flat),
            orders_by_id=MappingProxyType(orders_by_id),
            items_by_order=MappingProxyType(grouped),
        )

    @classmethod
    def from_raw(
        cls,
        orders_data: Iterable[Dict[str, Any]],
        items_data: Iterable[Dict[str, Any]],
    ) -> "WorkshopSnapshot":
        """Parse store JSON, dropping records without usable ids."""
        orders = []
        for raw in orders_data:
            order = Order.from_dict(raw)
            if order is None:
                logger.warning(f"Dropping order without usable id: {raw.get('id')!r}")
                continue
            orders.append(order)

        items = []
        for raw in items_data:
            item = OrderItem.from_dict(raw)
            if item is None:
                logger.warning(
                    f"Dropping item {raw.get('id')!r} with unusable orderId {raw.get('orderId')!r}"
                )
                continue
            items.append(item)

        return cls.build(orders, items)

    @classmethod
    def create_empty(cls) -> "WorkshopSnapshot":
        """Empty snapshot for startup, already stale so callers know it isn't real."""
        return cls(
            fetched_at=datetime(2000, 1, 1, tzinfo=timezone.utc),
            orders=(),
            items=(),
        )
