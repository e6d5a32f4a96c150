"""
Worksheet facade.

Ties the snapshot, resolver, stage tracker, filter engine and preferences
together so routes only deal with query arguments in and dictionaries out.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from models.attributes import AttributeSet
from models.filters import FilterCriteria
from models.order import OrderItem
from modules.attribute_resolver import AttributeResolver
from modules.filter_engine import FilterEngine, ItemMatch
from modules.stage_tracker import StageTracker
from modules.waiting_time import WaitingTimeEstimate, estimate_waiting_time
from services.preferences_store import PreferencesStore
from services.snapshot_service import SnapshotService
from core.exceptions import RecordNotFoundError
from logging_config import get_logger


logger = get_logger(__name__)


class WorksheetService:
    """Read side of the workshop: filtered worksheet, attributes, waiting time."""

    def __init__(
        self,
        snapshot_service: SnapshotService,
        resolver: AttributeResolver,
        stage_tracker: StageTracker,
        filter_engine: FilterEngine,
        preferences_store: PreferencesStore,
        min_order_number: Optional[int] = None,
        max_order_number: Optional[int] = None,
    ):
        self._snapshot_service = snapshot_service
        self._resolver = resolver
        self._stage_tracker = stage_tracker
        self._filter_engine = filter_engine
        self._preferences_store = preferences_store
        self._min_order_number = min_order_number
        self._max_order_number = max_order_number

    def criteria_from_query(self, args: Mapping[str, Any], colors: Optional[Iterable[Any]] = None) -> FilterCriteria:
        """Build FilterCriteria with the configured order-number range as defaults."""
        return FilterCriteria.from_query(
            args,
            colors=colors,
            default_min=self._min_order_number,
            default_max=self._max_order_number,
        )

    def worksheet(self, criteria: FilterCriteria) -> Dict[str, Any]:
        """
        Filtered worksheet rows plus the ids of the orders they belong to.

        Raises:
            SnapshotNotReadyError: If no order data could be fetched yet
        """
        snapshot = self._snapshot_service.get_snapshot_or_raise()
        matches = self._filter_engine.matches(snapshot, criteria)
        order_ids = sorted(FilterEngine.project_to_orders(match.item for match in matches))

        return {
            "items": [self._row(match) for match in matches],
            "orderIds": order_ids,
            "total": len(matches),
            "snapshot": snapshot.to_dict(),
        }

    def not_started_items(self) -> Dict[str, Any]:
        """Items with no stage recorded yet and the next one to build."""
        snapshot = self._snapshot_service.get_snapshot_or_raise()
        matches = self._filter_engine.not_started(snapshot)
        rows = [self._row(match) for match in matches]
        return {
            "items": rows,
            "count": len(rows),
            "next": rows[0] if rows else None,
        }

    def item_attributes(self, item_id: int) -> AttributeSet:
        """
        Resolved attributes of one item.

        Raises:
            RecordNotFoundError: Item id not in the snapshot
        """
        item = self._get_item(item_id)
        return self._resolver.resolve(item)

    def waiting_time(self) -> WaitingTimeEstimate:
        snapshot = self._snapshot_service.get_snapshot_or_raise()
        return estimate_waiting_time(
            snapshot.orders,
            snapshot.items_by_order,
            self._preferences_store.get(),
            self._resolver,
            now=self._stage_tracker.now(),
        )

    def _get_item(self, item_id: int) -> OrderItem:
        item = self._snapshot_service.get_snapshot().get_item(item_id)
        if item is None:
            raise RecordNotFoundError("item", item_id)
        return item

    def _row(self, match: ItemMatch) -> Dict[str, Any]:
        item = match.item
        row = item.to_dict()
        row["orderNumber"] = match.order.order_number
        row["customerName"] = match.order.customer_name
        row["isReseller"] = match.order.is_reseller
        row["resellerNickname"] = match.order.reseller_nickname
        row["attributes"] = match.attributes.to_dict()
        row["stages"] = self._stage_tracker.completed_stages(item)
        row["drying"] = self._stage_tracker.drying_status(item).to_dict()
        return row
