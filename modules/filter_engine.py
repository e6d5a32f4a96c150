"""
Item-first worksheet filtering.

One order often holds several physically different instruments, so every
decision is made per ITEM; matching orders are then reconstructed from the
matched items' owners. Filtering orders first would hide or wrongly show
sibling items.

Per item, in order (first failure excludes the item):

    1. archived / deleted / fulfillable_quantity == 0   -> always out
    2. owning order not in the snapshot                  -> out (orphan)
    3. order gates: number range, open status, not archived
       (include_archived lifts only the archived gate)
    4. free-text search
    5. structured predicates: type, tuning, colors (OR), frequency,
       reseller, stage
    6. restrict_to_ids

Adding a predicate can only remove items, never add them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from models.attributes import AttributeSet, CARDS, DOUBLE
from models.filters import FilterCriteria, ResellerKind, ResellerSelector
from models.order import CLOSED_STATUSES, Order, OrderItem, OrderStatus
from models.snapshot import WorkshopSnapshot
from modules.attribute_resolver import CARDS_ORDER_NUMBERS, AttributeResolver
from modules.stage_tracker import STAGE_ORDERED, StageTracker, normalize_stage
from modules.tuning import tunings_match
from logging_config import get_logger


logger = get_logger(__name__)

# DOUBLE flutes in these sizes with a G# tuning are listed under other
# product names in the shop
DOUBLE_SIZES = ("MEDIUM", "LARGE")

# Orders below this number predate stage tracking and never show as not started
NOT_STARTED_MIN_ORDER_NUMBER = 1500


@dataclass(frozen=True)
class ItemMatch:
    """A matched item with the attributes it was matched on."""

    item: OrderItem
    order: Order
    attributes: AttributeSet


def _fulfillable_quantity_is_zero(item: OrderItem) -> bool:
    value = item.specifications.get("fulfillable_quantity")
    if value is None or isinstance(value, bool):
        return False
    try:
        return float(value) == 0
    except (TypeError, ValueError):
        return False


class FilterEngine:
    """
    Evaluates FilterCriteria against a WorkshopSnapshot.

    Holds no per-query state; one engine serves every request.
    """

    def __init__(self, resolver: AttributeResolver, stage_tracker: StageTracker):
        self._resolver = resolver
        self._stage_tracker = stage_tracker

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def apply(self, snapshot: WorkshopSnapshot, criteria: FilterCriteria) -> List[OrderItem]:
        """Items that pass every active predicate, in snapshot order."""
        return [match.item for match in self.matches(snapshot, criteria)]

    def matches(self, snapshot: WorkshopSnapshot, criteria: FilterCriteria) -> List[ItemMatch]:
        """Like apply(), but keeps each item's order and resolved attributes."""
        results: List[ItemMatch] = []
        for item in snapshot.items:
            match = self._evaluate(snapshot, item, criteria)
            if match is not None:
                results.append(match)
        logger.debug(f"Filter matched {len(results)} of {len(snapshot.items)} items")
        return results

    @staticmethod
    def project_to_orders(items: Iterable[OrderItem]) -> Set[int]:
        """Ids of the orders that own at least one of the items."""
        return {item.order_id for item in items}

    def not_started(
        self,
        snapshot: WorkshopSnapshot,
        min_order_number: int = NOT_STARTED_MIN_ORDER_NUMBER,
    ) -> List[ItemMatch]:
        """
        Items waiting to be built, oldest order first.

        An item qualifies when it is not archived or deleted, has a serial
        number, belongs to an order numbered min_order_number or higher and
        has no stage timestamp at all. The order's own status is not
        consulted. The first entry is the next instrument to build.
        """
        results: List[ItemMatch] = []
        for item in snapshot.items:
            if item.archived or item.deleted or not item.serial_number:
                continue
            order = snapshot.get_order(item.order_id)
            if order is None:
                continue
            number = order.order_number_value
            if number is None or number < min_order_number:
                continue
            if self._stage_tracker.has_started(item):
                continue
            results.append(ItemMatch(item=item, order=order, attributes=self._resolver.resolve(item)))

        results.sort(key=lambda match: (match.order.order_number_value, match.item.id))
        if results:
            logger.debug(
                f"{len(results)} items not started; next is {results[0].item.serial_number}"
            )
        return results

    # =========================================================================
    # PER-ITEM EVALUATION
    # =========================================================================

    def _evaluate(
        self,
        snapshot: WorkshopSnapshot,
        item: OrderItem,
        criteria: FilterCriteria,
    ) -> Optional[ItemMatch]:
        if item.archived or item.deleted or _fulfillable_quantity_is_zero(item):
            return None

        order = snapshot.get_order(item.order_id)
        if order is None:
            return None

        if not self._passes_order_gates(order, criteria):
            return None

        attributes = self._resolver.resolve(item)

        if criteria.search and not self._matches_search(item, order, attributes, criteria.search):
            return None

        if criteria.instrument_type and not self._matches_type(item, order, attributes, criteria.instrument_type):
            return None

        if criteria.tuning_note and not tunings_match(criteria.tuning_note, attributes.tuning_note, attributes.type):
            return None

        if criteria.colors and (attributes.color_code or "").upper() not in criteria.colors:
            return None

        if criteria.frequency and attributes.frequency != criteria.frequency:
            return None

        if criteria.reseller.is_active and not self._matches_reseller(order, criteria.reseller):
            return None

        if criteria.stage and not self._matches_stage(item, criteria.stage):
            return None

        if criteria.restrict_to_ids is not None and item.id not in criteria.restrict_to_ids:
            return None

        return ItemMatch(item=item, order=order, attributes=attributes)

    # -------------------------------------------------------------------------
    # Gates and predicates
    # -------------------------------------------------------------------------

    @staticmethod
    def _passes_order_gates(order: Order, criteria: FilterCriteria) -> bool:
        number = order.order_number_value
        if criteria.min_order_number is not None and (number is None or number < criteria.min_order_number):
            return False
        if criteria.max_order_number is not None and (number is None or number > criteria.max_order_number):
            return False
        if order.status in CLOSED_STATUSES:
            return False
        if not criteria.include_archived and (order.archived or order.status == OrderStatus.ARCHIVED):
            return False
        return True

    @staticmethod
    def _matches_search(item: OrderItem, order: Order, attributes: AttributeSet, search: str) -> bool:
        term = search.strip().lower()
        if not term:
            return True
        haystack = [
            item.serial_number,
            order.order_number,
            order.customer_name,
            order.customer_email,
            attributes.type,
        ]
        haystack.extend(value for value in item.specifications.values() if isinstance(value, str))
        return any(term in value.lower() for value in haystack if value)

    @staticmethod
    def _matches_type(item: OrderItem, order: Order, attributes: AttributeSet, wanted: str) -> bool:
        wanted = wanted.upper()
        if wanted == CARDS and any(number in order.order_number for number in CARDS_ORDER_NUMBERS):
            return True
        if attributes.type.upper() == wanted:
            return True
        if wanted == DOUBLE:
            tuning = (attributes.tuning_note or item.note_tuning or "").upper()
            size = (item.item_size or str(item.specifications.get("size") or "")).upper()
            if "G#" in tuning and any(label in size for label in DOUBLE_SIZES):
                return True
        return False

    @staticmethod
    def _matches_reseller(order: Order, selector: ResellerSelector) -> bool:
        if selector.kind == ResellerKind.ANY:
            return order.is_reseller
        if selector.kind == ResellerKind.DIRECT:
            return not order.is_reseller
        if selector.kind == ResellerKind.SPECIFIC:
            nickname = (order.reseller_nickname or "").strip().lower()
            return order.is_reseller and nickname == (selector.nickname or "").strip().lower()
        return True

    def _matches_stage(self, item: OrderItem, stage: str) -> bool:
        if stage.strip().lower() == STAGE_ORDERED:
            return True
        key = normalize_stage(stage)
        if key is None:
            logger.debug(f"Unknown stage filter {stage!r} matches nothing")
            return False
        return self._stage_tracker.is_complete(item, key)
