"""
Customer waiting-time estimate.

Estimates how many days a new order will wait, from the current queue of
open work plus the workshop's non-working periods:

    work hours    = sum(hours per instrument by type) + packing per item
    queue days    = ceil(work hours / work hours per calendar day)
    oven wait     = one extra week for every additional kiln load of 20
    shipping wait = one week (shipments go out every two weeks)
    final         = max(14, queue + oven + shipping + non-working days)

The historical average turnaround of finished orders inside the chosen
time window is reported alongside, for comparison.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from models.attributes import DOUBLE, INNATO, NATEY, ZEN
from models.order import CLOSED_STATUSES, Order, OrderStatus
from models.preferences import Preferences
from modules.attribute_resolver import AttributeResolver
from modules.stage_tracker import parse_timestamp


# Direct hands-on time per instrument, in hours
WORK_HOURS_BY_TYPE: Dict[str, float] = {
    ZEN: 0.5,
    NATEY: 0.67,
    DOUBLE: 2.0,
    INNATO: 3.0,
}
DEFAULT_WORK_HOURS = WORK_HOURS_BY_TYPE[NATEY]
PACKING_HOURS_PER_ITEM = 0.25

# 4.5 days a week, 6 hours a day
WORK_HOURS_PER_WEEK = 4.5 * 6
WORK_HOURS_PER_DAY = WORK_HOURS_PER_WEEK / 7

KILN_BATCH_SIZE = 20
DAYS_PER_EXTRA_KILN_LOAD = 7
SHIPPING_WAIT_DAYS = 7
MINIMUM_WAIT_DAYS = 14

FINISHED_STATUSES = frozenset({OrderStatus.SHIPPING, OrderStatus.DELIVERED})


@dataclass(frozen=True)
class WaitingTimeEstimate:
    """Result of estimate_waiting_time(); all durations in days."""

    final_wait_days: int
    queue_days: int
    oven_wait_days: int
    shipping_wait_days: int
    non_working_days: int
    pending_item_count: int
    pending_by_type: Dict[str, int] = field(default_factory=dict)
    work_hours: float = 0.0
    finished_orders_in_window: int = 0
    average_turnaround_days: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "finalWaitDays": self.final_wait_days,
            "queueDays": self.queue_days,
            "ovenWaitDays": self.oven_wait_days,
            "shippingWaitDays": self.shipping_wait_days,
            "nonWorkingDays": self.non_working_days,
            "pendingItemCount": self.pending_item_count,
            "pendingByType": dict(self.pending_by_type),
            "workHours": round(self.work_hours, 2),
            "finishedOrdersInWindow": self.finished_orders_in_window,
            "averageTurnaroundDays": self.average_turnaround_days,
        }


def _in_window(order: Order, now: datetime, window_days: int) -> bool:
    if window_days == 0:
        return True
    created = parse_timestamp(order.created_at)
    return created is not None and created >= now - timedelta(days=window_days)


def average_turnaround_days(
    orders: Iterable[Order],
    now: datetime,
    window_days: int,
) -> Optional[int]:
    """
    Mean days from creation to shipping for finished orders in the window.

    Uses the shipping (or delivered) stage date as the finish time. With
    more than three samples the fastest and slowest are dropped.
    """
    durations = []
    for order in orders:
        if order.status not in FINISHED_STATUSES or not _in_window(order, now, window_days):
            continue
        created = parse_timestamp(order.created_at)
        finished = parse_timestamp(
            order.status_change_dates.get("shipping") or order.status_change_dates.get("delivered")
        )
        if created is None or finished is None or finished < created:
            continue
        durations.append((finished - created).days)

    if not durations:
        return None
    if len(durations) > 3:
        durations = sorted(durations)[1:-1]
    return round(sum(durations) / len(durations))


def estimate_waiting_time(
    orders: Sequence[Order],
    items_by_order: Mapping[int, Sequence[Any]],
    preferences: Preferences,
    resolver: AttributeResolver,
    now: Optional[datetime] = None,
) -> WaitingTimeEstimate:
    """
    Estimate the current waiting time for a new order.

    Args:
        orders: All orders in the snapshot
        items_by_order: Grouped items (from the snapshot)
        preferences: Non-working periods and history window
        resolver: Used to classify each pending instrument
        now: Reference time (defaults to the current UTC time)
    """
    now = now or datetime.now(timezone.utc)

    pending_by_type: Dict[str, int] = {}
    work_hours = 0.0
    pending_count = 0

    for order in orders:
        if order.status in CLOSED_STATUSES or order.archived:
            continue
        for item in items_by_order.get(order.id, ()):
            if getattr(item, "archived", False) or getattr(item, "deleted", False):
                continue
            instrument_type = resolver.resolve(item).type
            label = instrument_type if instrument_type in WORK_HOURS_BY_TYPE else "OTHER"
            pending_by_type[label] = pending_by_type.get(label, 0) + 1
            work_hours += WORK_HOURS_BY_TYPE.get(instrument_type, DEFAULT_WORK_HOURS)
            pending_count += 1

    work_hours += pending_count * PACKING_HOURS_PER_ITEM

    queue_days = math.ceil(work_hours / WORK_HOURS_PER_DAY) if pending_count else 0
    kiln_loads = math.ceil(pending_count / KILN_BATCH_SIZE)
    oven_wait = (kiln_loads - 1) * DAYS_PER_EXTRA_KILN_LOAD if kiln_loads > 0 else 0
    shipping_wait = SHIPPING_WAIT_DAYS if pending_count else 0
    non_working = preferences.total_non_working_days

    final = max(MINIMUM_WAIT_DAYS, queue_days + oven_wait + shipping_wait + non_working)

    finished_in_window = sum(
        1 for order in orders
        if order.status in FINISHED_STATUSES and _in_window(order, now, preferences.time_window_days)
    )

    return WaitingTimeEstimate(
        final_wait_days=final,
        queue_days=queue_days,
        oven_wait_days=oven_wait,
        shipping_wait_days=shipping_wait,
        non_working_days=non_working,
        pending_item_count=pending_count,
        pending_by_type=pending_by_type,
        work_hours=work_hours,
        finished_orders_in_window=finished_in_window,
        average_turnaround_days=average_turnaround_days(orders, now, preferences.time_window_days),
    )
