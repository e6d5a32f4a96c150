"""
Shared fixtures for Workshop Tracker tests.

Records are built directly as frozen dataclasses; nothing here talks to a
real order store.
"""

from datetime import datetime, timezone

import pytest

from models.order import Order, OrderItem, OrderStatus
from models.serial_numbers import SerialNumberTable
from models.snapshot import WorkshopSnapshot
from modules.attribute_resolver import AttributeResolver
from modules.filter_engine import FilterEngine
from modules.stage_tracker import StageTracker


FIXED_NOW = datetime(2025, 5, 10, 12, 0, 0, tzinfo=timezone.utc)


# Fixtures

@pytest.fixture
def fixed_now():
    """A fixed 'now' shared by the stage tracker and the write path."""
    return FIXED_NOW


@pytest.fixture
def serial_table():
    """Small catalogue with one blue INNATO unit."""
    return SerialNumberTable.from_mapping({
        "1600-1": {"type": "INNATO", "tuning": "A3", "color": "B", "frequency": "440"},
    })


@pytest.fixture
def resolver(serial_table):
    return AttributeResolver(serial_table)


@pytest.fixture
def stage_tracker(resolver, fixed_now):
    return StageTracker(resolver, drying_period_days=5, clock=lambda: fixed_now)


@pytest.fixture
def filter_engine(resolver, stage_tracker):
    return FilterEngine(resolver, stage_tracker)


@pytest.fixture
def make_order():
    """Factory for Order records with workshop-friendly defaults."""
    def _make(order_id=1, order_number="1600", **fields):
        fields.setdefault("status", OrderStatus.ORDERED)
        return Order(id=order_id, order_number=order_number, **fields)
    return _make


@pytest.fixture
def make_item():
    """Factory for OrderItem records (owner is attached by the snapshot)."""
    def _make(item_id, order_id=1, **fields):
        return OrderItem(id=item_id, order_id=order_id, **fields)
    return _make


@pytest.fixture
def two_item_snapshot(make_order, make_item):
    """
    One order, two instruments:
    - item 1: catalogued serial (INNATO A3, blue, 440)
    - item 2: no catalogue entry, specifications {"type": "Natey A4"}
    """
    order = make_order(order_id=1, order_number="SW-1600", customer_name="Ana Flute")
    items = [
        make_item(1, serial_number="SW-1600-1"),
        make_item(2, serial_number="SW-1600-2", specifications={"type": "Natey A4"}),
    ]
    return WorkshopSnapshot.build([order], items)
