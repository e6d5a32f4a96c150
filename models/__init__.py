"""
Data models for Workshop Tracker.

This module contains dataclasses for:
- Order / OrderItem: Records from the order store (frozen)
- AttributeSet: Resolved canonical attributes (frozen, never persisted)
- FilterCriteria: Compound worksheet filter (frozen)
- SerialNumberRecord / SerialNumberTable: Catalogue of stamped instruments
- Preferences: Non-working periods and history window
- WriteResult: Outcome of an optimistic write

WorkshopSnapshot lives in models.snapshot and is imported from there
directly (it depends on modules.grouping).
"""

from .order import Order, OrderItem, OrderStatus, normalize_order_id
from .attributes import AttributeSet
from .filters import FilterCriteria, ResellerKind, ResellerSelector
from .serial_numbers import SerialNumberRecord, SerialNumberTable, DEFAULT_SERIAL_NUMBERS
from .preferences import NonWorkingPeriod, Preferences
from .write_result import WriteResult, WriteStatus

__all__ = [
    # Records
    "Order",
    "OrderItem",
    "OrderStatus",
    "normalize_order_id",
    # Resolution
    "AttributeSet",
    "SerialNumberRecord",
    "SerialNumberTable",
    "DEFAULT_SERIAL_NUMBERS",
    # Filtering
    "FilterCriteria",
    "ResellerKind",
    "ResellerSelector",
    # Preferences
    "NonWorkingPeriod",
    "Preferences",
    # Writes
    "WriteResult",
    "WriteStatus",
]
