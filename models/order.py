"""
Order and order item data models.

These models represent records owned by the external order store, as they
flow through the application: store JSON -> snapshot -> resolver/filter ->
JSON response.

Both record kinds expose the same narrow interface the attribute resolver
needs (serial_number, specifications, direct fields, owner_fallback), so
resolution code never inspects dictionaries for which kind it was given.

Thread Safety:
    - Order and OrderItem are frozen dataclasses
    - Writes build a new record with dataclasses.replace() and swap it into
      a new WorkshopSnapshot; nothing is mutated in place
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol


_DIGITS = re.compile(r"\d+")


def normalize_order_id(value: Any) -> Optional[int]:
    """
    Coerce an orderId from the store to a single int type.

    The store hands back ints, numeric strings and occasionally floats for
    the same column. Grouping on mixed types splits one order in two, so
    everything funnels through here.

    Returns:
        The integer id, or None if the value cannot be read as one
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
        if math.isfinite(number) and number.is_integer():
            return int(number)
    return None


def order_number_digits(order_number: str) -> Optional[int]:
    """Numeric part of an order number ("SW-1542" -> 1542), or None."""
    match = _DIGITS.search(order_number or "")
    return int(match.group()) if match else None


def _as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


class OrderStatus(Enum):
    """
    Lifecycle status of an order in the store.

    Lifecycle:
        ORDERED -> BUILDING -> SHIPPING -> DELIVERED
        (CANCELLED or ARCHIVED from any state)
    """

    ORDERED = "ordered"
    BUILDING = "building"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"

    @classmethod
    def parse(cls, value: Any) -> "OrderStatus":
        """Read a status string; anything unrecognised counts as ORDERED."""
        text = _as_str(value).strip().lower()
        for status in cls:
            if status.value == text:
                return status
        return cls.ORDERED


# Orders in these states are finished (or dead) and never shown as work
CLOSED_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.SHIPPING, OrderStatus.DELIVERED})


class WorkshopRecord(Protocol):
    """What the resolver and stage tracker read from an order or an item."""

    @property
    def serial_number(self) -> str: ...

    @property
    def specifications(self) -> Dict[str, Any]: ...

    @property
    def item_type(self) -> str: ...

    @property
    def color(self) -> str: ...

    @property
    def note_tuning(self) -> str: ...

    @property
    def item_size(self) -> str: ...

    @property
    def order_number(self) -> str: ...

    @property
    def status_change_dates(self) -> Dict[str, Optional[str]]: ...

    @property
    def build_date(self) -> Optional[str]: ...

    @property
    def owner_fallback(self) -> Optional["Order"]: ...


@dataclass(frozen=True)
class Order:
    """
    A customer order as stored by the order store.

    Orders carry their own specifications and stage dates; for single-
    instrument orders without item rows the order itself is the unit that
    moves through the workshop.
    """

    id: int
    """Store identifier."""

    order_number: str
    """Human order number (e.g. "SW-1542" or "1542")."""

    customer_name: str = ""
    customer_email: str = ""

    specifications: Dict[str, Any] = field(default_factory=dict)
    """Free-form key/value bag imported from the shop (untyped)."""

    status: OrderStatus = OrderStatus.ORDERED

    is_reseller: bool = False
    reseller_nickname: Optional[str] = None

    archived: bool = False
    notes: str = ""
    created_at: str = ""

    item_type: str = ""
    color: str = ""
    note_tuning: str = ""
    item_size: str = ""

    status_change_dates: Dict[str, Optional[str]] = field(default_factory=dict)
    """Stage key -> ISO timestamp. None means explicitly cleared."""

    build_date: Optional[str] = None

    @property
    def serial_number(self) -> str:
        return ""

    @property
    def owner_fallback(self) -> Optional["Order"]:
        return None

    @property
    def order_number_value(self) -> Optional[int]:
        """Numeric part of the order number."""
        return order_number_digits(self.order_number)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the store's camelCase JSON shape."""
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "specifications": dict(self.specifications),
            "status": self.status.value,
            "isReseller": self.is_reseller,
            "resellerNickname": self.reseller_nickname,
            "archived": self.archived,
            "notes": self.notes,
            "createdAt": self.created_at,
            "itemType": self.item_type,
            "color": self.color,
            "noteTuning": self.note_tuning,
            "statusChangeDates": dict(self.status_change_dates),
            "buildDate": self.build_date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["Order"]:
        """
        Create from a store record.

        Returns None when the record has no usable id. A specifications
        value that is not an object is treated as empty.
        """
        order_id = normalize_order_id(data.get("id"))
        if order_id is None:
            return None
        return cls(
            id=order_id,
            order_number=_as_str(data.get("orderNumber")),
            customer_name=_as_str(data.get("customerName")),
            customer_email=_as_str(data.get("customerEmail")),
            specifications=_as_dict(data.get("specifications")),
            status=OrderStatus.parse(data.get("status")),
            is_reseller=bool(data.get("isReseller", False)),
            reseller_nickname=data.get("resellerNickname") or None,
            archived=bool(data.get("archived", False)),
            notes=_as_str(data.get("notes")),
            created_at=_as_str(data.get("createdAt") or data.get("orderDate")),
            item_type=_as_str(data.get("itemType")),
            color=_as_str(data.get("color")),
            note_tuning=_as_str(data.get("noteTuning")),
            item_size=_as_str(data.get("itemSize")),
            status_change_dates=_as_dict(data.get("statusChangeDates")),
            build_date=data.get("buildDate") or None,
        )


@dataclass(frozen=True)
class OrderItem:
    """
    One physical instrument within an order.

    Several items may legitimately share a serial number; identity is the
    store id and nothing else.
    """

    id: int
    """Store identifier (the dedup key)."""

    order_id: int
    """Owning order id, already normalized to int."""

    serial_number: str = ""
    """Serial number, optionally prefixed (e.g. "SW-1542-3")."""

    item_type: str = ""
    color: str = ""
    note_tuning: str = ""
    item_size: str = ""

    specifications: Dict[str, Any] = field(default_factory=dict)
    status_change_dates: Dict[str, Optional[str]] = field(default_factory=dict)
    build_date: Optional[str] = None

    archived: bool = False
    deleted: bool = False
    notes: str = ""

    owner: Optional[Order] = field(default=None, compare=False, repr=False)
    """Owning order, attached by WorkshopSnapshot.build()."""

    @property
    def owner_fallback(self) -> Optional[Order]:
        return self.owner

    @property
    def order_number(self) -> str:
        return self.owner.order_number if self.owner else ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the store's camelCase JSON shape."""
        return {
            "id": self.id,
            "orderId": self.order_id,
            "serialNumber": self.serial_number,
            "itemType": self.item_type,
            "color": self.color,
            "noteTuning": self.note_tuning,
            "itemSize": self.item_size,
            "specifications": dict(self.specifications),
            "statusChangeDates": dict(self.status_change_dates),
            "buildDate": self.build_date,
            "archived": self.archived,
            "isDeleted": self.deleted,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["OrderItem"]:
        """
        Create from a store record.

        Returns None if the id or orderId cannot be read as an integer.
        """
        item_id = normalize_order_id(data.get("id"))
        order_id = normalize_order_id(data.get("orderId"))
        if item_id is None or order_id is None:
            return None
        return cls(
            id=item_id,
            order_id=order_id,
            serial_number=_as_str(data.get("serialNumber")),
            item_type=_as_str(data.get("itemType")),
            color=_as_str(data.get("color")),
            note_tuning=_as_str(data.get("noteTuning")),
            item_size=_as_str(data.get("itemSize")),
            specifications=_as_dict(data.get("specifications")),
            status_change_dates=_as_dict(data.get("statusChangeDates")),
            build_date=data.get("buildDate") or None,
            archived=bool(data.get("archived", False)),
            deleted=bool(data.get("isDeleted", data.get("deleted", False))),
            notes=_as_str(data.get("notes")),
        )
