"""
Filter criteria models.

FilterCriteria is an immutable bundle of optional predicates. A field left
at None (or empty) means "no constraint on this dimension". Criteria are
built per request and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, FrozenSet, Iterable, Mapping, Optional


_ALL = {"", "all", "any-type", "none"}


class ResellerKind(Enum):
    """
    Which orders the reseller dimension admits.

    NONE:     no constraint
    ANY:      orders placed by any reseller
    DIRECT:   orders placed directly by customers
    SPECIFIC: orders placed by one named reseller
    """

    NONE = "none"
    ANY = "any"
    DIRECT = "direct"
    SPECIFIC = "specific"


@dataclass(frozen=True)
class ResellerSelector:
    """Reseller predicate; `nickname` is only used for SPECIFIC."""

    kind: ResellerKind = ResellerKind.NONE
    nickname: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.kind != ResellerKind.NONE

    @classmethod
    def parse(cls, value: Optional[str]) -> "ResellerSelector":
        """
        Read a selector from a query value.

        "any" and "direct" are keywords; anything else is a reseller nickname.
        """
        text = (value or "").strip()
        lowered = text.lower()
        if lowered in _ALL:
            return cls()
        if lowered in ("any", "reseller", "resellers"):
            return cls(ResellerKind.ANY)
        if lowered == "direct":
            return cls(ResellerKind.DIRECT)
        return cls(ResellerKind.SPECIFIC, text)


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if text.lower() in _ALL:
        return None
    return text


def _split_values(values: Iterable[Any]) -> FrozenSet[str]:
    parts = set()
    for value in values:
        for part in str(value).split(","):
            cleaned = _clean(part)
            if cleaned:
                parts.add(cleaned.upper())
    return frozenset(parts)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class FilterCriteria:
    """
    Compound worksheet filter.

    All active dimensions are ANDed together. Within `colors` a match on
    any one code is enough.
    """

    instrument_type: Optional[str] = None
    tuning_note: Optional[str] = None
    colors: FrozenSet[str] = field(default_factory=frozenset)
    frequency: Optional[str] = None
    reseller: ResellerSelector = field(default_factory=ResellerSelector)
    stage: Optional[str] = None
    search: Optional[str] = None

    restrict_to_ids: Optional[FrozenSet[int]] = None
    """When set, only these item ids may match ("show selected only")."""

    include_archived: bool = False
    """Lifts the archived-order gate; nothing else."""

    min_order_number: Optional[int] = None
    max_order_number: Optional[int] = None

    def with_changes(self, **changes: Any) -> "FilterCriteria":
        """Copy with some fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_query(
        cls,
        args: Mapping[str, Any],
        colors: Optional[Iterable[Any]] = None,
        default_min: Optional[int] = None,
        default_max: Optional[int] = None,
    ) -> "FilterCriteria":
        """
        Build criteria from request query arguments.

        Args:
            args: Query mapping (type, tuning, frequency, reseller, stage,
                search, ids, includeArchived, minOrder, maxOrder)
            colors: All values of the repeated `color` argument
            default_min: Order number lower bound when minOrder is absent
            default_max: Order number upper bound when maxOrder is absent
        """
        color_values = list(colors) if colors is not None else [args.get("color", "")]

        ids = None
        raw_ids = _clean(args.get("ids"))
        if raw_ids:
            ids = frozenset(
                number for number in (_to_int(part) for part in raw_ids.split(",")) if number is not None
            )

        min_order = _to_int(args.get("minOrder"))
        max_order = _to_int(args.get("maxOrder"))

        instrument_type = _clean(args.get("type"))
        frequency = _clean(args.get("frequency"))

        return cls(
            instrument_type=instrument_type.upper() if instrument_type else None,
            tuning_note=_clean(args.get("tuning")),
            colors=_split_values(color_values),
            frequency=frequency.lower().replace("hz", "").strip() if frequency else None,
            reseller=ResellerSelector.parse(args.get("reseller")),
            stage=_clean(args.get("stage")),
            search=str(args.get("search") or "").strip() or None,
            restrict_to_ids=ids,
            include_archived=str(args.get("includeArchived", "")).lower() in ("1", "true", "yes"),
            min_order_number=min_order if min_order is not None else default_min,
            max_order_number=max_order if max_order is not None else default_max,
        )
