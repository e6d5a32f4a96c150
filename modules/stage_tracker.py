"""
Production stage state.

Every order/item carries `statusChangeDates`: stage key -> ISO timestamp.
A key that is absent (or explicitly None) means the stage is not done.
Staff may tick and untick any stage independently; no ordering between
stages is enforced.

Two stages are DERIVED when nobody has set them by hand:

    dry        complete once DRYING_PERIOD_DAYS have passed since the
               build stage was ticked; never while build is unticked
    smoothing  (the smoke-firing column) complete whenever the resolved
               finish is smoke-fired (SB, T, TB, C); never for blue (B)
               or for card products

A manual value (a timestamp, or None written when someone unticks the
box) always wins over the derived value.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from models.attributes import CARDS, COLOR_BLUE
from models.order import WorkshopRecord
from modules.attribute_resolver import AttributeResolver
from modules.color_classifier import is_smoke_fired_code


# =============================================================================
# STAGE NAMES
# =============================================================================

STAGE_ORDERED = "ordered"
STAGE_VALIDATED = "validated"
STAGE_BUILDING = "building"
STAGE_DRY = "dry"
STAGE_TESTING = "testing"
STAGE_FIRING = "firing"
STAGE_SMOKE_FIRING = "smoothing"
STAGE_TUNING_1 = "tuning1"
STAGE_WAXING = "waxing"
STAGE_TUNING_2 = "tuning2"
STAGE_BAGGING = "bagging"
STAGE_BOXING = "boxing"
STAGE_LABELING = "labeling"

# Workshop column order
STAGES = (
    STAGE_ORDERED,
    STAGE_VALIDATED,
    STAGE_BUILDING,
    STAGE_DRY,
    STAGE_TESTING,
    STAGE_FIRING,
    STAGE_SMOKE_FIRING,
    STAGE_TUNING_1,
    STAGE_WAXING,
    STAGE_TUNING_2,
    STAGE_BAGGING,
    STAGE_BOXING,
    STAGE_LABELING,
)

DERIVED_STAGES = frozenset({STAGE_DRY, STAGE_SMOKE_FIRING})

# Names staff and older clients use for the same columns
STAGE_ALIASES = {
    "build": STAGE_BUILDING,
    "parts": STAGE_ORDERED,
    "prepared": STAGE_VALIDATED,
    "drying": STAGE_DRY,
    "smokefiring": STAGE_SMOKE_FIRING,
    "smoke-firing": STAGE_SMOKE_FIRING,
    "sm": STAGE_SMOKE_FIRING,
}

DEFAULT_DRYING_PERIOD_DAYS = 5

_DAY_SECONDS = 24 * 60 * 60


def normalize_stage(name: Any) -> Optional[str]:
    """
    Canonical stage key for a stage name, or None if unknown.

    Strips the "ordered-" prefix the worksheet filter uses and maps
    aliases such as "build".
    """
    if not isinstance(name, str):
        return None
    key = name.strip()
    if key.lower().startswith("ordered-"):
        key = key[len("ordered-"):]
    lowered = key.lower()
    if lowered in STAGE_ALIASES:
        return STAGE_ALIASES[lowered]
    for stage in STAGES:
        if stage.lower() == lowered:
            return stage
    return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp from the store; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _stage_dates(record: Any) -> Dict[str, Any]:
    value = getattr(record, "status_change_dates", None)
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class DryingStatus:
    """Where an instrument is in its drying period."""

    complete: bool
    """Whether the dry stage counts as done (manual or derived)."""

    days_remaining: Optional[int]
    """Whole days left (rounded up, never negative); None when no countdown applies."""

    ready_at: Optional[datetime] = None
    """When drying completes; None without a build timestamp."""

    manual: bool = False
    """True when an explicit value decided the result."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "complete": self.complete,
            "daysRemaining": self.days_remaining,
            "readyAt": self.ready_at.isoformat() if self.ready_at else None,
            "manual": self.manual,
        }


class StageTracker:
    """
    Read side of stage tracking.

    Pure computation over a record and the current time; the write path
    lives in services.stage_service.StageService.

    Attributes:
        drying_period: Time a built instrument needs before it is dry
    """

    def __init__(
        self,
        resolver: AttributeResolver,
        drying_period_days: int = DEFAULT_DRYING_PERIOD_DAYS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            resolver: Used to read the resolved color for smoke-firing
            drying_period_days: Days from build to dry
            clock: Returns "now" (tests pass a fixed clock)
        """
        self._resolver = resolver
        self.drying_period = timedelta(days=drying_period_days)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._clock()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def is_complete(self, record: WorkshopRecord, stage: str) -> bool:
        """
        Whether a stage counts as done for a record.

        Unknown stage names are never complete.
        """
        key = normalize_stage(stage)
        if key is None:
            return False
        if key == STAGE_DRY:
            return self.drying_status(record).complete
        if key == STAGE_SMOKE_FIRING:
            return self.is_smoke_fired(record)
        return self._has_manual_timestamp(record, key)

    def completed_stages(self, record: WorkshopRecord) -> Dict[str, bool]:
        """Completion flag for every stage, in workshop column order."""
        return {stage: self.is_complete(record, stage) for stage in STAGES}

    def has_started(self, record: WorkshopRecord) -> bool:
        """Whether any stage carries a timestamp. Unticked stages (None) do not count."""
        if parse_timestamp(getattr(record, "build_date", None)) is not None:
            return True
        return any(value is not None for value in _stage_dates(record).values())

    def build_timestamp(self, record: WorkshopRecord) -> Optional[datetime]:
        """
        When the instrument was built, or None if build is not ticked.

        Falls back to "now" when build is ticked without a readable time.
        """
        build_date = parse_timestamp(getattr(record, "build_date", None))
        if build_date is not None:
            return build_date
        dates = _stage_dates(record)
        raw = dates.get(STAGE_BUILDING)
        if raw is None:
            return None
        return parse_timestamp(raw) or self.now()

    def drying_status(self, record: WorkshopRecord) -> DryingStatus:
        """
        Drying state: manual value first, then derived from the build time.
        """
        dates = _stage_dates(record)
        if STAGE_DRY in dates:
            manual_done = dates[STAGE_DRY] is not None
            return DryingStatus(complete=manual_done, days_remaining=0 if manual_done else None, manual=True)

        built_at = self.build_timestamp(record)
        if built_at is None:
            return DryingStatus(complete=False, days_remaining=None)

        ready_at = built_at + self.drying_period
        remaining = (ready_at - self.now()).total_seconds()
        if remaining <= 0:
            return DryingStatus(complete=True, days_remaining=0, ready_at=ready_at)
        return DryingStatus(
            complete=False,
            days_remaining=max(0, math.ceil(remaining / _DAY_SECONDS)),
            ready_at=ready_at,
        )

    def is_smoke_fired(self, record: WorkshopRecord) -> bool:
        """
        Smoke-firing stage: manual value first, then derived from color.
        """
        dates = _stage_dates(record)
        if STAGE_SMOKE_FIRING in dates:
            return dates[STAGE_SMOKE_FIRING] is not None
        return self.smoke_firing_derived(record)

    def smoke_firing_derived(self, record: WorkshopRecord) -> bool:
        """The smoke-firing value implied by the resolved color alone."""
        attributes = self._resolver.resolve(record)
        if attributes.type == CARDS or attributes.color_code in (CARDS, COLOR_BLUE):
            return False
        return is_smoke_fired_code(attributes.color_code)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _has_manual_timestamp(record: WorkshopRecord, key: str) -> bool:
        return _stage_dates(record).get(key) is not None
