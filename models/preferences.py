"""
User preference models.

Preferences only feed the waiting-time estimate; resolution and filtering
never read them.

Stored shape (JSON):
    {
        "nonWorkingPeriods": [
            {"start": "2025-07-20", "end": "2025-08-10", "reason": "Summer break"}
        ],
        "timeWindowDays": 365
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional


# 0 means "all history"
TIME_WINDOW_CHOICES = (30, 90, 180, 365, 0)
DEFAULT_TIME_WINDOW_DAYS = 365


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


@dataclass(frozen=True)
class NonWorkingPeriod:
    """A closed date range when the workshop does not work (holiday, fair...)."""

    start: date
    end: date
    reason: str = ""

    @property
    def days(self) -> int:
        """Inclusive number of calendar days; 0 for inverted ranges."""
        span = (self.end - self.start).days + 1
        return span if span > 0 else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional["NonWorkingPeriod"]:
        """Returns None when either date is missing or unparseable."""
        if not isinstance(data, dict):
            return None
        start = _parse_date(data.get("start"))
        end = _parse_date(data.get("end"))
        if start is None or end is None:
            return None
        return cls(start=start, end=end, reason=str(data.get("reason") or ""))


@dataclass
class Preferences:
    """Per-user workshop preferences."""

    non_working_periods: List[NonWorkingPeriod] = field(default_factory=list)
    time_window_days: int = DEFAULT_TIME_WINDOW_DAYS

    @property
    def total_non_working_days(self) -> int:
        return sum(period.days for period in self.non_working_periods)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nonWorkingPeriods": [period.to_dict() for period in self.non_working_periods],
            "timeWindowDays": self.time_window_days,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Preferences":
        """
        Create from stored JSON.

        Bad periods are dropped; an unknown time window falls back to the default.
        """
        if not isinstance(data, dict):
            return cls()
        raw_periods = data.get("nonWorkingPeriods")
        periods = []
        if isinstance(raw_periods, list):
            for raw in raw_periods:
                period = NonWorkingPeriod.from_dict(raw)
                if period is not None:
                    periods.append(period)

        window = data.get("timeWindowDays", DEFAULT_TIME_WINDOW_DAYS)
        if isinstance(window, bool) or not isinstance(window, int) or window not in TIME_WINDOW_CHOICES:
            window = DEFAULT_TIME_WINDOW_DAYS

        return cls(non_working_periods=periods, time_window_days=window)
