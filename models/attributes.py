"""
Canonical attribute models.

An AttributeSet is what the resolver produces for an order or an item:
exactly one value per attribute, never a list and never a ranking.
AttributeSets are recomputed on every query and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# =============================================================================
# VOCABULARIES
# =============================================================================

INNATO = "INNATO"
NATEY = "NATEY"
DOUBLE = "DOUBLE"
ZEN = "ZEN"
OVA = "OVA"
CARDS = "CARDS"
UNKNOWN = "UNKNOWN"

INSTRUMENT_TYPES = (INNATO, NATEY, DOUBLE, ZEN, OVA, CARDS)

# Lines that fall back to 440 Hz when no frequency is stated anywhere
DEFAULT_440_TYPES = frozenset({INNATO, NATEY, DOUBLE})

COLOR_BLUE = "B"
COLOR_SMOKEFIRED_BLUE = "SB"
COLOR_TERRA_BLACK = "T"
COLOR_TERRA_BRONZE = "TB"
COLOR_BLACK_COPPER = "C"

COLOR_CODES = (
    COLOR_BLUE,
    COLOR_SMOKEFIRED_BLUE,
    COLOR_TERRA_BLACK,
    COLOR_TERRA_BRONZE,
    COLOR_BLACK_COPPER,
)

# Finishes that go through the smoke-firing kiln
SMOKE_FIRED_COLORS = frozenset({
    COLOR_SMOKEFIRED_BLUE,
    COLOR_TERRA_BLACK,
    COLOR_TERRA_BRONZE,
    COLOR_BLACK_COPPER,
})

FREQUENCY_432 = "432"
FREQUENCY_440 = "440"
FREQUENCY_64 = "64"

FREQUENCIES = (FREQUENCY_432, FREQUENCY_440, FREQUENCY_64)


@dataclass(frozen=True)
class AttributeSet:
    """
    Resolved canonical attributes of one order or item.

    Equality compares the four attributes only; `sources` is diagnostic.
    """

    type: str = UNKNOWN
    """Instrument line (INNATO, NATEY, ...), another uppercased word, or UNKNOWN."""

    tuning_note: Optional[str] = None
    """Note + octave ("A3", "Am4"), a ZEN size code ("L"/"M"), "OvA", or None."""

    color_code: Optional[str] = None
    """One of B/SB/T/TB/C, CARDS, the unclassified original text, or None."""

    frequency: Optional[str] = None
    """"432", "440", "64" or None."""

    sources: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)
    """Which tier produced each attribute: serial/direct/specifications/order/default."""

    @property
    def is_known_type(self) -> bool:
        return self.type != UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        return {
            "type": self.type,
            "tuningNote": self.tuning_note,
            "colorCode": self.color_code,
            "frequency": self.frequency,
            "sources": dict(self.sources),
        }
