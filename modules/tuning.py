"""
Tuning notes: extraction, per-line canonical form and equality.

Each instrument line writes its tuning differently:

    NATEY   minor flutes; always shown WITH the minor marker   A4  -> Am4
    INNATO  major flutes; always shown WITHOUT it              Am3 -> A3
    DOUBLE  and other lines also drop the marker
    ZEN     the "tuning" is a size code                        LARGE -> L
    OVA     a single fixed tuning                              anything -> OvA

Equality for filtering canonicalizes BOTH sides using the item's line,
so a filter for "Am4" finds a NATEY stored as "A4" and a filter for "A3"
finds an INNATO stored as "Am3".
"""

from __future__ import annotations

import re
from typing import Any, NamedTuple, Optional

from models.attributes import NATEY, OVA, UNKNOWN, ZEN


OVA_TUNING = "OvA"

# A note inside free text such as "Natey A4" or "Innato Bbm3 432Hz"
NOTE_IN_TEXT = re.compile(r"(?<![A-Za-z])([A-G])([#b]?)(m?)([1-6])(?!\d)")

# A whole tuning value as typed by staff: "am4", "A minor 4", "A4m", "G# 3"
_NOTE_VALUE = re.compile(
    r"^\s*([a-gA-G])\s*([#b]?)\s*(m|min|minor)?\s*([1-6])?\s*(m|min|minor)?\s*$",
    re.IGNORECASE,
)

# NATEY type strings sometimes spell the minor marker as a separate word: "D M 4"
_SPACED_MINOR = re.compile(r"(?<![A-Za-z])([A-G])([#b]?)\s+M\s+([1-6])(?!\d)")

# "Natey Am" with no octave
_MINOR_NO_OCTAVE = re.compile(r"(?<![A-Za-z])([A-G])([#b]?)m(?![A-Za-z0-9])")

ZEN_SIZES = {
    "L": "L",
    "LARGE": "L",
    "M": "M",
    "MEDIUM": "M",
    "H": "H",
    "HIGH": "H",
}


class Note(NamedTuple):
    """A parsed tuning note."""

    letter: str
    accidental: str
    minor: bool
    octave: Optional[str]

    def render(self, minor: Optional[bool] = None) -> str:
        use_minor = self.minor if minor is None else minor
        return f"{self.letter}{self.accidental}{'m' if use_minor else ''}{self.octave or ''}"


def parse_note(value: Any) -> Optional[Note]:
    """Parse a complete tuning value; None if it is not a note."""
    if not isinstance(value, str):
        return None
    match = _NOTE_VALUE.match(value)
    if not match:
        return None
    letter, accidental, minor_before, octave, minor_after = match.groups()
    if not octave and not (minor_before or minor_after):
        # A bare letter is too ambiguous to treat as a note
        return None
    # A lower-case "b" right after the letter is a flat, "B" would be a new letter
    accidental = "b" if accidental.lower() == "b" else accidental
    return Note(letter.upper(), accidental, bool(minor_before or minor_after), octave)


def extract_note(text: Any) -> Optional[str]:
    """First note+octave found in free text, as written, or None."""
    if not isinstance(text, str):
        return None
    match = NOTE_IN_TEXT.search(text)
    return match.group(0) if match else None


def note_from_type_text(text: Any, instrument_type: str) -> Optional[str]:
    """
    Note embedded in a product/type string.

    Handles the NATEY spellings "D M 4" (-> Dm4) and "Natey Am" without
    an octave (-> Am4) as well as the plain "Natey A4" form.
    """
    if not isinstance(text, str) or not text:
        return None
    if instrument_type == NATEY:
        spaced = _SPACED_MINOR.search(text)
        if spaced:
            return f"{spaced.group(1)}{spaced.group(2)}m{spaced.group(3)}"
    found = extract_note(text)
    if found:
        return found
    if instrument_type == NATEY:
        bare = _MINOR_NO_OCTAVE.search(text)
        if bare:
            return f"{bare.group(1)}{bare.group(2)}m4"
    return None


def zen_size(value: Any) -> Optional[str]:
    """Normalize a ZEN size code (L/M/H); None if the value says nothing."""
    if not isinstance(value, str):
        return None
    text = value.strip().upper()
    if not text:
        return None
    if text in ZEN_SIZES:
        return ZEN_SIZES[text]
    if "LARGE" in text:
        return "L"
    if "MEDIUM" in text:
        return "M"
    if text[0] in "LMH":
        return text[0]
    return None


def canonical_tuning(value: Any, instrument_type: Optional[str]) -> Optional[str]:
    """
    Canonical tuning for an instrument line.

    Values that are not recognisable notes are returned trimmed but
    otherwise untouched.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    line = (instrument_type or UNKNOWN).upper()
    if line == OVA:
        return OVA_TUNING
    if line == ZEN:
        return zen_size(text) or text.upper()

    note = parse_note(text)
    if note is None:
        embedded = NOTE_IN_TEXT.search(text)
        if not embedded:
            return text
        note = Note(embedded.group(1), embedded.group(2), bool(embedded.group(3)), embedded.group(4))

    if line == NATEY:
        return note.render(minor=True)
    if line == UNKNOWN:
        return note.render()
    # INNATO, DOUBLE and every other line drop the minor marker
    return note.render(minor=False)


def tunings_match(filter_value: Any, item_value: Any, item_type: Optional[str]) -> bool:
    """
    Whether a filter tuning selects an item's tuning.

    Both sides are canonicalized with the ITEM's instrument line before
    comparing. Letters compare case-insensitively; accidentals are kept.
    """
    left = canonical_tuning(filter_value, item_type)
    right = canonical_tuning(item_value, item_type)
    if left is None or right is None:
        return False
    if left == right:
        return True
    return _fold(left) == _fold(right)


def _fold(value: str) -> str:
    # Upper-case everything except a flat marker directly after the note letter
    note = parse_note(value)
    if note is not None:
        return note.render().replace("m", "M")
    return value.upper()
