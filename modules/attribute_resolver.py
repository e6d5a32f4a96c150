"""
Attribute resolution for orders and items.

Turns the inconsistent, legacy and free-text data on a record into one
canonical AttributeSet {type, tuning_note, color_code, frequency}.

PRECEDENCE (per attribute, first hit wins):
    1. Serial number catalogue   - values used verbatim
    2. Direct field on the record (itemType, noteTuning, color, itemSize)
    3. Specifications bag        - known keys, keyword/regex matching
    4. Owning order              - steps 2 and 3 against the order
    5. Absent / UNKNOWN
    (+ the 440 Hz business default for INNATO, NATEY and DOUBLE)

A catalogued serial number can never be overridden by anything in the
specifications bag.

NEVER RAISES:
    Missing or non-dict specifications, absent serial entries and odd
    value types all degrade to the next tier. Resolution does no I/O; the
    catalogue is an in-memory table passed in at construction.

Usage:
    resolver = AttributeResolver(DEFAULT_SERIAL_NUMBERS)
    attrs = resolver.resolve(item)
    print(attrs.type, attrs.tuning_note, attrs.color_code, attrs.frequency)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from models.attributes import (
    AttributeSet,
    CARDS,
    DEFAULT_440_TYPES,
    DOUBLE,
    FREQUENCY_432,
    FREQUENCY_440,
    FREQUENCY_64,
    INNATO,
    NATEY,
    OVA,
    UNKNOWN,
    ZEN,
)
from models.order import WorkshopRecord
from models.serial_numbers import SerialNumberRecord, SerialNumberTable
from modules import color_classifier
from modules.tuning import (
    OVA_TUNING,
    canonical_tuning,
    note_from_type_text,
    zen_size,
)
from logging_config import get_logger


logger = get_logger(__name__)


# =============================================================================
# RULE TABLES
# =============================================================================

# Keyword -> type, checked in this order against the direct itemType field
ITEM_TYPE_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("OVA", OVA),
    ("ZEN", ZEN),
    ("NATEY", NATEY),
    ("INNATO", INNATO),
    ("CARD", CARDS),
    ("DOUBLE", DOUBLE),
)

# Keyword -> type for the specs "model" and "type" fields
MODEL_KEYWORDS: Tuple[Tuple[str, str], ...] = (
    ("CARD", CARDS),
    ("ZEN", ZEN),
    ("NATEY", NATEY),
    ("INNATO", INNATO),
    ("DOUBLE", DOUBLE),
)

PRODUCT_NAME_KEYS = ("type", "model", "name", "title", "product")
TYPE_TEXT_KEYS = ("type", "model", "fluteType")
NOTE_KEYS = ("note", "keyNote", "noteTuning", "tuningNote", "tuningKey", "tuning")
EXPLICIT_NOTE_KEYS = ("note", "noteTuning", "tuningNote")
SIZE_KEYS = ("size", "bag", "bagSize")
FREQUENCY_KEYS = ("tuningFrequency", "frequency", "tuning", "key", "hz")

# Orders known to contain only card products, whatever their specs claim
CARDS_ORDER_NUMBERS = ("1583", "1535")
OVA_ORDER_NUMBERS = ("1569",)

SOURCE_SERIAL = "serial"
SOURCE_DIRECT = "direct"
SOURCE_SPECIFICATIONS = "specifications"
SOURCE_ORDER = "order"
SOURCE_DEFAULT = "default"
SOURCE_NONE = "none"


# =============================================================================
# HELPERS
# =============================================================================

def _specs(record: Any) -> Dict[str, Any]:
    value = getattr(record, "specifications", None)
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _spec_text(specs: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        text = _text(specs.get(key))
        if text:
            return text
    return ""


def _string_values(specs: Mapping[str, Any]) -> Iterable[str]:
    for value in specs.values():
        if isinstance(value, str):
            yield value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            yield str(value)


def _match_keywords(text: str, table: Tuple[Tuple[str, str], ...]) -> Optional[str]:
    upper = text.upper()
    for keyword, result in table:
        if keyword in upper:
            return result
    return None


def _first_word(text: str) -> Optional[str]:
    words = text.split()
    return words[0].upper() if words else None


def type_from_text(text: Any, table: Tuple[Tuple[str, str], ...] = ITEM_TYPE_KEYWORDS) -> Optional[str]:
    """Instrument line named in a piece of text, else its first word upper-cased."""
    cleaned = _text(text)
    if not cleaned:
        return None
    return _match_keywords(cleaned, table) or _first_word(cleaned)


def _order_number(record: Any) -> str:
    value = getattr(record, "order_number", "")
    return value if isinstance(value, str) else ""


def _is_cards_order(order_number: str) -> bool:
    return any(number in order_number for number in CARDS_ORDER_NUMBERS)


# =============================================================================
# RESOLVER
# =============================================================================

class AttributeResolver:
    """
    Resolves canonical attributes from a record.

    Stateless apart from the injected catalogue; safe to share between
    threads and to call any number of times (output is idempotent).
    """

    def __init__(self, serial_numbers: Optional[SerialNumberTable] = None):
        self._serial_numbers = serial_numbers if serial_numbers is not None else SerialNumberTable()

    @property
    def serial_numbers(self) -> SerialNumberTable:
        return self._serial_numbers

    def resolve(self, record: WorkshopRecord) -> AttributeSet:
        """
        Resolve all four attributes of an order or item.

        Returns:
            AttributeSet (never raises; unresolvable attributes are absent)
        """
        try:
            return self._resolve(record)
        except Exception as e:
            logger.warning(f"Attribute resolution failed for {getattr(record, 'id', '?')}: {e}")
            return AttributeSet(sources={"error": str(e)})

    def resolve_type(self, record: WorkshopRecord) -> str:
        return self.resolve(record).type

    def lookup_serial(self, record: WorkshopRecord) -> Optional[SerialNumberRecord]:
        """Catalogue entry for the record's serial number, if any."""
        try:
            return self._serial_numbers.lookup(getattr(record, "serial_number", ""))
        except (AttributeError, TypeError) as e:
            logger.debug(f"Serial number lookup unavailable: {e}")
            return None

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    def _resolve(self, record: WorkshopRecord) -> AttributeSet:
        serial = self.lookup_serial(record)
        owner = getattr(record, "owner_fallback", None)
        sources: Dict[str, str] = {}

        instrument_type, sources["type"] = self._resolve_type(record, serial, owner)
        tuning, sources["tuning"] = self._resolve_tuning(record, serial, owner, instrument_type)
        color, sources["color"] = self._resolve_color(record, serial, owner, instrument_type)
        frequency, sources["frequency"] = self._resolve_frequency(record, serial, owner, instrument_type)

        return AttributeSet(
            type=instrument_type,
            tuning_note=tuning,
            color_code=color,
            frequency=frequency,
            sources=sources,
        )

    # -------------------------------------------------------------------------
    # Type
    # -------------------------------------------------------------------------

    def _resolve_type(self, record, serial, owner) -> Tuple[str, str]:
        if serial is not None and serial.type:
            return serial.type, SOURCE_SERIAL

        direct = type_from_text(getattr(record, "item_type", ""))
        if direct:
            return direct, SOURCE_DIRECT

        order_number = _order_number(record)
        from_specs = self._type_from_specs(_specs(record), order_number)
        if from_specs:
            return from_specs, SOURCE_SPECIFICATIONS

        if owner is not None:
            owner_type = type_from_text(owner.item_type) or self._type_from_specs(
                _specs(owner), owner.order_number
            )
            if owner_type:
                return owner_type, SOURCE_ORDER

        return UNKNOWN, SOURCE_NONE

    def _type_from_specs(self, specs: Mapping[str, Any], order_number: str) -> Optional[str]:
        if not specs:
            return None

        names = [_text(specs.get(key)) for key in PRODUCT_NAME_KEYS]
        if any("OVA" in name.upper() for name in names):
            return OVA

        if _is_cards_order(order_number):
            return CARDS

        type_text = _spec_text(specs, "type")
        model_text = _spec_text(specs, "model")
        if "INNATO" in type_text.upper() or "INNATO" in model_text.upper():
            if any("EXPLORATION" in name.upper() for name in names):
                return CARDS
            if not self._specs_tuning(specs, INNATO):
                return CARDS

        for key in ("name", "title", "product"):
            if "CARD" in _text(specs.get(key)).upper():
                return CARDS

        if model_text:
            return type_from_text(model_text, MODEL_KEYWORDS)
        if type_text:
            return type_from_text(type_text, MODEL_KEYWORDS)

        flute_type = _spec_text(specs, "fluteType")
        if flute_type:
            return type_from_text(flute_type, MODEL_KEYWORDS)
        return None

    # -------------------------------------------------------------------------
    # Tuning
    # -------------------------------------------------------------------------

    def _resolve_tuning(self, record, serial, owner, instrument_type: str) -> Tuple[Optional[str], str]:
        if serial is not None and serial.tuning:
            return serial.tuning, SOURCE_SERIAL

        if instrument_type == OVA or any(n in _order_number(record) for n in OVA_ORDER_NUMBERS):
            return OVA_TUNING, SOURCE_SPECIFICATIONS

        if instrument_type == ZEN:
            size = self._zen_size(record)
            if size:
                return size, SOURCE_DIRECT
            if owner is not None:
                size = self._zen_size(owner)
                if size:
                    return size, SOURCE_ORDER
            return None, SOURCE_NONE

        direct = _text(getattr(record, "note_tuning", ""))
        if direct:
            return canonical_tuning(direct, instrument_type), SOURCE_DIRECT

        from_specs = self._specs_tuning(_specs(record), instrument_type)
        if from_specs:
            return canonical_tuning(from_specs, instrument_type), SOURCE_SPECIFICATIONS

        if owner is not None:
            owner_note = _text(owner.note_tuning) or self._specs_tuning(_specs(owner), instrument_type)
            if owner_note:
                return canonical_tuning(owner_note, instrument_type), SOURCE_ORDER

        return None, SOURCE_NONE

    def _specs_tuning(self, specs: Mapping[str, Any], instrument_type: str) -> Optional[str]:
        for key in TYPE_TEXT_KEYS:
            found = note_from_type_text(specs.get(key), instrument_type)
            if found:
                return found
        for key in NOTE_KEYS:
            value = _text(specs.get(key))
            if value and value not in ("432", "440"):
                return value
        return None

    def _zen_size(self, record) -> Optional[str]:
        size = zen_size(getattr(record, "item_size", ""))
        if size:
            return size
        specs = _specs(record)
        type_text = _spec_text(specs, "type", "model").upper()
        if "LARGE" in type_text:
            return "L"
        if "MEDIUM" in type_text:
            return "M"
        for key in SIZE_KEYS:
            size = zen_size(_text(specs.get(key)))
            if size:
                return size
        return None

    # -------------------------------------------------------------------------
    # Color
    # -------------------------------------------------------------------------

    def _resolve_color(self, record, serial, owner, instrument_type: str) -> Tuple[Optional[str], str]:
        if serial is not None and serial.color:
            return serial.color, SOURCE_SERIAL

        direct = _text(getattr(record, "color", ""))
        if direct:
            return color_classifier.classify(direct), SOURCE_DIRECT

        specs = _specs(record)
        from_specs = self._specs_color(specs)
        if from_specs:
            return color_classifier.classify(from_specs), SOURCE_SPECIFICATIONS

        # A catalogued unit is an instrument, never a card product
        if serial is None and instrument_type == INNATO and specs and not self._has_explicit_note(specs):
            return CARDS, SOURCE_SPECIFICATIONS

        if owner is not None:
            owner_color = _text(owner.color) or self._specs_color(_specs(owner))
            if owner_color:
                return color_classifier.classify(owner_color), SOURCE_ORDER

        return None, SOURCE_NONE

    @staticmethod
    def _specs_color(specs: Mapping[str, Any]) -> str:
        direct = _text(specs.get("color"))
        if direct:
            return direct
        for key, value in specs.items():
            if isinstance(key, str) and "color" in key.lower():
                text = _text(value)
                if text:
                    return text
        return ""

    @staticmethod
    def _has_explicit_note(specs: Mapping[str, Any]) -> bool:
        if any(_text(specs.get(key)) for key in EXPLICIT_NOTE_KEYS):
            return True
        return any(note_from_type_text(specs.get(key), INNATO) for key in TYPE_TEXT_KEYS)

    # -------------------------------------------------------------------------
    # Frequency
    # -------------------------------------------------------------------------

    def _resolve_frequency(self, record, serial, owner, instrument_type: str) -> Tuple[Optional[str], str]:
        if serial is not None and serial.frequency:
            return serial.frequency, SOURCE_SERIAL

        found = self._specs_frequency(_specs(record))
        if found:
            return found, SOURCE_SPECIFICATIONS

        if owner is not None:
            found = self._specs_frequency(_specs(owner))
            if found:
                return found, SOURCE_ORDER

        if instrument_type in DEFAULT_440_TYPES:
            return FREQUENCY_440, SOURCE_DEFAULT

        return None, SOURCE_NONE

    @staticmethod
    def _specs_frequency(specs: Mapping[str, Any]) -> Optional[str]:
        if not specs:
            return None

        if any("432" in value for value in _string_values(specs)):
            return FREQUENCY_432

        for key in FREQUENCY_KEYS:
            value = specs.get(key)
            text = str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else ""
            if "440" in text:
                return FREQUENCY_440

        type_text = _spec_text(specs, "type", "model", "name")
        if "440" in type_text:
            return FREQUENCY_440
        if "64" in type_text.replace(" ", "") and "OVA" in type_text.upper():
            return FREQUENCY_64
        return None
