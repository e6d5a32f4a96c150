"""
Serial number catalogue.

Once a serial number is stamped on an instrument, its type, tuning and
frequency are fixed. The catalogue records those values and is the single
source of truth for catalogued units: whatever the shop's specifications
say, a catalogued serial number resolves to the catalogue values.

The table is loaded once at startup and injected into the resolver as an
immutable mapping. It never changes during a session.

Usage:
    table = SerialNumberTable.from_json_file(Path("serials.json"))
    record = table.lookup("SW-1542-3")
    if record:
        print(record.type, record.tuning)
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from logging_config import get_logger


logger = get_logger(__name__)

_VENDOR_PREFIX = re.compile(r"^SW-")
_ORDER_UNIT = re.compile(r"(\d+-\d+)$")


@dataclass(frozen=True)
class SerialNumberRecord:
    """Authoritative attributes of one catalogued instrument."""

    type: str
    tuning: str
    frequency: Optional[str] = None
    color: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "tuning": self.tuning}
        for key in ("frequency", "color", "notes"):
            value = getattr(self, key)
            if value:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Optional["SerialNumberRecord"]:
        """Build a record; returns None for anything that is not a usable entry."""
        if not isinstance(data, dict):
            return None
        record_type = data.get("type")
        tuning = data.get("tuning")
        if not isinstance(record_type, str) or not isinstance(tuning, str):
            return None

        def optional(key: str) -> Optional[str]:
            value = data.get(key)
            if value is None or value == "":
                return None
            return str(value)

        return cls(
            type=record_type,
            tuning=tuning,
            frequency=optional("frequency"),
            color=optional("color"),
            notes=optional("notes"),
        )


def normalize_serial_number(serial_number: Any) -> str:
    """Strip the vendor prefix. Case is preserved."""
    if not isinstance(serial_number, str):
        return ""
    return _VENDOR_PREFIX.sub("", serial_number.strip())


class SerialNumberTable(Mapping[str, SerialNumberRecord]):
    """
    Read-only serial number -> SerialNumberRecord map.

    Keys are normalized serial numbers (vendor prefix stripped).
    """

    def __init__(self, records: Optional[Mapping[str, SerialNumberRecord]] = None):
        self._records = MappingProxyType(dict(records or {}))

    def __getitem__(self, key: str) -> SerialNumberRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def lookup(self, serial_number: Any) -> Optional[SerialNumberRecord]:
        """
        Find the record for a serial number, or None.

        Tries the prefix-stripped value first, then the trailing
        "<order>-<unit>" part for serials carrying some other prefix.
        """
        key = normalize_serial_number(serial_number)
        if not key:
            return None
        record = self._records.get(key)
        if record is not None:
            return record
        match = _ORDER_UNIT.search(key)
        if match and match.group(1) != key:
            return self._records.get(match.group(1))
        return None

    def merged(self, other: Mapping[str, SerialNumberRecord]) -> "SerialNumberTable":
        """New table with `other` layered over this one."""
        combined = dict(self._records)
        combined.update(other)
        return SerialNumberTable(combined)

    @classmethod
    def from_mapping(cls, data: Any) -> "SerialNumberTable":
        """
        Build from a plain {serial: {type, tuning, ...}} mapping.

        Malformed entries are skipped; a non-mapping yields an empty table.
        """
        if not isinstance(data, dict):
            return cls()
        records: Dict[str, SerialNumberRecord] = {}
        for raw_key, raw_value in data.items():
            record = SerialNumberRecord.from_dict(raw_value)
            key = normalize_serial_number(raw_key)
            if record is None or not key:
                logger.warning(f"Skipping malformed serial number entry: {raw_key!r}")
                continue
            records[key] = record
        return cls(records)

    @classmethod
    def from_json_file(cls, path: Path) -> "SerialNumberTable":
        """
        Load a table from a JSON file.

        A missing or unreadable file gives an empty table; lookups then fall
        through to the specifications tiers.
        """
        if not path.exists():
            logger.info(f"No serial number file at {path}; using built-in catalogue only")
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read serial number file {path}: {e}")
            return cls()
        table = cls.from_mapping(data)
        logger.info(f"Loaded {len(table)} serial numbers from {path}")
        return table


def _order_1542_catalogue() -> Dict[str, SerialNumberRecord]:
    # Order 1542: 49 INNATO units, seven tunings assigned round-robin by unit number
    tunings = ("A3", "B3", "C4", "D4", "E4", "F3", "G3")
    catalogue = {}
    for unit in range(1, 50):
        tuning = tunings[(unit - 1) % len(tunings)]
        catalogue[f"1542-{unit}"] = SerialNumberRecord(type="INNATO", tuning=tuning, frequency="440")
    return catalogue


DEFAULT_SERIAL_NUMBERS = SerialNumberTable(_order_1542_catalogue())
