"""
Write result data models.

These models describe the outcome of an optimistic write (stage toggle,
notes, archive flag, packaging). Background write threads store them in
the WriteResultStore; routes read them to tell staff whether a change
stuck or was rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class WriteStatus(Enum):
    """
    Status of an optimistic write.

    Lifecycle:
        PENDING -> (COMMITTED | ROLLED_BACK)
    """

    PENDING = "pending"
    """Applied locally, order store not yet confirmed."""

    COMMITTED = "committed"
    """Order store accepted the change."""

    ROLLED_BACK = "rolled_back"
    """Order store refused or was unreachable; local change undone."""


@dataclass
class WriteResult:
    """
    Outcome of one write against one record.

    Thread Safety:
        - Write thread creates it once, when the store call finishes
        - Main thread reads it from WriteResultStore (removes on read)
    """

    write_id: str
    """Unique write identifier (UUID)."""

    record_kind: str
    """"order" or "item"."""

    record_id: int

    field_name: str
    """What was written: a stage key, "notes", "archived", "specifications"."""

    status: WriteStatus

    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    error: Optional[str] = None
    """Why the write was rolled back."""

    @classmethod
    def create_committed(cls, write_id: str, record_kind: str, record_id: int, field_name: str) -> "WriteResult":
        return cls(
            write_id=write_id,
            record_kind=record_kind,
            record_id=record_id,
            field_name=field_name,
            status=WriteStatus.COMMITTED,
        )

    @classmethod
    def create_rolled_back(
        cls,
        write_id: str,
        record_kind: str,
        record_id: int,
        field_name: str,
        error_message: str,
    ) -> "WriteResult":
        return cls(
            write_id=write_id,
            record_kind=record_kind,
            record_id=record_id,
            field_name=field_name,
            status=WriteStatus.ROLLED_BACK,
            error=error_message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "writeId": self.write_id,
            "recordKind": self.record_kind,
            "recordId": self.record_id,
            "field": self.field_name,
            "status": self.status.value,
            "finishedAt": self.finished_at.isoformat(),
            "error": self.error,
        }
