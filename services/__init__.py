"""
Services layer for Workshop Tracker.

This module contains the stateful services:
- SnapshotService: Background refresh of orders and items
- StageService: Optimistic writes (stages, notes, archive, packaging)
- PreferencesStore: Non-working periods and history window on disk
- WorksheetService: Read facade used by the routes

Thread Model:
    Main Thread (Flask)
    ├── Snapshot thread (60-second refresh loop)
    └── Write threads (one per async stage write)
"""

from .snapshot_service import SnapshotService
from .stage_service import StageService, StageWrite, WriteResultStore
from .preferences_store import PreferencesStore
from .worksheet_service import WorksheetService

__all__ = [
    "SnapshotService",
    "StageService",
    "StageWrite",
    "WriteResultStore",
    "PreferencesStore",
    "WorksheetService",
]
