"""
Core module for Workshop Tracker.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- api_client: HTTP client for the external order store
"""

from .exceptions import (
    WorkshopTrackerError,
    ConfigurationError,
    PersistenceError,
    PersistenceUnavailableError,
    PersistenceTimeoutError,
    PersistenceRejectedError,
    PersistenceResponseError,
    StageWriteError,
    InvalidStageError,
    RecordNotFoundError,
    SnapshotNotReadyError,
)
from .api_client import PersistenceClient

__all__ = [
    "WorkshopTrackerError",
    "ConfigurationError",
    "PersistenceError",
    "PersistenceUnavailableError",
    "PersistenceTimeoutError",
    "PersistenceRejectedError",
    "PersistenceResponseError",
    "StageWriteError",
    "InvalidStageError",
    "RecordNotFoundError",
    "SnapshotNotReadyError",
    "PersistenceClient",
]
