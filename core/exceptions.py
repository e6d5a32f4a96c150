"""
Custom exceptions for Workshop Tracker.

Exception Hierarchy:
    WorkshopTrackerError (base)
    ├── ConfigurationError         - Bad settings at startup (fail fast)
    ├── PersistenceError           - Order store call failed
    │   ├── PersistenceUnavailableError - Store unreachable after retries
    │   ├── PersistenceTimeoutError     - Store did not answer in time
    │   ├── PersistenceRejectedError    - Store answered with a 4xx
    │   └── PersistenceResponseError    - Store answered 2xx with a non-JSON body
    ├── StageWriteError            - Optimistic write rolled back
    ├── InvalidStageError          - Unknown stage name
    ├── RecordNotFoundError        - Order/item id not in snapshot
    └── SnapshotNotReadyError      - No data fetched yet

Usage:
    Resolution, classification and filtering NEVER raise on bad input data.
    These exceptions only come from the write path, the persistence client
    and the service layer. Routes translate them into JSON error responses.
"""

from typing import Optional, Dict, Any


class WorkshopTrackerError(Exception):
    """
    Base exception for all Workshop Tracker errors.

    All custom exceptions inherit from this class, allowing callers to catch
    all application-specific errors with a single except clause if needed.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional context for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# STARTUP ERRORS
# =============================================================================

class ConfigurationError(WorkshopTrackerError):
    """A required setting is missing or malformed."""

    def __init__(self, setting: str, value: Any = None):
        message = f"Invalid configuration for {setting}: {value!r}"
        details = {
            "setting": setting,
            "resolution": f"Check {setting} in .env",
        }
        super().__init__(message, details)
        self.setting = setting


# =============================================================================
# PERSISTENCE ERRORS - raised by core.api_client
# =============================================================================

class PersistenceError(WorkshopTrackerError):
    """
    Base class for order store failures.

    Carries the HTTP method and path of the failing call so log lines and
    error responses can say which request broke.
    """

    def __init__(
        self,
        message: str,
        method: Optional[str] = None,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        error_details = details or {}
        if method:
            error_details["method"] = method
        if path:
            error_details["path"] = path
        super().__init__(message, error_details)
        self.method = method
        self.path = path


class PersistenceUnavailableError(PersistenceError):
    """
    The order store could not be reached, even after retries.

    This is the only fatal condition on the write path. It is reported to
    the caller, never retried indefinitely.
    """

    def __init__(self, method: str, path: str, attempts: int, reason: str = ""):
        message = f"Order store unavailable: {method} {path} failed after {attempts} attempt(s)"
        details = {
            "attempts": attempts,
            "reason": reason,
            "resolution": "Check PERSISTENCE_API_URL and that the order store is running",
        }
        super().__init__(message, method, path, details)
        self.attempts = attempts


class PersistenceTimeoutError(PersistenceError):
    """The order store did not answer within the configured timeout."""

    def __init__(self, method: str, path: str, timeout_seconds: float):
        message = f"Order store {method} {path} timed out after {timeout_seconds:.1f}s"
        details = {
            "timeout_seconds": timeout_seconds,
            "resolution": "The order store may be busy. The change may still have been applied.",
        }
        super().__init__(message, method, path, details)
        self.timeout_seconds = timeout_seconds


class PersistenceRejectedError(PersistenceError):
    """The order store refused the request (4xx). Not retried."""

    def __init__(self, method: str, path: str, status_code: int, body: str = ""):
        message = f"Order store rejected {method} {path} with HTTP {status_code}"
        details = {"status_code": status_code, "body": body[:500]}
        super().__init__(message, method, path, details)
        self.status_code = status_code


class PersistenceResponseError(PersistenceError):
    """The order store answered with a success status but the body is not JSON."""

    def __init__(self, method: str, path: str, status_code: int, body: str = ""):
        message = f"Order store answered {method} {path} with a body that is not JSON"
        details = {
            "status_code": status_code,
            "body": body[:500],
            "resolution": "Check that PERSISTENCE_API_URL points at the order store and not a proxy page",
        }
        super().__init__(message, method, path, details)
        self.status_code = status_code


# =============================================================================
# RUNTIME ERRORS - operation fails, snapshot stays consistent
# =============================================================================

class StageWriteError(WorkshopTrackerError):
    """
    A write to the order store failed and the local change was rolled back.

    The in-memory snapshot has already been restored to its pre-write value
    when this is raised, so no partial state is retained.
    """

    def __init__(
        self,
        record_kind: str,
        record_id: int,
        field: str,
        cause: Optional[Exception] = None
    ):
        message = f"Could not save {field} for {record_kind} {record_id}; change was rolled back"
        details: Dict[str, Any] = {
            "record_kind": record_kind,
            "record_id": record_id,
            "field": field,
        }
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, details)
        self.record_kind = record_kind
        self.record_id = record_id
        self.field = field
        self.cause = cause


class InvalidStageError(WorkshopTrackerError):
    """The requested stage name is not one of the known workshop stages."""

    def __init__(self, stage: str):
        super().__init__(f"Unknown stage: {stage!r}", {"stage": stage})
        self.stage = stage


class RecordNotFoundError(WorkshopTrackerError):
    """An order or item id is not present in the current snapshot."""

    def __init__(self, record_kind: str, record_id: Any):
        super().__init__(
            f"{record_kind.capitalize()} {record_id} not found",
            {"record_kind": record_kind, "record_id": record_id},
        )
        self.record_kind = record_kind
        self.record_id = record_id


class SnapshotNotReadyError(WorkshopTrackerError):
    """
    No order data has been fetched yet.

    This can occur when:
    - App just started and the first refresh hasn't completed
    - The order store became unavailable before the first fetch
    """

    def __init__(self, message: str = "Order data not yet loaded"):
        details = {
            "resolution": "Wait for the snapshot refresh or check order store connectivity"
        }
        super().__init__(message, details)
