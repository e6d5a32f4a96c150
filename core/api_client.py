"""
HTTP client for the external order store.

The order store owns Orders, OrderItems and packaging materials. This module
is the ONLY place that talks to it; everything above works on the in-memory
WorkshopSnapshot built from what this client returns.

RETRY POLICY:
    - Connection errors, read/connect timeouts and 5xx responses are
      transient: retried up to max_retries times with a short linear backoff
    - 4xx responses are permanent: raised immediately as
      PersistenceRejectedError
    - A 2xx body that does not decode as JSON is raised immediately as
      PersistenceResponseError
    - When retries run out the last failure is raised as
      PersistenceTimeoutError or PersistenceUnavailableError

THREAD SAFETY:
    httpx.Client is safe to share between threads. The snapshot refresh
    thread and request handlers use the same PersistenceClient instance.

Usage:
    client = PersistenceClient("http://localhost:5000", timeout=10.0)

    orders = client.fetch_orders()
    items = client.fetch_order_items()

    client.update_order_item(42, {"statusChangeDates": {"building": "2025-05-01T10:00:00Z"}})

    client.close()
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from .exceptions import (
    PersistenceRejectedError,
    PersistenceResponseError,
    PersistenceTimeoutError,
    PersistenceUnavailableError,
)
from logging_config import get_logger


logger = get_logger(__name__)


class PersistenceClient:
    """
    Thin JSON client for the order store REST API.

    Attributes:
        base_url: Root URL of the order store
        timeout: Per-request timeout in seconds
        max_retries: Retries after the first attempt for transient failures
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Root URL of the order store (e.g. http://localhost:5000)
            timeout: Per-request timeout in seconds
            max_retries: How many times a transient failure is retried
            backoff_seconds: Base delay between retries (multiplied by attempt)
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self._backoff_seconds = backoff_seconds
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    # =========================================================================
    # READ OPERATIONS
    # =========================================================================

    def fetch_orders(self) -> List[Dict[str, Any]]:
        """Return every order as raw dictionaries."""
        return self._as_list(self._request("GET", "/api/orders"))

    def fetch_order_items(self) -> List[Dict[str, Any]]:
        """Return every order item as raw dictionaries."""
        return self._as_list(self._request("GET", "/api/order-items"))

    def list_materials(self) -> List[Dict[str, Any]]:
        """Return packaging materials (bags, boxes) with their quantities."""
        return self._as_list(self._request("GET", "/api/materials"))

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    def update_order(self, order_id: int, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Partially update an order (stage dates, notes, archived flag...)."""
        return self._request("PATCH", f"/api/orders/{order_id}", json=patch) or {}

    def update_order_item(self, item_id: int, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Partially update an order item (stage dates, specifications...)."""
        return self._request("PATCH", f"/api/order-items/{item_id}", json=patch) or {}

    def update_material(self, material_id: int, patch: Dict[str, Any]) -> Dict[str, Any]:
        """Partially update a packaging material (used for quantity changes)."""
        return self._request("PATCH", f"/api/materials/{material_id}", json=patch) or {}

    def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        self._client.close()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        attempts = self.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                response = self._client.request(method, path, json=json)
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(f"{method} {path} timed out (attempt {attempt}/{attempts})")
            except httpx.TransportError as e:
                last_error = e
                logger.warning(f"{method} {path} transport error (attempt {attempt}/{attempts}): {e}")
            else:
                if response.status_code >= 500:
                    last_error = httpx.HTTPStatusError(
                        f"HTTP {response.status_code}", request=response.request, response=response
                    )
                    logger.warning(
                        f"{method} {path} returned {response.status_code} (attempt {attempt}/{attempts})"
                    )
                elif response.status_code >= 400:
                    logger.error(f"{method} {path} rejected with {response.status_code}")
                    raise PersistenceRejectedError(method, path, response.status_code, response.text)
                else:
                    logger.debug(f"{method} {path} -> {response.status_code}")
                    if not response.content:
                        return None
                    try:
                        return response.json()
                    except ValueError as e:
                        logger.error(f"{method} {path} returned a body that is not JSON")
                        raise PersistenceResponseError(
                            method, path, response.status_code, response.text
                        ) from e

            if attempt < attempts and self._backoff_seconds > 0:
                time.sleep(self._backoff_seconds * attempt)

        if isinstance(last_error, httpx.TimeoutException):
            raise PersistenceTimeoutError(method, path, self.timeout) from last_error
        raise PersistenceUnavailableError(method, path, attempts, str(last_error)) from last_error

    @staticmethod
    def _as_list(payload: Any) -> List[Dict[str, Any]]:
        # Some store endpoints wrap collections as {"data": [...]}
        if isinstance(payload, dict):
            payload = payload.get("data", [])
        if not isinstance(payload, list):
            return []
        return [entry for entry in payload if isinstance(entry, dict)]
