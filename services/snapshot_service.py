"""
Snapshot service with background refresh thread.

This service keeps an in-memory WorkshopSnapshot of every order and item
in the order store. It runs a background thread that refetches both
collections every SNAPSHOT_REFRESH_SECONDS (60 by default).

Thread Safety:
    - Background thread builds a new immutable WorkshopSnapshot per refresh
    - Readers get the current snapshot via an atomic reference read
    - Optimistic writes swap in a snapshot with one record replaced; a
      lock serializes those swaps with each other and with refreshes so
      an older refresh never clobbers a newer local change mid-swap

Usage:
    # At app startup
    snapshot_service = SnapshotService(client)
    snapshot_service.start()

    # In routes
    snapshot = snapshot_service.get_snapshot()

    # At app shutdown
    snapshot_service.stop()
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from core.api_client import PersistenceClient
from core.exceptions import SnapshotNotReadyError
from models.order import Order, OrderItem
from models.snapshot import WorkshopSnapshot
from logging_config import get_logger, set_thread_name


logger = get_logger(__name__)


class SnapshotService:
    """
    Background service that mirrors the order store in memory.

    Attributes:
        refresh_interval_seconds: Time between refreshes (default 60)
        is_running: Whether the background thread is active
    """

    def __init__(
        self,
        client: PersistenceClient,
        refresh_interval_seconds: float = 60.0
    ):
        """
        Initialize snapshot service.

        Args:
            client: Order store client
            refresh_interval_seconds: Seconds between refreshes
        """
        self._client = client
        self._refresh_interval = refresh_interval_seconds

        # Thread control
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._is_running = False

        # Never None, so readers need no check
        self._current_snapshot: WorkshopSnapshot = WorkshopSnapshot.create_empty()
        self._swap_lock = threading.Lock()

        self._consecutive_failures = 0

        logger.info(f"SnapshotService initialized (refresh interval: {refresh_interval_seconds}s)")

    @property
    def is_running(self) -> bool:
        """Whether the background refresh thread is active."""
        return self._is_running

    @property
    def refresh_interval_seconds(self) -> float:
        return self._refresh_interval

    @property
    def client(self) -> PersistenceClient:
        return self._client

    def start(self) -> None:
        """
        Start the background refresh thread.

        Safe to call multiple times - only starts if not already running.
        """
        if self._is_running:
            logger.warning("SnapshotService already running")
            return

        logger.info("Starting snapshot refresh thread...")
        self._stop_event.clear()

        self._thread = threading.Thread(
            target=self._refresh_loop,
            name="Snapshot",
            daemon=True
        )
        self._is_running = True
        self._thread.start()

    def stop(self) -> None:
        """
        Stop the background refresh thread.

        Signals the thread to stop and waits for it to finish.
        Safe to call multiple times.
        """
        if not self._is_running:
            return

        logger.info("Stopping snapshot refresh thread...")
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("Snapshot thread did not stop cleanly")

        self._is_running = False
        self._thread = None
        logger.info("Snapshot refresh thread stopped")

    # =========================================================================
    # READS
    # =========================================================================

    def get_snapshot(self) -> WorkshopSnapshot:
        """
        Get the current snapshot (never None, may be stale or empty).
        """
        return self._current_snapshot

    def get_snapshot_or_raise(self) -> WorkshopSnapshot:
        """
        Get the current snapshot, raising if nothing has been fetched yet.

        Raises:
            SnapshotNotReadyError: If no refresh has succeeded yet
        """
        snapshot = self._current_snapshot
        if snapshot.is_empty and self._consecutive_failures > 0:
            raise SnapshotNotReadyError(
                f"Order data not loaded; {self._consecutive_failures} refresh attempt(s) failed"
            )
        return snapshot

    # =========================================================================
    # OPTIMISTIC SWAPS (used by StageService)
    # =========================================================================

    def replace_item(self, item: OrderItem) -> WorkshopSnapshot:
        """Swap in a snapshot with `item` replacing the item of the same id."""
        return self._swap(lambda snapshot: snapshot.with_item(item))

    def replace_order(self, order: Order) -> WorkshopSnapshot:
        """Swap in a snapshot with `order` replacing the order of the same id."""
        return self._swap(lambda snapshot: snapshot.with_order(order))

    def set_snapshot(self, snapshot: WorkshopSnapshot) -> None:
        """Install a snapshot directly (startup seeding and tests)."""
        with self._swap_lock:
            self._current_snapshot = snapshot

    def _swap(self, change: Callable[[WorkshopSnapshot], WorkshopSnapshot]) -> WorkshopSnapshot:
        with self._swap_lock:
            self._current_snapshot = change(self._current_snapshot)
            return self._current_snapshot

    # =========================================================================
    # REFRESH
    # =========================================================================

    def force_refresh(self) -> bool:
        """
        Refresh immediately in the calling thread.

        Returns:
            True if refresh succeeded, False otherwise
        """
        logger.info("Forcing snapshot refresh...")
        return self._do_refresh()

    def _refresh_loop(self) -> None:
        set_thread_name("Snapshot")
        logger.info("Snapshot refresh loop starting")

        self._do_refresh()

        while not self._stop_event.is_set():
            if self._stop_event.wait(timeout=self._refresh_interval):
                break
            self._do_refresh()

        logger.info("Snapshot refresh loop exiting")

    def _do_refresh(self) -> bool:
        """
        Perform a single refresh.

        Returns:
            True if refresh succeeded, False otherwise
        """
        logger.debug("Refreshing snapshot...")

        try:
            orders = self._client.fetch_orders()
            items = self._client.fetch_order_items()
            new_snapshot = WorkshopSnapshot.from_raw(orders, items)

            with self._swap_lock:
                self._current_snapshot = new_snapshot

            if self._consecutive_failures > 0:
                logger.info(f"Snapshot refresh recovered after {self._consecutive_failures} failures")
            self._consecutive_failures = 0

            logger.debug(
                f"Snapshot refreshed: {len(new_snapshot.orders)} orders, {len(new_snapshot.items)} items"
            )
            return True

        except Exception as e:
            self._consecutive_failures += 1

            if self._consecutive_failures == 1:
                logger.warning(f"Snapshot refresh failed: {e}")
            elif self._consecutive_failures <= 3:
                logger.error(f"Snapshot refresh failed ({self._consecutive_failures} consecutive): {e}")
            elif self._consecutive_failures % 5 == 0:
                logger.error(
                    f"Snapshot refresh still failing ({self._consecutive_failures} consecutive): {e}"
                )

            return False
