"""
Write path for workshop changes: stage toggles, notes, archive, packaging.

Every write is OPTIMISTIC:

    1. The changed record is swapped into the snapshot (visible at once)
    2. The order store is patched
    3a. Success: the change stays (commit)
    3b. Failure: the previous record is swapped back (rollback) and
        StageWriteError is raised

Rollback never leaves a half-applied record behind. If something newer
replaced the record in the meantime (another write, or a background
refresh), rollback leaves that newer value alone.

Writes normally run in the calling thread. submit_stage_async() runs a
stage toggle on its own thread and reports back through WriteResultStore,
the same consume-once channel the UI polls.

Usage:
    stage_service = StageService(snapshot_service, client)

    stage_service.set_stage("item", 42, "building", complete=True)

    write_id = stage_service.submit_stage_async("item", 42, "waxing", True)
    result = stage_service.get_result(write_id)
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from core.api_client import PersistenceClient
from core.exceptions import (
    InvalidStageError,
    RecordNotFoundError,
    StageWriteError,
)
from models.order import Order, OrderItem
from models.snapshot import WorkshopSnapshot
from models.write_result import WriteResult
from modules.stage_tracker import STAGE_BUILDING, normalize_stage
from services.snapshot_service import SnapshotService
from logging_config import get_logger, get_write_logger, set_thread_name


logger = get_logger(__name__)

RECORD_ORDER = "order"
RECORD_ITEM = "item"
RECORD_KINDS = (RECORD_ORDER, RECORD_ITEM)

Record = Union[Order, OrderItem]

# Packaging keys as the shop importer and the workshop UI both write them
BAG_TYPE_KEYS = ("bagType", "Bag Type")
BAG_SIZE_KEYS = ("bagSize", "Bag Size")
BOX_SIZE_KEYS = ("boxSize", "Box Size")


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp in the store's format (2025-05-01T10:00:00.000Z)."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class StageWrite:
    """
    One optimistic change to one record.

    apply() makes the change visible, commit() keeps it, rollback() puts
    the previous record back. A write is finished after commit or rollback.
    """

    def __init__(
        self,
        snapshot_service: SnapshotService,
        record_kind: str,
        previous: Record,
        updated: Record,
    ):
        self._snapshot_service = snapshot_service
        self.record_kind = record_kind
        self.previous = previous
        self.updated = updated
        self._finished = False

    def apply(self) -> None:
        self._replace(self.updated)

    def commit(self) -> None:
        self._finished = True

    def rollback(self) -> bool:
        """
        Restore the previous record.

        Returns:
            True if restored, False if a newer value had already replaced ours
        """
        if self._finished:
            return False
        self._finished = True

        current = _lookup(self._snapshot_service.get_snapshot(), self.record_kind, self.updated.id)
        if current is not None and current != self.updated:
            logger.info(
                f"Skipping rollback of {self.record_kind} {self.updated.id}: record changed since write"
            )
            return False

        self._replace(self.previous)
        return True

    def _replace(self, record: Record) -> None:
        if self.record_kind == RECORD_ITEM:
            self._snapshot_service.replace_item(record)
        else:
            self._snapshot_service.replace_order(record)


class WriteResultStore:
    """
    Thread-safe storage for async write results.

    Write threads WRITE results here, request handlers READ (and remove)
    them. get_result() is consume-once; peek_result() is not.
    """

    def __init__(self):
        self._results: Dict[str, WriteResult] = {}
        self._lock = threading.Lock()

    def put_result(self, result: WriteResult) -> None:
        with self._lock:
            self._results[result.write_id] = result
            logger.debug(f"Stored result for write {result.write_id[:8]}")

    def get_result(self, write_id: str) -> Optional[WriteResult]:
        """Get and remove a result; None if the write is still running."""
        with self._lock:
            return self._results.pop(write_id, None)

    def peek_result(self, write_id: str) -> Optional[WriteResult]:
        with self._lock:
            return self._results.get(write_id)

    def clear(self) -> int:
        """
        Remove all stored results.

        Returns:
            Number of results removed
        """
        with self._lock:
            count = len(self._results)
            self._results.clear()
            logger.info(f"Cleared {count} write results from store")
            return count


def _lookup(snapshot: WorkshopSnapshot, record_kind: str, record_id: int) -> Optional[Record]:
    if record_kind == RECORD_ITEM:
        return snapshot.get_item(record_id)
    return snapshot.get_order(record_id)


class StageService:
    """
    Optimistic writes against the snapshot and the order store.

    Attributes:
        result_store: Results of writes started with submit_stage_async()
    """

    def __init__(
        self,
        snapshot_service: SnapshotService,
        client: PersistenceClient,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            snapshot_service: Owner of the in-memory snapshot
            client: Order store client used for the patches
            clock: Returns "now" for stage timestamps (tests pass a fixed clock)
        """
        self._snapshot_service = snapshot_service
        self._client = client
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._result_store = WriteResultStore()

        self._active_threads: Dict[str, threading.Thread] = {}
        self._threads_lock = threading.Lock()

        logger.info("StageService initialized")

    @property
    def result_store(self) -> WriteResultStore:
        return self._result_store

    # =========================================================================
    # STAGES
    # =========================================================================

    def set_stage(self, record_kind: str, record_id: int, stage: str, complete: bool) -> Record:
        """
        Tick or untick one stage on an order or item.

        Unticking stores None under the stage key, which also overrides the
        derived dry and smoke-firing values. Ticking or unticking the build
        stage sets or clears buildDate as well.

        Returns:
            The updated record

        Raises:
            InvalidStageError: Unknown stage name
            RecordNotFoundError: Id not in the snapshot
            StageWriteError: Store refused the change (already rolled back)
        """
        key = normalize_stage(stage)
        if key is None:
            raise InvalidStageError(stage)

        record = self._get_record(record_kind, record_id)
        timestamp = utc_timestamp(self._clock()) if complete else None

        dates = dict(record.status_change_dates)
        dates[key] = timestamp
        patch: Dict[str, Any] = {"statusChangeDates": dates}
        changes: Dict[str, Any] = {"status_change_dates": dates}

        if key == STAGE_BUILDING:
            patch["buildDate"] = timestamp
            changes["build_date"] = timestamp

        return self._write(record_kind, record, replace(record, **changes), patch, key)

    def submit_stage_async(self, record_kind: str, record_id: int, stage: str, complete: bool) -> str:
        """
        Run set_stage() on a background thread.

        Validation errors are raised here, before the thread starts; store
        failures end up in the result store as a rolled-back WriteResult.

        Returns:
            write_id to poll with get_result()
        """
        key = normalize_stage(stage)
        if key is None:
            raise InvalidStageError(stage)
        self._get_record(record_kind, record_id)

        write_id = str(uuid.uuid4())
        thread = threading.Thread(
            target=self._write_thread_main,
            args=(write_id, record_kind, record_id, key, complete),
            name=f"Write-{write_id[:8]}",
            daemon=True,
        )
        with self._threads_lock:
            self._active_threads[write_id] = thread
        thread.start()
        return write_id

    def get_result(self, write_id: str) -> Optional[WriteResult]:
        """Result of an async write (consumes on read), None while pending."""
        return self._result_store.get_result(write_id)

    def is_write_pending(self, write_id: str) -> bool:
        with self._threads_lock:
            thread = self._active_threads.get(write_id)
            return thread is not None and thread.is_alive()

    def shutdown(self, timeout_per_thread: float = 5.0) -> None:
        """Wait for in-flight async writes to finish."""
        with self._threads_lock:
            active = list(self._active_threads.items())

        if not active:
            logger.info("No active write threads to wait for")
            return

        logger.info(f"Waiting for {len(active)} write threads to complete...")
        for write_id, thread in active:
            if thread.is_alive():
                thread.join(timeout=timeout_per_thread)
                if thread.is_alive():
                    logger.warning(f"Write thread {write_id[:8]} did not complete in time")

    # =========================================================================
    # OTHER FIELDS
    # =========================================================================

    def set_notes(self, record_kind: str, record_id: int, notes: str) -> Record:
        """Replace the free-text notes of an order or item."""
        record = self._get_record(record_kind, record_id)
        return self._write(record_kind, record, replace(record, notes=notes), {"notes": notes}, "notes")

    def set_archived(self, record_kind: str, record_id: int, archived: bool) -> Record:
        """Archive or unarchive an order or item."""
        record = self._get_record(record_kind, record_id)
        return self._write(
            record_kind, record, replace(record, archived=archived), {"archived": archived}, "archived"
        )

    def update_packaging(
        self,
        item_id: int,
        bag_type: Optional[str] = None,
        bag_size: Optional[str] = None,
        box_size: Optional[str] = None,
    ) -> OrderItem:
        """
        Assign bag and box to an item.

        Values are written into specifications under both key spellings;
        None leaves a value untouched, "" clears it.
        """
        item = self._get_record(RECORD_ITEM, item_id)
        specs = dict(item.specifications)
        for keys, value in ((BAG_TYPE_KEYS, bag_type), (BAG_SIZE_KEYS, bag_size), (BOX_SIZE_KEYS, box_size)):
            if value is None:
                continue
            for key in keys:
                specs[key] = value

        return self._write(
            RECORD_ITEM, item, replace(item, specifications=specs), {"specifications": specs}, "specifications"
        )

    def assign_joint_box(
        self,
        order_id: int,
        item_ids: Iterable[int],
        box_size: str,
        material_id: Optional[int] = None,
    ) -> List[OrderItem]:
        """
        Pack several items of one order into a single box.

        Each item gets customBoxSize and useJointBox in its specifications.
        When material_id is given, the box material's quantity goes down by
        one (once per joint box, not per item).

        Items already written stay written if a later item fails; the
        failing item is rolled back and StageWriteError is raised.

        Raises:
            RecordNotFoundError: Order missing, or an item not in this order
            StageWriteError: Store refused one of the changes
        """
        self._get_record(RECORD_ORDER, order_id)
        ids = list(dict.fromkeys(item_ids))

        items = []
        for item_id in ids:
            item = self._get_record(RECORD_ITEM, item_id)
            if item.order_id != order_id:
                raise RecordNotFoundError(RECORD_ITEM, item_id)
            items.append(item)

        updated_items = []
        for item in items:
            specs = dict(item.specifications)
            specs["customBoxSize"] = box_size
            specs["useJointBox"] = True
            updated_items.append(
                self._write(
                    RECORD_ITEM, item, replace(item, specifications=specs), {"specifications": specs}, "specifications"
                )
            )

        if material_id is not None and updated_items:
            self._consume_material(material_id)

        logger.info(f"Joint box {box_size} assigned to {len(updated_items)} items of order {order_id}")
        return updated_items

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _get_record(self, record_kind: str, record_id: int) -> Record:
        if record_kind not in RECORD_KINDS:
            raise RecordNotFoundError(str(record_kind), record_id)
        record = _lookup(self._snapshot_service.get_snapshot(), record_kind, record_id)
        if record is None:
            raise RecordNotFoundError(record_kind, record_id)
        return record

    def _write(
        self,
        record_kind: str,
        previous: Record,
        updated: Record,
        patch: Dict[str, Any],
        field_name: str,
    ) -> Record:
        write_logger = get_write_logger(record_kind, previous.id)
        write = StageWrite(self._snapshot_service, record_kind, previous, updated)
        write.apply()

        try:
            if record_kind == RECORD_ITEM:
                self._client.update_order_item(previous.id, patch)
            else:
                self._client.update_order(previous.id, patch)
        except Exception as e:
            restored = write.rollback()
            write_logger.error(f"Write of {field_name} failed ({'rolled back' if restored else 'superseded'}): {e}")
            raise StageWriteError(record_kind, previous.id, field_name, e) from e

        write.commit()
        write_logger.info(f"Saved {field_name}")
        return updated

    def _consume_material(self, material_id: int) -> None:
        materials = self._client.list_materials()
        material = next((m for m in materials if m.get("id") == material_id), None)
        if material is None:
            logger.warning(f"Material {material_id} not found; box inventory not updated")
            return

        quantity = material.get("quantity") or 0
        new_quantity = max(0, int(quantity) - 1)
        self._client.update_material(material_id, {"quantity": new_quantity})
        logger.info(f"Material {material_id} quantity {quantity} -> {new_quantity}")

    def _write_thread_main(
        self,
        write_id: str,
        record_kind: str,
        record_id: int,
        stage: str,
        complete: bool,
    ) -> None:
        set_thread_name(f"Write-{write_id[:8]}")
        write_logger = get_write_logger(record_kind, record_id)
        result: Optional[WriteResult] = None

        try:
            self.set_stage(record_kind, record_id, stage, complete)
            result = WriteResult.create_committed(write_id, record_kind, record_id, stage)
        except (StageWriteError, RecordNotFoundError) as e:
            write_logger.error(f"Async write {write_id[:8]} failed: {e}")
            result = WriteResult.create_rolled_back(write_id, record_kind, record_id, stage, e.message)
        except Exception as e:
            write_logger.error(f"Async write {write_id[:8]} crashed: {e}")
            result = WriteResult.create_rolled_back(write_id, record_kind, record_id, stage, str(e))
        finally:
            if result is not None:
                self._result_store.put_result(result)
            with self._threads_lock:
                self._active_threads.pop(write_id, None)
