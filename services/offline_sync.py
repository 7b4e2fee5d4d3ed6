from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError

from core.settings import SYNC, SYNC_LOG_PATH, SyncSettings
from datetime_utils import parse_iso, to_iso, utc_now
from models.sync_operation import OperationKind, OperationState, SyncOperation, SyncStatus
from services.event_bus import (
    EventBus,
    TOPIC_SYNC_EVICTED,
    TOPIC_SYNC_OPERATION_FAILED,
    TOPIC_SYNC_STATUS,
)
from services.network_monitor import NetworkStatus


PERSISTENCE_ERRORS = (SQLAlchemyError, OSError, ValueError, TypeError)


def _ensure_logger() -> logging.Logger:
    logger = logging.getLogger("safari_ops.sync")
    if not logger.handlers:
        SYNC_LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(SYNC_LOG_PATH, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger


def read_sync_log(lines: int = 100) -> str:
    try:
        with open(SYNC_LOG_PATH, "r", encoding="utf-8") as fh:
            content = fh.readlines()
    except FileNotFoundError:
        return "No sync log yet."
    return "\n".join(line.rstrip("\n") for line in content[-lines:])


class UnsupportedOperationError(ValueError):
    """Raised for queue entries that can never be delivered."""


class SyncQueue:
    """Persisted FIFO of offline mutations replayed against the backend.

    All entry points (direct calls, the periodic timer, the offline-to-online
    transition and the post-enqueue trigger) share one in-flight flag, so at
    most one sync pass runs at a time; concurrent callers get a no-op.
    Operations inside a pass are delivered one after another in queue order.
    """

    def __init__(
        self,
        storage,
        network,
        api,
        *,
        bus: Optional[EventBus] = None,
        settings: SyncSettings = SYNC,
    ) -> None:
        self.storage = storage
        self.network = network
        self.api = api
        self.bus = bus
        self.logger = _ensure_logger()

        self.enabled = settings.enabled
        self.sync_interval = settings.interval_sec
        self.max_queue_size = max(1, settings.max_queue_size)
        self.max_retries = settings.max_retries
        self.queue_key = settings.queue_key
        self.status_key = settings.status_key

        self._operations: List[SyncOperation] = []
        self._status = SyncStatus(is_online=network.is_connected)
        self._queue_added_at: Optional[datetime] = None
        self._loaded = False
        self._dropped_ids: Set[str] = set()
        self._timer_task: Optional[asyncio.Task] = None
        self._unsubscribe_network = None
        self._background: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> None:
        self._ensure_loaded()
        self._status.is_online = self.network.is_connected
        self._recount()

        if not self.enabled:
            self.logger.info("Offline sync disabled, %d operations kept in queue", len(self._operations))
            return

        self.logger.info("Starting offline sync")
        if self._unsubscribe_network is None:
            self._unsubscribe_network = self.network.add_listener(self._on_network_change)
        self._start_periodic_sync()

        if self._status.is_online:
            await self.sync_now()
        self.logger.info("Offline sync started")

    async def stop(self) -> None:
        self.logger.info("Stopping offline sync")
        task, self._timer_task = self._timer_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._unsubscribe_network is not None:
            self._unsubscribe_network()
            self._unsubscribe_network = None
        await self.wait_idle()
        if self._loaded:
            self._save_queue()
            self._save_status()
        self.logger.info("Offline sync stopped")

    async def wait_idle(self) -> None:
        """Wait for sync passes scheduled in the background to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Public API
    async def add_operation(self, kind, resource: str, payload: Optional[Dict[str, Any]] = None) -> SyncOperation:
        try:
            kind = OperationKind(kind)
        except ValueError:
            raise ValueError(f"Unsupported operation type: {kind}") from None
        if not resource:
            raise ValueError("Operation resource is required")
        data = dict(payload or {})
        if kind in (OperationKind.UPDATE, OperationKind.DELETE) and data.get("id") is None:
            raise ValueError(f"{kind.value} on {resource} requires an 'id' in the payload")

        self._ensure_loaded()
        self.logger.info("Queueing %s %s", kind.value, resource)

        if len(self._operations) >= self.max_queue_size:
            self._make_room()

        operation = SyncOperation(kind=kind, resource=resource, payload=data, max_retries=self.max_retries)
        self._operations.append(operation)
        self._recount()
        self._save_queue()
        self._save_status()
        self._publish_status()

        if self.enabled and self._status.is_online and not self._status.is_syncing:
            self._schedule_sync()
        return operation

    async def sync_now(self) -> None:
        if not self.enabled or not self._status.is_online:
            self.logger.warning("Cannot sync: service disabled or offline")
            return
        if self._status.is_syncing:
            self.logger.warning("Sync already in progress")
            return
        if not self._operations:
            self.logger.info("No operations to sync")
            return

        self._status.is_syncing = True
        self._dropped_ids = set()
        self._publish_status()
        try:
            batch = [op for op in self._operations if op.is_eligible]
            self.logger.info("Starting sync of %d of %d operations", len(batch), len(self._operations))
            for operation in batch:
                if operation.id in self._dropped_ids:
                    continue
                await self._deliver(operation)

            self._operations = [op for op in self._operations if op.state != OperationState.COMPLETED]
            self._status.last_sync_time = utc_now()
            self._recount()
            self.logger.info("Sync completed")
        except Exception:
            self.logger.exception("Sync failed")
        finally:
            self._status.is_syncing = False
            self._dropped_ids = set()
            self._save_queue()
            self._save_status()
            self._publish_status()

    async def retry_failed_operations(self) -> None:
        self._ensure_loaded()
        self.logger.info("Retrying failed operations")
        for operation in self.get_failed_operations():
            operation.state = OperationState.PENDING
            operation.retry_count = 0
            operation.last_error = None
        self._recount()
        self._save_queue()
        self._save_status()
        self._publish_status()
        await self.sync_now()

    async def clear_queue(self) -> None:
        """Drop every queued operation. Undelivered changes are lost for good."""
        self._ensure_loaded()
        self.logger.warning("Clearing queue (%d operations discarded)", len(self._operations))
        self._operations = []
        self._status.pending_operations = 0
        self._save_queue()
        self._save_status()
        self._publish_status()

    def get_status(self) -> SyncStatus:
        return replace(self._status)

    def get_pending_operations(self) -> List[SyncOperation]:
        return [op for op in self._operations if op.state == OperationState.PENDING]

    def get_failed_operations(self) -> List[SyncOperation]:
        return [op for op in self._operations if op.state == OperationState.FAILED]

    @property
    def operations(self) -> List[SyncOperation]:
        return list(self._operations)

    # ------------------------------------------------------------------
    # Delivery
    async def _deliver(self, operation: SyncOperation) -> None:
        self.logger.info("Syncing operation %s", operation.id)
        operation.state = OperationState.IN_FLIGHT
        try:
            await self._dispatch(operation)
        except UnsupportedOperationError as exc:
            operation.state = OperationState.FAILED
            operation.last_error = str(exc)
            if not operation.retries_exhausted:
                operation.retry_count = operation.max_retries
                self._status.failed_operations += 1
            self.logger.error("Dropping undeliverable operation %s: %s", operation.id, exc)
            self._publish(TOPIC_SYNC_OPERATION_FAILED, operation)
            return
        except Exception as exc:
            operation.state = OperationState.FAILED
            operation.last_error = str(exc) or type(exc).__name__
            operation.retry_count = min(operation.retry_count + 1, operation.max_retries)
            self.logger.error("Error syncing operation %s: %s", operation.id, operation.last_error)
            if operation.retries_exhausted:
                self._status.failed_operations += 1
                self.logger.error("Max retries reached for operation %s", operation.id)
                self._publish(TOPIC_SYNC_OPERATION_FAILED, operation)
            return

        operation.state = OperationState.COMPLETED
        self._status.successful_operations += 1
        self.logger.info("Operation %s synced", operation.id)

    async def _dispatch(self, operation: SyncOperation) -> None:
        kind = operation.kind
        if kind == OperationKind.CREATE:
            await self.api.create(operation.resource, operation.payload)
        elif kind == OperationKind.UPDATE:
            await self.api.update(operation.resource, self._record_id(operation), operation.payload)
        elif kind == OperationKind.DELETE:
            await self.api.delete(operation.resource, self._record_id(operation))
        else:
            raise UnsupportedOperationError(f"Unknown operation type: {kind}")

    @staticmethod
    def _record_id(operation: SyncOperation) -> Any:
        record_id = operation.payload.get("id")
        if record_id is None:
            raise UnsupportedOperationError(f"{operation.kind.value} without record id")
        return record_id

    # ------------------------------------------------------------------
    # Triggers
    def _on_network_change(self, status: NetworkStatus) -> None:
        was_offline = not self._status.is_online
        self._status.is_online = status.is_connected
        if was_offline and status.is_connected:
            self.logger.info("Network restored, triggering sync")
            self._schedule_sync()
        self._publish_status()

    def _schedule_sync(self) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning("No running event loop, sync deferred to the next pass")
            return None
        task = loop.create_task(self._run_guarded())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_guarded(self) -> None:
        try:
            await self.sync_now()
        except Exception:
            self.logger.exception("Background sync failed")

    def _start_periodic_sync(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
        self._timer_task = asyncio.get_running_loop().create_task(self._periodic_loop())
        self.logger.info("Periodic sync started with interval %ss", self.sync_interval)

    async def _periodic_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sync_interval)
            if self._status.is_online and not self._status.is_syncing and self._operations:
                self.logger.info("Periodic sync triggered")
                try:
                    await self.sync_now()
                except Exception:
                    self.logger.exception("Periodic sync failed")

    def _make_room(self) -> None:
        """Free one slot, dropping the oldest operation not being delivered right now."""
        for index, operation in enumerate(self._operations):
            if operation.state == OperationState.COMPLETED:
                # already delivered in the running pass, nothing is lost
                del self._operations[index]
                return

        index = next(
            (i for i, op in enumerate(self._operations) if op.state != OperationState.IN_FLIGHT),
            0,
        )
        evicted = self._operations.pop(index)
        self._dropped_ids.add(evicted.id)
        self._status.evicted_operations += 1
        self.logger.warning(
            "Queue size limit (%d) reached, dropped oldest operation %s (%s %s)",
            self.max_queue_size,
            evicted.id,
            evicted.kind,
            evicted.resource,
        )
        self._publish(TOPIC_SYNC_EVICTED, evicted)

    # ------------------------------------------------------------------
    # Persistence
    def _ensure_loaded(self) -> None:
        # stored state must be read before anything overwrites it
        if self._loaded:
            return
        self._loaded = True
        self._load_queue()
        self._load_status()
        self._status.is_online = self.network.is_connected

    def _recount(self) -> None:
        self._status.pending_operations = sum(
            1 for op in self._operations if op.state == OperationState.PENDING
        )

    def _load_queue(self) -> None:
        try:
            raw = self.storage.get(self.queue_key)
            if not raw:
                return
            parsed = json.loads(raw)
            entries = parsed.get("operations") or []
            self._operations = [SyncOperation.from_dict(item) for item in entries if isinstance(item, dict)]
            self._queue_added_at = parse_iso(parsed.get("addedAt"))
        except PERSISTENCE_ERRORS as exc:
            self.logger.error("Error loading queue: %s", exc)
            return

        overflow = len(self._operations) - self.max_queue_size
        if overflow > 0:
            self.logger.warning("Stored queue exceeds limit, dropping %d oldest operations", overflow)
            for evicted in self._operations[:overflow]:
                self._publish(TOPIC_SYNC_EVICTED, evicted)
            self._operations = self._operations[overflow:]
            self._status.evicted_operations += overflow
        self.logger.info("Queue loaded: %d operations", len(self._operations))

    def _save_queue(self) -> None:
        now = utc_now()
        if self._queue_added_at is None:
            self._queue_added_at = now
        payload = {
            "operations": [op.to_dict() for op in self._operations],
            "addedAt": to_iso(self._queue_added_at),
            "updatedAt": to_iso(now),
        }
        try:
            self.storage.set(self.queue_key, json.dumps(payload, ensure_ascii=False))
        except PERSISTENCE_ERRORS as exc:
            self.logger.error("Error saving queue: %s", exc)

    def _load_status(self) -> None:
        try:
            raw = self.storage.get(self.status_key)
            if not raw:
                return
            stored = SyncStatus.from_dict(json.loads(raw))
        except PERSISTENCE_ERRORS as exc:
            self.logger.error("Error loading status: %s", exc)
            return
        stored.evicted_operations += self._status.evicted_operations
        self._status = stored
        self.logger.info("Status loaded")

    def _save_status(self) -> None:
        try:
            self.storage.set(self.status_key, json.dumps(self._status.to_dict()))
        except PERSISTENCE_ERRORS as exc:
            self.logger.error("Error saving status: %s", exc)

    # ------------------------------------------------------------------
    def _publish(self, topic: str, payload: Any) -> None:
        if self.bus is not None:
            self.bus.publish(topic, payload)

    def _publish_status(self) -> None:
        self._publish(TOPIC_SYNC_STATUS, self.get_status())


__all__ = ["SyncQueue", "UnsupportedOperationError", "read_sync_log"]
