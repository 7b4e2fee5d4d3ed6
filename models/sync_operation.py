"""Queue entries and aggregate status for offline synchronisation."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from datetime_utils import parse_iso, to_iso, utc_now


class OperationKind(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class OperationState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "syncing"
    COMPLETED = "completed"
    FAILED = "failed"


DEFAULT_MAX_RETRIES = 3


def new_operation_id() -> str:
    return f"op_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class SyncOperation:
    """A mutation waiting to be replayed against the backend.

    ``kind`` is kept as a plain string when a persisted record carries a value
    outside :class:`OperationKind`; dispatch treats such entries as terminal.
    """

    kind: Any
    resource: str
    payload: Dict[str, Any]
    id: str = field(default_factory=new_operation_id)
    enqueued_at: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    state: OperationState = OperationState.PENDING
    last_error: Optional[str] = None

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    @property
    def is_eligible(self) -> bool:
        if self.state == OperationState.PENDING:
            return True
        return self.state == OperationState.FAILED and not self.retries_exhausted

    def to_dict(self) -> Dict[str, Any]:
        kind = self.kind.value if isinstance(self.kind, OperationKind) else str(self.kind)
        return {
            "id": self.id,
            "type": kind,
            "resource": self.resource,
            "data": self.payload,
            "timestamp": to_iso(self.enqueued_at),
            "retryCount": self.retry_count,
            "maxRetries": self.max_retries,
            "status": self.state.value,
            "error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncOperation":
        """Rebuild an operation from its persisted form.

        Entries caught mid-delivery (``syncing``) or carrying an unknown state
        resume as pending.
        """
        raw_kind = data.get("type")
        try:
            kind: Any = OperationKind(raw_kind)
        except ValueError:
            kind = str(raw_kind)

        try:
            state = OperationState(data.get("status"))
        except ValueError:
            state = OperationState.PENDING
        if state == OperationState.IN_FLIGHT:
            state = OperationState.PENDING

        max_retries = int(data.get("maxRetries") or DEFAULT_MAX_RETRIES)
        retry_count = min(max(int(data.get("retryCount") or 0), 0), max_retries)
        payload = data.get("data")
        return cls(
            id=str(data.get("id") or new_operation_id()),
            kind=kind,
            resource=str(data.get("resource") or ""),
            payload=payload if isinstance(payload, dict) else {},
            enqueued_at=parse_iso(data.get("timestamp")) or utc_now(),
            retry_count=retry_count,
            max_retries=max_retries,
            state=state,
            last_error=data.get("error"),
        )


@dataclass
class SyncStatus:
    is_online: bool = True
    is_syncing: bool = False
    last_sync_time: Optional[datetime] = None
    pending_operations: int = 0
    failed_operations: int = 0
    successful_operations: int = 0
    evicted_operations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOnline": self.is_online,
            "isSyncing": self.is_syncing,
            "lastSyncTime": to_iso(self.last_sync_time),
            "pendingOperations": self.pending_operations,
            "failedOperations": self.failed_operations,
            "successfulOperations": self.successful_operations,
            "evictedOperations": self.evicted_operations,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncStatus":
        return cls(
            is_online=bool(data.get("isOnline", True)),
            is_syncing=False,
            last_sync_time=parse_iso(data.get("lastSyncTime")),
            pending_operations=int(data.get("pendingOperations") or 0),
            failed_operations=int(data.get("failedOperations") or 0),
            successful_operations=int(data.get("successfulOperations") or 0),
            evicted_operations=int(data.get("evictedOperations") or 0),
        )


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "OperationKind",
    "OperationState",
    "SyncOperation",
    "SyncStatus",
    "new_operation_id",
]
