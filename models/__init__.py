"""Data models exposed by the Safari Ops application."""
from .kv_entry import KeyValueEntry
from .sync_operation import OperationKind, OperationState, SyncOperation, SyncStatus

__all__ = ["KeyValueEntry", "OperationKind", "OperationState", "SyncOperation", "SyncStatus"]
