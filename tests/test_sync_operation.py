from datetime import datetime, timezone

from models.sync_operation import OperationKind, OperationState, SyncOperation, SyncStatus


def test_persisted_form_uses_wire_field_names():
    op = SyncOperation(
        kind=OperationKind.UPDATE,
        resource="bookings",
        payload={"id": 4},
        enqueued_at=datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc),
    )
    data = op.to_dict()

    assert data["type"] == "UPDATE"
    assert data["data"] == {"id": 4}
    assert data["timestamp"] == "2024-05-01T08:30:00.000Z"
    assert data["status"] == "pending"
    assert SyncOperation.from_dict(data) == op


def test_unknown_state_and_overflowing_retry_count_are_normalised():
    op = SyncOperation.from_dict(
        {"id": "op_9", "type": "DELETE", "resource": "fleet", "data": {"id": 1},
         "status": "exploded", "retryCount": 12, "maxRetries": 3}
    )

    assert op.state == OperationState.PENDING
    assert op.retry_count == 3


def test_terminal_failures_are_not_eligible():
    op = SyncOperation(kind=OperationKind.CREATE, resource="bookings", payload={})
    assert op.is_eligible

    op.state = OperationState.FAILED
    op.retry_count = 2
    assert op.is_eligible

    op.retry_count = 3
    assert not op.is_eligible

    op.state = OperationState.COMPLETED
    assert not op.is_eligible


def test_status_reload_never_reports_syncing():
    status = SyncStatus(is_syncing=True, successful_operations=4)
    restored = SyncStatus.from_dict(status.to_dict())

    assert restored.is_syncing is False
    assert restored.successful_operations == 4
    assert restored.last_sync_time is None
