from __future__ import annotations

from typing import Any, Dict

from models.sync_operation import OperationKind, SyncOperation


BOOKINGS = "bookings"
FLEET = "fleet"
TRANSACTIONS = "transactions"
SAFARIS = "safaris"

KNOWN_RESOURCES = (BOOKINGS, FLEET, TRANSACTIONS, SAFARIS)


class ResourceWriter:
    """Routes local edits of one backend table through the offline queue."""

    def __init__(self, queue, resource: str):
        if resource not in KNOWN_RESOURCES:
            raise ValueError(f"Unsupported resource: {resource}")
        self.queue = queue
        self.resource = resource

    async def create(self, payload: Dict[str, Any]) -> SyncOperation:
        return await self.queue.add_operation(OperationKind.CREATE, self.resource, payload)

    async def update(self, record_id: Any, changes: Dict[str, Any]) -> SyncOperation:
        body = dict(changes)
        body["id"] = record_id
        return await self.queue.add_operation(OperationKind.UPDATE, self.resource, body)

    async def delete(self, record_id: Any) -> SyncOperation:
        return await self.queue.add_operation(OperationKind.DELETE, self.resource, {"id": record_id})


__all__ = ["BOOKINGS", "FLEET", "KNOWN_RESOURCES", "ResourceWriter", "SAFARIS", "TRANSACTIONS"]
