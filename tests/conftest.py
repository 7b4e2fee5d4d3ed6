import asyncio

import pytest
from sqlmodel import Session, SQLModel, create_engine

import models.kv_entry  # noqa: F401
from services.api_client import ApiError


class MemoryStore:
    """Dict-backed stand-in for :class:`KeyValueStore`."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value


class BrokenStore(MemoryStore):
    def get(self, key):
        raise OSError("disk unavailable")

    def set(self, key, value):
        raise OSError("disk unavailable")


class FakeApi:
    def __init__(self):
        self.calls = []
        self.fail = False
        self.gate = None

    async def _call(self, *call):
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail:
            raise ApiError("SERVER_ERROR", "backend unavailable", 503)
        return {"ok": True}

    async def create(self, resource, body):
        return await self._call("create", resource, dict(body))

    async def update(self, resource, record_id, body):
        return await self._call("update", resource, record_id, dict(body))

    async def delete(self, resource, record_id):
        return await self._call("delete", resource, record_id)


@pytest.fixture()
def session_factory():
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    def factory():
        return Session(engine)

    return factory


@pytest.fixture()
def api():
    return FakeApi()


@pytest.fixture()
def store():
    return MemoryStore()


@pytest.fixture()
def broken_store():
    return BrokenStore()
