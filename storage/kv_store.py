"""Durable string key-value store on top of SQLite."""
from __future__ import annotations

import json
from typing import Any, Callable, List, Optional

from sqlmodel import Session, select

from core.settings import SYNC
from datetime_utils import utc_now
from models.kv_entry import KeyValueEntry
from storage.db import get_session


class KeyValueStore:
    """Prefixed ``get``/``set`` helper around the ``keyvalueentry`` table.

    Read and write errors propagate; callers decide whether a failed write is
    fatal.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = get_session,
        *,
        prefix: str = SYNC.storage_prefix,
    ):
        self._session_factory = session_factory
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[str]:
        with self._session_factory() as session:
            row = session.get(KeyValueEntry, self._key(key))
            return row.value if row else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as session:
            row = session.get(KeyValueEntry, self._key(key))
            if row is None:
                row = KeyValueEntry(key=self._key(key), value=value)
            else:
                row.value = value
                row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def remove(self, key: str) -> None:
        with self._session_factory() as session:
            row = session.get(KeyValueEntry, self._key(key))
            if row is not None:
                session.delete(row)
                session.commit()

    def keys(self) -> List[str]:
        with self._session_factory() as session:
            rows = session.exec(
                select(KeyValueEntry.key).where(KeyValueEntry.key.startswith(self.prefix))
            )
            return [key[len(self.prefix):] for key in rows]

    # ----- JSON helpers -----
    def get_object(self, key: str) -> Optional[Any]:
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return None

    def set_object(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))


__all__ = ["KeyValueStore"]
