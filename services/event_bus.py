from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List


TOPIC_SYNC_STATUS = "sync.status"
TOPIC_SYNC_EVICTED = "sync.evicted"
TOPIC_SYNC_OPERATION_FAILED = "sync.operation_failed"

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class EventBus:
    """Topic-keyed subscriber registry with synchronous fan-out."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, topic: str, callback: Listener) -> Callable[[], None]:
        self._listeners.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(topic, [])
            if callback in listeners:
                listeners.remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: Any = None) -> None:
        for listener in list(self._listeners.get(topic, [])):
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s failed", topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._listeners.get(topic, []))


__all__ = [
    "EventBus",
    "TOPIC_SYNC_EVICTED",
    "TOPIC_SYNC_OPERATION_FAILED",
    "TOPIC_SYNC_STATUS",
]
