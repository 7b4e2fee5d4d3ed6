"""Connectivity observer used to gate offline synchronisation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

import httpx

from core.settings import BACKEND, NETWORK


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkStatus:
    is_connected: bool
    type: str = "unknown"
    is_internet_reachable: Optional[bool] = None


NetworkListener = Callable[[NetworkStatus], None]


class NetworkMonitor:
    """Tracks online/offline state and notifies listeners on every update.

    Connectivity is either pushed in with :meth:`set_connected` or discovered by
    the probe loop started with :meth:`start`, which issues a ``HEAD`` request
    against the backend.
    """

    def __init__(
        self,
        probe_url: Optional[str] = None,
        *,
        probe_interval_sec: float = NETWORK.probe_interval_sec,
        probe_timeout_sec: float = NETWORK.probe_timeout_sec,
        initial: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.probe_url = probe_url if probe_url is not None else BACKEND.supabase_url
        self.probe_interval_sec = probe_interval_sec
        self.probe_timeout_sec = probe_timeout_sec
        self._transport = transport
        self._listeners: List[NetworkListener] = []
        self._status = NetworkStatus(is_connected=initial)
        self._probe_task: Optional[asyncio.Task] = None

    @property
    def is_connected(self) -> bool:
        return self._status.is_connected

    def get_status(self) -> NetworkStatus:
        return self._status

    def add_listener(self, listener: NetworkListener) -> Callable[[], None]:
        """Register ``listener``, call it with the current status, return an unsubscribe."""
        self._listeners.append(listener)
        listener(self._status)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_connected(self, connected: bool, *, network_type: str = "unknown") -> None:
        previous = self._status.is_connected
        self._status = NetworkStatus(
            is_connected=connected,
            type=network_type if connected else "none",
            is_internet_reachable=connected,
        )
        if previous != connected:
            logger.info("Network %s", "online" if connected else "offline")
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._status)
            except Exception:
                logger.exception("Network listener failed")

    # ------------------------------------------------------------------
    # probing
    async def check(self) -> bool:
        if not self.probe_url:
            return self._status.is_connected
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                await client.head(self.probe_url, timeout=self.probe_timeout_sec)
        except httpx.RequestError as exc:
            logger.debug("Connectivity probe failed: %s", exc)
            return False
        return True

    async def _probe_loop(self) -> None:
        while True:
            connected = await self.check()
            if connected != self._status.is_connected:
                self.set_connected(connected)
            await asyncio.sleep(self.probe_interval_sec)

    async def start(self) -> None:
        if self._probe_task and not self._probe_task.done():
            return
        if not self.probe_url:
            logger.info("No probe URL configured; connectivity is set externally")
            return
        self.set_connected(await self.check())
        self._probe_task = asyncio.create_task(self._probe_loop())

    async def stop(self) -> None:
        task, self._probe_task = self._probe_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["NetworkMonitor", "NetworkStatus"]
