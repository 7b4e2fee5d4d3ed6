"""Composition root: builds each service once and hands out references."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from sqlmodel import Session

from core.settings import BACKEND, SYNC, BackendSettings, SyncSettings
from services.api_client import SupabaseRestClient
from services.event_bus import EventBus
from services.network_monitor import NetworkMonitor
from services.offline_sync import SyncQueue
from services.resources import KNOWN_RESOURCES, ResourceWriter
from storage.db import get_session, init_db
from storage.kv_store import KeyValueStore


@dataclass
class AppServices:
    storage: KeyValueStore
    network: NetworkMonitor
    api: SupabaseRestClient
    bus: EventBus
    sync: SyncQueue
    writers: Dict[str, ResourceWriter] = field(default_factory=dict)

    def writer(self, resource: str) -> ResourceWriter:
        if resource not in self.writers:
            self.writers[resource] = ResourceWriter(self.sync, resource)
        return self.writers[resource]

    async def start(self) -> None:
        await self.network.start()
        await self.sync.start()

    async def stop(self) -> None:
        await self.sync.stop()
        await self.network.stop()


def build_services(
    *,
    sync_settings: SyncSettings = SYNC,
    backend: BackendSettings = BACKEND,
    session_factory: Optional[Callable[[], Session]] = None,
    network: Optional[NetworkMonitor] = None,
    api: Optional[SupabaseRestClient] = None,
) -> AppServices:
    if session_factory is None:
        init_db()
        session_factory = get_session
    storage = KeyValueStore(session_factory, prefix=sync_settings.storage_prefix)
    network = network or NetworkMonitor(backend.supabase_url)
    api = api or SupabaseRestClient(backend)
    bus = EventBus()
    sync = SyncQueue(storage, network, api, bus=bus, settings=sync_settings)
    services = AppServices(storage=storage, network=network, api=api, bus=bus, sync=sync)
    for resource in KNOWN_RESOURCES:
        services.writer(resource)
    return services


__all__ = ["AppServices", "build_services"]
