# ui/sync_panel.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import flet as ft

from core.container import AppServices
from core.settings import UI
from models.sync_operation import SyncStatus
from services.event_bus import TOPIC_SYNC_STATUS
from services.offline_sync import read_sync_log

from .dialogs import open_confirm_dialog, show_snack


def format_last_sync(value: Optional[datetime]) -> str:
    if not value:
        return "never"
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


class SyncPanel:
    def __init__(self, page: ft.Page, services: AppServices):
        self.page = page
        self.services = services
        self.sync = services.sync

        self.connection = ft.Text(weight=ft.FontWeight.W_600)
        self.last_sync = ft.Text()
        self.counts = ft.Text()
        self.evicted = ft.Text(color=ft.Colors.ERROR)
        self.progress = ft.ProgressRing(width=18, height=18, visible=False)

        self.sync_btn = ft.ElevatedButton("Sync now", icon=ft.Icons.SYNC, on_click=self.sync_now)
        self.retry_btn = ft.OutlinedButton(
            "Retry failed", icon=ft.Icons.REPLAY, on_click=self.retry_failed
        )
        self.clear_btn = ft.TextButton(
            "Clear queue", icon=ft.Icons.DELETE_FOREVER_OUTLINED, on_click=self.confirm_clear
        )
        self.log_view = ft.Text("", selectable=True, size=12)
        self.refresh_log_btn = ft.IconButton(
            icon=ft.Icons.REFRESH, tooltip="Reload log", on_click=lambda _: self._refresh_log_and_update()
        )
        self._was_syncing = False

        content = ft.Column(
            controls=[
                ft.Text("Offline sync", size=24, weight=ft.FontWeight.BOLD),
                ft.Row([self.connection, self.progress], spacing=8),
                self.last_sync,
                self.counts,
                self.evicted,
                ft.Row([self.sync_btn, self.retry_btn, self.clear_btn], spacing=12, wrap=True),
                ft.Row([ft.Text("Sync log", size=18, weight=ft.FontWeight.W_600), self.refresh_log_btn]),
                ft.Container(self.log_view, height=220, padding=10, bgcolor=ft.Colors.SURFACE_CONTAINER_HIGHEST),
            ],
            spacing=14,
            scroll=ft.ScrollMode.AUTO,
        )
        self.view = ft.Container(content=content, expand=True, padding=20)
        self._unsubscribe = services.bus.subscribe(TOPIC_SYNC_STATUS, self._on_status)
        self.render(self.sync.get_status())
        self.refresh_log()

    def render(self, status: SyncStatus) -> None:
        self.connection.value = "Online" if status.is_online else "Offline"
        self.connection.color = ft.Colors.GREEN if status.is_online else ft.Colors.ORANGE
        self.progress.visible = status.is_syncing
        self.sync_btn.disabled = status.is_syncing or not status.is_online
        self.last_sync.value = "Last sync: " + format_last_sync(status.last_sync_time)
        self.counts.value = (
            f"Pending: {status.pending_operations}  ·  "
            f"Failed: {status.failed_operations}  ·  "
            f"Synced: {status.successful_operations}"
        )
        self.evicted.value = (
            f"{status.evicted_operations} queued change(s) dropped because the queue was full"
            if status.evicted_operations
            else ""
        )
        # log tail is reread only once a pass has finished
        if self._was_syncing and not status.is_syncing:
            self.refresh_log()
        self._was_syncing = status.is_syncing

    def refresh_log(self) -> None:
        self.log_view.value = read_sync_log(UI.log_tail_lines)

    def _refresh_log_and_update(self) -> None:
        self.refresh_log()
        self.page.update()

    def _on_status(self, status: SyncStatus) -> None:
        self.render(status)
        self.page.update()

    async def sync_now(self, _):
        await self.sync.sync_now()

    async def retry_failed(self, _):
        await self.sync.retry_failed_operations()
        show_snack(self.page, "Failed changes re-queued")

    def confirm_clear(self, _):
        pending = len(self.sync.operations)
        open_confirm_dialog(
            self.page,
            title="Clear sync queue?",
            message=f"{pending} unsynced change(s) will be discarded. This cannot be undone.",
            confirm_label="Discard",
            on_confirm=self._clear,
        )

    async def _clear(self, _):
        await self.sync.clear_queue()
        show_snack(self.page, "Sync queue cleared")

    def dispose(self) -> None:
        self._unsubscribe()
