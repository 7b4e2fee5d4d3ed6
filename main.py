# safari_ops/main.py
import os, sys
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
import logging

import flet as ft

from core.container import build_services
from core.settings import APP_NAME, UI
from storage.config import load_config
from ui.sync_panel import SyncPanel


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


async def main(page: ft.Page):
    page.title = UI.app_title
    page.theme_mode = UI.theme_mode
    page.theme = ft.Theme(color_scheme_seed=UI.color_scheme_seed)
    page.appbar = ft.AppBar(title=ft.Text(APP_NAME), center_title=False)
    page.padding = 0
    page.window.min_width = UI.window_min_width
    page.window.min_height = UI.window_min_height

    services = build_services(sync_settings=load_config().apply())
    panel = SyncPanel(page, services)
    page.add(panel.view)

    async def on_disconnect(_):
        panel.dispose()
        await services.stop()

    page.on_disconnect = on_disconnect
    await services.start()


if __name__ == "__main__":
    ft.app(target=main)
