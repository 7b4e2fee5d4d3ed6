"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys

from dotenv import load_dotenv


load_dotenv()


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return base.expanduser() / sanitized


APP_NAME = "SafariOps"


DATA_DIR = get_default_data_dir(APP_NAME)
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = DATA_DIR / "app.db"
CONFIG_PATH = DATA_DIR / "config.json"
SYNC_LOG_PATH = LOG_DIR / "sync.log"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class SyncSettings:
    enabled: bool = True
    interval_sec: float = 30.0
    max_queue_size: int = 1000
    max_retries: int = 3
    queue_key: str = "sync_queue"
    status_key: str = "sync_status"
    storage_prefix: str = "@safari_"


@dataclass(frozen=True)
class BackendSettings:
    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", "").rstrip("/"))
    anon_key: str = field(default_factory=lambda: os.getenv("SUPABASE_ANON_KEY", ""))
    timeout_sec: float = field(default_factory=lambda: _env_float("SUPABASE_TIMEOUT_SEC", 30.0))
    retry_attempts: int = 3

    @property
    def rest_url(self) -> str:
        return f"{self.supabase_url}/rest/v1"


@dataclass(frozen=True)
class NetworkSettings:
    probe_interval_sec: float = 15.0
    probe_timeout_sec: float = 5.0


@dataclass(frozen=True)
class UISettings:
    app_title: str = "Safari Ops"
    theme_mode: str = "system"
    color_scheme_seed: str = "#B45309"
    window_min_width: int = 420
    window_min_height: int = 640
    log_tail_lines: int = 100


SYNC = SyncSettings()
BACKEND = BackendSettings()
NETWORK = NetworkSettings()
UI = UISettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "LOG_DIR",
    "DB_PATH",
    "CONFIG_PATH",
    "SYNC_LOG_PATH",
    "SYNC",
    "BACKEND",
    "NETWORK",
    "UI",
    "SyncSettings",
    "BackendSettings",
    "NetworkSettings",
    "UISettings",
    "get_default_data_dir",
]
