"""User-editable sync preferences persisted to ``config.json``."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from core.settings import CONFIG_PATH, SYNC, SyncSettings


@dataclass
class AppConfig:
    sync_enabled: bool = SYNC.enabled
    sync_interval_sec: float = SYNC.interval_sec

    def apply(self, base: SyncSettings = SYNC) -> SyncSettings:
        """Overlay the stored preferences on top of ``base``."""
        interval = self.sync_interval_sec if self.sync_interval_sec > 0 else base.interval_sec
        return replace(base, enabled=self.sync_enabled, interval_sec=interval)


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> AppConfig:
    data = _load_raw(path or CONFIG_PATH)
    interval = data.get("sync_interval_sec", SYNC.interval_sec)
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        interval = SYNC.interval_sec
    return AppConfig(
        sync_enabled=bool(data.get("sync_enabled", SYNC.enabled)),
        sync_interval_sec=interval,
    )


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps(asdict(config), ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def update_config(path: Optional[Path] = None, **changes: Any) -> AppConfig:
    target = path or CONFIG_PATH
    cfg = load_config(target)
    for key, value in changes.items():
        if hasattr(cfg, key):
            setattr(cfg, key, value)
    save_config(cfg, target)
    return cfg


__all__ = ["AppConfig", "load_config", "save_config", "update_config"]
