from pathlib import Path

from core import settings
from storage.config import AppConfig, load_config, save_config, update_config


def test_linux_data_dir_with_xdg():
    env = {"XDG_DATA_HOME": "/tmp/xdg"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="linux",
        env=env,
        home=Path("/home/test"),
    )
    assert result == Path("/tmp/xdg") / settings.APP_NAME


def test_macos_data_dir():
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="darwin",
        env={},
        home=Path("/Users/test"),
    )
    assert result == Path("/Users/test/Library/Application Support") / settings.APP_NAME


def test_windows_data_dir_appdata():
    env = {"APPDATA": "C:/Users/test/AppData/Roaming"}
    result = settings.get_default_data_dir(
        settings.APP_NAME,
        platform="win32",
        env=env,
        home=Path("C:/Users/test"),
    )
    assert result == Path(env["APPDATA"]) / settings.APP_NAME


def test_runtime_paths_inside_data_dir():
    assert settings.DB_PATH.parent == settings.DATA_DIR
    assert settings.CONFIG_PATH.parent == settings.DATA_DIR
    assert settings.SYNC_LOG_PATH.parent == settings.LOG_DIR


def test_sync_defaults():
    assert settings.SYNC.interval_sec == 30
    assert settings.SYNC.max_queue_size == 1000
    assert settings.SYNC.max_retries == 3


def test_config_round_trip_and_overlay(tmp_path):
    path = tmp_path / "config.json"
    assert load_config(path) == AppConfig()

    save_config(AppConfig(sync_enabled=False, sync_interval_sec=120), path)
    update_config(path, sync_interval_sec=0, unknown="ignored")

    cfg = load_config(path)
    assert cfg.sync_enabled is False
    applied = cfg.apply()
    assert applied.enabled is False
    assert applied.interval_sec == settings.SYNC.interval_sec
    assert applied.max_queue_size == settings.SYNC.max_queue_size


def test_corrupt_config_falls_back_to_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")
    assert load_config(path) == AppConfig()
