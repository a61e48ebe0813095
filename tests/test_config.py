import sys
import os

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from hobo_core import config
from hobo_core.config import Settings, get_settings, reset_settings


def test_defaults(monkeypatch):
    for name in ("HOBO_DATA_DIR", "HOBO_SNAPSHOT_BACKEND", "HOBO_BEG_COOLDOWN",
                 "HOBO_SAVE_INTERVAL_MINUTES", "HOBO_PROPERTY_CATALOG_FILE"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.data_dir == "data"
    assert settings.snapshot_backend == "file"
    assert settings.beg_cooldown == 5
    assert settings.save_interval_minutes == 30.0
    assert settings.property_catalog_file is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("HOBO_DATA_DIR", "/tmp/hobo")
    monkeypatch.setenv("HOBO_SNAPSHOT_BACKEND", "Redis")
    monkeypatch.setenv("HOBO_WORK_COOLDOWN", "60")
    monkeypatch.setenv("HOBO_LOG_FILE", "")

    settings = Settings.from_env()

    assert settings.data_dir == "/tmp/hobo"
    assert settings.snapshot_backend == "redis"
    assert settings.work_cooldown == 60.0
    assert settings.log_file is None


def test_malformed_number_keeps_default(monkeypatch):
    monkeypatch.setenv("HOBO_COLLECT_COOLDOWN", "an hour")
    assert Settings.from_env().collect_cooldown == config.DEFAULT_COLLECT_COOLDOWN


def test_global_settings_are_cached(monkeypatch):
    reset_settings()
    monkeypatch.setenv("HOBO_HUSTLE_COOLDOWN", "7")
    first = get_settings()
    monkeypatch.setenv("HOBO_HUSTLE_COOLDOWN", "8")

    assert get_settings() is first
    assert first.hustle_cooldown == 7.0

    reset_settings()
    assert get_settings().hustle_cooldown == 8.0
    reset_settings()
