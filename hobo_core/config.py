"""
Runtime configuration for the hobo economy.

Values come from the environment (optionally seeded from a .env file) and
fall back to the defaults below.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Defaults (seconds unless noted)
DEFAULT_BEG_COOLDOWN = 5
DEFAULT_WORK_COOLDOWN = 10 * 60
DEFAULT_HUSTLE_COOLDOWN = 30 * 60
DEFAULT_PRODUCTION_COOLDOWN = 30 * 60
DEFAULT_COLLECT_COOLDOWN = 60 * 60
DEFAULT_SAVE_INTERVAL_MINUTES = 30.0
DEFAULT_SAVE_TIMEOUT_SECONDS = 10.0


def _env_float(name: str, default: float) -> float:
    """Read a float from the environment, keeping the default on bad input."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {name}={raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Resolved configuration for one process."""
    data_dir: str = "data"
    snapshot_backend: str = "file"  # "file" or "redis"
    snapshot_prefix: str = "hobo:snapshot"
    log_level: str = "INFO"
    log_file: Optional[str] = "economy.log"
    property_catalog_file: Optional[str] = None
    save_interval_minutes: float = DEFAULT_SAVE_INTERVAL_MINUTES
    save_timeout_seconds: float = DEFAULT_SAVE_TIMEOUT_SECONDS
    beg_cooldown: float = DEFAULT_BEG_COOLDOWN
    work_cooldown: float = DEFAULT_WORK_COOLDOWN
    hustle_cooldown: float = DEFAULT_HUSTLE_COOLDOWN
    production_cooldown: float = DEFAULT_PRODUCTION_COOLDOWN
    collect_cooldown: float = DEFAULT_COLLECT_COOLDOWN

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            data_dir=os.environ.get("HOBO_DATA_DIR", "data"),
            snapshot_backend=os.environ.get("HOBO_SNAPSHOT_BACKEND", "file").lower(),
            snapshot_prefix=os.environ.get("HOBO_SNAPSHOT_PREFIX", "hobo:snapshot"),
            log_level=os.environ.get("HOBO_LOG_LEVEL", "INFO"),
            log_file=os.environ.get("HOBO_LOG_FILE", "economy.log") or None,
            property_catalog_file=os.environ.get("HOBO_PROPERTY_CATALOG_FILE") or None,
            save_interval_minutes=_env_float("HOBO_SAVE_INTERVAL_MINUTES", DEFAULT_SAVE_INTERVAL_MINUTES),
            save_timeout_seconds=_env_float("HOBO_SAVE_TIMEOUT_SECONDS", DEFAULT_SAVE_TIMEOUT_SECONDS),
            beg_cooldown=_env_float("HOBO_BEG_COOLDOWN", DEFAULT_BEG_COOLDOWN),
            work_cooldown=_env_float("HOBO_WORK_COOLDOWN", DEFAULT_WORK_COOLDOWN),
            hustle_cooldown=_env_float("HOBO_HUSTLE_COOLDOWN", DEFAULT_HUSTLE_COOLDOWN),
            production_cooldown=_env_float("HOBO_PRODUCTION_COOLDOWN", DEFAULT_PRODUCTION_COOLDOWN),
            collect_cooldown=_env_float("HOBO_COLLECT_COOLDOWN", DEFAULT_COLLECT_COOLDOWN),
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance (read from the environment once)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
