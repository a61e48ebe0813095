"""
Durable storage backends for economy snapshots.

A backend stores named JSON records. Each write replaces the whole record;
there is no incremental patching.
"""

import os
import json
import logging
import tempfile
from typing import Any, Dict, Optional

import redis

from hobo_core.config import Settings
from hobo_core.redis_manager import SnapshotKeys, get_storage_connection

logger = logging.getLogger(__name__)


class JsonFileBackend:
    """Stores each record as <directory>/<name>.json."""

    def __init__(self, directory: str):
        self.directory = directory

    def path_for(self, name: str) -> str:
        return os.path.join(self.directory, f"{name}.json")

    def read(self, name: str) -> Optional[Dict[str, Any]]:
        """
        Read a record.

        Args:
            name: Record name (e.g. "ledger")

        Returns:
            The decoded record, or None if it was never written

        Raises:
            OSError: File exists but cannot be read
            ValueError: File is not valid JSON
        """
        path = self.path_for(name)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, name: str, data: Dict[str, Any]) -> None:
        """
        Atomically replace a record.

        The data is written to a temporary file in the same directory and
        then renamed over the previous snapshot, so readers never see a
        half-written file.
        """
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path_for(name))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def describe(self) -> str:
        return f"file:{self.directory}"


class RedisBackend:
    """Stores each record as a JSON string under <prefix>:<name> (no TTL)."""

    def __init__(self, client: redis.Redis, prefix: str = "hobo:snapshot"):
        self._client = client
        self.prefix = prefix

    def read(self, name: str) -> Optional[Dict[str, Any]]:
        raw = self._client.get(SnapshotKeys.record(self.prefix, name))
        if raw is None:
            return None
        return json.loads(raw)

    def write(self, name: str, data: Dict[str, Any]) -> None:
        self._client.set(SnapshotKeys.record(self.prefix, name), json.dumps(data))

    def describe(self) -> str:
        return f"redis:{self.prefix}"


def create_backend(settings: Settings):
    """
    Create the configured snapshot backend.

    Args:
        settings: Resolved settings

    Returns:
        RedisBackend when configured and reachable, otherwise JsonFileBackend
    """
    if settings.snapshot_backend == "redis":
        client = get_storage_connection()
        if client is not None:
            return RedisBackend(client, settings.snapshot_prefix)
        logger.warning(f"Redis snapshot backend unavailable, falling back to files in {settings.data_dir}")
    elif settings.snapshot_backend != "file":
        logger.warning(f"Unknown snapshot backend {settings.snapshot_backend!r}, using files")

    return JsonFileBackend(settings.data_dir)
