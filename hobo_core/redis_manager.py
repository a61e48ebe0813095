"""
Redis connection manager for snapshots and pub/sub.

Provides:
- Redis connection for snapshot storage
- Redis pub/sub connection (role-sync events)
- Connection pooling with a simple circuit breaker
"""

import os
import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)

# Redis connection pools (created on first use)
_storage_pool: Optional[redis.ConnectionPool] = None
_pubsub_pool: Optional[redis.ConnectionPool] = None
_redis_available: Optional[bool] = None  # Circuit breaker: None=Unknown, True=Available, False=Unavailable


DEFAULT_REDIS_PORT = 6379


def get_redis_url() -> str:
    """
    Resolve the Redis URL for snapshots and events.

    REDIS_URL wins; otherwise the URL is assembled from REDIS_HOST,
    REDIS_PORT and REDIS_DB. Snapshots and events share one server, since
    pub/sub channels ignore the database index.

    Returns:
        Redis URL string
    """
    url = os.environ.get("REDIS_URL")
    if url:
        return url

    host = os.environ.get("REDIS_HOST", "localhost")
    raw_port = os.environ.get("REDIS_PORT", "")
    try:
        port = int(raw_port) if raw_port else DEFAULT_REDIS_PORT
    except ValueError:
        logger.warning(f"Ignoring malformed REDIS_PORT={raw_port!r}, using {DEFAULT_REDIS_PORT}")
        port = DEFAULT_REDIS_PORT
    db = os.environ.get("REDIS_DB", "0")
    return f"redis://{host}:{port}/{db}"


def get_storage_connection() -> Optional[redis.Redis]:
    """
    Get Redis connection for snapshot storage.

    Returns:
        Redis client instance, or None if Redis is unavailable
    """
    global _storage_pool, _redis_available

    if _redis_available is False:
        return None

    try:
        if _storage_pool is None:
            url = get_redis_url()
            _storage_pool = redis.ConnectionPool.from_url(
                url,
                max_connections=20,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=5,
                health_check_interval=30,
            )
            logger.info(f"Created Redis storage pool: {url}")

        client = redis.Redis(connection_pool=_storage_pool)

        # Verify connection on first use
        if _redis_available is None:
            try:
                client.ping()
                _redis_available = True
                logger.info("Redis connection verified successfully")
            except redis.RedisError as e:
                _redis_available = False
                logger.warning(f"Redis connection failed ({e}), disabling Redis storage")
                return None

        return client
    except redis.RedisError as e:
        logger.debug(f"Redis storage connection unavailable: {e}")
        _redis_available = False
        return None


def get_pubsub_connection() -> Optional[redis.Redis]:
    """
    Get Redis connection for pub/sub (events).

    Returns:
        Redis client instance, or None if unavailable
    """
    global _pubsub_pool

    if _redis_available is False:
        return None

    try:
        if _pubsub_pool is None:
            url = get_redis_url()
            _pubsub_pool = redis.ConnectionPool.from_url(
                url,
                max_connections=20,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            logger.info(f"Created Redis pub/sub pool: {url}")

        return redis.Redis(connection_pool=_pubsub_pool)
    except redis.RedisError as e:
        logger.debug(f"Redis pub/sub connection unavailable: {e}")
        return None


def reset_connections() -> None:
    """Drop pools and the circuit breaker state (next call reconnects)."""
    global _storage_pool, _pubsub_pool, _redis_available
    _storage_pool = None
    _pubsub_pool = None
    _redis_available = None


class SnapshotKeys:
    """Centralized snapshot key naming."""

    @staticmethod
    def record(prefix: str, name: str) -> str:
        return f"{prefix}:{name}"

    @staticmethod
    def group_channel(group_id) -> str:
        return f"group:{group_id}"

    @staticmethod
    def global_channel() -> str:
        return "global"
