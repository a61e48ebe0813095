"""
Event bus for economy notifications.

Carries:
- Rank changes (the role-sync collaborator reflects them in platform roles)
- Property purchases
- Snapshot saves
"""

import json
import queue
import logging
import threading
from typing import Dict, Any, Optional, Callable, List
from datetime import datetime, timezone

import redis

from hobo_core.redis_manager import SnapshotKeys

logger = logging.getLogger(__name__)


class EventTypes:
    """Event type constants."""

    RANK_CHANGED = "rank_changed"
    PROPERTY_PURCHASED = "property_purchased"
    SNAPSHOT_SAVED = "snapshot_saved"


class EventBus:
    """
    Publishes economy events to in-process subscribers and, when a Redis
    client is supplied, to Redis pub/sub for other processes.

    Redis publishes go through an outbox drained by one daemon thread, so
    the caller never waits on the network.
    """

    def __init__(self, redis_client=None):
        self._redis = redis_client
        self._subscriptions: Dict[str, List[Callable[[Dict[str, Any]], None]]] = {}
        self._outbox: queue.Queue = queue.Queue()  # (event_type, channel, payload) or None to stop
        self._publisher: Optional[threading.Thread] = None
        self._publisher_lock = threading.Lock()

    def subscribe(self, event_type: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        """
        Subscribe to an event type (in-process callbacks).

        Args:
            event_type: One of EventTypes
            callback: Function called with the event dict
        """
        self._subscriptions.setdefault(event_type, []).append(callback)

    def publish(self, event_type: str, data: Dict[str, Any],
                group_id: Optional[int] = None) -> bool:
        """
        Publish an event locally and queue it for Redis if available.

        Args:
            event_type: Type of event
            data: Event data (must be JSON serializable)
            group_id: Group the event belongs to (selects the Redis channel)

        Returns:
            True if the event was queued for Redis, False if it was local only
        """
        event = {
            "type": event_type,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        self.emit_local(event_type, event)

        if self._redis is None:
            return False

        channel = (SnapshotKeys.group_channel(group_id) if group_id is not None
                   else SnapshotKeys.global_channel())
        try:
            payload = json.dumps(event)
        except TypeError as e:
            logger.error(f"Error encoding event {event_type}: {e}")
            return False

        self._ensure_publisher()
        self._outbox.put((event_type, channel, payload))
        return True

    def _ensure_publisher(self) -> None:
        with self._publisher_lock:
            if self._publisher is None:
                self._publisher = threading.Thread(target=self._drain_outbox, name="event-publisher", daemon=True)
                self._publisher.start()

    def _drain_outbox(self) -> None:
        while True:
            item = self._outbox.get()
            if item is None:
                return
            event_type, channel, payload = item
            try:
                self._redis.publish(channel, payload)
                logger.debug(f"Published event {event_type} to {channel}")
            except redis.RedisError as e:
                logger.error(f"Error publishing event {event_type}: {e}")

    def close(self, timeout: Optional[float] = None) -> None:
        """Deliver everything already queued, then stop the publisher thread."""
        with self._publisher_lock:
            publisher, self._publisher = self._publisher, None
        if publisher is not None:
            self._outbox.put(None)
            publisher.join(timeout)

    def emit_local(self, event_type: str, event: Dict[str, Any]) -> None:
        """
        Emit event to local subscribers only (in-process).

        Args:
            event_type: Event type the subscribers registered for
            event: Event data
        """
        for callback in self._subscriptions.get(event_type, []):
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Error in event callback for {event_type}: {e}")

    def publish_rank_change(self, group_id: int, player_id: int, rank_name: str) -> bool:
        """Role-sync notification: a player's dealer rank changed."""
        return self.publish(
            EventTypes.RANK_CHANGED,
            {"group_id": group_id, "player_id": player_id, "rank": rank_name},
            group_id=group_id,
        )
