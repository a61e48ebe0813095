"""
Cooldown registry.

Tracks, per (group, player, kind), the moment an action becomes available
again. Entries are created on first use, overwritten on every successful
use and never swept: a stale entry is simply in the past.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Hashable, Optional, Tuple

CooldownKey = Tuple[int, int, Hashable]

# Absent entries behave as if they expired long ago
ALREADY_ELAPSED = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CooldownRegistry:
    """
    Next-allowed timestamps keyed by (group, player, kind).

    `kind` can be any hashable: an ActionKind, a Substance or the property
    collection marker all share one registry without colliding.
    """

    def __init__(self):
        self._next_allowed: Dict[CooldownKey, datetime] = {}
        self._locks: Dict[CooldownKey, threading.Lock] = {}

    def _lock_for(self, key: CooldownKey) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks.setdefault(key, threading.Lock())
        return lock

    def get(self, group_id: int, player_id: int, kind: Hashable) -> datetime:
        """Next allowed time (ALREADY_ELAPSED if the action was never used)."""
        return self._next_allowed.get((group_id, player_id, kind), ALREADY_ELAPSED)

    def set(self, group_id: int, player_id: int, kind: Hashable, next_allowed: datetime) -> None:
        self._next_allowed[(group_id, player_id, kind)] = next_allowed

    def remaining(self, group_id: int, player_id: int, kind: Hashable,
                  now: Optional[datetime] = None) -> Optional[timedelta]:
        """
        Time left on a cooldown.

        Returns:
            timedelta if the action is still cooling down, None if allowed
        """
        now = now or utc_now()
        next_allowed = self.get(group_id, player_id, kind)
        if now < next_allowed:
            return next_allowed - now
        return None

    def try_start(self, group_id: int, player_id: int, kind: Hashable,
                  duration: timedelta, now: Optional[datetime] = None) -> Optional[timedelta]:
        """
        Check the cooldown and, if it has elapsed, start a new one.

        Check and set happen under the key's lock, so two simultaneous
        attempts at the same action cannot both get through.

        Args:
            group_id: Group identifier
            player_id: Player identifier
            kind: Action kind, substance or other cooldown marker
            duration: Length of the new cooldown
            now: Current time (defaults to UTC now)

        Returns:
            None if the cooldown was started, otherwise the time remaining
        """
        now = now or utc_now()
        key = (group_id, player_id, kind)
        with self._lock_for(key):
            next_allowed = self._next_allowed.get(key, ALREADY_ELAPSED)
            if now < next_allowed:
                return next_allowed - now
            self._next_allowed[key] = now + duration
            return None
