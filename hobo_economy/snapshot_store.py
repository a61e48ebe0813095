"""
Snapshot store for economy state.

Strategy:
- In-memory maps are the source of truth while the process runs
- A snapshot is a full copy of every map, written over the previous one
- Saves are requested after mutating actions and coalesced onto one saver
  thread, plus a timer and a final save at shutdown; anything changed
  since the last save is lost on a crash

Cooldowns are not persisted; they reset on restart.
"""

import logging
import threading
from contextlib import ExitStack
from typing import Any, Dict, Optional

import redis

from hobo_core.event_bus import EventTypes
from hobo_economy.ledger import Ledger
from hobo_economy.properties import PropertyPortfolio
from hobo_economy.stash import Stash

logger = logging.getLogger(__name__)

LEDGER_RECORD = "ledger"
STASH_RECORD = "stashes"
PROPERTY_RECORD = "properties"

# Errors a backend may raise while reading or writing
PERSISTENCE_ERRORS = (OSError, ValueError, TypeError, KeyError, redis.RedisError)


def _decode_id(raw: str):
    """Platform ids are integers; keep anything else as a string."""
    try:
        return int(raw)
    except (TypeError, ValueError):
        return raw


def _decode(mapping: Dict[str, Dict[str, Any]]) -> Dict[Any, Dict[Any, Any]]:
    if not isinstance(mapping, dict):
        raise ValueError(f"Expected an object, got {type(mapping).__name__}")
    return {
        _decode_id(group_id): {_decode_id(player_id): value for player_id, value in players.items()}
        for group_id, players in mapping.items()
    }


class SnapshotStore:
    """
    Saves and reloads the ledger, stashes and property portfolios.

    No entry lock is held while talking to the backend: entries are copied
    under their own locks first, then written.
    """

    def __init__(self, backend, ledger: Ledger, stash: Stash,
                 portfolio: PropertyPortfolio, event_bus=None):
        self._backend = backend
        self._ledger = ledger
        self._stash = stash
        self._portfolio = portfolio
        self._event_bus = event_bus
        self._save_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._timer_thread: Optional[threading.Thread] = None
        # Coalesced save requests
        self._pending = threading.Event()
        self._saver_closed = False
        self._saver_lock = threading.Lock()
        self._saver_thread: Optional[threading.Thread] = None

    def load_all(self) -> bool:
        """
        Populate every map from storage.

        A missing record means "start empty". A record that cannot be read
        is logged and leaves that map at its current (default) contents.

        Returns:
            True if every present record loaded cleanly
        """
        ok = True
        loaders = (
            (LEDGER_RECORD, self._ledger.restore),
            (STASH_RECORD, self._stash.restore),
            (PROPERTY_RECORD, self._portfolio.restore),
        )
        for name, restore in loaders:
            try:
                data = self._backend.read(name)
                if data is None:
                    logger.info(f"No {name} snapshot in {self._backend.describe()}, starting empty")
                    continue
                restore(_decode(data))
                logger.info(f"Loaded {name} snapshot ({len(data)} groups)")
            except PERSISTENCE_ERRORS as e:
                logger.error(f"Error loading {name} snapshot from {self._backend.describe()}: {e}")
                ok = False
        return ok

    def _player_entries(self, group_id, player_id) -> tuple:
        return (
            self._stash.find_stash(group_id, player_id),
            self._portfolio.find_ownership(group_id, player_id),
            self._ledger.find_account(group_id, player_id),
        )

    def _copy_player(self, group_id, player_id) -> tuple:
        """Copy one player's stash, portfolio and balance under all three locks."""
        while True:
            entries = self._player_entries(group_id, player_id)
            with ExitStack() as held:
                for entry in entries:
                    if entry is not None:
                        held.enter_context(entry.lock)
                # An entry created after the lookup may belong to a purchase
                # or sale that is now waiting on one of these locks
                if self._player_entries(group_id, player_id) != entries:
                    continue
                stash_entry, ownership, account = entries
                return (
                    (LEDGER_RECORD, account.cents if account is not None else None),
                    (STASH_RECORD, stash_entry.to_record() if stash_entry is not None else None),
                    (PROPERTY_RECORD, ownership.to_record() if ownership is not None else None),
                )

    def build_snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """
        Point-in-time copy of all persisted maps, keyed by record name.

        Each player's stash, portfolio and ledger account are copied together
        while holding all three locks, taken in the same order as selling
        (stash, then ledger) and buying (portfolio, then ledger). A purchase
        or sale is therefore either entirely in the copy or entirely out.
        """
        records: Dict[str, Dict[str, Dict[str, Any]]] = {
            LEDGER_RECORD: {},
            STASH_RECORD: {},
            PROPERTY_RECORD: {},
        }
        players = set(self._ledger.players())
        players.update(self._stash.players())
        players.update(self._portfolio.players())

        for group_id, player_id in players:
            for name, value in self._copy_player(group_id, player_id):
                if value is not None:
                    records[name].setdefault(str(group_id), {})[str(player_id)] = value
        return records

    def save_all(self, timeout: Optional[float] = None) -> bool:
        """
        Write a full snapshot, replacing the previous one.

        Args:
            timeout: Seconds to wait for a save already in progress
                     (None waits indefinitely)

        Returns:
            True if every record was written
        """
        acquired = self._save_lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            logger.warning(f"Skipped snapshot save: previous save still running after {timeout}s")
            return False

        try:
            snapshot = self.build_snapshot()
            for name, data in snapshot.items():
                self._backend.write(name, data)
        except PERSISTENCE_ERRORS as e:
            logger.error(f"Error saving snapshot to {self._backend.describe()}: {e}")
            return False
        finally:
            self._save_lock.release()

        logger.debug(f"Saved snapshot to {self._backend.describe()}")
        if self._event_bus is not None:
            self._event_bus.publish(EventTypes.SNAPSHOT_SAVED, {"backend": self._backend.describe()})
        return True

    def request_save(self, timeout: Optional[float] = None) -> None:
        """
        Ask for a save without waiting for it.

        Requests made while a save is running collapse into one follow-up
        save on the single saver thread.
        """
        with self._saver_lock:
            if self._saver_closed:
                return
            if self._saver_thread is None:
                self._saver_thread = threading.Thread(
                    target=self._save_loop,
                    args=(timeout,),
                    name="snapshot-save",
                    daemon=True,
                )
                self._saver_thread.start()
        self._pending.set()

    def _save_loop(self, timeout: Optional[float]) -> None:
        while True:
            self._pending.wait()
            self._pending.clear()
            if self._saver_closed:
                return
            self.save_all(timeout=timeout)

    def start_periodic_saves(self, interval_seconds: float,
                             timeout: Optional[float] = None) -> None:
        """Save every interval_seconds on a daemon thread until stop()."""
        if self._timer_thread is not None:
            return

        def save_loop():
            logger.info(f"Periodic snapshot saves every {interval_seconds:.0f}s")
            while not self._stop_event.wait(interval_seconds):
                logger.info("Performing periodic snapshot save...")
                self.save_all(timeout=timeout)

        self._stop_event.clear()
        self._timer_thread = threading.Thread(target=save_loop, name="snapshot-timer", daemon=True)
        self._timer_thread.start()

    def stop(self, final_save: bool = True) -> bool:
        """
        Stop the saver and the periodic timer and, by default, write one
        last snapshot.

        Returns:
            Result of the final save (True if skipped)
        """
        with self._saver_lock:
            self._saver_closed = True
            saver, self._saver_thread = self._saver_thread, None
        self._pending.set()
        if saver is not None:
            saver.join()

        self._stop_event.set()
        if self._timer_thread is not None:
            self._timer_thread.join()
            self._timer_thread = None
        if final_save:
            logger.info("Shutting down - saving snapshot")
            return self.save_all()
        return True
