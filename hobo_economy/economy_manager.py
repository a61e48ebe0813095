"""
Economy manager for the hobo economy.

Coordinates cooldowns, event tables, the ledger, stashes and properties,
and asks the snapshot store to persist after every change. The command
layer calls into this class and renders whatever it gets back.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union

from hobo_core.config import Settings, get_settings
from hobo_core.event_bus import EventBus
from hobo_core.redis_manager import get_pubsub_connection
from hobo_core.storage import RedisBackend, create_backend
from hobo_economy.cooldowns import CooldownRegistry, utc_now
from hobo_economy.currency import format_cash, format_delta, format_remaining
from hobo_economy.events import EventTable
from hobo_economy.ledger import Ledger
from hobo_economy.properties import (
    CollectResult,
    PortfolioStatus,
    Property,
    PropertyPortfolio,
    PurchaseResult,
    load_catalog,
)
from hobo_economy.results import ActionResult, Refusal, RefusalReason
from hobo_economy.snapshot_store import SnapshotStore
from hobo_economy.stash import ProductionResult, SaleResult, Stash, Substance
from hobo_economy.tables import ActionKind, build_event_tables

logger = logging.getLogger(__name__)


class EconomyManager:
    """
    Entry point for every economy operation.

    Tables and the property catalog are built once and handed in; nothing
    here reads global state.
    """

    def __init__(self, tables: Dict[ActionKind, EventTable],
                 cooldown_durations: Dict[ActionKind, timedelta],
                 ledger: Optional[Ledger] = None,
                 cooldowns: Optional[CooldownRegistry] = None,
                 stash: Optional[Stash] = None,
                 portfolio: Optional[PropertyPortfolio] = None,
                 store: Optional[SnapshotStore] = None,
                 event_bus: Optional[EventBus] = None,
                 save_timeout: Optional[float] = None):
        self.tables = tables
        self.event_bus = event_bus
        self.cooldown_durations = cooldown_durations
        self.ledger = ledger or Ledger()
        self.cooldowns = cooldowns or CooldownRegistry()
        self.stash = stash or Stash(self.ledger, self.cooldowns)
        self.portfolio = portfolio or PropertyPortfolio(self.ledger)
        self.store = store
        self.save_timeout = save_timeout

    # --- Persistence ---

    def request_save(self) -> None:
        """Persist in the background; the action's reply never waits on disk."""
        if self.store is not None:
            self.store.request_save(timeout=self.save_timeout)

    def start_autosave(self, interval_minutes: float) -> None:
        """Start the periodic snapshot timer (long-running bot processes)."""
        if self.store is not None:
            self.store.start_periodic_saves(interval_minutes * 60, timeout=self.save_timeout)

    def shutdown(self) -> bool:
        """Stop the timers, write a final snapshot and flush queued events."""
        saved = self.store.stop(final_save=True) if self.store is not None else True
        if self.event_bus is not None:
            self.event_bus.close(timeout=self.save_timeout)
        return saved

    # --- Income actions ---

    def perform_action(self, group_id: int, player_id: int, kind: ActionKind,
                       now: Optional[datetime] = None) -> Union[ActionResult, Refusal]:
        """
        Perform an income action (beg, work, hustle).

        Args:
            group_id: Group identifier
            player_id: Player identifier
            kind: Which action
            now: Current time (defaults to UTC now)

        Returns:
            ActionResult with the story, applied delta and new balance, or a
            COOLDOWN Refusal carrying the time remaining
        """
        table = self.tables[kind]
        remaining = self.cooldowns.try_start(
            group_id, player_id, kind, self.cooldown_durations[kind], now or utc_now()
        )
        if remaining is not None:
            return Refusal(
                RefusalReason.COOLDOWN,
                f"Easy there, hobo! Try again in {format_remaining(remaining)}.",
                remaining=remaining,
            )

        delta, story = table.roll()
        applied, new_balance = self.ledger.apply_delta(group_id, player_id, delta)
        logger.debug(f"{kind.value} for {group_id}/{player_id}: {delta:+.2f} (applied {applied:+.2f})")

        self.request_save()
        return ActionResult(kind, story, applied, new_balance)

    def beg(self, group_id: int, player_id: int, now: Optional[datetime] = None):
        return self.perform_action(group_id, player_id, ActionKind.BEG, now)

    def work(self, group_id: int, player_id: int, now: Optional[datetime] = None):
        return self.perform_action(group_id, player_id, ActionKind.WORK, now)

    def hustle(self, group_id: int, player_id: int, now: Optional[datetime] = None):
        return self.perform_action(group_id, player_id, ActionKind.HUSTLE, now)

    # --- Wallet ---

    def balance(self, group_id: int, player_id: int) -> float:
        return self.ledger.get_balance(group_id, player_id)

    def leaderboard(self, group_id: int, limit: int = 10) -> List[Tuple[int, float]]:
        return self.ledger.top_balances(group_id, limit)

    # --- Stash ---

    def produce(self, group_id: int, player_id: int, substance: Substance,
                now: Optional[datetime] = None) -> Union[ProductionResult, Refusal]:
        result = self.stash.produce(group_id, player_id, substance, now)
        if not result.refused:
            self.request_save()
        return result

    def sell_stash(self, group_id: int, player_id: int) -> Union[SaleResult, Refusal]:
        """Sell everything in the stash; refused if there is nothing to sell."""
        if not self.stash.get_stash(group_id, player_id).has_any():
            return Refusal(RefusalReason.NOTHING_TO_SELL, "You have no drugs to sell.")

        result = self.stash.sell_all(group_id, player_id)
        if result.proceeds == 0:
            # Another invocation sold it first
            return Refusal(RefusalReason.NOTHING_TO_SELL, "You have no drugs to sell.")
        self.request_save()
        return result

    def stash_report(self, group_id: int, player_id: int) -> str:
        return self.stash.describe(group_id, player_id)

    # --- Properties ---

    def property_catalog(self) -> Tuple[Property, ...]:
        return self.portfolio.catalog

    def buy_property(self, group_id: int, player_id: int, index: int) -> Union[PurchaseResult, Refusal]:
        result = self.portfolio.purchase(group_id, player_id, index)
        if not result.refused:
            self.request_save()
        return result

    def collect_properties(self, group_id: int, player_id: int,
                           now: Optional[datetime] = None) -> Union[CollectResult, Refusal]:
        result = self.portfolio.collect(group_id, player_id, now)
        if not result.refused:
            self.request_save()
        return result

    def owned_properties(self, group_id: int, player_id: int) -> List[Property]:
        return self.portfolio.list_owned(group_id, player_id)

    def property_status(self, group_id: int, player_id: int,
                        now: Optional[datetime] = None) -> Union[PortfolioStatus, Refusal]:
        return self.portfolio.status(group_id, player_id, now)


def describe_action(result: Union[ActionResult, Refusal]) -> str:
    """Plain-text reply for an income action."""
    if result.refused:
        return result.message
    return (f"{result.message}\n"
            f"Your wallet now holds {format_cash(result.new_balance)} {format_delta(result.delta)}").rstrip()


def cooldowns_from_settings(settings: Settings) -> Dict[ActionKind, timedelta]:
    return {
        ActionKind.BEG: timedelta(seconds=settings.beg_cooldown),
        ActionKind.WORK: timedelta(seconds=settings.work_cooldown),
        ActionKind.HUSTLE: timedelta(seconds=settings.hustle_cooldown),
    }


def create_economy(settings: Optional[Settings] = None, load: bool = True) -> EconomyManager:
    """
    Wire up a complete economy from settings.

    Args:
        settings: Settings to use (defaults to the environment)
        load: Whether to load the last snapshot

    Returns:
        EconomyManager with an attached snapshot store
    """
    settings = settings or get_settings()

    # Storage decides whether Redis is reachable; the bus only publishes there if it is
    backend = create_backend(settings)
    event_bus = EventBus(get_pubsub_connection() if isinstance(backend, RedisBackend) else None)
    ledger = Ledger()
    cooldowns = CooldownRegistry()
    stash = Stash(
        ledger,
        cooldowns,
        production_cooldown=timedelta(seconds=settings.production_cooldown),
        event_bus=event_bus,
    )
    portfolio = PropertyPortfolio(
        ledger,
        load_catalog(settings.property_catalog_file),
        collect_interval=timedelta(seconds=settings.collect_cooldown),
        event_bus=event_bus,
    )
    store = SnapshotStore(backend, ledger, stash, portfolio, event_bus=event_bus)

    manager = EconomyManager(
        build_event_tables(),
        cooldowns_from_settings(settings),
        ledger=ledger,
        cooldowns=cooldowns,
        stash=stash,
        portfolio=portfolio,
        store=store,
        event_bus=event_bus,
        save_timeout=settings.save_timeout_seconds,
    )

    if load:
        store.load_all()
    return manager
