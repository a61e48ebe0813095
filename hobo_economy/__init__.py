"""
Game economy for the hobo bot.

This package handles cash balances, cooldowns, weighted income events,
contraband stashes with dealer ranks, properties, and snapshot persistence.
"""

from hobo_economy.currency import (
    STARTING_BALANCE,
    format_cash,
    format_delta,
    format_remaining,
)
from hobo_economy.events import EventTable, Outcome, RollResult, build_table
from hobo_economy.tables import ActionKind, build_event_tables
from hobo_economy.results import ActionResult, Refusal, RefusalReason
from hobo_economy.cooldowns import CooldownRegistry
from hobo_economy.ledger import Ledger
from hobo_economy.stash import DealerRank, Stash, Substance
from hobo_economy.properties import PortfolioStatus, Property, PropertyPortfolio, load_catalog
from hobo_economy.snapshot_store import SnapshotStore
from hobo_economy.economy_manager import EconomyManager, create_economy, describe_action

__all__ = [
    "STARTING_BALANCE",
    "format_cash",
    "format_delta",
    "format_remaining",
    "EventTable",
    "Outcome",
    "RollResult",
    "build_table",
    "ActionKind",
    "build_event_tables",
    "ActionResult",
    "Refusal",
    "RefusalReason",
    "CooldownRegistry",
    "Ledger",
    "DealerRank",
    "Stash",
    "Substance",
    "PortfolioStatus",
    "Property",
    "PropertyPortfolio",
    "load_catalog",
    "SnapshotStore",
    "EconomyManager",
    "create_economy",
    "describe_action",
]
