"""
Contraband stash and dealer rank progression.

Players grow or cook substances into their stash, then sell everything at
fixed unit prices. Lifetime sale proceeds decide the dealer rank, and the
rank gates which substances a player may produce.
"""

import random
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Dict, Iterator, Optional, Tuple, Union

from hobo_economy.cooldowns import CooldownRegistry, utc_now
from hobo_economy.currency import format_cash, format_remaining, from_cents, to_cents
from hobo_economy.ledger import Ledger
from hobo_economy.results import Refusal, RefusalReason

logger = logging.getLogger(__name__)

_secure_rng = random.SystemRandom()


class DealerRank(IntEnum):
    LOW_LEVEL_DEALER = 0
    PETTY_DRUG_DEALER = 1
    STREET_DEALER = 2
    PIMP = 3
    KINGPIN = 4
    DRUG_LORD = 5
    UNDERBOSS = 6
    GODFATHER = 7

    @property
    def title(self) -> str:
        return self.name.replace("_", " ").title()


# (cumulative lifetime proceeds in dollars, rank); ascending, inclusive
RANK_THRESHOLDS = (
    (0, DealerRank.LOW_LEVEL_DEALER),
    (10_000, DealerRank.PETTY_DRUG_DEALER),
    (25_000, DealerRank.STREET_DEALER),
    (50_000, DealerRank.PIMP),
    (250_000, DealerRank.KINGPIN),
    (500_000, DealerRank.DRUG_LORD),
    (1_000_000, DealerRank.UNDERBOSS),
    (2_500_000, DealerRank.GODFATHER),
)


class Substance(Enum):
    WEED = "weed"
    SHROOMS = "shrooms"
    COCAINE = "cocaine"
    HEROIN = "heroin"
    CRACK = "crack"
    METH = "meth"
    LSD = "lsd"
    ECSTASY = "ecstasy"
    DMT = "dmt"


# Price per gram in dollars
UNIT_PRICES = {
    Substance.WEED: 10,
    Substance.SHROOMS: 15,
    Substance.COCAINE: 100,
    Substance.HEROIN: 200,
    Substance.CRACK: 300,
    Substance.METH: 400,
    Substance.LSD: 500,
    Substance.ECSTASY: 700,
    Substance.DMT: 1000,
}

REQUIRED_RANKS = {
    Substance.WEED: DealerRank.LOW_LEVEL_DEALER,
    Substance.SHROOMS: DealerRank.PETTY_DRUG_DEALER,
    Substance.COCAINE: DealerRank.PETTY_DRUG_DEALER,
    Substance.HEROIN: DealerRank.STREET_DEALER,
    Substance.CRACK: DealerRank.PIMP,
    Substance.METH: DealerRank.KINGPIN,
    Substance.LSD: DealerRank.DRUG_LORD,
    Substance.ECSTASY: DealerRank.UNDERBOSS,
    Substance.DMT: DealerRank.GODFATHER,
}

GROWN = frozenset({Substance.WEED, Substance.SHROOMS, Substance.DMT})

# Grams produced per batch (inclusive)
GROW_YIELD = (5, 25)
COOK_YIELD = (2, 9)


def rank_for_proceeds(total: float) -> DealerRank:
    """Highest rank whose threshold is <= total."""
    rank = RANK_THRESHOLDS[0][1]
    for threshold, candidate in RANK_THRESHOLDS:
        if total >= threshold:
            rank = candidate
        else:
            break
    return rank


def next_rank_threshold(rank: DealerRank) -> Optional[Tuple[DealerRank, int]]:
    """The rank after `rank` and its threshold, or None at the top."""
    for threshold, candidate in RANK_THRESHOLDS:
        if candidate > rank:
            return candidate, threshold
    return None


def yield_range(substance: Substance) -> Tuple[int, int]:
    return GROW_YIELD if substance in GROWN else COOK_YIELD


class StashEntry:
    """One player's stash in one group."""

    def __init__(self):
        self.quantities: Dict[Substance, int] = {substance: 0 for substance in Substance}
        self.rank = DealerRank.LOW_LEVEL_DEALER
        self.lifetime_sales_cents = 0
        self.lock = threading.RLock()

    @property
    def lifetime_sales_proceeds(self) -> float:
        return from_cents(self.lifetime_sales_cents)

    def get_amount(self, substance: Substance) -> int:
        return self.quantities[substance]

    def add_amount_to_type(self, substance: Substance, amount: int) -> int:
        """
        Add grams of a substance.

        Returns:
            int: New quantity (unchanged if amount is not positive)
        """
        with self.lock:
            if amount <= 0:
                logger.warning(f"Ignoring non-positive stash amount {amount} for {substance.value}")
                return self.quantities[substance]
            self.quantities[substance] += amount
            return self.quantities[substance]

    def has_any(self) -> bool:
        return any(grams > 0 for grams in self.quantities.values())

    def total_value(self) -> float:
        """What the stash would sell for right now."""
        return float(sum(UNIT_PRICES[s] * grams for s, grams in self.quantities.items()))

    def sell_all(self) -> float:
        """
        Empty the stash, bank the proceeds towards rank and recompute it.

        The rank never drops, even if a restored snapshot carried a rank
        above what the proceeds alone would give.

        Returns:
            float: Proceeds in dollars (0.0 for an empty stash)
        """
        with self.lock:
            proceeds = self.total_value()
            for substance in self.quantities:
                self.quantities[substance] = 0
            self.lifetime_sales_cents += to_cents(proceeds)
            self.rank = max(self.rank, rank_for_proceeds(self.lifetime_sales_proceeds))
            return proceeds

    def to_record(self) -> dict:
        """Plain-data copy for snapshots (caller holds the lock)."""
        return {
            "quantities": {s.value: grams for s, grams in self.quantities.items() if grams},
            "rank": self.rank.name,
            "lifetime_sales_proceeds": self.lifetime_sales_cents,
        }


@dataclass(frozen=True)
class ProductionResult:
    substance: Substance
    grams: int
    total_grams: int

    @property
    def refused(self) -> bool:
        return False

    @property
    def message(self) -> str:
        verb = "grew" if self.substance in GROWN else "cooked"
        return f"You {verb} {self.grams}g of {self.substance.value}!"


@dataclass(frozen=True)
class SaleResult:
    proceeds: float
    previous_rank: DealerRank
    new_rank: DealerRank
    new_balance: float

    @property
    def refused(self) -> bool:
        return False

    @property
    def promoted(self) -> bool:
        return self.new_rank != self.previous_rank

    @property
    def message(self) -> str:
        text = f"You sold your stash for {format_cash(self.proceeds)}!"
        if self.promoted:
            text += f"\nCongratulations, you've been promoted to {self.new_rank.title}!"
        return text


class Stash:
    """
    Stashes keyed by (group, player), plus production and selling.

    Selling credits the ledger while the stash entry's lock is held, so no
    observer can see an emptied stash without the matching credit.
    """

    def __init__(self, ledger: Ledger, cooldowns: CooldownRegistry,
                 production_cooldown: timedelta = timedelta(minutes=30),
                 event_bus=None, rng: Optional[random.Random] = None):
        self._ledger = ledger
        self._cooldowns = cooldowns
        self._event_bus = event_bus
        self._rng = rng or _secure_rng
        self.production_cooldown = production_cooldown
        self._groups: Dict[int, Dict[int, StashEntry]] = {}

    def get_stash(self, group_id: int, player_id: int) -> StashEntry:
        """Get a player's stash, creating an empty one on first access."""
        entries = self._groups.get(group_id)
        if entries is None:
            entries = self._groups.setdefault(group_id, {})
        entry = entries.get(player_id)
        if entry is None:
            entry = entries.setdefault(player_id, StashEntry())
        return entry

    def find_stash(self, group_id: int, player_id: int) -> Optional[StashEntry]:
        """Existing stash or None (never creates one)."""
        return self._groups.get(group_id, {}).get(player_id)

    def players(self) -> Iterator[Tuple[int, int]]:
        for group_id, entries in list(self._groups.items()):
            for player_id in list(entries):
                yield group_id, player_id

    def produce(self, group_id: int, player_id: int, substance: Substance,
                now: Optional[datetime] = None) -> Union[ProductionResult, Refusal]:
        """
        Grow or cook one batch of a substance.

        Args:
            group_id: Group identifier
            player_id: Player identifier
            substance: What to produce
            now: Current time (defaults to UTC now)

        Returns:
            ProductionResult, or a Refusal if the rank is too low or the
            substance is still on cooldown (neither changes any state)
        """
        entry = self.get_stash(group_id, player_id)
        required = REQUIRED_RANKS[substance]
        with entry.lock:
            if entry.rank < required:
                return Refusal(
                    RefusalReason.RANK_TOO_LOW,
                    f"You need to be at least {required.title} to produce {substance.value}.",
                    required_rank=required.title,
                )

            remaining = self._cooldowns.try_start(
                group_id, player_id, substance, self.production_cooldown, now or utc_now()
            )
            if remaining is not None:
                return Refusal(
                    RefusalReason.COOLDOWN,
                    f"You need to wait {format_remaining(remaining)} before you can produce more {substance.value}.",
                    remaining=remaining,
                )

            grams = self._rng.randint(*yield_range(substance))
            total = entry.add_amount_to_type(substance, grams)

        logger.debug(f"{group_id}/{player_id} produced {grams}g of {substance.value}")
        return ProductionResult(substance, grams, total)

    def sell_all(self, group_id: int, player_id: int) -> SaleResult:
        """
        Sell the whole stash.

        Zeroing the inventory, crediting the ledger and recomputing the rank
        happen as one unit. A rank change is announced on the event bus
        after the locks are released.

        Returns:
            SaleResult (proceeds 0.0 if the stash was empty)
        """
        entry = self.get_stash(group_id, player_id)
        with entry.lock:
            previous_rank = entry.rank
            with self._ledger.transaction(group_id, player_id):
                proceeds = entry.sell_all()
                new_balance = self._ledger.add_to_balance(group_id, player_id, proceeds)
            new_rank = entry.rank

        result = SaleResult(proceeds, previous_rank, new_rank, new_balance)
        if result.promoted:
            logger.info(f"{group_id}/{player_id} promoted from {previous_rank.title} to {new_rank.title}")
            if self._event_bus is not None:
                self._event_bus.publish_rank_change(group_id, player_id, new_rank.name)
        return result

    def describe(self, group_id: int, player_id: int) -> str:
        """Human-readable stash listing: price per gram and grams held."""
        entry = self.get_stash(group_id, player_id)
        with entry.lock:
            lines = [
                f"{substance.value.title()}: {format_cash(UNIT_PRICES[substance])} ({grams}g)"
                for substance, grams in entry.quantities.items()
                if grams > 0
            ]
            rank = entry.rank
            proceeds = entry.lifetime_sales_proceeds

        header = f"Rank: {rank.title} (lifetime sales {format_cash(proceeds)})"
        following = next_rank_threshold(rank)
        if following is not None:
            next_rank, threshold = following
            header += f", {format_cash(max(0.0, threshold - proceeds))} until {next_rank.title}"
        body = "\n".join(lines) if lines else "No drugs in stash."
        return f"{header}\n{body}"

    def snapshot(self) -> Dict[int, Dict[int, dict]]:
        """Copy of every stash as plain data."""
        result: Dict[int, Dict[int, dict]] = {}
        for group_id, entries in list(self._groups.items()):
            per_group = result.setdefault(group_id, {})
            for player_id, entry in list(entries.items()):
                with entry.lock:
                    per_group[player_id] = entry.to_record()
        return result

    def restore(self, stashes: Dict[int, Dict[int, dict]]) -> None:
        """Replace all stashes from snapshot data (unknown substances are skipped)."""
        groups: Dict[int, Dict[int, StashEntry]] = {}
        for group_id, entries in stashes.items():
            per_group = groups.setdefault(group_id, {})
            for player_id, data in entries.items():
                entry = StashEntry()
                for name, grams in data.get("quantities", {}).items():
                    try:
                        entry.quantities[Substance(name)] = max(0, int(grams))
                    except ValueError:
                        logger.warning(f"Skipping unknown substance {name!r} for {group_id}/{player_id}")
                entry.lifetime_sales_cents = max(0, int(data.get("lifetime_sales_proceeds", 0)))
                stored_rank = DealerRank.__members__.get(data.get("rank", ""), DealerRank.LOW_LEVEL_DEALER)
                entry.rank = max(stored_rank, rank_for_proceeds(entry.lifetime_sales_proceeds))
                per_group[player_id] = entry
        self._groups = groups
