"""
Property catalog and per-player portfolios.

Properties are bought once each and pay out their collect amount every
collection interval. The catalog is shared by every group; a property's
position in it is its stable identifier.
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple, Union

from hobo_core.event_bus import EventTypes
from hobo_economy.cooldowns import ALREADY_ELAPSED, utc_now
from hobo_economy.currency import format_cash, format_remaining, from_cents, to_cents
from hobo_economy.ledger import Ledger
from hobo_economy.results import Refusal, RefusalReason

logger = logging.getLogger(__name__)

# Default hourly payout is price / COLLECT_DIVISOR
COLLECT_DIVISOR = 200


@dataclass(frozen=True)
class Property:
    name: str
    price: float
    collect_amount: Optional[float] = None

    def __post_init__(self):
        if self.collect_amount is None:
            object.__setattr__(self, "collect_amount", round(self.price / COLLECT_DIVISOR, 2))


DEFAULT_CATALOG = (
    Property("Cardboard Box", 50, 5),
    Property("Hobo Tent", 250, 20),
    Property("The Local Dumpster", 1_000, 50),
    Property("Shabby Shack", 25_000),
    Property("Leaky Cabin", 29_200),
    Property("Rusty Trailer", 34_000),
    Property("Derelict Bunker", 39_600),
    Property("Seaside Cottage", 46_200),
    Property("Suburban House", 54_000),
    Property("Urban Duplex", 62_800),
    Property("Lakeside Villa", 73_200),
    Property("Countryside Farm", 85_600),
    Property("Downtown Loft", 99_600),
    Property("Boutique Shop", 116_400),
    Property("Corner Cafe", 135_600),
    Property("Small Warehouse", 158_000),
    Property("Roadside Motel", 184_400),
    Property("Office Suite", 215_000),
    Property("Medical Clinic", 250_800),
    Property("Strip Mall", 292_400),
    Property("Mid-Rise Apartments", 341_000),
    Property("Four-Star Hotel", 397_600),
    Property("Casino Floor", 463_600),
    Property("Solar Farm", 540_800),
    Property("Hobo Mansion", 1_000_000),
)


def _catalog_item(item: dict) -> Property:
    """One catalog entry; numbers may arrive as numeric strings."""
    price = float(item["price"])
    collect_amount = item.get("collect_amount")
    if collect_amount is not None:
        collect_amount = float(collect_amount)
    if price < 0 or (collect_amount is not None and collect_amount < 0):
        raise ValueError(f"negative amount in {item.get('name')!r}")
    return Property(str(item["name"]), price, collect_amount)


def load_catalog(path: Optional[str] = None) -> Tuple[Property, ...]:
    """
    Load the property catalog.

    Args:
        path: Optional JSON file holding a list of
              {"name": str, "price": number, "collect_amount": number?}

    Returns:
        Tuple of properties; the default catalog if no path is given or the
        file cannot be used
    """
    if not path:
        return DEFAULT_CATALOG

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        catalog = tuple(_catalog_item(item) for item in raw)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.error(f"Could not load property catalog from {path}: {e}. Using defaults.")
        return DEFAULT_CATALOG

    if not catalog:
        logger.warning(f"Property catalog {path} is empty, using defaults")
        return DEFAULT_CATALOG

    logger.info(f"Loaded {len(catalog)} properties from {path}")
    return catalog


class Ownership:
    """One player's portfolio: owned catalog indices and the shared collect timer."""

    def __init__(self):
        self.indices: Set[int] = set()
        self.next_collect: datetime = ALREADY_ELAPSED
        self.lock = threading.RLock()

    def to_record(self) -> dict:
        """Plain-data copy for snapshots (caller holds the lock)."""
        return {
            "owned": sorted(self.indices),
            "next_collect": (self.next_collect.isoformat()
                             if self.next_collect != ALREADY_ELAPSED else None),
        }


@dataclass(frozen=True)
class PurchaseResult:
    index: int
    item: Property
    new_balance: float

    @property
    def refused(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return f"You bought {self.item.name} for {format_cash(self.item.price)}!"


@dataclass(frozen=True)
class CollectResult:
    amount: float
    new_balance: float
    properties: Tuple[Property, ...] = field(default_factory=tuple)

    @property
    def refused(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return f"Collected {format_cash(self.amount)} from all your properties!"


@dataclass(frozen=True)
class PortfolioStatus:
    properties: Tuple[Property, ...]
    total_collect: float
    remaining: Optional[timedelta] = None  # None: collectable now

    @property
    def refused(self) -> bool:
        return False

    @property
    def ready(self) -> bool:
        return self.remaining is None

    @property
    def message(self) -> str:
        lines = ["You own the following properties:"]
        lines += [f"- {p.name} (collects {format_cash(p.collect_amount)})" for p in self.properties]
        lines.append(f"Total collect amount: {format_cash(self.total_collect)}")
        if self.ready:
            lines.append("You can collect money NOW.")
        else:
            lines.append(f"You can collect money in {format_remaining(self.remaining)}.")
        return "\n".join(lines)


class PropertyPortfolio:
    """
    Property ownership keyed by (group, player).

    Purchases and collections hold the ownership lock and then the ledger
    account lock for the whole sequence, so funds and ownership always move
    together.
    """

    def __init__(self, ledger: Ledger, catalog: Sequence[Property] = DEFAULT_CATALOG,
                 collect_interval: timedelta = timedelta(hours=1), event_bus=None):
        self._ledger = ledger
        self._catalog = tuple(catalog)
        self._event_bus = event_bus
        self.collect_interval = collect_interval
        self._groups: Dict[int, Dict[int, Ownership]] = {}

    @property
    def catalog(self) -> Tuple[Property, ...]:
        return self._catalog

    def _ownership(self, group_id: int, player_id: int) -> Ownership:
        entries = self._groups.get(group_id)
        if entries is None:
            entries = self._groups.setdefault(group_id, {})
        entry = entries.get(player_id)
        if entry is None:
            entry = entries.setdefault(player_id, Ownership())
        return entry

    def find_ownership(self, group_id: int, player_id: int) -> Optional[Ownership]:
        """Existing portfolio or None (never creates one)."""
        return self._groups.get(group_id, {}).get(player_id)

    def players(self) -> Iterator[Tuple[int, int]]:
        for group_id, entries in list(self._groups.items()):
            for player_id in list(entries):
                yield group_id, player_id

    def purchase(self, group_id: int, player_id: int, index: int) -> Union[PurchaseResult, Refusal]:
        """
        Buy a property from the catalog.

        Args:
            group_id: Group identifier
            player_id: Player identifier
            index: Catalog index

        Returns:
            PurchaseResult, or a Refusal (unknown index, already owned, or
            not enough money); a refusal changes nothing
        """
        if not 0 <= index < len(self._catalog):
            return Refusal(RefusalReason.UNKNOWN_PROPERTY, "Invalid property.")

        chosen = self._catalog[index]
        ownership = self._ownership(group_id, player_id)
        with ownership.lock:
            if index in ownership.indices:
                return Refusal(RefusalReason.ALREADY_OWNED, f"You already own {chosen.name}.")

            with self._ledger.transaction(group_id, player_id):
                balance = self._ledger.get_balance(group_id, player_id)
                if to_cents(balance) < to_cents(chosen.price):
                    needed = from_cents(to_cents(chosen.price) - to_cents(balance))
                    return Refusal(
                        RefusalReason.INSUFFICIENT_FUNDS,
                        f"You don't have enough money. You need {format_cash(needed)} more.",
                        amount_needed=needed,
                    )
                new_balance = self._ledger.subtract_from_balance(group_id, player_id, chosen.price)
                ownership.indices.add(index)

        logger.info(f"{group_id}/{player_id} bought {chosen.name} for {chosen.price}")
        if self._event_bus is not None:
            self._event_bus.publish(
                EventTypes.PROPERTY_PURCHASED,
                {"group_id": group_id, "player_id": player_id, "index": index, "name": chosen.name},
                group_id=group_id,
            )
        return PurchaseResult(index, chosen, new_balance)

    def collect(self, group_id: int, player_id: int,
                now: Optional[datetime] = None) -> Union[CollectResult, Refusal]:
        """
        Collect passive income from every owned property.

        Returns:
            CollectResult, or a Refusal if nothing is owned or the collection
            timer has not elapsed
        """
        now = now or utc_now()
        ownership = self._ownership(group_id, player_id)
        with ownership.lock:
            if not ownership.indices:
                return Refusal(RefusalReason.NO_PROPERTIES, "You don't own any properties.")

            if now < ownership.next_collect:
                remaining = ownership.next_collect - now
                return Refusal(
                    RefusalReason.COOLDOWN,
                    f"You need to wait {format_remaining(remaining)} before collecting again.",
                    remaining=remaining,
                )

            owned = tuple(self._catalog[i] for i in sorted(ownership.indices))
            total = from_cents(sum(to_cents(p.collect_amount) for p in owned))
            new_balance = self._ledger.add_to_balance(group_id, player_id, total)
            ownership.next_collect = now + self.collect_interval

        return CollectResult(total, new_balance, owned)

    def status(self, group_id: int, player_id: int,
               now: Optional[datetime] = None) -> Union[PortfolioStatus, Refusal]:
        """
        Owned properties, their combined payout and time to the next collection.

        Returns:
            PortfolioStatus, or a NO_PROPERTIES Refusal
        """
        now = now or utc_now()
        entry = self.find_ownership(group_id, player_id)
        if entry is None:
            return Refusal(RefusalReason.NO_PROPERTIES, "You don't own any properties.")

        with entry.lock:
            owned = tuple(self._catalog[i] for i in sorted(entry.indices))
            next_collect = entry.next_collect
        if not owned:
            return Refusal(RefusalReason.NO_PROPERTIES, "You don't own any properties.")

        total = from_cents(sum(to_cents(p.collect_amount) for p in owned))
        remaining = next_collect - now if now < next_collect else None
        return PortfolioStatus(owned, total, remaining)

    def list_owned(self, group_id: int, player_id: int) -> List[Property]:
        """Owned properties by ascending catalog index."""
        entry = self.find_ownership(group_id, player_id)
        if entry is None:
            return []
        with entry.lock:
            return [self._catalog[i] for i in sorted(entry.indices)]

    def owned_indices(self, group_id: int, player_id: int) -> List[int]:
        entry = self.find_ownership(group_id, player_id)
        if entry is None:
            return []
        with entry.lock:
            return sorted(entry.indices)

    def snapshot(self) -> Dict[int, Dict[int, dict]]:
        """Copy of every portfolio: {group: {player: {"owned": [...], "next_collect": iso}}}."""
        result: Dict[int, Dict[int, dict]] = {}
        for group_id, entries in list(self._groups.items()):
            per_group = result.setdefault(group_id, {})
            for player_id, entry in list(entries.items()):
                with entry.lock:
                    per_group[player_id] = entry.to_record()
        return result

    def restore(self, portfolios: Dict[int, Dict[int, dict]]) -> None:
        """Replace all portfolios from snapshot data (out-of-range indices are dropped)."""
        groups: Dict[int, Dict[int, Ownership]] = {}
        for group_id, entries in portfolios.items():
            per_group = groups.setdefault(group_id, {})
            for player_id, data in entries.items():
                entry = Ownership()
                for index in data.get("owned", []):
                    if 0 <= int(index) < len(self._catalog):
                        entry.indices.add(int(index))
                    else:
                        logger.warning(f"Dropping unknown property index {index} for {group_id}/{player_id}")
                next_collect = data.get("next_collect")
                if next_collect:
                    entry.next_collect = datetime.fromisoformat(next_collect)
                per_group[player_id] = entry
        self._groups = groups
