"""
Ledger of player cash balances, per group.

Each (group, player) account carries its own lock; accounts never share a
lock, so unrelated players never wait on each other. Balances never go
below zero: an oversized subtraction empties the account instead.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

from hobo_economy.currency import from_cents, to_cents

logger = logging.getLogger(__name__)


class Account:
    """One player's balance in one group (whole cents)."""

    __slots__ = ("cents", "lock")

    def __init__(self, cents: int = 0):
        self.cents = cents
        self.lock = threading.RLock()


class Ledger:
    """
    Cash balances keyed by (group, player).

    Accounts are created on first credit or debit; reading an unknown
    player's balance returns 0 without creating anything.
    """

    def __init__(self):
        self._groups: Dict[int, Dict[int, Account]] = {}

    def _account(self, group_id: int, player_id: int) -> Account:
        accounts = self._groups.get(group_id)
        if accounts is None:
            accounts = self._groups.setdefault(group_id, {})
        account = accounts.get(player_id)
        if account is None:
            account = accounts.setdefault(player_id, Account())
        return account

    def find_account(self, group_id: int, player_id: int) -> Optional[Account]:
        """Existing account or None (never creates one)."""
        return self._groups.get(group_id, {}).get(player_id)

    def players(self) -> Iterator[Tuple[int, int]]:
        for group_id, accounts in list(self._groups.items()):
            for player_id in list(accounts):
                yield group_id, player_id

    @contextmanager
    def transaction(self, group_id: int, player_id: int) -> Iterator[Account]:
        """
        Hold one account's lock for a compound read/check/mutate sequence.

        Ledger methods may be called for the same key inside the block (the
        lock is re-entrant).
        """
        account = self._account(group_id, player_id)
        with account.lock:
            yield account

    def get_balance(self, group_id: int, player_id: int) -> float:
        """Current balance in dollars (0.0 for unknown players)."""
        account = self.find_account(group_id, player_id)
        if account is None:
            return 0.0
        with account.lock:
            return from_cents(account.cents)

    def add_to_balance(self, group_id: int, player_id: int, amount: float) -> float:
        """
        Credit a player.

        Args:
            group_id: Group identifier
            player_id: Player identifier
            amount: Dollars to add (negative amounts are ignored)

        Returns:
            float: New balance
        """
        if amount < 0:
            logger.warning(f"Ignoring negative credit of {amount} for {group_id}/{player_id}")
            return self.get_balance(group_id, player_id)

        account = self._account(group_id, player_id)
        with account.lock:
            account.cents += to_cents(amount)
            return from_cents(account.cents)

    def subtract_from_balance(self, group_id: int, player_id: int, amount: float) -> float:
        """
        Debit a player, clamping at zero.

        Args:
            group_id: Group identifier
            player_id: Player identifier
            amount: Dollars to remove (negative amounts are ignored)

        Returns:
            float: New balance (never negative)
        """
        if amount < 0:
            logger.warning(f"Ignoring negative debit of {amount} for {group_id}/{player_id}")
            return self.get_balance(group_id, player_id)

        account = self._account(group_id, player_id)
        with account.lock:
            account.cents = max(0, account.cents - to_cents(amount))
            return from_cents(account.cents)

    def apply_delta(self, group_id: int, player_id: int, delta: float) -> Tuple[float, float]:
        """
        Apply a signed change.

        Returns:
            Tuple of (applied_delta, new_balance). A loss larger than the
            balance only removes what was there, and applied_delta says so.
        """
        account = self._account(group_id, player_id)
        with account.lock:
            before = account.cents
            if delta >= 0:
                account.cents += to_cents(delta)
            else:
                account.cents = max(0, account.cents - to_cents(-delta))
            return from_cents(account.cents - before), from_cents(account.cents)

    def top_balances(self, group_id: int, limit: int = 10) -> List[Tuple[int, float]]:
        """
        Richest players in a group.

        Returns:
            List of (player_id, balance), highest first
        """
        accounts = list(self._groups.get(group_id, {}).items())
        ranked = sorted(
            ((player_id, account.cents) for player_id, account in accounts),
            key=lambda item: item[1],
            reverse=True,
        )
        return [(player_id, from_cents(cents)) for player_id, cents in ranked[:limit]]

    def snapshot(self) -> Dict[int, Dict[int, int]]:
        """Copy of every balance in cents: {group: {player: cents}}."""
        result: Dict[int, Dict[int, int]] = {}
        for group_id, accounts in list(self._groups.items()):
            per_group = result.setdefault(group_id, {})
            for player_id, account in list(accounts.items()):
                with account.lock:
                    per_group[player_id] = account.cents
        return result

    def restore(self, balances: Dict[int, Dict[int, int]]) -> None:
        """Replace all balances from a {group: {player: cents}} mapping."""
        self._groups = {
            group_id: {player_id: Account(max(0, int(cents))) for player_id, cents in accounts.items()}
            for group_id, accounts in balances.items()
        }
