"""
Result types returned to the command layer.

Refusals are expected outcomes (cooldowns, lack of funds, ...), not errors.
They carry enough context for the caller to explain them to the player.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional

from hobo_economy.tables import ActionKind


class RefusalReason(Enum):
    COOLDOWN = "cooldown"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ALREADY_OWNED = "already_owned"
    RANK_TOO_LOW = "rank_too_low"
    NOTHING_TO_SELL = "nothing_to_sell"
    NO_PROPERTIES = "no_properties"
    UNKNOWN_PROPERTY = "unknown_property"


@dataclass(frozen=True)
class Refusal:
    reason: RefusalReason
    message: str
    remaining: Optional[timedelta] = None
    amount_needed: Optional[float] = None
    required_rank: Optional[str] = None

    @property
    def refused(self) -> bool:
        return True


@dataclass(frozen=True)
class ActionResult:
    """Outcome of an income action (beg, work, hustle)."""
    kind: ActionKind
    message: str
    delta: float
    new_balance: float

    @property
    def refused(self) -> bool:
        return False
