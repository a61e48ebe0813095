"""
Weighted event tables.

A table is an immutable list of outcomes, each with a relative weight, a
rule that produces a cash delta, and a rule that turns that delta into a
story. Rolling picks one outcome with probability weight / total_weight.

Rolls draw from random.SystemRandom (OS entropy). Outcomes move money, so
the sequence must not be predictable from earlier results.
"""

import random
import logging
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence

from hobo_economy.currency import CENTS_PER_DOLLAR, format_cash, to_cents

logger = logging.getLogger(__name__)

# A value rule receives the table's random source and returns a dollar delta
ValueRule = Callable[[random.Random], float]
MessageRule = Callable[[float], str]

DEFAULT_FALLBACK_MESSAGE = "Nothing happens... the streets are quiet."

_secure_rng = random.SystemRandom()


@dataclass(frozen=True)
class Outcome:
    """One possible result of a roll."""
    weight: int
    value_rule: ValueRule
    message_rule: MessageRule


class RollResult(NamedTuple):
    delta: float
    message: str


class EventTable:
    """
    Immutable weighted outcome table for one action kind.

    Outcomes with a non-positive weight are dropped at construction with a
    warning; a table left with no outcomes is a configuration error.
    """

    def __init__(self, name: str, outcomes: Sequence[Outcome],
                 rng: Optional[random.Random] = None,
                 fallback_message: str = DEFAULT_FALLBACK_MESSAGE):
        kept = []
        for index, outcome in enumerate(outcomes):
            if outcome.weight <= 0:
                logger.warning(f"Dropping outcome {index} of table {name!r}: weight {outcome.weight} is not positive")
                continue
            kept.append(outcome)

        if not kept:
            raise ValueError(f"Event table {name!r} has no outcomes with positive weight")

        self.name = name
        self._outcomes = tuple(kept)
        self._total_weight = sum(o.weight for o in kept)
        self._rng = rng or _secure_rng
        self.fallback_message = fallback_message

    @property
    def outcomes(self) -> tuple:
        return self._outcomes

    @property
    def total_weight(self) -> int:
        return self._total_weight

    def probability(self, index: int) -> float:
        """Selection probability of the outcome at index."""
        return self._outcomes[index].weight / self._total_weight

    def pick(self) -> Optional[Outcome]:
        """
        Select an outcome by cumulative weight.

        Returns:
            The chosen outcome, or None if the draw fell outside every
            bucket (only possible with a misbehaving random source)
        """
        pick = self._rng.randrange(self._total_weight)  # [0, total_weight)
        tally = 0
        for outcome in self._outcomes:
            tally += outcome.weight
            if pick < tally:
                return outcome
        return None

    def roll(self) -> RollResult:
        """
        Roll the table once.

        The chosen outcome's value rule runs exactly once so the story and
        the applied delta always agree.

        Returns:
            RollResult(delta, message); a zero-delta fallback if no outcome
            matched
        """
        outcome = self.pick()
        if outcome is None:
            logger.warning(f"Roll on table {self.name!r} matched no outcome, using fallback")
            return RollResult(0.0, self.fallback_message)

        delta = round(float(outcome.value_rule(self._rng)), 2)
        return RollResult(delta, outcome.message_rule(delta))

    def __len__(self) -> int:
        return len(self._outcomes)

    def __repr__(self) -> str:
        return f"EventTable({self.name!r}, outcomes={len(self._outcomes)}, total_weight={self._total_weight})"


# --- Value rules ---

def fixed(amount: float) -> ValueRule:
    """Always the same delta."""
    return lambda rng: amount


def cents_between(low: float, high: float) -> ValueRule:
    """Uniform over whole cents in [low, high] (either bound may be negative)."""
    low_cents, high_cents = sorted((to_cents(low), to_cents(high)))
    return lambda rng: rng.randint(low_cents, high_cents) / CENTS_PER_DOLLAR


def dollars_between(low: int, high: int) -> ValueRule:
    """Uniform over whole dollars in [low, high]."""
    low, high = sorted((int(low), int(high)))
    return lambda rng: float(rng.randint(low, high))


def either(first: float, second: float) -> ValueRule:
    """Coin flip between two deltas."""
    return lambda rng: first if rng.randrange(2) == 0 else second


# --- Message rules ---

def template(text: str) -> MessageRule:
    """Story with an {amount} placeholder filled by the absolute delta as cash."""
    return lambda delta: text.format(amount=format_cash(abs(delta)))


def signed(gain_text: str, loss_text: str) -> MessageRule:
    """Pick a story by the sign of the delta (zero counts as a loss)."""
    gain, loss = template(gain_text), template(loss_text)
    return lambda delta: gain(delta) if delta > 0 else loss(delta)


def build_table(name: str, entries: Sequence[tuple],
                rng: Optional[random.Random] = None,
                fallback_message: str = DEFAULT_FALLBACK_MESSAGE) -> EventTable:
    """
    Build a table from (weight, value_rule, message) entries.

    A message may be a plain template string or a ready message rule.
    """
    outcomes: List[Outcome] = []
    for weight, value_rule, message in entries:
        message_rule = template(message) if isinstance(message, str) else message
        outcomes.append(Outcome(weight, value_rule, message_rule))
    return EventTable(name, outcomes, rng=rng, fallback_message=fallback_message)
