"""
Cash helpers for the hobo economy.

Balances are tracked in whole cents so repeated small deltas never drift.
The public API speaks dollars with two-decimal precision.
100 cents = 1 dollar
"""

import math
from datetime import timedelta
from typing import Optional

CENTS_PER_DOLLAR = 100

# New players start broke
STARTING_BALANCE = 0.0


def to_cents(amount: float) -> int:
    """Convert a dollar amount to whole cents (rounded half away from zero)."""
    cents = abs(amount) * CENTS_PER_DOLLAR
    rounded = int(cents + 0.5)
    return rounded if amount >= 0 else -rounded


def from_cents(cents: int) -> float:
    """Convert whole cents to dollars."""
    return round(cents / CENTS_PER_DOLLAR, 2)


def format_cash(amount: float) -> str:
    """
    Format a dollar amount for display.

    Returns:
        str: e.g. "$1,234.56" (negative amounts as "-$1.00")
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def format_delta(delta: float) -> str:
    """Format a balance change, e.g. "(+$1.00)", "(-$0.05)" or "" for zero."""
    if delta > 0:
        return f"(+{format_cash(delta)})"
    if delta < 0:
        return f"(-{format_cash(abs(delta))})"
    return ""


def format_remaining(remaining: Optional[timedelta]) -> str:
    """
    Format a cooldown as mm:ss, or h:mm:ss once it passes an hour.

    Partial seconds round up so "00:00" is never shown for a live cooldown.
    """
    if remaining is None:
        return "00:00"
    total = max(0, math.ceil(remaining.total_seconds()))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"
