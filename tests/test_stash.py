import sys
import os
import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from hobo_economy.cooldowns import CooldownRegistry
from hobo_economy.ledger import Ledger
from hobo_economy.results import RefusalReason
from hobo_economy.stash import (
    RANK_THRESHOLDS,
    DealerRank,
    Stash,
    Substance,
    next_rank_threshold,
    rank_for_proceeds,
)

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class MaxYieldRng:
    """Always returns the top of the requested range."""

    def randint(self, low, high):
        return high


class TestRankThresholds(unittest.TestCase):
    def test_threshold_is_inclusive(self):
        self.assertEqual(rank_for_proceeds(10_000), DealerRank.PETTY_DRUG_DEALER)
        self.assertEqual(rank_for_proceeds(9_999.99), DealerRank.LOW_LEVEL_DEALER)

    def test_top_rank(self):
        self.assertEqual(rank_for_proceeds(10_000_000), DealerRank.GODFATHER)
        self.assertIsNone(next_rank_threshold(DealerRank.GODFATHER))

    def test_next_rank(self):
        self.assertEqual(next_rank_threshold(DealerRank.LOW_LEVEL_DEALER),
                         (DealerRank.PETTY_DRUG_DEALER, 10_000))

    def test_titles(self):
        self.assertEqual(DealerRank.PETTY_DRUG_DEALER.title, "Petty Drug Dealer")

    def test_ranks_rise_through_every_threshold(self):
        previous = DealerRank.LOW_LEVEL_DEALER
        for threshold, rank in RANK_THRESHOLDS[1:]:
            below = rank_for_proceeds(threshold - 0.01)
            at = rank_for_proceeds(threshold)

            self.assertLess(below, rank)
            self.assertEqual(at, rank)
            self.assertGreaterEqual(below, previous)
            previous = at


class TestStash(unittest.TestCase):
    def setUp(self):
        self.ledger = Ledger()
        self.cooldowns = CooldownRegistry()
        self.event_bus = MagicMock()
        self.stash = Stash(self.ledger, self.cooldowns, event_bus=self.event_bus, rng=MaxYieldRng())

    def test_produce_weed(self):
        result = self.stash.produce(1, 2, Substance.WEED, NOW)

        self.assertFalse(result.refused)
        self.assertEqual(result.grams, 25)
        self.assertEqual(self.stash.get_stash(1, 2).get_amount(Substance.WEED), 25)
        self.assertEqual(result.message, "You grew 25g of weed!")

    def test_produce_on_cooldown_is_refused(self):
        self.stash.produce(1, 2, Substance.WEED, NOW)
        result = self.stash.produce(1, 2, Substance.WEED, NOW + timedelta(minutes=10))

        self.assertTrue(result.refused)
        self.assertEqual(result.reason, RefusalReason.COOLDOWN)
        self.assertEqual(result.remaining, timedelta(minutes=20))
        self.assertEqual(self.stash.get_stash(1, 2).get_amount(Substance.WEED), 25)

    def test_rank_gate_changes_nothing(self):
        result = self.stash.produce(1, 2, Substance.COCAINE, NOW)

        self.assertTrue(result.refused)
        self.assertEqual(result.reason, RefusalReason.RANK_TOO_LOW)
        self.assertEqual(result.required_rank, "Petty Drug Dealer")
        self.assertFalse(self.stash.get_stash(1, 2).has_any())
        # The refused attempt did not start a cooldown
        self.assertIsNone(self.cooldowns.remaining(1, 2, Substance.COCAINE, NOW))

    def test_cooked_substances_use_cook_yield(self):
        self.stash.get_stash(1, 2).rank = DealerRank.PETTY_DRUG_DEALER
        result = self.stash.produce(1, 2, Substance.COCAINE, NOW)

        self.assertEqual(result.grams, 9)
        self.assertEqual(result.message, "You cooked 9g of cocaine!")

    def test_sell_credits_ledger_and_promotes(self):
        self.stash.get_stash(1, 2).add_amount_to_type(Substance.WEED, 1000)

        result = self.stash.sell_all(1, 2)

        self.assertEqual(result.proceeds, 10_000.0)
        self.assertEqual(result.new_balance, 10_000.0)
        self.assertTrue(result.promoted)
        self.assertEqual(result.new_rank, DealerRank.PETTY_DRUG_DEALER)
        self.assertIn("promoted to Petty Drug Dealer", result.message)
        self.assertEqual(self.ledger.get_balance(1, 2), 10_000.0)
        self.assertFalse(self.stash.get_stash(1, 2).has_any())
        self.event_bus.publish_rank_change.assert_called_once_with(1, 2, "PETTY_DRUG_DEALER")

    def test_second_sell_yields_nothing(self):
        self.stash.get_stash(1, 2).add_amount_to_type(Substance.SHROOMS, 4)

        first = self.stash.sell_all(1, 2)
        second = self.stash.sell_all(1, 2)

        self.assertEqual(first.proceeds, 60.0)
        self.assertEqual(second.proceeds, 0.0)
        self.assertFalse(second.promoted)
        self.assertEqual(self.ledger.get_balance(1, 2), 60.0)

    def test_selling_walks_every_rank_in_order(self):
        entry = self.stash.get_stash(1, 2)
        seen = [entry.rank]

        for threshold, rank in RANK_THRESHOLDS[1:]:
            # One gram of weed ($10) lands exactly on the threshold
            entry.lifetime_sales_cents = (threshold - 10) * 100
            entry.add_amount_to_type(Substance.WEED, 1)

            result = self.stash.sell_all(1, 2)

            self.assertEqual(result.new_rank, rank)
            self.assertTrue(result.promoted)
            seen.append(result.new_rank)

        self.assertEqual(seen, sorted(seen))
        self.assertEqual(seen[-1], DealerRank.GODFATHER)
        self.assertEqual(self.event_bus.publish_rank_change.call_count, len(RANK_THRESHOLDS) - 1)

    def test_concurrent_sells_pay_out_once(self):
        self.stash.get_stash(1, 2).add_amount_to_type(Substance.WEED, 1000)
        barrier = threading.Barrier(10)

        def sell():
            barrier.wait()
            return self.stash.sell_all(1, 2).proceeds

        with ThreadPoolExecutor(max_workers=10) as pool:
            proceeds = list(pool.map(lambda _: sell(), range(10)))

        self.assertEqual(sorted(proceeds), [0.0] * 9 + [10_000.0])
        self.assertEqual(self.ledger.get_balance(1, 2), 10_000.0)
        self.assertEqual(self.stash.get_stash(1, 2).lifetime_sales_proceeds, 10_000.0)
        self.event_bus.publish_rank_change.assert_called_once_with(1, 2, "PETTY_DRUG_DEALER")

    def test_rank_never_drops(self):
        self.stash.restore({1: {2: {"quantities": {"weed": 1}, "rank": "GODFATHER",
                                     "lifetime_sales_proceeds": 0}}})

        result = self.stash.sell_all(1, 2)

        self.assertEqual(result.new_rank, DealerRank.GODFATHER)
        self.event_bus.publish_rank_change.assert_not_called()

    def test_non_positive_amounts_are_ignored(self):
        entry = self.stash.get_stash(1, 2)
        self.assertEqual(entry.add_amount_to_type(Substance.WEED, -5), 0)
        self.assertFalse(entry.has_any())

    def test_describe_empty(self):
        report = self.stash.describe(1, 2)
        self.assertIn("Rank: Low Level Dealer", report)
        self.assertIn("$10,000.00 until Petty Drug Dealer", report)
        self.assertIn("No drugs in stash.", report)

    def test_describe_lists_holdings(self):
        self.stash.get_stash(1, 2).add_amount_to_type(Substance.WEED, 5)
        self.assertIn("Weed: $10.00 (5g)", self.stash.describe(1, 2))

    def test_snapshot_round_trip(self):
        entry = self.stash.get_stash(1, 2)
        entry.add_amount_to_type(Substance.WEED, 7)
        entry.lifetime_sales_cents = 2_500_000

        other = Stash(Ledger(), CooldownRegistry())
        other.restore(self.stash.snapshot())
        copy = other.get_stash(1, 2)

        self.assertEqual(copy.get_amount(Substance.WEED), 7)
        self.assertEqual(copy.lifetime_sales_proceeds, 25_000.0)
        self.assertEqual(copy.rank, DealerRank.STREET_DEALER)


if __name__ == '__main__':
    unittest.main()
