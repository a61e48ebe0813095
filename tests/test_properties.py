import sys
import os
import json
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from hobo_core.event_bus import EventTypes
from hobo_economy.ledger import Ledger
from hobo_economy.properties import (
    DEFAULT_CATALOG,
    Property,
    PropertyPortfolio,
    load_catalog,
)
from hobo_economy.results import RefusalReason

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

CATALOG = (
    Property("Box", 100, 5),
    Property("Tent", 100, 10),
    Property("Shack", 300),
)


def make_portfolio(balance=0.0, event_bus=None):
    ledger = Ledger()
    if balance:
        ledger.add_to_balance(1, 2, balance)
    return ledger, PropertyPortfolio(ledger, CATALOG, event_bus=event_bus)


def test_purchase_debits_and_grants_once():
    ledger, portfolio = make_portfolio(150)

    result = portfolio.purchase(1, 2, 0)

    assert not result.refused
    assert result.new_balance == 50.0
    assert result.message == "You bought Box for $100.00!"
    assert portfolio.owned_indices(1, 2) == [0]

    again = portfolio.purchase(1, 2, 0)
    assert again.refused
    assert again.reason == RefusalReason.ALREADY_OWNED
    assert ledger.get_balance(1, 2) == 50.0
    assert portfolio.owned_indices(1, 2) == [0]


def test_insufficient_funds_changes_nothing():
    ledger, portfolio = make_portfolio(20)

    result = portfolio.purchase(1, 2, 0)

    assert result.refused
    assert result.reason == RefusalReason.INSUFFICIENT_FUNDS
    assert result.amount_needed == 80.0
    assert ledger.get_balance(1, 2) == 20.0
    assert portfolio.owned_indices(1, 2) == []


def test_exact_balance_is_enough():
    ledger, portfolio = make_portfolio(100)
    assert not portfolio.purchase(1, 2, 0).refused
    assert ledger.get_balance(1, 2) == 0.0


def test_unknown_index_is_refused():
    _, portfolio = make_portfolio(1000)
    assert portfolio.purchase(1, 2, 99).reason == RefusalReason.UNKNOWN_PROPERTY
    assert portfolio.purchase(1, 2, -1).reason == RefusalReason.UNKNOWN_PROPERTY


def test_default_collect_amount():
    assert Property("Shabby Shack", 25_000).collect_amount == 125.0
    assert CATALOG[2].collect_amount == 1.5


def test_purchase_publishes_event():
    event_bus = MagicMock()
    _, portfolio = make_portfolio(150, event_bus=event_bus)

    portfolio.purchase(1, 2, 1)

    event_bus.publish.assert_called_once()
    args, kwargs = event_bus.publish.call_args
    assert args[0] == EventTypes.PROPERTY_PURCHASED
    assert args[1]["name"] == "Tent"
    assert kwargs["group_id"] == 1


def test_collect_without_properties_is_refused():
    _, portfolio = make_portfolio()
    result = portfolio.collect(1, 2, NOW)
    assert result.refused
    assert result.reason == RefusalReason.NO_PROPERTIES


def test_collect_pays_sum_and_starts_interval():
    ledger, portfolio = make_portfolio(200)
    portfolio.purchase(1, 2, 0)
    portfolio.purchase(1, 2, 1)

    result = portfolio.collect(1, 2, NOW)
    assert not result.refused
    assert result.amount == 15.0
    assert result.new_balance == 15.0

    early = portfolio.collect(1, 2, NOW + timedelta(minutes=30))
    assert early.reason == RefusalReason.COOLDOWN
    assert early.remaining == timedelta(minutes=30)
    assert ledger.get_balance(1, 2) == 15.0

    later = portfolio.collect(1, 2, NOW + timedelta(hours=1))
    assert not later.refused
    assert ledger.get_balance(1, 2) == 30.0


def test_status_without_properties_is_refused():
    _, portfolio = make_portfolio()
    result = portfolio.status(1, 2, NOW)
    assert result.refused
    assert result.reason == RefusalReason.NO_PROPERTIES
    assert result.message == "You don't own any properties."
    # Asking does not create a portfolio
    assert list(portfolio.players()) == []


def test_status_reports_payout_and_wait():
    _, portfolio = make_portfolio(500)
    portfolio.purchase(1, 2, 2)
    portfolio.purchase(1, 2, 0)

    fresh = portfolio.status(1, 2, NOW)
    assert not fresh.refused
    assert fresh.ready
    assert [p.name for p in fresh.properties] == ["Box", "Shack"]
    assert fresh.total_collect == 6.5
    assert fresh.message == (
        "You own the following properties:\n"
        "- Box (collects $5.00)\n"
        "- Shack (collects $1.50)\n"
        "Total collect amount: $6.50\n"
        "You can collect money NOW."
    )

    portfolio.collect(1, 2, NOW)
    waiting = portfolio.status(1, 2, NOW + timedelta(minutes=30))
    assert not waiting.ready
    assert waiting.remaining == timedelta(minutes=30)
    assert waiting.message.endswith("You can collect money in 30:00.")

    assert portfolio.status(1, 2, NOW + timedelta(hours=1)).ready


def test_list_owned_in_catalog_order():
    _, portfolio = make_portfolio(500)
    portfolio.purchase(1, 2, 2)
    portfolio.purchase(1, 2, 0)

    assert [p.name for p in portfolio.list_owned(1, 2)] == ["Box", "Shack"]
    assert portfolio.list_owned(1, 3) == []


def test_concurrent_purchases_of_same_item():
    ledger, portfolio = make_portfolio(100)
    barrier = threading.Barrier(10)

    def buy(_):
        barrier.wait()
        return portfolio.purchase(1, 2, 0)

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(buy, range(10)))

    assert sum(1 for r in results if not r.refused) == 1
    assert ledger.get_balance(1, 2) == 0.0
    assert portfolio.owned_indices(1, 2) == [0]


def test_concurrent_purchases_share_one_balance():
    ledger, portfolio = make_portfolio(100)
    barrier = threading.Barrier(10)

    def buy(i):
        barrier.wait()
        return portfolio.purchase(1, 2, i % 2)

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(buy, range(10)))

    assert sum(1 for r in results if not r.refused) == 1
    assert ledger.get_balance(1, 2) == 0.0
    assert len(portfolio.owned_indices(1, 2)) == 1


def test_snapshot_round_trip_drops_unknown_indices():
    _, portfolio = make_portfolio(500)
    portfolio.purchase(1, 2, 0)
    portfolio.collect(1, 2, NOW)
    data = portfolio.snapshot()
    data[1][2]["owned"].append(42)

    other = PropertyPortfolio(Ledger(), CATALOG)
    other.restore(data)

    assert other.owned_indices(1, 2) == [0]
    assert other.collect(1, 2, NOW).reason == RefusalReason.COOLDOWN


def test_default_catalog():
    assert load_catalog() is DEFAULT_CATALOG
    assert len(DEFAULT_CATALOG) == 25
    assert DEFAULT_CATALOG[2].name == "The Local Dumpster"
    assert DEFAULT_CATALOG[2].collect_amount == 50


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([
        {"name": "Bench", "price": 10, "collect_amount": 1},
        {"name": "Van", "price": 2000},
    ]))

    catalog = load_catalog(str(path))

    assert [p.name for p in catalog] == ["Bench", "Van"]
    assert catalog[1].collect_amount == 10.0


def test_load_catalog_falls_back_on_bad_file(tmp_path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    empty = tmp_path / "empty.json"
    empty.write_text("[]")

    assert load_catalog(str(broken)) is DEFAULT_CATALOG
    assert load_catalog(str(empty)) is DEFAULT_CATALOG
    assert load_catalog(str(tmp_path / "missing.json")) is DEFAULT_CATALOG


def test_load_catalog_coerces_numeric_strings(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([{"name": "Bench", "price": "10", "collect_amount": "1.5"}]))

    catalog = load_catalog(str(path))

    assert catalog == (Property("Bench", 10.0, 1.5),)
    assert isinstance(catalog[0].price, float)
    assert isinstance(catalog[0].collect_amount, float)


def test_load_catalog_rejects_bad_amounts(tmp_path):
    wordy = tmp_path / "wordy.json"
    wordy.write_text(json.dumps([{"name": "Bench", "price": 10, "collect_amount": "lots"}]))
    negative = tmp_path / "negative.json"
    negative.write_text(json.dumps([{"name": "Bench", "price": -10}]))
    nameless = tmp_path / "nameless.json"
    nameless.write_text(json.dumps([{"price": 10}]))
    not_objects = tmp_path / "not_objects.json"
    not_objects.write_text(json.dumps(["Bench"]))

    for path in (wordy, negative, nameless, not_objects):
        assert load_catalog(str(path)) is DEFAULT_CATALOG
