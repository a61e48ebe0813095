#!/usr/bin/env python3
"""
Developer console for the hobo economy.

Runs one economy command against the configured snapshot store, prints
the reply a player would see and saves before exiting. Cooldowns are not
persisted, so they only apply within a single invocation.

Usage:
    python economy_cli.py beg --group 1 --player 42
    python economy_cli.py produce weed --group 1 --player 42
    python economy_cli.py buy 2 --group 1 --player 42
"""

import argparse
import logging
import sys

from hobo_core.config import get_settings
from hobo_core.logging_setup import setup_logging
from hobo_economy.currency import format_cash
from hobo_economy.economy_manager import create_economy, describe_action
from hobo_economy.stash import Substance

logger = logging.getLogger("economy_cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hobo economy console")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    def add_command(name, help_text):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--group", type=int, required=True, help="Group (server) id")
        sub.add_argument("--player", type=int, required=True, help="Player id")
        return sub

    add_command("beg", "Beg on the street")
    add_command("work", "Take a day job")
    add_command("hustle", "Work the night")
    produce_parser = add_command("produce", "Grow or cook a substance")
    produce_parser.add_argument("substance", choices=[s.value for s in Substance], help="What to produce")
    add_command("sell", "Sell the whole stash")
    add_command("stash", "Show the stash and dealer rank")
    buy_parser = add_command("buy", "Buy a property")
    buy_parser.add_argument("index", type=int, help="Catalog index (see 'properties')")
    add_command("collect", "Collect income from owned properties")
    add_command("check", "Show owned properties, total payout and time to next collection")
    add_command("properties", "List the catalog and owned properties")
    add_command("balance", "Show the wallet")
    add_command("top", "Show the group's richest players")

    return parser


def run_command(manager, args) -> str:
    """Execute one parsed command and return the text to print."""
    group, player = args.group, args.player

    if args.command in ("beg", "work", "hustle"):
        return describe_action(getattr(manager, args.command)(group, player))

    if args.command == "produce":
        return manager.produce(group, player, Substance(args.substance)).message

    if args.command == "sell":
        result = manager.sell_stash(group, player)
        if result.refused:
            return result.message
        return f"{result.message}\nYour wallet now holds {format_cash(result.new_balance)}"

    if args.command == "stash":
        return manager.stash_report(group, player)

    if args.command == "buy":
        return manager.buy_property(group, player, args.index).message

    if args.command == "collect":
        return manager.collect_properties(group, player).message

    if args.command == "check":
        return manager.property_status(group, player).message

    if args.command == "properties":
        owned = set(manager.portfolio.owned_indices(group, player))
        lines = ["=== PROPERTIES ==="]
        for index, item in enumerate(manager.property_catalog()):
            marker = "*" if index in owned else " "
            lines.append(f"{marker} {index:<3} {item.name:<22} {format_cash(item.price):>15}"
                         f"  collects {format_cash(item.collect_amount)}")
        return "\n".join(lines)

    if args.command == "balance":
        return f"Your wallet holds {format_cash(manager.balance(group, player))}"

    if args.command == "top":
        board = manager.leaderboard(group)
        if not board:
            return "Nobody here has any money yet."
        return "\n".join(
            f"{position}. {player_id}: {format_cash(amount)}"
            for position, (player_id, amount) in enumerate(board, start=1)
        )

    raise ValueError(f"Unknown command: {args.command}")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    manager = create_economy(settings)
    print(run_command(manager, args))

    if not manager.shutdown():
        logger.error("Final snapshot save failed")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
