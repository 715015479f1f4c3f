#!/usr/bin/env python3
"""
Tabroom CLI

Usage:
    python -m tabroom.cli <command> [options]

Commands:
    db          Database operations (init)
    round       Round operations (draw, allocate, publish)
    tournament  Tournament operations (standings)

Environment:
    DATABASE_URL    Database connection string
    LOG_LEVEL       DEBUG|INFO|WARNING|ERROR
"""
import argparse
import sys
from typing import Optional

from tabroom import __version__
from tabroom.cli.db_commands import DbCommand
from tabroom.cli.round_commands import RoundCommand, TournamentCommand
from tabroom.config import setup_logging


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="tabroom",
        description="Debate Tournament Tab CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s db init
  %(prog)s round draw --tournament 1 --round 2
  %(prog)s round allocate --id 7
  %(prog)s round publish --id 7
  %(prog)s tournament standings --id 1
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--database-url",
        default=None,
        help="Override DATABASE_URL"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Database commands
    db_parser = subparsers.add_parser("db", help="Database operations")
    db_subparsers = db_parser.add_subparsers(dest="db_action")

    # db init
    db_subparsers.add_parser("init", help="Create all tables")

    # Round commands
    round_parser = subparsers.add_parser("round", help="Round operations")
    round_subparsers = round_parser.add_subparsers(dest="round_action")

    # round draw
    draw_parser = round_subparsers.add_parser("draw", help="Generate the draw for a round")
    draw_parser.add_argument("--tournament", "-t", type=int, required=True, help="Tournament ID")
    draw_parser.add_argument("--round", "-r", type=int, required=True, help="Round number (1-indexed)")
    draw_parser.add_argument("--seed", type=int, default=None, help="Seed for the shuffle and side coin flips")

    # round allocate
    allocate_parser = round_subparsers.add_parser("allocate", help="Allocate judges to a round")
    allocate_parser.add_argument("--id", "-i", type=int, required=True, help="Round ID")
    allocate_parser.add_argument("--mismatch-weight", type=float, default=None, help="Strength mismatch weight")
    allocate_parser.add_argument("--conflict-penalty", type=float, default=None, help="Conflict penalty")

    # round publish
    publish_parser = round_subparsers.add_parser("publish", help="Publish a round")
    publish_parser.add_argument("--id", "-i", type=int, required=True, help="Round ID")

    # Tournament commands
    tournament_parser = subparsers.add_parser("tournament", help="Tournament operations")
    tournament_subparsers = tournament_parser.add_subparsers(dest="tournament_action")

    # tournament standings
    standings_parser = tournament_subparsers.add_parser("standings", help="Show standings")
    standings_parser.add_argument("--id", "-i", type=int, required=True, help="Tournament ID")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    setup_logging(parsed.log_level)

    command_map = {
        "db": DbCommand,
        "round": RoundCommand,
        "tournament": TournamentCommand,
    }

    if parsed.command in command_map:
        handler = command_map[parsed.command](database_url=parsed.database_url)
        return handler.execute(parsed)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
