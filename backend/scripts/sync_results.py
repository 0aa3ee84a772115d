#!/usr/bin/env python
"""
Sync tournament league and cup results for a gameweek.

Usage:
    python -m scripts.sync_results league --tournament-id 12 --event-id 20
    python -m scripts.sync_results league-all --event-id 20
    python -m scripts.sync_results cup --event-id 20 --concurrency 3

Exits non-zero when the sync raises (unknown tournament, FPL API error, failed
upsert) or, for league-all and cup, when any tournament could not be synced.
"""

import argparse
import asyncio
import logging
import os
import sys

import httpx
from dotenv import load_dotenv

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment before settings are read
load_dotenv(".env.local")
load_dotenv(".env")

from tournament_sync.config import get_settings
from tournament_sync.db import close_pool, init_pool
from tournament_sync.errors import TournamentSyncError
from tournament_sync.services.cup_results import CupResultsService
from tournament_sync.services.fpl_client import FplApiClient
from tournament_sync.services.league_event_results import LeagueEventResultsService

logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper()),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync tournament results")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Upstream fetches in flight (default from SYNC_CONCURRENCY)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    league = commands.add_parser("league", help="League results for one tournament")
    league.add_argument("--tournament-id", type=int, required=True)
    league.add_argument("--event-id", type=int, required=True)

    league_all = commands.add_parser("league-all", help="League results for active tournaments")
    league_all.add_argument("--event-id", type=int, required=True)

    cup = commands.add_parser("cup", help="Cup results for all active tournament entries")
    cup.add_argument("--event-id", type=int, required=True)

    return parser


async def run(args: argparse.Namespace, fpl_client: FplApiClient) -> int:
    """Dispatch one command. Returns the process exit code."""
    if args.command == "league":
        summary = await LeagueEventResultsService(fpl_client).sync(
            args.tournament_id, args.event_id, args.concurrency
        )
        print(summary)
        return 0

    if args.command == "league-all":
        report = await LeagueEventResultsService(fpl_client).sync_active(
            args.event_id, args.concurrency
        )
        for summary in report.summaries:
            print(summary)
        for tournament_id, error in report.failed.items():
            print(f"tournament {tournament_id} FAILED: {error}")
        return 1 if report.failed else 0

    summary = await CupResultsService(fpl_client).sync(args.event_id, args.concurrency)
    print(summary)
    return 1 if summary.failed_tournaments else 0


async def main() -> None:
    args = build_parser().parse_args()

    try:
        await init_pool()
    except (OSError, ValueError) as e:
        logger.error(f"Failed to connect to database: {e}")
        logger.error("Make sure DATABASE_URL is set correctly")
        sys.exit(1)

    try:
        async with FplApiClient() as fpl_client:
            exit_code = await run(args, fpl_client)
    except (TournamentSyncError, httpx.HTTPError) as e:
        logger.error(f"Sync failed: {e}")
        exit_code = 1
    finally:
        await close_pool()

    sys.exit(exit_code)


if __name__ == "__main__":
    asyncio.run(main())
