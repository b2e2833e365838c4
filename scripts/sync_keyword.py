#!/usr/bin/env python3
"""
Full sync of Nakka tournaments for one keyword.

Discovers completed tournaments from the last year, stores new ones, scrapes
their match lists and imports player results for every match that is not
completed yet. Safe to re-run: finished tournaments and matches are skipped.

Usage:
    python scripts/sync_keyword.py agawa
    python scripts/sync_keyword.py agawa --headed --json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dartsync.config import settings
from dartsync.db import get_session
from dartsync.services import SyncOrchestrator

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def print_summary(keyword: str, summary: dict) -> None:
    print("=" * 70)
    print(f"Sync summary for '{keyword}'")
    print("=" * 70)
    print(
        f"  Tournaments: {summary['total_processed']} processed, "
        f"{summary['inserted']} inserted, {summary['skipped']} skipped"
    )
    for entry in summary["tournaments"]:
        ident = entry["nakka_identifier"]
        matches = summary["match_stats"].get(ident)
        results = summary["result_stats"].get(ident)
        line = f"  {ident} [{entry['action']}] {entry['tournament_name']}"
        if matches:
            line += f" | matches +{matches['inserted']} ({matches['failed']} failed)"
        if results:
            line += (
                f" | results {results['completed']}/{results['processed']} completed, "
                f"{results['failed']} failed, {results['exhausted']} exhausted"
            )
        print(line)


async def main():
    parser = argparse.ArgumentParser(
        description="Import Nakka tournaments, matches and player results for a keyword",
    )
    parser.add_argument("keyword", help="Tournament search keyword (1-100 characters)")
    parser.add_argument(
        "--headed", action="store_true",
        help="Show the browser window instead of running headless",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Print the raw summary as JSON",
    )
    args = parser.parse_args()

    headless = False if args.headed else None
    with get_session() as session:
        orchestrator = SyncOrchestrator(session, headless=headless)
        summary = await orchestrator.full_sync(args.keyword)

    if args.json:
        print(json.dumps(summary, indent=2, default=str))
    else:
        print_summary(args.keyword, summary)


if __name__ == "__main__":
    asyncio.run(main())
