#!/usr/bin/env python3
"""
Bounded nickname lookup, as served to guests.

Answers from the database for tournaments whose matches are already stored,
scrapes the rest live, and stops once the cap is reached.

Usage:
    python scripts/lookup_nickname.py agawa Mirek
    python scripts/lookup_nickname.py agawa Mirek --cap 10 --json
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


async def main():
    parser = argparse.ArgumentParser(
        description="Find a player's matches among keyword tournaments",
    )
    parser.add_argument("keyword", help="Tournament search keyword (3-100 characters)")
    parser.add_argument("nickname", help="Player nickname (3-100 characters)")
    parser.add_argument(
        "--cap", type=int, default=settings.guest_match_cap,
        help=f"Maximum matches to return (default: {settings.guest_match_cap})",
    )
    parser.add_argument("--json", action="store_true", help="Print rows as JSON")
    args = parser.parse_args()

    with get_session() as session:
        orchestrator = SyncOrchestrator(session)
        result = await orchestrator.lookup_nickname(args.keyword, args.nickname, cap=args.cap)

    if args.json:
        payload = {
            "matches": [row.to_dict() for row in result["matches"]],
            "total_count": result["total_count"],
        }
        print(json.dumps(payload, indent=2, default=str))
        return

    print(f"{result['total_count']} matches for '{args.nickname}':")
    for row in result["matches"]:
        legs = ""
        if row.player_score is not None:
            legs = f" {row.player_score}-{row.opponent_score}"
        print(
            f"  {row.tournament_date:%Y-%m-%d} {row.tournament_name} [{row.match_type}] "
            f"{row.player_name} vs {row.opponent_name}{legs}"
        )


if __name__ == "__main__":
    asyncio.run(main())
