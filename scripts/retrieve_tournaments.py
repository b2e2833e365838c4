#!/usr/bin/env python3
"""
Scrape every tournament for a keyword and flag one player's matches.

Read-only: nothing is written to the database and there is no match cap.
Every fixture of every tournament is listed; those where either side's name
contains the nickname are marked with "*".

Usage:
    python scripts/retrieve_tournaments.py agawa Mirek
    python scripts/retrieve_tournaments.py agawa Mirek --checked-only --json
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
        description="List keyword tournaments with a player's matches flagged (no database writes)",
    )
    parser.add_argument("keyword", help="Tournament search keyword (1-100 characters)")
    parser.add_argument("nickname", help="Player nickname (1-100 characters)")
    parser.add_argument(
        "--checked-only", action="store_true",
        help="Only print matches where the nickname was found",
    )
    parser.add_argument("--json", action="store_true", help="Print tournaments as JSON")
    args = parser.parse_args()

    with get_session() as session:
        orchestrator = SyncOrchestrator(session)
        result = await orchestrator.retrieve_tournaments(args.keyword, args.nickname)

    tournaments = result["tournaments"]
    if args.json:
        payload = [t.to_dict() for t in tournaments]
        if args.checked_only:
            for t in payload:
                t["tournament_matches"] = [m for m in t["tournament_matches"] if m["is_checked"]]
        print(json.dumps({"tournaments": payload}, indent=2))
        return

    for t in tournaments:
        print(
            f"{t.tournament_date:%Y-%m-%d} {t.tournament_name} ({t.nakka_identifier}): "
            f"{t.checked_count}/{len(t.tournament_matches)} checked"
        )
        for m in t.tournament_matches:
            if args.checked_only and not m.is_checked:
                continue
            mark = "*" if m.is_checked else " "
            print(f"  {mark} [{m.match_type}] {m.player_name} vs {m.opponent_name}")


if __name__ == "__main__":
    asyncio.run(main())
