#!/usr/bin/env python3
"""
Import player results for one stored match right now.

Usage:
    python scripts/fetch_match_results.py 1234 Mirek
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
    parser = argparse.ArgumentParser(description="Scrape player results for a single match")
    parser.add_argument("match_id", type=int, help="tournament_match_id of a stored match")
    parser.add_argument("nickname", help="Nickname to orient the result toward")
    args = parser.parse_args()

    with get_session() as session:
        orchestrator = SyncOrchestrator(session)
        row = await orchestrator.fetch_match_results(args.match_id, args.nickname)

    print(json.dumps(row.to_dict() if row else None, indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
