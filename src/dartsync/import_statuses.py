"""Shared import-status definitions and helpers.

Single source of truth for the status values written to tournaments and
matches, and for deriving a tournament's status from its matches.
"""

from __future__ import annotations

from typing import Iterable, Optional

IN_PROGRESS = "in_progress"
COMPLETED = "completed"
FAILED = "failed"
# Tournament only: every scraped match row is stored, no results fetched yet.
MATCHES_SAVED = "matches_saved"

MATCH_RESULT_STATUSES: tuple[str, ...] = (IN_PROGRESS, COMPLETED, FAILED)
TOURNAMENT_IMPORT_STATUSES: tuple[str, ...] = (MATCHES_SAVED, IN_PROGRESS, COMPLETED, FAILED)

# Tournament statuses for which stored matches can be served without scraping.
DB_READY_STATUSES: tuple[str, ...] = (MATCHES_SAVED, COMPLETED)


def failed_matches_message(failed: int, total: int) -> str:
    return f"{failed} of {total} matches failed to import player results"


def aggregate_tournament_status(
    match_statuses: Iterable[Optional[str]],
    current_status: Optional[str] = None,
) -> tuple[Optional[str], Optional[str]]:
    """Derive a tournament's import status from its matches' result statuses.

    Returns ``(status, error)``:

    - no matches: ``(None, None)``
    - tournament is ``matches_saved`` and no match has started: unchanged
    - any match ``failed``: ``failed`` with a count message
    - every match ``completed``: ``completed``
    - otherwise ``in_progress``
    """
    statuses = list(match_statuses)
    total = len(statuses)
    if total == 0:
        return None, None

    completed = sum(1 for s in statuses if s == COMPLETED)
    failed = sum(1 for s in statuses if s == FAILED)
    in_progress = sum(1 for s in statuses if s == IN_PROGRESS)

    if current_status == MATCHES_SAVED and completed == failed == in_progress == 0:
        return MATCHES_SAVED, None
    if failed > 0:
        return FAILED, failed_matches_message(failed, total)
    if completed == total:
        return COMPLETED, None
    return IN_PROGRESS, None
