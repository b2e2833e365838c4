"""Persistence and orchestration services for the Nakka pipeline."""

from dartsync.services.import_store import ImportStore
from dartsync.services.nickname import PlayerMatchRow, RetrievedMatch, RetrievedTournament, orient_match
from dartsync.services.sync import SyncOrchestrator, validate_keyword, validate_nickname

__all__ = [
    "ImportStore",
    "PlayerMatchRow",
    "RetrievedMatch",
    "RetrievedTournament",
    "orient_match",
    "SyncOrchestrator",
    "validate_keyword",
    "validate_nickname",
]
