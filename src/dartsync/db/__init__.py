"""
Database module for dartsync.

Provides SQLAlchemy ORM models and session management.

Usage:
    from dartsync.db import get_session, Tournament

    with get_session() as session:
        tournaments = session.query(Tournament).all()
"""

from dartsync.db.models import (
    Base,
    PlayerResult,
    SyncKeyword,
    Tournament,
    TournamentMatch,
)
from dartsync.db.session import SessionLocal, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Tournament",
    "TournamentMatch",
    "PlayerResult",
    "SyncKeyword",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
