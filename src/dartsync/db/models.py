"""
SQLAlchemy ORM models for dartsync.

Mirrors the Nakka 01 site in three levels: tournaments discovered by keyword
search, the matches listed on each tournament page, and the per-player
statistics read from each match page. Every level is keyed by identifiers
derived from the site so re-imports never duplicate rows.

Key design decisions:
- Tournament identity fields are written once and never updated
- Match identifiers are canonical (sorted player codes), unique per tournament
- Player results are unique per (match, player identifier) and may be refreshed
- Status columns record progress so an interrupted import can resume

Tables:
- tournaments: Completed tournaments found via keyword search
- tournament_matches: Group and knockout matches per tournament
- tournament_match_player_results: Two statistic rows per completed match
- sync_keywords: Keywords that have been fully synced
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class Tournament(Base):
    """
    A completed tournament discovered through keyword search.

    match_import_status tracks the match/result import for the whole
    tournament. Once matches exist it is derived from their statuses
    (see import_statuses.aggregate_tournament_status).
    """
    __tablename__ = "tournaments"

    tournament_id: Mapped[int] = mapped_column(primary_key=True)

    # Site identifier (tdid), e.g. "t_Nd6M_9511"
    nakka_identifier: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    tournament_name: Mapped[str] = mapped_column(Text, nullable=False)
    tournament_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    href: Mapped[str] = mapped_column(Text, nullable=False)

    imported_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    # NULL, 'matches_saved', 'in_progress', 'completed', 'failed'
    match_import_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    match_import_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    matches: Mapped[list["TournamentMatch"]] = relationship(
        back_populates="tournament",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            "match_import_status IS NULL OR match_import_status IN "
            "('matches_saved', 'in_progress', 'completed', 'failed')",
            name="ck_tournament_import_status",
        ),
        Index("idx_tournaments_date", "tournament_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Tournament(id={self.tournament_id}, '{self.nakka_identifier}', "
            f"status={self.match_import_status})>"
        )


class TournamentMatch(Base):
    """
    One fixture from a tournament page.

    nakka_match_identifier is canonical:
    {tournament}_{rr|t}_{round}_{code_lo}_{code_hi}, so the two renderings of
    a group fixture collapse into one row. first/second player pairs are
    stored in code order.
    """
    __tablename__ = "tournament_matches"

    tournament_match_id: Mapped[int] = mapped_column(primary_key=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.tournament_id", ondelete="CASCADE"),
        nullable=False,
    )

    nakka_match_identifier: Mapped[str] = mapped_column(String(200), nullable=False)
    # 'rr' for group stage, 't_<subtitle>' for knockout
    match_type: Mapped[str] = mapped_column(String(50), nullable=False)

    first_player_name: Mapped[str] = mapped_column(Text, nullable=False)
    first_player_code: Mapped[str] = mapped_column(String(50), nullable=False)
    second_player_name: Mapped[str] = mapped_column(Text, nullable=False)
    second_player_code: Mapped[str] = mapped_column(String(50), nullable=False)

    href: Mapped[str] = mapped_column(Text, nullable=False)
    match_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    # NULL, 'in_progress', 'completed', 'failed'
    match_result_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    match_result_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Incremented on every status write
    attempts_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    tournament: Mapped[Tournament] = relationship(back_populates="matches")
    player_results: Mapped[list["PlayerResult"]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "tournament_id", "nakka_match_identifier", name="uq_tournament_match_identifier"
        ),
        CheckConstraint(
            "match_result_status IS NULL OR match_result_status IN "
            "('in_progress', 'completed', 'failed')",
            name="ck_match_result_status",
        ),
        Index("idx_tournament_matches_tournament", "tournament_id"),
        Index("idx_tournament_matches_result_status", "match_result_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<TournamentMatch(id={self.tournament_match_id}, '{self.nakka_match_identifier}', "
            f"{self.first_player_name} vs {self.second_player_name})>"
        )


class PlayerResult(Base):
    """
    Statistics for one player in one match.

    nakka_match_player_identifier is {tournament}_{rr|t}_{round}_{player_code}.
    Averages may be NULL when the page did not show them; counts default to 0.
    """
    __tablename__ = "tournament_match_player_results"

    id: Mapped[int] = mapped_column(primary_key=True)
    tournament_match_id: Mapped[int] = mapped_column(
        ForeignKey("tournament_matches.tournament_match_id", ondelete="CASCADE"),
        nullable=False,
    )
    nakka_match_player_identifier: Mapped[str] = mapped_column(String(200), nullable=False)

    average_score: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    first_nine_avg: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    checkout_percentage: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)

    score_60_count: Mapped[int] = mapped_column(Integer, default=0)
    score_100_count: Mapped[int] = mapped_column(Integer, default=0)
    score_140_count: Mapped[int] = mapped_column(Integer, default=0)
    score_180_count: Mapped[int] = mapped_column(Integer, default=0)
    high_finish: Mapped[int] = mapped_column(Integer, default=0)
    best_leg: Mapped[int] = mapped_column(Integer, default=0)
    worst_leg: Mapped[int] = mapped_column(Integer, default=0)
    player_score: Mapped[int] = mapped_column(Integer, default=0)  # legs won
    opponent_score: Mapped[int] = mapped_column(Integer, default=0)  # legs lost

    imported_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)

    match: Mapped[TournamentMatch] = relationship(back_populates="player_results")

    __table_args__ = (
        UniqueConstraint(
            "tournament_match_id",
            "nakka_match_player_identifier",
            name="uq_player_result",
        ),
        CheckConstraint(
            "score_60_count >= 0 AND score_100_count >= 0 AND score_140_count >= 0 "
            "AND score_180_count >= 0 AND high_finish >= 0 AND best_leg >= 0 "
            "AND worst_leg >= 0 AND player_score >= 0 AND opponent_score >= 0",
            name="ck_player_result_non_negative",
        ),
        Index("idx_player_results_identifier", "nakka_match_player_identifier"),
    )

    def __repr__(self) -> str:
        return (
            f"<PlayerResult('{self.nakka_match_player_identifier}', "
            f"avg={self.average_score}, legs={self.player_score}-{self.opponent_score})>"
        )


class SyncKeyword(Base):
    """Keywords that have gone through a full sync, with the last sync time."""
    __tablename__ = "sync_keywords"

    id: Mapped[int] = mapped_column(primary_key=True)
    keyword: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    last_sync_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<SyncKeyword('{self.keyword}', last_sync={self.last_sync_date})>"
