"""
Import store: idempotent persistence for the Nakka pipeline.

Write rules:
- Tournaments are insert-if-absent. A later sighting never changes identity
  fields (name, date, link).
- Matches are insert-or-ignore keyed on (tournament_id, nakka_match_identifier).
  A duplicate key is a skip, not a failure.
- Player results are insert-or-update keyed on (match, player identifier),
  because a later pass may correct a partial earlier one.
- Every status write is committed immediately so an interrupted run leaves
  an inspectable, resumable state.

Tournament status is recomputed from its matches after every match status
write (see import_statuses.aggregate_tournament_status).

Usage:
    with get_session() as session:
        store = ImportStore(session)
        summary = store.import_tournaments(discovered)
"""

import logging
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dartsync.db.models import (
    PlayerResult,
    SyncKeyword,
    Tournament,
    TournamentMatch,
    utc_now,
)
from dartsync.import_statuses import (
    COMPLETED,
    FAILED,
    IN_PROGRESS,
    MATCHES_SAVED,
    aggregate_tournament_status,
)
from dartsync.scrape.discovery import DiscoveredTournament
from dartsync.scrape.matches import ScrapedMatch
from dartsync.scrape.results import ScrapedPlayerResult
from dartsync.services.nickname import (
    Nicknames,
    PlayerMatchRow,
    fold_nicknames,
    name_matches,
    orient_match,
    player_identifier_for,
)

logger = logging.getLogger(__name__)

RESULT_UPDATE_COLUMNS: tuple[str, ...] = (
    "average_score",
    "first_nine_avg",
    "checkout_percentage",
    "score_60_count",
    "score_100_count",
    "score_140_count",
    "score_180_count",
    "high_finish",
    "best_leg",
    "worst_leg",
    "player_score",
    "opponent_score",
    "imported_at",
)


class ImportStore:
    """
    Keyed reads and writes for tournaments, matches and player results.

    Args:
        db: SQLAlchemy session. The store commits after each unit of work.
    """

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Helpers
    # =========================================================================

    def _insert(self, model):
        """Dialect-specific INSERT supporting ON CONFLICT clauses."""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise NotImplementedError(f"Upserts are not supported on {dialect}")

    def _count_matches(self, tournament_id: int) -> int:
        return self.db.scalar(
            select(func.count())
            .select_from(TournamentMatch)
            .where(TournamentMatch.tournament_id == tournament_id)
        ) or 0

    def _count_started_matches(self, tournament_id: int) -> int:
        """Matches that already carry a result status of any kind."""
        return self.db.scalar(
            select(func.count())
            .select_from(TournamentMatch)
            .where(
                TournamentMatch.tournament_id == tournament_id,
                TournamentMatch.match_result_status.is_not(None),
            )
        ) or 0

    # =========================================================================
    # Tournaments
    # =========================================================================

    def get_tournament(self, nakka_identifier: str) -> Optional[Tournament]:
        return self.db.scalar(
            select(Tournament).where(Tournament.nakka_identifier == nakka_identifier)
        )

    def get_tournament_status(self, nakka_identifier: str) -> Optional[str]:
        tournament = self.get_tournament(nakka_identifier)
        return tournament.match_import_status if tournament else None

    def _insert_tournament(self, discovered: DiscoveredTournament) -> bool:
        """Insert if absent. Returns True when a row was created."""
        stmt = (
            self._insert(Tournament)
            .values(
                nakka_identifier=discovered.nakka_identifier,
                tournament_name=discovered.tournament_name,
                tournament_date=discovered.tournament_date,
                href=discovered.href,
            )
            .on_conflict_do_nothing(index_elements=["nakka_identifier"])
        )
        return self.db.execute(stmt).rowcount == 1

    def save_tournament(self, discovered: DiscoveredTournament) -> Tournament:
        """Ensure the tournament exists and return the stored row."""
        if self._insert_tournament(discovered):
            logger.info("Saved tournament %s", discovered.nakka_identifier)
        self.db.commit()
        return self.get_tournament(discovered.nakka_identifier)

    def import_tournaments(self, tournaments: Iterable[DiscoveredTournament]) -> dict:
        """
        Insert discovered tournaments, skipping ones already stored.

        Returns:
            {inserted, updated, skipped, total_processed, tournaments: [
                {nakka_identifier, tournament_name, tournament_date, action}]}
        """
        summary = {"inserted": 0, "updated": 0, "skipped": 0, "total_processed": 0, "tournaments": []}

        for discovered in tournaments:
            action = "inserted" if self._insert_tournament(discovered) else "skipped"
            summary[action] += 1
            summary["total_processed"] += 1
            summary["tournaments"].append(
                {
                    "nakka_identifier": discovered.nakka_identifier,
                    "tournament_name": discovered.tournament_name,
                    "tournament_date": discovered.tournament_date.isoformat(),
                    "action": action,
                }
            )
        self.db.commit()

        logger.info(
            "Tournaments imported: %d inserted, %d skipped",
            summary["inserted"], summary["skipped"],
        )
        return summary

    def set_tournament_status(
        self,
        tournament: Tournament,
        status: Optional[str],
        error: Optional[str] = None,
    ) -> None:
        tournament.match_import_status = status
        tournament.match_import_error = error
        tournament.last_updated = utc_now()
        self.db.commit()
        logger.info("Tournament %s -> %s", tournament.nakka_identifier, status)

    def refresh_tournament_status(self, tournament: Tournament) -> Optional[str]:
        """Recompute the tournament's status from its matches and store it."""
        statuses = self.db.scalars(
            select(TournamentMatch.match_result_status)
            .where(TournamentMatch.tournament_id == tournament.tournament_id)
        ).all()
        if not statuses:
            return tournament.match_import_status
        status, error = aggregate_tournament_status(statuses, tournament.match_import_status)
        if (status, error) != (tournament.match_import_status, tournament.match_import_error):
            self.set_tournament_status(tournament, status, error)
        return status

    # =========================================================================
    # Matches
    # =========================================================================

    @staticmethod
    def _match_row(tournament: Tournament, match: ScrapedMatch) -> dict:
        return {
            "tournament_id": tournament.tournament_id,
            "nakka_match_identifier": match.nakka_match_identifier,
            "match_type": match.match_type,
            "first_player_name": match.first_player_name,
            "first_player_code": match.first_player_code,
            "second_player_name": match.second_player_name,
            "second_player_code": match.second_player_code,
            "href": match.href,
            "match_date": tournament.tournament_date,
        }

    def _match_insert(self, rows: list[dict]):
        return (
            self._insert(TournamentMatch)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["tournament_id", "nakka_match_identifier"])
        )

    def import_matches(self, tournament: Tournament, matches: Sequence[ScrapedMatch]) -> dict:
        """
        Insert matches one at a time so a bad row fails alone.

        Returns:
            {total_processed, inserted, skipped, failed, errors?}
        """
        summary = {"total_processed": 0, "inserted": 0, "skipped": 0, "failed": 0}
        errors: list[str] = []

        for match in matches:
            summary["total_processed"] += 1
            try:
                result = self.db.execute(self._match_insert([self._match_row(tournament, match)]))
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                summary["failed"] += 1
                errors.append(f"{match.nakka_match_identifier}: {e}")
                logger.error("Failed to insert match %s: %s", match.nakka_match_identifier, e)
                continue
            if result.rowcount == 1:
                summary["inserted"] += 1
            else:
                summary["skipped"] += 1

        if errors:
            summary["errors"] = errors
        logger.info(
            "Matches imported for %s: %d inserted, %d skipped, %d failed",
            tournament.nakka_identifier, summary["inserted"], summary["skipped"], summary["failed"],
        )
        return summary

    def upsert_tournament_matches(self, tournament: Tournament, matches: Sequence[ScrapedMatch]) -> dict:
        """
        Batch insert-or-ignore, then decide whether every scraped match is stored.

        Tournament status becomes matches_saved when the stored count equals
        the scraped count, in_progress when only some are present, and is
        left alone when nothing was scraped. Once any match has a result
        status the tournament status is recomputed from the matches instead,
        so a failed or partly imported tournament keeps its status and error.

        Returns:
            {inserted, skipped, total_stored, all_matches_saved}
        """
        before = self._count_matches(tournament.tournament_id)
        if matches:
            self.db.execute(self._match_insert([self._match_row(tournament, m) for m in matches]))
            self.db.commit()
        total_stored = self._count_matches(tournament.tournament_id)

        inserted = total_stored - before
        all_saved = bool(matches) and total_stored == len(matches)
        summary = {
            "inserted": inserted,
            "skipped": len(matches) - inserted,
            "total_stored": total_stored,
            "all_matches_saved": all_saved,
        }

        if self._count_started_matches(tournament.tournament_id):
            self.refresh_tournament_status(tournament)
        elif all_saved:
            self.set_tournament_status(tournament, MATCHES_SAVED)
        elif summary["inserted"] > 0 or summary["skipped"] > 0:
            self.set_tournament_status(tournament, IN_PROGRESS)
        return summary

    def get_matches(self, tournament: Tournament) -> list[TournamentMatch]:
        return list(
            self.db.scalars(
                select(TournamentMatch)
                .where(TournamentMatch.tournament_id == tournament.tournament_id)
                .order_by(TournamentMatch.tournament_match_id)
            )
        )

    def get_match(self, tournament_match_id: int) -> Optional[TournamentMatch]:
        return self.db.get(TournamentMatch, tournament_match_id)

    def get_match_ids(self, tournament: Tournament) -> dict[str, int]:
        """nakka_match_identifier -> tournament_match_id for one tournament."""
        rows = self.db.execute(
            select(TournamentMatch.nakka_match_identifier, TournamentMatch.tournament_match_id)
            .where(TournamentMatch.tournament_id == tournament.tournament_id)
        )
        return {identifier: match_id for identifier, match_id in rows}

    def set_match_status(
        self,
        match: TournamentMatch,
        status: Optional[str],
        error: Optional[str] = None,
    ) -> None:
        """Write a match status, count the attempt, and refresh the tournament."""
        match.match_result_status = status
        match.match_result_error = error
        match.attempts_count = (match.attempts_count or 0) + 1
        self.db.commit()
        logger.info("Match %s -> %s", match.nakka_match_identifier, status)
        self.refresh_tournament_status(match.tournament)

    def mark_match_in_progress(self, match: TournamentMatch) -> None:
        self.set_match_status(match, IN_PROGRESS)

    def mark_match_completed(self, match: TournamentMatch) -> None:
        self.set_match_status(match, COMPLETED)

    def mark_match_failed(self, match: TournamentMatch, error: str) -> None:
        self.set_match_status(match, FAILED, error)

    # =========================================================================
    # Player results
    # =========================================================================

    def upsert_player_results(
        self,
        match: TournamentMatch,
        results: Sequence[ScrapedPlayerResult],
    ) -> dict:
        """
        Insert or refresh both players' statistics for a match.

        Returns:
            {total_processed, inserted, updated, failed, errors?}
        """
        summary = {"total_processed": 0, "inserted": 0, "updated": 0, "failed": 0}
        errors: list[str] = []

        existing = set(
            self.db.scalars(
                select(PlayerResult.nakka_match_player_identifier)
                .where(PlayerResult.tournament_match_id == match.tournament_match_id)
            )
        )
        now = utc_now()

        for result in results:
            summary["total_processed"] += 1
            row = result.to_row()
            row["tournament_match_id"] = match.tournament_match_id
            row["imported_at"] = now

            stmt = self._insert(PlayerResult).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=["tournament_match_id", "nakka_match_player_identifier"],
                set_={column: stmt.excluded[column] for column in RESULT_UPDATE_COLUMNS},
            )
            try:
                self.db.execute(stmt)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                summary["failed"] += 1
                errors.append(f"{result.nakka_match_player_identifier}: {e}")
                logger.error(
                    "Failed to upsert result %s: %s", result.nakka_match_player_identifier, e
                )
                continue

            if result.nakka_match_player_identifier in existing:
                summary["updated"] += 1
            else:
                summary["inserted"] += 1

        if errors:
            summary["errors"] = errors
        return summary

    # =========================================================================
    # Keywords
    # =========================================================================

    def record_keyword_sync(self, keyword: str) -> None:
        """Remember that `keyword` was fully synced just now."""
        now = utc_now()
        stmt = self._insert(SyncKeyword).values(
            keyword=keyword, last_sync_date=now, created_at=now, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["keyword"],
            set_={"last_sync_date": now, "updated_at": now},
        )
        self.db.execute(stmt)
        self.db.commit()

    # =========================================================================
    # Nickname queries
    # =========================================================================

    def _results_by_match(self, match_ids: list[int]) -> dict[tuple[int, str], PlayerResult]:
        if not match_ids:
            return {}
        results = self.db.scalars(
            select(PlayerResult).where(PlayerResult.tournament_match_id.in_(match_ids))
        )
        return {(r.tournament_match_id, r.nakka_match_player_identifier): r for r in results}

    def _build_rows(
        self,
        pairs: list[tuple[TournamentMatch, Tournament]],
        nicknames: Nicknames,
    ) -> list[PlayerMatchRow]:
        results = self._results_by_match([m.tournament_match_id for m, _ in pairs])
        rows = []
        for match, tournament in pairs:
            oriented = orient_match(
                match.first_player_name,
                match.first_player_code,
                match.second_player_name,
                match.second_player_code,
                nicknames,
            )
            row = PlayerMatchRow(
                tournament_id=tournament.tournament_id,
                nakka_tournament_identifier=tournament.nakka_identifier,
                tournament_name=tournament.tournament_name,
                tournament_date=tournament.tournament_date,
                tournament_href=tournament.href,
                tournament_match_id=match.tournament_match_id,
                nakka_match_identifier=match.nakka_match_identifier,
                match_type=match.match_type,
                match_href=match.href,
                player_name=oriented.player_name,
                player_code=oriented.player_code,
                opponent_name=oriented.opponent_name,
                opponent_code=oriented.opponent_code,
                imported_at=match.imported_at,
                is_checked=oriented.is_checked,
            )
            key = match.tournament_match_id
            row.apply_results(
                results.get((key, player_identifier_for(match.nakka_match_identifier, oriented.player_code))),
                results.get((key, player_identifier_for(match.nakka_match_identifier, oriented.opponent_code))),
            )
            rows.append(row)
        return rows

    def find_player_matches(
        self,
        nicknames: Nicknames,
        limit: int = 30,
        tournament_id: Optional[int] = None,
    ) -> list[PlayerMatchRow]:
        """
        Matches where either side's name contains one of `nicknames`.

        Newest tournament first, then newest match. Scoped to one tournament
        when `tournament_id` is given, otherwise global.
        """
        folded = fold_nicknames(nicknames)
        if not folded:
            raise ValueError("At least one non-blank nickname is required")
        if limit <= 0:
            return []

        query = (
            select(TournamentMatch, Tournament)
            .join(Tournament, TournamentMatch.tournament_id == Tournament.tournament_id)
            .order_by(Tournament.tournament_date.desc(), TournamentMatch.tournament_match_id.desc())
        )
        if tournament_id is not None:
            query = query.where(TournamentMatch.tournament_id == tournament_id)

        pairs: list[tuple[TournamentMatch, Tournament]] = []
        for match, tournament in self.db.execute(query):
            if name_matches(match.first_player_name, folded) or name_matches(match.second_player_name, folded):
                pairs.append((match, tournament))
                if len(pairs) >= limit:
                    break

        return self._build_rows(pairs, nicknames)

    def get_player_match(self, tournament_match_id: int, nicknames: Nicknames) -> Optional[PlayerMatchRow]:
        """One stored match oriented toward `nicknames`, whether or not it matches."""
        pair = self.db.execute(
            select(TournamentMatch, Tournament)
            .join(Tournament, TournamentMatch.tournament_id == Tournament.tournament_id)
            .where(TournamentMatch.tournament_match_id == tournament_match_id)
        ).first()
        if pair is None:
            return None
        return self._build_rows([tuple(pair)], nicknames)[0]
