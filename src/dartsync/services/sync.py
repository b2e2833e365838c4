"""
Sync orchestration: sequences discovery, match lists and player results.

Three flows:

1. full_sync(keyword)
   Discover tournaments, store new ones, then per tournament:
   - skip it when its import status is already completed
   - scrape and store its match list when no matches are stored yet
   - scrape player results for every match not yet completed, one match
     at a time, each bracketed by in_progress -> completed/failed
   One tournament or match failing never stops the run.

2. lookup_nickname(keyword, nickname, cap=30)
   Guest-facing and bounded. Tournaments whose matches are already fully
   stored are answered from the database; others are scraped live, stored,
   and filtered in-process. Stops as soon as `cap` rows are collected.

3. retrieve_tournaments(keyword, nickname)
   Unbounded and read-only. Every discovered tournament is scraped and
   returned with all of its fixtures oriented toward the nickname. Nothing
   is written to the database.

Tournaments and matches are processed sequentially; each page visit gets its
own browser, so running scrapes in parallel would multiply load on the site.

Usage:
    with get_session() as session:
        orchestrator = SyncOrchestrator(session)
        summary = await orchestrator.full_sync("agawa")
"""

import json
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dartsync.config import settings
from dartsync.db.models import Tournament, TournamentMatch, utc_now
from dartsync.exceptions import NakkaError
from dartsync.import_statuses import COMPLETED, DB_READY_STATUSES, FAILED, IN_PROGRESS
from dartsync.scrape.discovery import DiscoveredTournament, TournamentDiscovery
from dartsync.scrape.matches import MatchListScraper, ScrapedMatch
from dartsync.scrape.results import PlayerResultScraper
from dartsync.services.import_store import ImportStore
from dartsync.services.nickname import (
    OrientedPair,
    PlayerMatchRow,
    RetrievedMatch,
    RetrievedTournament,
    orient_match,
)

logger = logging.getLogger(__name__)

MAX_INPUT_LENGTH = 100
GUEST_MIN_LENGTH = 3


def _validate_text(value: Optional[str], field_name: str, min_length: int) -> str:
    cleaned = (value or "").strip()
    if not min_length <= len(cleaned) <= MAX_INPUT_LENGTH:
        raise ValueError(
            f"{field_name} must be between {min_length} and {MAX_INPUT_LENGTH} characters"
        )
    return cleaned


def validate_keyword(keyword: Optional[str], min_length: int = 1) -> str:
    return _validate_text(keyword, "keyword", min_length)


def validate_nickname(nickname: Optional[str], min_length: int = GUEST_MIN_LENGTH) -> str:
    return _validate_text(nickname, "nickname", min_length)


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


class SyncOrchestrator:
    """
    Runs the full sync and the bounded nickname lookup against one session.

    Scrapers can be injected; by default each is created with the configured
    headless setting.
    """

    def __init__(
        self,
        db: Session,
        discovery: Optional[TournamentDiscovery] = None,
        match_scraper: Optional[MatchListScraper] = None,
        result_scraper: Optional[PlayerResultScraper] = None,
        headless: Optional[bool] = None,
        max_match_attempts: Optional[int] = None,
    ):
        self.db = db
        self.store = ImportStore(db)
        self.discovery = discovery or TournamentDiscovery(headless=headless)
        self.match_scraper = match_scraper or MatchListScraper(headless=headless)
        self.result_scraper = result_scraper or PlayerResultScraper(headless=headless)
        self.max_match_attempts = max_match_attempts or settings.max_match_attempts

    def _recover(self, error: BaseException) -> None:
        """Reset the session after a database error so the next unit can proceed."""
        if isinstance(error, SQLAlchemyError):
            self.db.rollback()

    # =========================================================================
    # Full sync
    # =========================================================================

    async def full_sync(self, keyword: str) -> dict:
        """
        Discover, store and fully import every tournament for `keyword`.

        Returns:
            The tournament import summary ({inserted, updated, skipped,
            total_processed, tournaments}) plus:
            - match_stats: nakka_identifier -> match import summary
            - result_stats: nakka_identifier -> {processed, completed, failed, exhausted}
        """
        keyword = validate_keyword(keyword)
        logger.info("Full sync for keyword '%s'", keyword)

        discovered = await self.discovery.discover(keyword)
        summary = self.store.import_tournaments(discovered)

        match_stats: dict[str, dict] = {}
        result_stats: dict[str, dict] = {}
        logger.info("Processing matches for %d tournaments", len(summary["tournaments"]))

        for entry in summary["tournaments"]:
            nakka_identifier = entry["nakka_identifier"]
            try:
                await self._sync_tournament(nakka_identifier, match_stats, result_stats)
            except Exception as e:
                self._recover(e)
                logger.exception("Failed to import matches for %s", nakka_identifier)
                tournament = self.store.get_tournament(nakka_identifier)
                if tournament is not None:
                    self.store.set_tournament_status(tournament, FAILED, _error_text(e))

        self.store.record_keyword_sync(keyword)
        return {**summary, "match_stats": match_stats, "result_stats": result_stats}

    async def _sync_tournament(
        self,
        nakka_identifier: str,
        match_stats: dict[str, dict],
        result_stats: dict[str, dict],
    ) -> None:
        tournament = self.store.get_tournament(nakka_identifier)
        if tournament is None:
            logger.error("Tournament %s missing after import", nakka_identifier)
            return
        if tournament.match_import_status == COMPLETED:
            logger.info("Skipping %s: matches already imported", nakka_identifier)
            return

        matches = self.store.get_matches(tournament)
        if not matches:
            logger.info("No stored matches for %s, scraping", nakka_identifier)
            self.store.set_tournament_status(tournament, IN_PROGRESS)
            scraped = await self.match_scraper.scrape(tournament.href)
            import_summary = self.store.import_matches(tournament, scraped)
            match_stats[nakka_identifier] = import_summary

            if (
                import_summary["failed"] > 0
                or import_summary["total_processed"] == 0
                or import_summary["inserted"] + import_summary["skipped"] == 0
            ):
                error = (
                    json.dumps(import_summary["errors"])
                    if import_summary.get("errors")
                    else "Failed to scrape or import matches"
                )
                self.store.set_tournament_status(tournament, FAILED, error)
                logger.warning("Match import failed for %s: %s", nakka_identifier, error)
                return
            matches = self.store.get_matches(tournament)

        pending = [m for m in matches if m.match_result_status != COMPLETED]
        if not pending:
            logger.info("All %d matches already completed for %s", len(matches), nakka_identifier)
            match_stats[nakka_identifier] = {
                "total_processed": 0,
                "inserted": 0,
                "skipped": len(matches),
                "failed": 0,
            }
            return

        logger.info(
            "Importing player results for %d of %d matches in %s",
            len(pending), len(matches), nakka_identifier,
        )
        stats = {"processed": 0, "completed": 0, "failed": 0, "exhausted": 0}
        for match in pending:
            if match.attempts_count >= self.max_match_attempts:
                logger.warning(
                    "Skipping %s after %d attempts",
                    match.nakka_match_identifier, match.attempts_count,
                )
                stats["exhausted"] += 1
                continue
            stats["processed"] += 1
            if await self._import_match_results(match):
                stats["completed"] += 1
            else:
                stats["failed"] += 1
        result_stats[nakka_identifier] = stats

        if stats["failed"]:
            logger.warning(
                "%d matches failed during player results import for %s",
                stats["failed"], nakka_identifier,
            )

    async def _scrape_and_store_results(self, match: TournamentMatch) -> None:
        """Scrape and upsert both players' results; raise unless both are stored."""
        results = await self.result_scraper.scrape(match.href, match.nakka_match_identifier)
        summary = self.store.upsert_player_results(match, results)
        if summary["failed"] > 0 or summary["inserted"] + summary["updated"] < 2:
            if summary.get("errors"):
                raise NakkaError(json.dumps(summary["errors"]), url=match.href)
            raise NakkaError("Failed to import player results", url=match.href)

    async def _import_match_results(self, match: TournamentMatch) -> bool:
        """One match, bracketed by status writes. Returns True when completed."""
        self.store.mark_match_in_progress(match)
        try:
            await self._scrape_and_store_results(match)
        except Exception as e:
            self._recover(e)
            logger.error(
                "Failed to import player results for %s: %s", match.nakka_match_identifier, e
            )
            self.store.mark_match_failed(match, _error_text(e))
            return False
        self.store.mark_match_completed(match)
        return True

    # =========================================================================
    # On-demand single match
    # =========================================================================

    async def fetch_match_results(self, tournament_match_id: int, nickname: str) -> PlayerMatchRow:
        """
        Import one stored match's player results now and return it oriented
        toward `nickname`.

        Raises:
            LookupError: No stored match with that id
            Any scrape or import error, after the match is marked failed
        """
        match = self.store.get_match(tournament_match_id)
        if match is None:
            raise LookupError(f"Match {tournament_match_id} not found")

        self.store.mark_match_in_progress(match)
        try:
            await self._scrape_and_store_results(match)
        except Exception as e:
            self._recover(e)
            self.store.mark_match_failed(match, _error_text(e))
            raise
        self.store.mark_match_completed(match)
        return self.store.get_player_match(tournament_match_id, nickname)

    # =========================================================================
    # Read-only retrieval
    # =========================================================================

    @staticmethod
    def _retrieved_match(match: ScrapedMatch, nickname: str) -> RetrievedMatch:
        oriented = orient_match(
            match.first_player_name,
            match.first_player_code,
            match.second_player_name,
            match.second_player_code,
            nickname,
        )
        return RetrievedMatch(
            nakka_match_identifier=match.nakka_match_identifier,
            match_type=match.match_type,
            player_name=oriented.player_name,
            player_code=oriented.player_code,
            opponent_name=oriented.opponent_name,
            opponent_code=oriented.opponent_code,
            href=match.href,
            is_checked=oriented.is_checked,
        )

    async def retrieve_tournaments(self, keyword: str, nickname: str) -> dict:
        """
        Scrape every `keyword` tournament and flag the fixtures of `nickname`.

        Unlike lookup_nickname there is no cap and nothing is persisted. All
        fixtures are returned, with `is_checked` set where either side matches.
        A tournament whose match list cannot be scraped is left out.

        Returns:
            {"tournaments": [RetrievedTournament, ...]}
        """
        keyword = validate_keyword(keyword)
        nickname = validate_nickname(nickname, min_length=1)

        logger.info("Retrieving tournaments for '%s', nickname '%s'", keyword, nickname)
        discovered = await self.discovery.discover(keyword)
        logger.info("Found %d tournaments", len(discovered))

        tournaments: list[RetrievedTournament] = []
        for tournament in discovered:
            try:
                scraped = await self.match_scraper.scrape(tournament.href)
            except Exception as e:
                logger.error("Failed to process tournament %s: %s", tournament.nakka_identifier, e)
                continue

            retrieved = RetrievedTournament(
                nakka_identifier=tournament.nakka_identifier,
                tournament_name=tournament.tournament_name,
                tournament_date=tournament.tournament_date,
                href=tournament.href,
                tournament_matches=[self._retrieved_match(m, nickname) for m in scraped],
            )
            logger.info(
                "Tournament %s: %d/%d matches checked for '%s'",
                tournament.nakka_identifier, retrieved.checked_count,
                len(retrieved.tournament_matches), nickname,
            )
            tournaments.append(retrieved)

        logger.info("Retrieved %d tournaments", len(tournaments))
        return {"tournaments": tournaments}

    # =========================================================================
    # Bounded nickname lookup
    # =========================================================================

    @staticmethod
    def _scraped_row(
        tournament: Tournament,
        match: ScrapedMatch,
        oriented: OrientedPair,
        tournament_match_id: Optional[int],
    ) -> PlayerMatchRow:
        return PlayerMatchRow(
            tournament_id=tournament.tournament_id,
            nakka_tournament_identifier=tournament.nakka_identifier,
            tournament_name=tournament.tournament_name,
            tournament_date=tournament.tournament_date,
            tournament_href=tournament.href,
            tournament_match_id=tournament_match_id,
            nakka_match_identifier=match.nakka_match_identifier,
            match_type=match.match_type,
            match_href=match.href,
            player_name=oriented.player_name,
            player_code=oriented.player_code,
            opponent_name=oriented.opponent_name,
            opponent_code=oriented.opponent_code,
            imported_at=utc_now(),
            is_checked=oriented.is_checked,
        )

    async def _lookup_tournament(
        self,
        discovered: DiscoveredTournament,
        nickname: str,
        remaining: int,
    ) -> list[PlayerMatchRow]:
        status = self.store.get_tournament_status(discovered.nakka_identifier)
        if status in DB_READY_STATUSES:
            tournament = self.store.get_tournament(discovered.nakka_identifier)
            rows = self.store.find_player_matches(
                nickname, limit=remaining, tournament_id=tournament.tournament_id
            )
            logger.info("%s: %d rows from database", discovered.nakka_identifier, len(rows))
            return rows

        scraped = await self.match_scraper.scrape(discovered.href)
        tournament = self.store.save_tournament(discovered)
        saved = self.store.upsert_tournament_matches(tournament, scraped)
        logger.info(
            "%s: scraped %d matches (%d new, all saved: %s)",
            discovered.nakka_identifier, len(scraped), saved["inserted"], saved["all_matches_saved"],
        )

        match_ids = self.store.get_match_ids(tournament)
        rows: list[PlayerMatchRow] = []
        for match in scraped:
            oriented = orient_match(
                match.first_player_name,
                match.first_player_code,
                match.second_player_name,
                match.second_player_code,
                nickname,
            )
            if not oriented.is_checked:
                continue
            rows.append(
                self._scraped_row(
                    tournament, match, oriented, match_ids.get(match.nakka_match_identifier)
                )
            )
            if len(rows) >= remaining:
                break
        return rows

    async def lookup_nickname(self, keyword: str, nickname: str, cap: Optional[int] = None) -> dict:
        """
        Collect up to `cap` matches for `nickname` among `keyword` tournaments.

        Failed tournaments contribute no rows and are not reported.

        This is the guest path, so both keyword and nickname need at least
        GUEST_MIN_LENGTH (3) characters, not the 1 character accepted by
        full_sync and retrieve_tournaments.

        Returns:
            {"matches": [PlayerMatchRow, ...], "total_count": int}
        """
        keyword = validate_keyword(keyword, min_length=GUEST_MIN_LENGTH)
        nickname = validate_nickname(nickname)
        if cap is None:
            cap = settings.guest_match_cap

        logger.info("[Guest] Lookup for '%s' in '%s' tournaments (cap %d)", nickname, keyword, cap)
        tournaments = await self.discovery.discover(keyword)

        rows: list[PlayerMatchRow] = []
        for discovered in tournaments:
            remaining = cap - len(rows)
            if remaining <= 0:
                logger.info("[Guest] Reached %d matches, stopping", cap)
                break
            try:
                rows.extend(await self._lookup_tournament(discovered, nickname, remaining))
            except Exception as e:
                self._recover(e)
                logger.error("[Guest] Failed to process tournament %s: %s", discovered.nakka_identifier, e)

        rows = rows[:cap]
        logger.info("[Guest] Returning %d matches", len(rows))
        return {"matches": rows, "total_count": len(rows)}
