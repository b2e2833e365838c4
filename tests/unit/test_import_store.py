"""Unit tests for the import store against SQLite."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from dartsync.db.models import PlayerResult, SyncKeyword, TournamentMatch
from dartsync.import_statuses import COMPLETED, FAILED, IN_PROGRESS, MATCHES_SAVED
from dartsync.services.import_store import ImportStore

from conftest import make_match, make_results, make_tournament

TID = "t_Nd6M_9511"


def two_matches(tid=TID):
    return [
        make_match(tid, ("Adam Nowak", "aVPA"), ("Mirek Kowalski", "Wigo"), round_no="1"),
        make_match(tid, ("Ewa Zielinska", "C2aF"), ("Piotr Lis", "CmuS"), round_no="2"),
    ]


@pytest.fixture
def store(db_session):
    return ImportStore(db_session)


@pytest.fixture
def tournament(store):
    return store.save_tournament(make_tournament(TID))


class TestTournaments:

    def test_import_is_insert_if_absent(self, store):
        first = store.import_tournaments([make_tournament(TID), make_tournament("t_other")])
        assert (first["inserted"], first["skipped"], first["total_processed"]) == (2, 0, 2)
        assert [t["action"] for t in first["tournaments"]] == ["inserted", "inserted"]

        renamed = make_tournament(TID, days_ago=200, name="Renamed Cup")
        second = store.import_tournaments([renamed])
        assert (second["inserted"], second["skipped"], second["updated"]) == (0, 1, 0)
        assert second["tournaments"][0]["action"] == "skipped"

        stored = store.get_tournament(TID)
        assert stored.tournament_name == f"Agawa Cup {TID}"
        assert stored.tournament_date == datetime(2026, 9, 21)
        assert stored.match_import_status is None

    def test_save_tournament_returns_existing_row(self, store, tournament):
        again = store.save_tournament(make_tournament(TID, name="Other"))
        assert again.tournament_id == tournament.tournament_id
        assert again.tournament_name == tournament.tournament_name

    def test_unknown_tournament_status_is_none(self, store):
        assert store.get_tournament_status("t_missing") is None


class TestMatches:

    def test_import_matches_skips_duplicates(self, store, tournament):
        first = store.import_matches(tournament, two_matches())
        assert first == {"total_processed": 2, "inserted": 2, "skipped": 0, "failed": 0}

        second = store.import_matches(tournament, two_matches())
        assert second == {"total_processed": 2, "inserted": 0, "skipped": 2, "failed": 0}
        assert len(store.get_matches(tournament)) == 2

    def test_stored_match_carries_tournament_date(self, store, tournament):
        store.import_matches(tournament, two_matches())
        match = store.get_matches(tournament)[0]
        assert match.match_date == tournament.tournament_date
        assert match.attempts_count == 1
        assert match.match_result_status is None

    def test_same_match_id_in_another_tournament_is_separate(self, store, tournament):
        other = store.save_tournament(make_tournament("t_other"))
        store.import_matches(tournament, two_matches())
        summary = store.import_matches(other, two_matches())
        assert summary["inserted"] == 2

    def test_upsert_marks_matches_saved_when_all_stored(self, store, tournament):
        summary = store.upsert_tournament_matches(tournament, two_matches())
        assert summary == {"inserted": 2, "skipped": 0, "total_stored": 2, "all_matches_saved": True}
        assert tournament.match_import_status == MATCHES_SAVED

        again = store.upsert_tournament_matches(tournament, two_matches())
        assert again == {"inserted": 0, "skipped": 2, "total_stored": 2, "all_matches_saved": True}

    def test_upsert_with_fewer_scraped_than_stored_is_in_progress(self, store, tournament):
        store.upsert_tournament_matches(tournament, two_matches())
        summary = store.upsert_tournament_matches(tournament, two_matches()[:1])
        assert summary["all_matches_saved"] is False
        assert tournament.match_import_status == IN_PROGRESS

    def test_upsert_of_empty_scrape_leaves_status(self, store, tournament):
        summary = store.upsert_tournament_matches(tournament, [])
        assert summary["all_matches_saved"] is False
        assert tournament.match_import_status is None

    def test_upsert_after_a_failed_match_keeps_failed_status(self, store, tournament):
        store.import_matches(tournament, two_matches())
        first, second = store.get_matches(tournament)
        store.mark_match_completed(first)
        store.mark_match_failed(second, "slow")

        summary = store.upsert_tournament_matches(tournament, two_matches())

        assert summary["all_matches_saved"] is True
        assert tournament.match_import_status == FAILED
        assert tournament.match_import_error == "1 of 2 matches failed to import player results"

    def test_upsert_before_any_match_started_marks_saved(self, store, tournament):
        store.import_matches(tournament, two_matches())
        store.set_tournament_status(tournament, FAILED, "Failed to scrape or import matches")

        store.upsert_tournament_matches(tournament, two_matches())

        assert tournament.match_import_status == MATCHES_SAVED
        assert tournament.match_import_error is None

    def test_match_ids_by_identifier(self, store, tournament):
        store.import_matches(tournament, two_matches())
        ids = store.get_match_ids(tournament)
        assert set(ids) == {m.nakka_match_identifier for m in two_matches()}


class TestStatusAggregation:

    def test_tournament_follows_match_statuses(self, store, tournament):
        store.import_matches(tournament, two_matches())
        first, second = store.get_matches(tournament)

        store.mark_match_in_progress(first)
        assert tournament.match_import_status == IN_PROGRESS

        store.mark_match_completed(first)
        store.mark_match_completed(second)
        assert tournament.match_import_status == COMPLETED
        assert first.attempts_count == 3

    def test_one_failed_match_fails_tournament(self, store, tournament):
        store.import_matches(tournament, two_matches())
        first, second = store.get_matches(tournament)

        store.mark_match_completed(first)
        store.mark_match_failed(second, "Timeout 5000ms exceeded")

        assert second.match_result_error == "Timeout 5000ms exceeded"
        assert tournament.match_import_status == FAILED
        assert tournament.match_import_error == "1 of 2 matches failed to import player results"


class TestPlayerResults:

    def test_insert_then_update(self, store, tournament, db_session):
        store.import_matches(tournament, two_matches())
        match = store.get_matches(tournament)[0]
        results = make_results(match.nakka_match_identifier)

        first = store.upsert_player_results(match, results)
        assert first == {"total_processed": 2, "inserted": 2, "updated": 0, "failed": 0}

        results[0].average_score = 60.5
        results[0].player_score = 4
        second = store.upsert_player_results(match, results)
        assert second == {"total_processed": 2, "inserted": 0, "updated": 2, "failed": 0}

        rows = db_session.scalars(
            select(PlayerResult).where(PlayerResult.tournament_match_id == match.tournament_match_id)
        ).all()
        assert len(rows) == 2
        by_id = {r.nakka_match_player_identifier: r for r in rows}
        updated = by_id[results[0].nakka_match_player_identifier]
        assert updated.average_score == Decimal("60.50")
        assert updated.player_score == 4


class TestKeywords:

    def test_keyword_sync_is_recorded_once(self, store, db_session):
        store.record_keyword_sync("agawa")
        store.record_keyword_sync("agawa")
        count = db_session.scalar(select(func.count()).select_from(SyncKeyword))
        assert count == 1
        assert db_session.scalar(select(SyncKeyword.last_sync_date)) is not None


class TestNicknameQueries:

    def test_find_orients_and_joins_results(self, store, tournament):
        store.import_matches(tournament, two_matches())
        match = store.get_matches(tournament)[0]
        store.upsert_player_results(match, make_results(match.nakka_match_identifier, legs=(3, 1)))

        rows = store.find_player_matches("mirek")

        assert len(rows) == 1
        row = rows[0]
        assert (row.player_name, row.opponent_name) == ("Mirek Kowalski", "Adam Nowak")
        assert row.is_checked
        # Upper-case codes sort first, so Wigo is the stored first side
        assert row.nakka_match_identifier.endswith("_Wigo_aVPA")
        assert row.tournament_match_id == match.tournament_match_id
        assert row.player_score == 3
        assert row.opponent_score == 1
        assert row.average_score == Decimal("55.12")
        assert row.opponent_average_score == Decimal("48.50")

    def test_find_newest_tournament_first_and_limit(self, store):
        old = store.save_tournament(make_tournament("t_old", days_ago=100))
        new = store.save_tournament(make_tournament("t_new", days_ago=1))
        for t in (old, new):
            store.import_matches(
                t,
                [
                    make_match(t.nakka_identifier, ("Mirek K", "Wigo"), ("A", "aaaa"), round_no="1"),
                    make_match(t.nakka_identifier, ("Mirek K", "Wigo"), ("B", "bbbb"), round_no="2"),
                ],
            )

        rows = store.find_player_matches("mirek", limit=3)
        assert [r.nakka_tournament_identifier for r in rows] == ["t_new", "t_new", "t_old"]
        assert rows[0].nakka_match_identifier.endswith("_2_Wigo_bbbb")

        scoped = store.find_player_matches("mirek", tournament_id=old.tournament_id)
        assert {r.nakka_tournament_identifier for r in scoped} == {"t_old"}

    def test_find_with_several_nicknames_and_accents(self, store, tournament):
        store.import_matches(
            tournament,
            [
                make_match(TID, ("Łukasz Wiśniewski", "LW01"), ("Adam Nowak", "aVPA")),
                make_match(TID, ("Ewa Zielinska", "C2aF"), ("Piotr Lis", "CmuS")),
            ],
        )
        rows = store.find_player_matches(["lukasz", "ewa"])
        assert {r.player_name for r in rows} == {"Łukasz Wiśniewski", "Ewa Zielinska"}

    def test_find_requires_a_nickname(self, store):
        with pytest.raises(ValueError):
            store.find_player_matches("   ")

    def test_get_player_match_orients_unmatched_row_as_stored(self, store, tournament):
        store.import_matches(tournament, two_matches())
        match = store.get_matches(tournament)[1]
        row = store.get_player_match(match.tournament_match_id, "nobody")
        assert row.player_name == match.first_player_name
        assert not row.is_checked
        assert row.average_score is None
        assert store.get_player_match(99999, "mirek") is None
