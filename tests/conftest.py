"""
Pytest configuration and fixtures.

Database tests run against SQLite in-memory; every test gets a session
inside an outer transaction that is rolled back afterwards, so the store's
own commits never leak between tests.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dartsync.db.models import Base
from dartsync.scrape.discovery import DiscoveredTournament, tournament_href
from dartsync.scrape.matches import ScrapedMatch, canonical_match_id, match_href, match_type_label
from dartsync.scrape.results import ScrapedPlayerResult, parse_match_identifier


@pytest.fixture(scope="session")
def test_engine():
    return create_engine("sqlite:///:memory:", echo=False)


@pytest.fixture(scope="session")
def tables(test_engine):
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    connection = test_engine.connect()
    transaction = connection.begin()

    Session = sessionmaker(bind=connection)
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


def make_tournament(nakka_identifier: str = "t_Nd6M_9511", days_ago: int = 10, name: str = None):
    return DiscoveredTournament(
        nakka_identifier=nakka_identifier,
        tournament_name=name or f"Agawa Cup {nakka_identifier}",
        href=tournament_href(nakka_identifier),
        tournament_date=datetime(2026, 10, 1) - timedelta(days=days_ago),
    )


def make_match(
    tournament_id: str,
    first: tuple[str, str],
    second: tuple[str, str],
    stage: str = "rr",
    round_no: str = "1",
    subtitle: str = None,
) -> ScrapedMatch:
    """Build a scraped match from (name, code) pairs, ordered by code."""
    (first_name, first_code), (second_name, second_code) = sorted([first, second], key=lambda p: p[1])
    match_id = canonical_match_id(tournament_id, stage, round_no, first_code, second_code)
    return ScrapedMatch(
        nakka_match_identifier=match_id,
        match_type=match_type_label(stage, subtitle),
        first_player_name=first_name,
        first_player_code=first_code,
        second_player_name=second_name,
        second_player_code=second_code,
        href=match_href(match_id),
    )


def make_results(match_id: str, legs: tuple[int, int] = (3, 1)) -> list[ScrapedPlayerResult]:
    ids = parse_match_identifier(match_id)
    return [
        ScrapedPlayerResult(
            nakka_match_player_identifier=ids.player_identifier(ids.first_player_code),
            average_score=55.12,
            first_nine_avg=61.0,
            checkout_percentage=25.0,
            score_60_count=6,
            score_100_count=4,
            score_140_count=1,
            score_180_count=0,
            high_finish=80,
            best_leg=18,
            worst_leg=27,
            player_score=legs[0],
            opponent_score=legs[1],
        ),
        ScrapedPlayerResult(
            nakka_match_player_identifier=ids.player_identifier(ids.second_player_code),
            average_score=48.5,
            first_nine_avg=50.25,
            checkout_percentage=None,
            score_60_count=3,
            score_100_count=2,
            player_score=legs[1],
            opponent_score=legs[0],
        ),
    ]


class FakeDiscovery:
    """Stands in for TournamentDiscovery; returns a fixed tournament list."""

    def __init__(self, tournaments):
        self.tournaments = list(tournaments)
        self.calls = []

    async def discover(self, keyword):
        self.calls.append(keyword)
        return list(self.tournaments)


class FakeMatchScraper:
    """Stands in for MatchListScraper; matches are keyed by tournament link."""

    def __init__(self, matches_by_href, errors=None):
        self.matches_by_href = matches_by_href
        self.errors = errors or {}
        self.calls = []

    async def scrape(self, tournament_href):
        self.calls.append(tournament_href)
        if tournament_href in self.errors:
            raise self.errors[tournament_href]
        return list(self.matches_by_href.get(tournament_href, []))


class FakeResultScraper:
    """Stands in for PlayerResultScraper; errors are keyed by match id."""

    def __init__(self, errors=None):
        self.errors = errors or {}
        self.calls = []

    async def scrape(self, match_href, nakka_match_identifier):
        self.calls.append(nakka_match_identifier)
        if nakka_match_identifier in self.errors:
            raise self.errors[nakka_match_identifier]
        return make_results(nakka_match_identifier)
