"""
Web scraping module for dartsync.

Collects data from the Nakka 01 tournament site (n01darts.com) in three
stages:
- TournamentDiscovery: keyword search -> completed tournaments
- MatchListScraper: tournament page -> group and knockout matches
- PlayerResultScraper: match page -> per-player statistics

The scraping architecture uses:
- Playwright for browser automation (the site renders client-side)
- BeautifulSoup for HTML parsing of the rendered pages
- tenacity for timeout retries with exponential backoff
"""

from dartsync.scrape.base import BrowserSession
from dartsync.scrape.discovery import DiscoveredTournament, ResponseCollector, TournamentDiscovery
from dartsync.scrape.matches import MatchListScraper, ScrapedMatch, canonical_match_id
from dartsync.scrape.results import (
    MatchIdentifier,
    PlayerResultScraper,
    ScrapedPlayerResult,
    parse_match_identifier,
)
from dartsync.scrape.retry import RetryPolicy

__all__ = [
    "BrowserSession",
    "DiscoveredTournament",
    "ResponseCollector",
    "TournamentDiscovery",
    "MatchListScraper",
    "ScrapedMatch",
    "canonical_match_id",
    "MatchIdentifier",
    "PlayerResultScraper",
    "ScrapedPlayerResult",
    "parse_match_identifier",
    "RetryPolicy",
]
