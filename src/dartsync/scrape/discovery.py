"""
Tournament discovery by keyword.

The Nakka search page has no public API; instead the page itself requests
`n01_tournament.php?cmd=get_list...` and renders the JSON it gets back. We
load the search page and intercept those responses rather than calling the
endpoint ourselves.

Discovery output is filtered to completed tournaments (status code 40) played
within the trailing window (365 days by default).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional
from urllib.parse import quote

from playwright.async_api import Page, Response

from dartsync.config import settings
from dartsync.scrape.base import BrowserSession

logger = logging.getLogger(__name__)

# Site status codes for tournaments
STATUS_PREPARING = 10
STATUS_ONGOING = 20
STATUS_COMPLETED = 40

LIST_ENDPOINT = "n01_tournament.php"
LIST_COMMAND = "cmd=get_list"


@dataclass
class DiscoveredTournament:
    """A completed tournament found on the search page."""

    nakka_identifier: str
    tournament_name: str
    href: str
    tournament_date: datetime  # naive UTC
    status: str = "completed"

    def __repr__(self) -> str:
        return (
            f"<DiscoveredTournament({self.nakka_identifier}, '{self.tournament_name}', "
            f"{self.tournament_date:%Y-%m-%d})>"
        )


@dataclass
class ResponseCollector:
    """
    Accumulates tournament-list payloads intercepted during one page load.

    Register `handle` as the page's response listener; every JSON list the
    page receives from the list endpoint is appended to `items`.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    responses_seen: int = 0

    @staticmethod
    def wants(url: str) -> bool:
        return LIST_ENDPOINT in url and LIST_COMMAND in url

    async def handle(self, response: Response) -> None:
        if not self.wants(response.url):
            return
        self.responses_seen += 1
        try:
            data = await response.json()
        except Exception as e:
            logger.error("Failed to parse tournament list response %s: %s", response.url, e)
            return
        self.add(data)

    def add(self, data: Any) -> None:
        if isinstance(data, list):
            self.items.extend(item for item in data if isinstance(item, dict))
        else:
            logger.warning("Ignoring non-list tournament payload (%s)", type(data).__name__)


def search_url(keyword: str, base_url: Optional[str] = None) -> str:
    base = base_url or settings.nakka_base_url
    return f"{base}/?keyword={quote(keyword, safe='')}"


def tournament_href(nakka_identifier: str, base_url: Optional[str] = None) -> str:
    base = base_url or settings.nakka_base_url
    return f"{base}/comp.php?id={nakka_identifier}"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Convert the list's unix-seconds `t_date` into a naive UTC datetime."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
    except (OverflowError, OSError, ValueError):
        return None


def _is_completed(status: Any) -> bool:
    try:
        return int(status) == STATUS_COMPLETED
    except (TypeError, ValueError):
        return False


def filter_tournaments(
    items: Iterable[dict[str, Any]],
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
    base_url: Optional[str] = None,
) -> list[DiscoveredTournament]:
    """
    Keep completed tournaments dated in the past and inside the window.

    Items without an id, with a non-completed status, or with a missing or
    unparsable date are dropped. Order of the intercepted payloads is kept.

    Args:
        items: Raw list entries ({tdid, title, status, t_date, ...})
        now: Reference time (naive UTC). Defaults to the current time.
        window_days: Trailing window size. Defaults to settings.
    """
    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    if window_days is None:
        window_days = settings.discovery_window_days
    oldest = now - timedelta(days=window_days)

    logger.info(
        "Filtering tournaments from %s to %s", oldest.date().isoformat(), now.date().isoformat()
    )

    tournaments: list[DiscoveredTournament] = []
    for item in items:
        tdid = item.get("tdid")
        if not tdid or not _is_completed(item.get("status")):
            continue
        played = _parse_timestamp(item.get("t_date"))
        if played is None or not (oldest <= played < now):
            continue
        tournaments.append(
            DiscoveredTournament(
                nakka_identifier=str(tdid),
                tournament_name=item.get("title") or "Unknown Tournament",
                href=tournament_href(str(tdid), base_url),
                tournament_date=played,
            )
        )
    return tournaments


class TournamentDiscovery:
    """
    Finds completed tournaments for a keyword.

    Usage:
        discovery = TournamentDiscovery()
        tournaments = await discovery.discover("agawa")
    """

    def __init__(self, headless: Optional[bool] = None, base_url: Optional[str] = None):
        self.headless = headless
        self.base_url = base_url or settings.nakka_base_url

    async def load_search_page(
        self,
        browser: BrowserSession,
        keyword: str,
        collector: ResponseCollector,
    ) -> ResponseCollector:
        """Load the search page with `collector` listening, and return it filled."""
        url = search_url(keyword, self.base_url)
        page: Page = await browser.new_page()
        page.on("response", collector.handle)
        try:
            logger.info("Loading tournament search: %s", url)
            await browser.navigate(page, url)
        finally:
            page.remove_listener("response", collector.handle)
            await page.close()
        return collector

    async def discover(self, keyword: str) -> list[DiscoveredTournament]:
        """
        Return completed tournaments for `keyword` within the discovery window.

        An empty list (nothing intercepted, or nothing passing the filter)
        is a normal result.
        """
        async with BrowserSession(headless=self.headless) as browser:
            collector = await self.load_search_page(browser, keyword, ResponseCollector())

        if not collector.items:
            logger.warning("No tournament data intercepted for keyword '%s'", keyword)
            return []

        logger.info("Collected %d tournament entries for '%s'", len(collector.items), keyword)
        tournaments = filter_tournaments(collector.items, base_url=self.base_url)
        logger.info("Filtered to %d completed tournaments", len(tournaments))
        return tournaments
