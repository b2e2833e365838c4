"""
Player statistics scraper for a Nakka match page (n01_view.html?tmid=...).

The match page shows a scoreboard by default. Clicking the stats tab
(#menu_stats) loads an iframe (#stats_frame) whose table is filled in by
client-side script, so we wait for the first cell (#p1_legs) to be non-empty
before reading anything.

Stats table cells, per side (p1_ left, p2_ right):
    legs, score (average), first9, 60, 80, ton00, ton20, ton40, ton70, ton80,
    highout, best, worst
plus the checkout cell ".detail.checkout .left/.right", e.g. "15.0%<br>(3 / 20)".

The site's scoring brackets are finer than ours and are merged:
    60+ = 60 + 80,  100+ = ton00 + ton20,  140+ = ton40 + ton70,  180 = ton80
"""

import logging
import re
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Optional

from bs4 import BeautifulSoup
from playwright.async_api import Frame, Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from dartsync.config import settings
from dartsync.exceptions import InvalidIdentifierError, NakkaParseError, NakkaTimeout
from dartsync.scrape.base import BrowserSession
from dartsync.scrape.matches import GROUP_STAGE, KNOCKOUT_STAGE
from dartsync.scrape.retry import RetryPolicy

logger = logging.getLogger(__name__)

STAT_FIELDS = (
    "legs", "score", "first9",
    "60", "80", "ton00", "ton20", "ton40", "ton70", "ton80",
    "highout", "best", "worst",
)
CHECKOUT_SELECTORS = {
    "p1": ".detail.checkout .left",
    "p2": ".detail.checkout .right",
}

_CHECKOUT_RE = re.compile(r"^([\d.]+)%")
_LEADING_FLOAT_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)")
_LEADING_INT_RE = re.compile(r"^\d+")

# Resolves once the stats script has written the first cell
_STATS_READY_JS = """() => {
    const el = document.querySelector('#p1_legs');
    return !!el && el.textContent.trim() !== '';
}"""


@dataclass(frozen=True)
class MatchIdentifier:
    """The parts of a canonical match id."""

    tournament_id: str
    stage: str
    round: str
    first_player_code: str
    second_player_code: str

    def player_identifier(self, player_code: str) -> str:
        return f"{self.tournament_id}_{self.stage}_{self.round}_{player_code}"


@dataclass
class ScrapedPlayerResult:
    """Statistics for one side of a match, ready for upsert."""

    nakka_match_player_identifier: str
    average_score: Optional[float] = None
    first_nine_avg: Optional[float] = None
    checkout_percentage: Optional[float] = None
    score_60_count: int = 0
    score_100_count: int = 0
    score_140_count: int = 0
    score_180_count: int = 0
    high_finish: int = 0
    best_leg: int = 0
    worst_leg: int = 0
    player_score: int = 0
    opponent_score: int = 0

    def to_row(self) -> dict:
        """Column values for the player results table."""
        row = asdict(self)
        for key in ("average_score", "first_nine_avg", "checkout_percentage"):
            if row[key] is not None:
                row[key] = Decimal(str(round(row[key], 2)))
        return row

    def __repr__(self) -> str:
        return (
            f"<ScrapedPlayerResult({self.nakka_match_player_identifier}, "
            f"avg={self.average_score}, legs={self.player_score}-{self.opponent_score})>"
        )


def parse_match_identifier(match_id: str) -> MatchIdentifier:
    """
    Split {tournament}_{stage}_{round}_{code_lo}_{code_hi}.

    Tournament ids contain underscores themselves (t_Nd6M_9511), so the id
    is split from the right.
    """
    parts = (match_id or "").rsplit("_", 4)
    if len(parts) != 5 or not all(parts):
        raise InvalidIdentifierError(f"Invalid match identifier format: {match_id}")
    tournament_id, stage, round_no, first_code, second_code = parts
    if stage not in (GROUP_STAGE, KNOCKOUT_STAGE):
        raise InvalidIdentifierError(f"Unknown stage '{stage}' in match identifier: {match_id}")
    return MatchIdentifier(tournament_id, stage, round_no, first_code, second_code)


def parse_numeric(text: Optional[str]) -> Optional[float]:
    """Leading decimal number ("," accepted as separator), or None."""
    if not text:
        return None
    match = _LEADING_FLOAT_RE.match(text.strip().replace(",", "."))
    return float(match.group(0)) if match else None


def parse_int(text: Optional[str]) -> int:
    """Leading integer, or 0 when the cell is empty or not numeric."""
    if not text:
        return 0
    match = _LEADING_INT_RE.match(text.strip())
    return int(match.group(0)) if match else 0


def parse_checkout(text: Optional[str]) -> Optional[float]:
    """
    Checkout percentage from "15.0%<br>(3 / 20)".

    Only the numeric run before "%" is read; anything else yields None.
    """
    if not text:
        return None
    match = _CHECKOUT_RE.match(text.strip())
    if not match:
        return None
    try:
        return float(match.group(1))
    except ValueError:
        return None


def merge_brackets(raw: dict[str, str], prefix: str) -> dict[str, int]:
    """Collapse the site's scoring brackets into 60+/100+/140+/180 counts."""

    def count(name: str) -> int:
        return parse_int(raw.get(f"{prefix}{name}"))

    return {
        "score_60_count": count("60") + count("80"),
        "score_100_count": count("ton00") + count("ton20"),
        "score_140_count": count("ton40") + count("ton70"),
        "score_180_count": count("ton80"),
    }


def parse_stats_frame(html: str) -> tuple[list[str], dict[str, str]]:
    """
    Read player names and raw cell text from the stats iframe document.

    Returns:
        (names, raw) where raw maps "p1_legs", "p2_checkout", ... to text.
    """
    soup = BeautifulSoup(html, "lxml")
    names = [el.get_text(strip=True) for el in soup.select(".name_text")]

    raw: dict[str, str] = {}
    for side in ("p1", "p2"):
        for name in STAT_FIELDS:
            cell = soup.select_one(f"#{side}_{name}")
            raw[f"{side}_{name}"] = cell.get_text(strip=True) if cell else ""
        checkout = soup.select_one(CHECKOUT_SELECTORS[side])
        raw[f"{side}_checkout"] = checkout.get_text(strip=True) if checkout else ""
    return names, raw


def build_player_results(raw: dict[str, str], ids: MatchIdentifier) -> list[ScrapedPlayerResult]:
    """
    Two result rows: left column for the first (lower) code, right column
    for the second.
    """
    results = []
    sides = (
        ("p1_", "p2_", ids.first_player_code),
        ("p2_", "p1_", ids.second_player_code),
    )
    for prefix, opponent_prefix, code in sides:
        results.append(
            ScrapedPlayerResult(
                nakka_match_player_identifier=ids.player_identifier(code),
                average_score=parse_numeric(raw.get(f"{prefix}score")),
                first_nine_avg=parse_numeric(raw.get(f"{prefix}first9")),
                checkout_percentage=parse_checkout(raw.get(f"{prefix}checkout")),
                high_finish=parse_int(raw.get(f"{prefix}highout")),
                best_leg=parse_int(raw.get(f"{prefix}best")),
                worst_leg=parse_int(raw.get(f"{prefix}worst")),
                player_score=parse_int(raw.get(f"{prefix}legs")),
                opponent_score=parse_int(raw.get(f"{opponent_prefix}legs")),
                **merge_brackets(raw, prefix),
            )
        )
    return results


class PlayerResultScraper:
    """
    Reads both players' statistics from a match page.

    Timeouts are retried by the RetryPolicy (4 attempts, 1s/2s/4s backoff by
    default), each attempt in a fresh browser. Structural problems raise
    NakkaParseError immediately.

    Usage:
        scraper = PlayerResultScraper()
        results = await scraper.scrape(match.href, match.nakka_match_identifier)
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.headless = headless
        self.retry_policy = retry_policy or RetryPolicy()
        self.selector_timeout = settings.scrape_selector_timeout
        self.poll_timeout = settings.scrape_poll_timeout

    async def _open_stats_frame(self, page: Page) -> Frame:
        """
        Switch to the statistics tab and wait until its table is filled in.

        Raises:
            NakkaTimeout: A step of the statistics view did not render in time
            NakkaParseError: The iframe exists but has no document
        """
        step = "match page"
        try:
            await page.wait_for_selector("article", timeout=self.selector_timeout)
            step = "statistics tab"
            await page.click("#menu_stats", force=True, timeout=self.poll_timeout)
            handle = await page.wait_for_selector("#stats_frame", timeout=self.poll_timeout)
            frame = await handle.content_frame() if handle else None
            if frame is None:
                raise NakkaParseError("Statistics iframe has no content frame", url=page.url)
            step = "statistics table"
            await frame.wait_for_selector(".stats_table", timeout=self.poll_timeout)
            await frame.wait_for_function(_STATS_READY_JS, timeout=self.poll_timeout)
        except PlaywrightTimeout as e:
            raise NakkaTimeout(f"Timed out waiting for {step}", url=page.url) from e
        return frame

    async def _scrape_once(self, match_href: str, ids: MatchIdentifier) -> list[ScrapedPlayerResult]:
        async with BrowserSession(headless=self.headless) as browser:
            page = await browser.new_page()
            try:
                await browser.navigate(page, match_href)
                frame = await self._open_stats_frame(page)
                names, raw = parse_stats_frame(await frame.content())
            finally:
                await page.close()

        if len(names) != 2:
            raise NakkaParseError(
                f"Expected 2 player names in statistics, found {len(names)}", url=match_href
            )
        logger.debug("Statistics loaded for %s vs %s", names[0], names[1])
        return build_player_results(raw, ids)

    async def scrape(self, match_href: str, nakka_match_identifier: str) -> list[ScrapedPlayerResult]:
        """
        Scrape both players' results for one match.

        Raises:
            InvalidIdentifierError: The match id cannot be split into its parts
            NakkaParseError: The statistics view is missing or malformed
            NakkaTimeout: The statistics view kept timing out on every attempt
            playwright TimeoutError: Navigation kept timing out on every attempt
        """
        ids = parse_match_identifier(nakka_match_identifier)
        logger.info("Scraping player results for %s", nakka_match_identifier)
        results = await self.retry_policy.run(
            lambda: self._scrape_once(match_href, ids),
            description=f"Statistics for {nakka_match_identifier}",
        )
        logger.info("Scraped results for %d players (%s)", len(results), nakka_match_identifier)
        return results
