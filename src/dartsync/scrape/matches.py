"""
Match list scraper for a Nakka tournament page (comp.php?id=...).

A tournament page has up to two stages:
- Group stage (#rr_container): a round-robin table where every fixture is
  rendered twice, once from each player's row. Cells carry ttype="rr".
- Knockout stage (#bracket_container): a bracket where each fixture is
  rendered once. Items carry ttype="t".

Both stages are parsed from the same loaded page. Match identifiers are
canonical: the two player codes are sorted before composing the id, so both
renderings of a group fixture produce the same id and collapse into one row.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page

from dartsync.config import settings
from dartsync.exceptions import InvalidIdentifierError
from dartsync.scrape.base import BrowserSession

logger = logging.getLogger(__name__)

GROUP_STAGE = "rr"
KNOCKOUT_STAGE = "t"

GROUP_CONTAINER = "#rr_container"
KNOCKOUT_CONTAINER = "#bracket_container"

UNKNOWN_PLAYER = "Unknown"

_TOURNAMENT_ID_RE = re.compile(r"[?&]id=([^&]+)")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class ScrapedMatch:
    """
    One fixture from a tournament page.

    Player pairs are ordered by code (first_player_code < second_player_code)
    to match the canonical identifier.
    """

    nakka_match_identifier: str
    match_type: str
    first_player_name: str
    first_player_code: str
    second_player_name: str
    second_player_code: str
    href: str

    def __repr__(self) -> str:
        return (
            f"<ScrapedMatch({self.nakka_match_identifier}: "
            f"{self.first_player_name} vs {self.second_player_name})>"
        )


def parse_tournament_id(href: str) -> str:
    """Extract the tournament id from a comp.php?id=... link."""
    match = _TOURNAMENT_ID_RE.search(href or "")
    if not match:
        raise InvalidIdentifierError(f"Could not extract tournament ID from href: {href}", url=href)
    return match.group(1)


def canonical_match_id(
    tournament_id: str,
    stage: str,
    round_no: str,
    code_a: str,
    code_b: str,
) -> str:
    """
    Build {tournament}_{stage}_{round}_{code_lo}_{code_hi}.

    Order-independent in (code_a, code_b).
    """
    lo, hi = sorted((code_a, code_b))
    return f"{tournament_id}_{stage}_{round_no}_{lo}_{hi}"


def match_href(match_id: str, base_url: Optional[str] = None) -> str:
    base = base_url or settings.nakka_base_url
    return f"{base}/n01_view.html?tmid={match_id}"


def match_type_label(stage: str, subtitle: Optional[str]) -> str:
    """
    Label a match by stage.

    Group matches are "rr". Knockout matches use the subtitle, e.g.
    "Top 16" -> "t_top_16"; no subtitle -> "t_unknown".
    """
    if stage == GROUP_STAGE:
        return GROUP_STAGE
    if not subtitle or not subtitle.strip():
        return f"{KNOCKOUT_STAGE}_unknown"
    return f"{KNOCKOUT_STAGE}_{_WHITESPACE_RE.sub('_', subtitle.strip().lower())}"


def _text(elem: Optional[Tag]) -> str:
    return elem.get_text(strip=True) if elem else ""


def roster_name(soup: BeautifulSoup, code: str) -> str:
    """Display name for a player code, looked up anywhere on the page."""
    name = _text(soup.select_one(f'[tpid="{code}"] .entry_name'))
    return name or UNKNOWN_PLAYER


def _ordered_pair(
    code: str,
    name: str,
    vs_code: str,
    vs_name: str,
) -> tuple[str, str, str, str]:
    """Return (first_name, first_code, second_name, second_code) sorted by code."""
    if vs_code < code:
        return vs_name, vs_code, name, code
    return name, code, vs_name, vs_code


def _fixture_attrs(elem: Tag) -> Optional[tuple[str, str, str, Optional[str]]]:
    """(round, tpid, vstpid, subtitle) or None when either player code is missing."""
    tpid = elem.get("tpid")
    vstpid = elem.get("vstpid")
    if not tpid or not vstpid:
        logger.debug("Missing player codes: tpid=%s, vstpid=%s", tpid, vstpid)
        return None
    return elem.get("round") or "0", tpid, vstpid, elem.get("subtitle")


def parse_group_matches(
    soup: BeautifulSoup,
    tournament_id: str,
    base_url: Optional[str] = None,
) -> list[ScrapedMatch]:
    """
    Parse group-stage fixtures.

    Cells without an average (.r_avg) are unplayed placeholders and are
    skipped. Each fixture appears twice in the table; the second sighting
    of a canonical id is dropped.
    """
    matches: list[ScrapedMatch] = []
    if soup.select_one(GROUP_CONTAINER) is None:
        logger.info("No %s found - skipping group matches", GROUP_CONTAINER)
        return matches

    seen: set[str] = set()
    for elem in soup.select(".rr_result.view_button"):
        if elem.get("ttype") != GROUP_STAGE:
            continue
        attrs = _fixture_attrs(elem)
        if attrs is None:
            continue
        round_no, tpid, vstpid, _subtitle = attrs

        if elem.select_one(".r_avg") is None:
            logger.debug("Skipping group match without average: %s vs %s", tpid, vstpid)
            continue

        match_id = canonical_match_id(tournament_id, GROUP_STAGE, round_no, tpid, vstpid)
        if match_id in seen:
            continue
        seen.add(match_id)

        first_name, first_code, second_name, second_code = _ordered_pair(
            tpid, roster_name(soup, tpid), vstpid, roster_name(soup, vstpid)
        )
        matches.append(
            ScrapedMatch(
                nakka_match_identifier=match_id,
                match_type=match_type_label(GROUP_STAGE, None),
                first_player_name=first_name,
                first_player_code=first_code,
                second_player_name=second_name,
                second_player_code=second_code,
                href=match_href(match_id, base_url),
            )
        )

    logger.info("Group matches scraped: %d", len(matches))
    return matches


def parse_knockout_matches(
    soup: BeautifulSoup,
    tournament_id: str,
    base_url: Optional[str] = None,
) -> list[ScrapedMatch]:
    """
    Parse knockout-bracket fixtures.

    The bracket item holds its own player's name; the opponent's name comes
    from the roster lookup.
    """
    matches: list[ScrapedMatch] = []
    if soup.select_one(KNOCKOUT_CONTAINER) is None:
        logger.info("No %s found - skipping knockout matches", KNOCKOUT_CONTAINER)
        return matches

    seen: set[str] = set()
    for elem in soup.select(f'.t_item.view_button[ttype="{KNOCKOUT_STAGE}"]'):
        attrs = _fixture_attrs(elem)
        if attrs is None:
            continue
        round_no, tpid, vstpid, subtitle = attrs

        match_id = canonical_match_id(tournament_id, KNOCKOUT_STAGE, round_no, tpid, vstpid)
        if match_id in seen:
            continue
        seen.add(match_id)

        own_name = _text(elem.select_one(".entry_name")) or UNKNOWN_PLAYER
        first_name, first_code, second_name, second_code = _ordered_pair(
            tpid, own_name, vstpid, roster_name(soup, vstpid)
        )
        matches.append(
            ScrapedMatch(
                nakka_match_identifier=match_id,
                match_type=match_type_label(KNOCKOUT_STAGE, subtitle),
                first_player_name=first_name,
                first_player_code=first_code,
                second_player_name=second_name,
                second_player_code=second_code,
                href=match_href(match_id, base_url),
            )
        )

    logger.info("Knockout matches scraped: %d", len(matches))
    return matches


class MatchListScraper:
    """
    Reads every match listed on a tournament page.

    Usage:
        scraper = MatchListScraper()
        matches = await scraper.scrape("https://n01darts.com/n01/tournament/comp.php?id=t_Nd6M_9511")
    """

    def __init__(self, headless: Optional[bool] = None, base_url: Optional[str] = None):
        self.headless = headless
        self.base_url = base_url or settings.nakka_base_url

    async def _stage_pass(self, page: Page, container: str, parser, tournament_id: str) -> list[ScrapedMatch]:
        if await page.query_selector(container) is None:
            logger.info("No %s found on page", container)
            return []
        soup = BeautifulSoup(await page.content(), "lxml")
        return parser(soup, tournament_id, self.base_url)

    async def scrape(self, tournament_href: str) -> list[ScrapedMatch]:
        """
        Scrape group and knockout matches for one tournament.

        Raises:
            InvalidIdentifierError: The link carries no tournament id
            playwright TimeoutError: The page did not load within the bound
        """
        tournament_id = parse_tournament_id(tournament_href)
        logger.info("Scraping matches for tournament %s", tournament_id)

        async with BrowserSession(headless=self.headless) as browser:
            page = await browser.new_page()
            try:
                await browser.navigate(page, tournament_href)
                # Both passes only read the page, and touch disjoint regions
                group, knockout = await asyncio.gather(
                    self._stage_pass(page, GROUP_CONTAINER, parse_group_matches, tournament_id),
                    self._stage_pass(page, KNOCKOUT_CONTAINER, parse_knockout_matches, tournament_id),
                )
            finally:
                await page.close()

        matches = group + knockout
        logger.info(
            "Tournament %s: %d group + %d knockout matches",
            tournament_id, len(group), len(knockout),
        )
        return matches
