"""
Nickname matching and player-oriented match rows.

A nickname "matches" a side when it is a substring of that side's display
name after case-folding and diacritic removal, so "Lukasz" finds "Łukasz".
Rows are oriented so the matched party is always reported as the player:
the pair is swapped only when the second side matches and the first does
not. When both sides match, the first side is kept.
"""

import unicodedata
from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Union

from dartsync.db.models import PlayerResult

# Letters NFKD does not decompose into base + combining mark
_EXTRA_FOLDS = str.maketrans({"ł": "l", "Ł": "l", "ø": "o", "Ø": "o", "đ": "d", "Đ": "d", "ß": "ss"})

Nicknames = Union[str, Iterable[str]]

STAT_FIELDS: tuple[str, ...] = (
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
)


def fold_name(text: Optional[str]) -> str:
    """Lower-case, strip and remove diacritics."""
    if not text:
        return ""
    text = text.translate(_EXTRA_FOLDS)
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return stripped.lower().strip()


def fold_nicknames(nicknames: Nicknames) -> list[str]:
    """Fold one or many nicknames; blanks are dropped."""
    if isinstance(nicknames, str):
        nicknames = [nicknames]
    folded = [fold_name(n) for n in nicknames]
    return [n for n in folded if n]


def name_matches(name: Optional[str], folded_nicknames: list[str]) -> bool:
    folded = fold_name(name)
    return any(nick in folded for nick in folded_nicknames)


@dataclass
class OrientedPair:
    """A fixture's two sides with the searched player first."""

    player_name: str
    player_code: str
    opponent_name: str
    opponent_code: str
    is_checked: bool
    swapped: bool = False


def orient_match(
    first_name: str,
    first_code: str,
    second_name: str,
    second_code: str,
    nicknames: Nicknames,
) -> OrientedPair:
    folded = fold_nicknames(nicknames)
    first_hit = name_matches(first_name, folded)
    second_hit = name_matches(second_name, folded)

    if second_hit and not first_hit:
        return OrientedPair(second_name, second_code, first_name, first_code, True, swapped=True)
    return OrientedPair(first_name, first_code, second_name, second_code, first_hit or second_hit)


def player_identifier_for(nakka_match_identifier: str, player_code: str) -> str:
    """{tournament}_{stage}_{round}_{code}: the match id minus both codes, plus one."""
    prefix = nakka_match_identifier.rsplit("_", 2)[0]
    return f"{prefix}_{player_code}"


@dataclass
class PlayerMatchRow:
    """
    One match seen from the searched player's side.

    Statistic fields are None when results have not been imported yet.
    """

    tournament_id: Optional[int]
    nakka_tournament_identifier: str
    tournament_name: str
    tournament_date: datetime
    tournament_href: str
    tournament_match_id: Optional[int]
    nakka_match_identifier: str
    match_type: str
    match_href: str
    player_name: str
    player_code: str
    opponent_name: str
    opponent_code: str
    average_score: Optional[Decimal] = None
    first_nine_avg: Optional[Decimal] = None
    checkout_percentage: Optional[Decimal] = None
    score_60_count: Optional[int] = None
    score_100_count: Optional[int] = None
    score_140_count: Optional[int] = None
    score_180_count: Optional[int] = None
    high_finish: Optional[int] = None
    best_leg: Optional[int] = None
    worst_leg: Optional[int] = None
    player_score: Optional[int] = None
    opponent_score: Optional[int] = None
    opponent_average_score: Optional[Decimal] = None
    opponent_first_nine_avg: Optional[Decimal] = None
    opponent_checkout_percentage: Optional[Decimal] = None
    opponent_score_60_count: Optional[int] = None
    opponent_score_100_count: Optional[int] = None
    opponent_score_140_count: Optional[int] = None
    opponent_score_180_count: Optional[int] = None
    opponent_high_finish: Optional[int] = None
    opponent_best_leg: Optional[int] = None
    opponent_worst_leg: Optional[int] = None
    imported_at: Optional[datetime] = None
    is_checked: bool = False

    def apply_results(
        self,
        player_result: Optional[PlayerResult],
        opponent_result: Optional[PlayerResult],
    ) -> "PlayerMatchRow":
        """Copy statistics from stored results (either may be missing)."""
        if player_result is not None:
            for name in STAT_FIELDS:
                setattr(self, name, getattr(player_result, name))
            self.player_score = player_result.player_score
            self.opponent_score = player_result.opponent_score
        if opponent_result is not None:
            for name in STAT_FIELDS:
                setattr(self, f"opponent_{name}", getattr(opponent_result, name))
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    def __repr__(self) -> str:
        return (
            f"<PlayerMatchRow({self.nakka_match_identifier}: "
            f"{self.player_name} vs {self.opponent_name}, checked={self.is_checked})>"
        )


@dataclass
class RetrievedMatch:
    """A scraped fixture oriented toward the searched nickname; never stored."""

    nakka_match_identifier: str
    match_type: str
    player_name: str
    player_code: str
    opponent_name: str
    opponent_code: str
    href: str
    is_checked: bool


@dataclass
class RetrievedTournament:
    """A scraped tournament with every one of its fixtures, checked or not."""

    nakka_identifier: str
    tournament_name: str
    tournament_date: datetime
    href: str
    tournament_matches: list[RetrievedMatch] = field(default_factory=list)

    @property
    def checked_count(self) -> int:
        return sum(1 for m in self.tournament_matches if m.is_checked)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["tournament_date"] = self.tournament_date.isoformat()
        return data

    def __repr__(self) -> str:
        return (
            f"<RetrievedTournament({self.nakka_identifier}, "
            f"{self.checked_count}/{len(self.tournament_matches)} checked)>"
        )
