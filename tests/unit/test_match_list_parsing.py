from bs4 import BeautifulSoup
import pytest

from dartsync.exceptions import InvalidIdentifierError
from dartsync.scrape.matches import (
    canonical_match_id,
    match_type_label,
    parse_group_matches,
    parse_knockout_matches,
    parse_tournament_id,
)

BASE = "https://n01darts.com/n01/tournament"

TOURNAMENT_PAGE = """
<html><body>
  <div id="entry_list">
    <div tpid="Wigo"><span class="entry_name">Mirek Kowalski</span></div>
    <div tpid="aVPA"><span class="entry_name">Adam Nowak</span></div>
    <div tpid="C2aF"><span class="entry_name">Ewa Zielinska</span></div>
    <div tpid="CmuS"><span class="entry_name">Piotr Lis</span></div>
  </div>
  <div id="rr_container">
    <!-- Wigo's row -->
    <div class="rr_result view_button" ttype="rr" round="4" subtitle="Group A" tpid="Wigo" vstpid="aVPA">
      <span class="r_score">3</span><span class="r_avg">55.1</span>
    </div>
    <!-- the same fixture from aVPA's row -->
    <div class="rr_result view_button" ttype="rr" round="4" subtitle="Group A" tpid="aVPA" vstpid="Wigo">
      <span class="r_score">1</span><span class="r_avg">48.2</span>
    </div>
    <!-- not played yet: no average -->
    <div class="rr_result view_button" ttype="rr" round="5" tpid="Wigo" vstpid="C2aF">
      <span class="r_score">-</span>
    </div>
    <!-- missing opponent code -->
    <div class="rr_result view_button" ttype="rr" round="6" tpid="CmuS">
      <span class="r_avg">40.0</span>
    </div>
    <!-- no round attribute -->
    <div class="rr_result view_button" ttype="rr" tpid="CmuS" vstpid="C2aF">
      <span class="r_avg">40.0</span>
    </div>
  </div>
  <div id="bracket_container">
    <div class="t_item view_button" ttype="t" round="1" subtitle="Top 16" tpid="CmuS" vstpid="Wigo">
      <span class="entry_name">Piotr Lis</span>
    </div>
    <div class="t_item view_button" ttype="t" round="2" tpid="aVPA" vstpid="C2aF">
      <span class="entry_name">Adam Nowak</span>
    </div>
    <div class="t_item view_button" ttype="t" round="3" tpid="aVPA">
      <span class="entry_name">Adam Nowak</span>
    </div>
  </div>
</body></html>
"""


def _soup(html: str = TOURNAMENT_PAGE) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def test_canonical_match_id_is_order_independent():
    assert canonical_match_id("t_Nd6M_9511", "rr", "2", "Wigo", "aVPA") == canonical_match_id(
        "t_Nd6M_9511", "rr", "2", "aVPA", "Wigo"
    )
    assert canonical_match_id("t_Nd6M_9511", "rr", "2", "aVPA", "Wigo") == "t_Nd6M_9511_rr_2_Wigo_aVPA"


def test_parse_tournament_id_from_href():
    assert parse_tournament_id(f"{BASE}/comp.php?id=t_Nd6M_9511") == "t_Nd6M_9511"
    assert parse_tournament_id(f"{BASE}/comp.php?lang=en&id=t_0dfH_3607&x=1") == "t_0dfH_3607"


def test_parse_tournament_id_without_id_raises():
    with pytest.raises(InvalidIdentifierError):
        parse_tournament_id(f"{BASE}/comp.php")


@pytest.mark.parametrize(
    "stage, subtitle, expected",
    [
        ("rr", "Group A", "rr"),
        ("t", "Top 16", "t_top_16"),
        ("t", "  Final   Round ", "t_final_round"),
        ("t", None, "t_unknown"),
        ("t", "", "t_unknown"),
    ],
)
def test_match_type_label(stage, subtitle, expected):
    assert match_type_label(stage, subtitle) == expected


def test_group_matches_collapse_double_rendering_and_skip_placeholders():
    matches = parse_group_matches(_soup(), "t_0dfH_3607", BASE)

    ids = [m.nakka_match_identifier for m in matches]
    assert ids == ["t_0dfH_3607_rr_4_Wigo_aVPA", "t_0dfH_3607_rr_0_C2aF_CmuS"]

    first = matches[0]
    assert first.match_type == "rr"
    assert (first.first_player_code, first.first_player_name) == ("Wigo", "Mirek Kowalski")
    assert (first.second_player_code, first.second_player_name) == ("aVPA", "Adam Nowak")
    assert first.href == f"{BASE}/n01_view.html?tmid=t_0dfH_3607_rr_4_Wigo_aVPA"


def test_group_matches_keep_names_with_their_codes_when_sorted():
    matches = parse_group_matches(_soup(), "t_0dfH_3607", BASE)
    # Rendered as CmuS vs C2aF; stored in code order
    second = matches[1]
    assert (second.first_player_code, second.first_player_name) == ("C2aF", "Ewa Zielinska")
    assert (second.second_player_code, second.second_player_name) == ("CmuS", "Piotr Lis")


def test_knockout_matches_use_subtitle_and_roster_names():
    matches = parse_knockout_matches(_soup(), "t_0dfH_3607", BASE)

    assert [m.nakka_match_identifier for m in matches] == [
        "t_0dfH_3607_t_1_CmuS_Wigo",
        "t_0dfH_3607_t_2_C2aF_aVPA",
    ]
    top16 = matches[0]
    assert top16.match_type == "t_top_16"
    assert top16.first_player_name == "Piotr Lis"
    assert top16.second_player_name == "Mirek Kowalski"
    assert matches[1].match_type == "t_unknown"
    assert matches[1].first_player_name == "Ewa Zielinska"
    assert matches[1].second_player_name == "Adam Nowak"


def test_unknown_player_name_when_roster_has_no_entry():
    html = """
    <div id="rr_container">
      <div class="rr_result view_button" ttype="rr" round="1" tpid="AAAA" vstpid="BBBB">
        <span class="r_avg">50.0</span>
      </div>
    </div>
    """
    matches = parse_group_matches(_soup(html), "t_x_1", BASE)
    assert len(matches) == 1
    assert matches[0].first_player_name == "Unknown"
    assert matches[0].second_player_name == "Unknown"


def test_missing_containers_yield_no_matches():
    soup = _soup("<html><body><div id='other'></div></body></html>")
    assert parse_group_matches(soup, "t_x_1", BASE) == []
    assert parse_knockout_matches(soup, "t_x_1", BASE) == []
