"""Unit tests for discovery payload handling and filtering."""

from datetime import datetime, timezone

import pytest

from dartsync.scrape.discovery import (
    ResponseCollector,
    filter_tournaments,
    search_url,
    tournament_href,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)
BASE = "https://n01darts.com/n01/tournament"


def ts(dt: datetime) -> int:
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


def item(tdid, when, status=40, title="Agawa Cup"):
    return {"tdid": tdid, "title": title, "status": status, "t_date": ts(when)}


def test_keeps_completed_tournaments_inside_window():
    items = [
        item("t_new", datetime(2026, 10, 1)),
        item("t_old", datetime(2025, 9, 1)),
        item("t_live", datetime(2026, 10, 10), status=20),
        item("t_prep", datetime(2026, 10, 10), status=10),
        item("t_future", datetime(2026, 11, 1)),
    ]
    found = filter_tournaments(items, now=NOW, window_days=365, base_url=BASE)

    assert [t.nakka_identifier for t in found] == ["t_new"]
    assert found[0].tournament_date == datetime(2026, 10, 1)
    assert found[0].href == f"{BASE}/comp.php?id=t_new"
    assert found[0].status == "completed"


def test_window_edge_is_inclusive_and_now_is_exclusive():
    items = [
        item("t_edge", datetime(2025, 10, 18, 12, 0, 0)),
        item("t_now", NOW),
    ]
    found = filter_tournaments(items, now=NOW, window_days=365, base_url=BASE)
    assert [t.nakka_identifier for t in found] == ["t_edge"]


@pytest.mark.parametrize(
    "raw",
    [
        {"title": "No id", "status": 40, "t_date": ts(datetime(2026, 10, 1))},
        {"tdid": "t_a", "status": 40, "t_date": None},
        {"tdid": "t_a", "status": 40, "t_date": "yesterday"},
        {"tdid": "t_a", "status": 40, "t_date": 0},
        {"tdid": "t_a", "status": "done", "t_date": ts(datetime(2026, 10, 1))},
    ],
)
def test_incomplete_entries_are_dropped(raw):
    assert filter_tournaments([raw], now=NOW, window_days=365, base_url=BASE) == []


def test_status_as_string_and_missing_title():
    raw = {"tdid": "t_str", "status": "40", "t_date": str(ts(datetime(2026, 9, 30)))}
    found = filter_tournaments([raw], now=NOW, window_days=365, base_url=BASE)
    assert found[0].tournament_name == "Unknown Tournament"


def test_collector_only_wants_list_endpoint():
    assert ResponseCollector.wants(f"{BASE}/n01_tournament.php?cmd=get_list&keyword=agawa")
    assert not ResponseCollector.wants(f"{BASE}/n01_tournament.php?cmd=get_detail")
    assert not ResponseCollector.wants(f"{BASE}/comp.php?id=t_x")


def test_collector_accumulates_lists_and_ignores_other_payloads():
    collector = ResponseCollector()
    collector.add([{"tdid": "a"}, "junk", {"tdid": "b"}])
    collector.add({"error": "nope"})
    collector.add([{"tdid": "c"}])
    assert [i["tdid"] for i in collector.items] == ["a", "b", "c"]


def test_urls_are_built_from_base():
    assert search_url("agawa cup", BASE) == f"{BASE}/?keyword=agawa%20cup"
    assert tournament_href("t_Nd6M_9511", BASE) == f"{BASE}/comp.php?id=t_Nd6M_9511"
