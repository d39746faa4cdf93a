from __future__ import annotations

import logging

from catalog.groups import group_label, sort_status_groups
from catalog.queries import group_by_field


def _shape(ordered):
    return [(key, len(items)) for key, items in ordered]


def test_count_desc_scenario(works):
    groups = group_by_field(works, "catalog-status")
    assert _shape(sort_status_groups(groups, "count-desc")) == [("published", 12), ("draft", 3)]


def test_count_asc_and_alphabetical(works):
    groups = group_by_field(works, "catalog-status")
    assert _shape(sort_status_groups(groups, "count-asc")) == [("draft", 3), ("published", 12)]
    assert _shape(sort_status_groups(groups, "alphabetical")) == [("draft", 3), ("published", 12)]


def test_ties_break_alphabetically_in_both_directions():
    groups = {"b": [1, 2], "a": [1, 2], "c": [1], None: [1, 2, 3]}
    assert [k for k, _ in sort_status_groups(groups, "count-desc")] == [None, "a", "b", "c"]
    assert [k for k, _ in sort_status_groups(groups, "count-asc")] == ["c", "a", "b", None]


def test_alphabetical_is_case_insensitive_and_null_last():
    groups = {None: [1], "review": [1], "Draft": [1], "archived": [1]}
    assert [k for k, _ in sort_status_groups(groups, "alphabetical")] == ["archived", "Draft", "review", None]


def test_unknown_mode_falls_back_to_count_desc(works, caplog):
    groups = group_by_field(works, "catalog-status")
    with caplog.at_level(logging.DEBUG, logger="catalog.groups"):
        ordered = sort_status_groups(groups, "by-vibes")
    assert ordered == sort_status_groups(groups, "count-desc")
    assert "by-vibes" in caplog.text


def test_sorting_preserves_totals(works):
    groups = group_by_field(works, "genres", "array")
    for mode in ("alphabetical", "count-desc", "count-asc"):
        ordered = sort_status_groups(groups, mode)
        assert sum(len(items) for _, items in ordered) == sum(len(items) for items in groups.values())
        assert {k for k, _ in ordered} == set(groups)


def test_group_label():
    assert group_label(None) == "(no status)"
    assert group_label("") == "(no status)"
    assert group_label(1928) == "1928"
    assert group_label(None, empty_label="(none)") == "(none)"
