from __future__ import annotations

import pytest

from timesheet_reports.grouping import (
    ALL_ENTRIES,
    NO_TASK,
    Group,
    GroupingKey,
    TimeEntry,
    build_groups,
    build_report,
    flatten,
    format_duration,
    group_value,
    parse_duration_minutes,
    parse_grouping,
    render,
    sum_durations,
)


def _entry(date: str, user: str, duration: str, **extra) -> TimeEntry:
    return TimeEntry(date=date, user=user, project=extra.pop("project", "Website"), duration=duration, **extra)


@pytest.fixture()
def entries() -> list[TimeEntry]:
    return [
        _entry("2025-07-01", "A", "1:30"),
        _entry("2025-07-01", "B", "2:15"),
        _entry("2025-07-02", "A", "0:45"),
    ]


def test_group_by_date_subtotals_and_grand_total(entries) -> None:
    groups = build_groups(entries, [GroupingKey.DATE])
    assert list(groups) == ["2025-07-01", "2025-07-02"]
    assert len(groups["2025-07-01"].entries) == 2
    assert sum_durations(groups["2025-07-01"].entries) == "3:45"
    assert sum_durations(groups["2025-07-02"].entries) == "0:45"
    assert build_report(entries, [GroupingKey.DATE]).total_duration == "4:30"


def test_group_by_user_then_date(entries) -> None:
    groups = build_groups(entries, [GroupingKey.USER, GroupingKey.DATE])
    assert list(groups) == ["A", "B"]
    user_a = groups["A"]
    assert user_a.entries == []
    assert list(user_a.sub_groups) == ["2025-07-01", "2025-07-02"]
    assert sum_durations(user_a.sub_groups["2025-07-01"].entries) == "1:30"
    assert sum_durations(user_a.sub_groups["2025-07-02"].entries) == "0:45"
    assert sum_durations(flatten(user_a)) == "2:15"
    assert sum_durations(flatten(groups["B"])) == "2:15"
    assert user_a.sub_groups["2025-07-01"].level == 1


def test_no_grouping_produces_single_root(entries) -> None:
    for keys in ([], [GroupingKey.NONE]):
        groups = build_groups(entries, keys)
        assert list(groups) == [ALL_ENTRIES]
        assert groups[ALL_ENTRIES].entries == entries
        assert groups[ALL_ENTRIES].level == 0


def test_empty_entry_list_gives_empty_tree() -> None:
    assert build_groups([], [GroupingKey.DATE]) == {}
    report = build_report([], [GroupingKey.DATE])
    assert report.rows == []
    assert report.total_duration == "0:00"


def test_every_entry_lands_in_exactly_one_leaf(entries) -> None:
    groups = build_groups(entries, [GroupingKey.PROJECT, GroupingKey.USER, GroupingKey.DATE])
    collected = [entry for group in groups.values() for entry in flatten(group)]
    assert sorted(collected, key=id) == sorted(entries, key=id)


def test_parse_grouping_drops_none_and_duplicates() -> None:
    assert parse_grouping("user,none,user,date") == (GroupingKey.USER, GroupingKey.DATE)
    assert parse_grouping(["project", "client", "task", "date"]) == (
        GroupingKey.PROJECT,
        GroupingKey.CLIENT,
        GroupingKey.TASK,
    )
    assert parse_grouping("none") == ()
    assert parse_grouping("time_field_2") == (GroupingKey.TASK,)


def test_parse_grouping_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        parse_grouping("date,colour")


def test_group_value_placeholders() -> None:
    entry = TimeEntry(date="2025-07-01", user="", project="Website", duration="1:00")
    assert group_value(entry, GroupingKey.TASK) == NO_TASK
    assert group_value(entry, GroupingKey.CLIENT) == "-"
    assert group_value(entry, GroupingKey.USER) == "-"
    assert group_value(entry, GroupingKey.NONE) == ALL_ENTRIES


@pytest.mark.parametrize(
    ("value", "minutes"),
    [
        ("1:30", 90),
        ("01:30:59", 90),
        ("2", 120),
        ("", 0),
        (None, 0),
        ("abc", 0),
        ("1:xx", 60),
        ("²:30", 30),
        ("1:3²", 63),
        (" 2: 15", 135),
    ],
)
def test_parse_duration_minutes(value, minutes) -> None:
    assert parse_duration_minutes(value) == minutes


def test_format_duration_uses_unpadded_hours() -> None:
    assert format_duration("03:05") == "3:05"
    assert format_duration("25:00") == "25:00"
    assert format_duration("") == "0:00"


def test_sum_is_associative_across_partitions(entries) -> None:
    whole = sum_durations(entries)
    parts = [parse_duration_minutes(sum_durations(entries[:1])), parse_duration_minutes(sum_durations(entries[1:]))]
    assert parse_duration_minutes(whole) == sum(parts)


def test_flatten_preserves_child_order() -> None:
    first = _entry("2025-07-01", "A", "1:00")
    second = _entry("2025-07-02", "A", "1:00")
    root = Group(key="A", level=0)
    root.sub_groups["x"] = Group(key="x", level=1, entries=[first])
    root.sub_groups["y"] = Group(key="y", level=1, entries=[second])
    assert flatten(root) == [first, second]


def test_render_rows_for_nested_groups(entries) -> None:
    rows = render(build_groups(entries, [GroupingKey.USER, GroupingKey.DATE]))
    kinds = [(row.kind, row.level, row.label) for row in rows]
    assert kinds[:6] == [
        ("header", 0, "A"),
        ("header", 1, "2025-07-01"),
        ("entry", 1, "2025-07-01"),
        ("subtotal", 1, "2025-07-01"),
        ("header", 1, "2025-07-02"),
        ("entry", 1, "2025-07-02"),
    ]
    assert rows[0].duration == "2:15"
    assert rows[0].entry_count == 2
    assert not any(row.kind == "subtotal" and row.level == 0 for row in rows)


def test_render_totals_only_hides_entry_rows(entries) -> None:
    rows = render(build_groups(entries, [GroupingKey.DATE]), totals_only=True)
    assert [row.kind for row in rows] == ["header", "subtotal", "header", "subtotal"]
    assert [row.duration for row in rows] == ["3:45", "3:45", "0:45", "0:45"]


def test_build_report_sorts_by_date_and_collects_distinct_values() -> None:
    entries = [
        _entry("2025-07-03", "B", "1:00", project="Support"),
        _entry("not a date", "C", "0:10"),
        _entry("2025-07-01", "A", "0:30"),
    ]
    report = build_report(entries, [GroupingKey.DATE])
    assert list(report.groups) == ["2025-07-01", "2025-07-03", "not a date"]
    assert report.users == ["A", "B", "C"]
    assert report.projects == ["Website", "Support"]
    assert report.entry_count == 3
    assert report.total_duration == "1:40"


def test_malformed_durations_never_break_a_report() -> None:
    entries = [_entry("2025-07-01", "A", "²:30"), _entry("2025-07-01", "B", "1:00")]
    report = build_report(entries, [GroupingKey.DATE])
    assert report.total_duration == "1:30"


def test_repeated_keys_group_like_a_single_key(entries) -> None:
    assert build_groups(entries, [GroupingKey.USER, GroupingKey.USER]) == build_groups(entries, [GroupingKey.USER])
    assert build_groups(entries, [GroupingKey.USER, GroupingKey.NONE]) == build_groups(entries, [GroupingKey.USER])
