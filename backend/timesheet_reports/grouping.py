"""Hierarchical grouping and duration aggregation for time entry reports.

Every report surface (HTML print view, PDF, spreadsheet, database browser)
builds its nested subtotal sections through :func:`build_report`, so the
grouping rules live in exactly one place.
"""

from __future__ import annotations

import datetime as dt
import enum
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

ALL_ENTRIES = "All Entries"
NO_TASK = "No Task"
MISSING = "-"
MAX_LEVELS = 3
_LEADING_DIGITS = re.compile(r"\s*([0-9]+)")


class GroupingKey(str, enum.Enum):
    NONE = "none"
    DATE = "date"
    USER = "user"
    CLIENT = "client"
    PROJECT = "project"
    TASK = "task"


GROUPING_ALIASES: Dict[str, GroupingKey] = {
    "": GroupingKey.NONE,
    "no_grouping": GroupingKey.NONE,
    "time_field_2": GroupingKey.TASK,
}


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """A single logged unit of work as consumed by the report engine."""

    date: str
    user: str
    project: str
    duration: str
    client: Optional[str] = None
    task: Optional[str] = None
    note: Optional[str] = None
    task_number: Optional[str] = None
    billable: bool = False


@dataclass(slots=True)
class Group:
    key: str
    level: int
    entries: List[TimeEntry] = field(default_factory=list)
    sub_groups: Dict[str, "Group"] = field(default_factory=dict)

    @property
    def is_leaf(self) -> bool:
        return not self.sub_groups


@dataclass(frozen=True, slots=True)
class ReportRow:
    kind: str  # "header", "entry" or "subtotal"
    level: int
    label: str
    entry_count: int = 0
    duration: str = "0:00"
    entry: Optional[TimeEntry] = None


@dataclass(slots=True)
class Report:
    keys: Tuple[GroupingKey, ...]
    totals_only: bool
    groups: Dict[str, Group]
    rows: List[ReportRow]
    entry_count: int
    total_minutes: int
    total_duration: str
    users: List[str]
    projects: List[str]


_EXTRACTORS: Dict[GroupingKey, Callable[[TimeEntry], Optional[str]]] = {
    GroupingKey.NONE: lambda entry: ALL_ENTRIES,
    GroupingKey.DATE: lambda entry: entry.date,
    GroupingKey.USER: lambda entry: entry.user,
    GroupingKey.CLIENT: lambda entry: entry.client,
    GroupingKey.PROJECT: lambda entry: entry.project,
    GroupingKey.TASK: lambda entry: entry.task or NO_TASK,
}


def parse_grouping(value: Union[str, Sequence[str], None]) -> Tuple[GroupingKey, ...]:
    """Turn a comma separated string or a list of names into grouping levels.

    ``none`` selections and repeats are dropped, at most three levels are kept.
    Unknown names raise ``ValueError``.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        raw_items: Iterable[str] = value.split(",")
    else:
        raw_items = value
    keys: List[GroupingKey] = []
    for item in raw_items:
        name = str(item).strip().lower()
        if name in GROUPING_ALIASES:
            keys.append(GROUPING_ALIASES[name])
            continue
        try:
            keys.append(GroupingKey(name))
        except ValueError:
            raise ValueError(f"Unknown grouping key: {item!r}") from None
    return normalize_keys(keys)


def normalize_keys(keys: Iterable[GroupingKey]) -> Tuple[GroupingKey, ...]:
    levels: List[GroupingKey] = []
    for key in keys:
        if key is GroupingKey.NONE or key in levels:
            continue
        levels.append(key)
        if len(levels) == MAX_LEVELS:
            break
    return tuple(levels)


def group_value(entry: TimeEntry, key: GroupingKey) -> str:
    value = _EXTRACTORS[key](entry)
    return value or MISSING


def sort_entries_by_date(entries: Iterable[TimeEntry]) -> List[TimeEntry]:
    return sorted(entries, key=lambda entry: _date_sort_key(entry.date))


def _date_sort_key(value: str) -> Tuple[int, str]:
    text = (value or "").strip()
    try:
        return 0, dt.date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return 1, text


def build_groups(entries: Iterable[TimeEntry], keys: Iterable[GroupingKey]) -> Dict[str, Group]:
    """Bucket ``entries`` into a nested, insertion ordered tree of groups.

    With no grouping levels a single ``"All Entries"`` root holds everything.
    Otherwise each entry lands in exactly one deepest-level group, in arrival
    order; intermediate groups only carry subgroups.
    """
    levels = normalize_keys(keys)
    roots: Dict[str, Group] = {}
    if not levels:
        roots[ALL_ENTRIES] = Group(key=ALL_ENTRIES, level=0, entries=list(entries))
        return roots

    last = len(levels) - 1
    for entry in entries:
        current = roots
        for depth, key in enumerate(levels):
            value = group_value(entry, key)
            group = current.get(value)
            if group is None:
                group = Group(key=value, level=depth)
                current[value] = group
            if depth == last:
                group.entries.append(entry)
            current = group.sub_groups
    return roots


# Durations


def _leading_int(text: str) -> int:
    match = _LEADING_DIGITS.match(text)
    return int(match.group(1)) if match else 0


def parse_duration_minutes(value: Optional[str]) -> int:
    if not value:
        return 0
    parts = str(value).split(":")
    hours = _leading_int(parts[0])
    minutes = _leading_int(parts[1]) if len(parts) > 1 else 0
    return hours * 60 + minutes


def sum_minutes(entries: Iterable[TimeEntry]) -> int:
    return sum(parse_duration_minutes(entry.duration) for entry in entries)


def format_minutes(total: int) -> str:
    hours, minutes = divmod(max(int(total), 0), 60)
    return f"{hours}:{minutes:02d}"


def format_duration(value: Optional[str]) -> str:
    return format_minutes(parse_duration_minutes(value))


def sum_durations(entries: Iterable[TimeEntry]) -> str:
    return format_minutes(sum_minutes(entries))


def minutes_to_hours(total: int) -> float:
    return total / 60


def duration_to_hours(value: Optional[str]) -> float:
    return minutes_to_hours(parse_duration_minutes(value))


# Tree walking


def flatten(group: Group) -> List[TimeEntry]:
    collected = list(group.entries)
    for child in group.sub_groups.values():
        collected.extend(flatten(child))
    return collected


def render(groups: Dict[str, Group], totals_only: bool = False, level: int = 0) -> List[ReportRow]:
    """Walk the tree depth first and emit display rows.

    Each group yields a header row carrying its aggregated duration. Leaf
    groups then list their entries (suppressed when ``totals_only``) and close
    with a subtotal row.
    """
    rows: List[ReportRow] = []
    for key, group in groups.items():
        members = flatten(group)
        label = key or ALL_ENTRIES
        rows.append(
            ReportRow(
                kind="header",
                level=level,
                label=label,
                entry_count=len(members),
                duration=sum_durations(members),
            )
        )
        if not group.is_leaf:
            rows.extend(render(group.sub_groups, totals_only, level + 1))
            continue
        if not totals_only:
            for entry in group.entries:
                rows.append(
                    ReportRow(
                        kind="entry",
                        level=level,
                        label=label,
                        entry_count=1,
                        duration=format_duration(entry.duration),
                        entry=entry,
                    )
                )
        rows.append(
            ReportRow(
                kind="subtotal",
                level=level,
                label=label,
                entry_count=len(group.entries),
                duration=sum_durations(group.entries),
            )
        )
    return rows


def _distinct(values: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)


def build_report(
    entries: Iterable[TimeEntry],
    keys: Iterable[GroupingKey],
    totals_only: bool = False,
) -> Report:
    ordered = sort_entries_by_date(entries)
    levels = normalize_keys(keys)
    groups = build_groups(ordered, levels)
    total = sum_minutes(ordered)
    return Report(
        keys=levels,
        totals_only=totals_only,
        groups=groups,
        rows=render(groups, totals_only),
        entry_count=len(ordered),
        total_minutes=total,
        total_duration=format_minutes(total),
        users=_distinct(entry.user for entry in ordered),
        projects=_distinct(entry.project for entry in ordered),
    )
