from __future__ import annotations

import datetime as dt

import pytest

from timesheet_reports.grouping import TimeEntry
from timesheet_reports.progress import (
    DEFAULT_INTRO,
    build_progress_report,
    extract_task_number,
    group_progress,
    is_leave,
    is_public_holiday,
)


def _entry(date: str, user: str, project: str, duration: str, task=None, note=None) -> TimeEntry:
    return TimeEntry(date=date, user=user, project=project, duration=duration, task=task, note=note)


@pytest.fixture()
def entries() -> list[TimeEntry]:
    return [
        _entry("2025-07-01", "Alice", "Website", "2:00", task="#42 Checkout", note="Cart page"),
        _entry("2025-07-02", "Alice", "Website", "1:30", task="#42 Checkout", note="Payment form"),
        _entry("2025-07-02", "Alice", "Website", "0:30", note="Standup"),
        _entry("2025-07-03", "Alice", "Website", "0:15", note="Standup"),
        _entry("2025-07-04", "Alice", "Leave", "8:00", note="Annual leave"),
        _entry("2025-07-07", "Bob", "Admin", "8:00", task="Public Holiday"),
    ]


def test_extract_task_number() -> None:
    assert extract_task_number("#42 Checkout") == "42"
    assert extract_task_number("No number") is None
    assert extract_task_number(None) is None


def test_leave_and_holiday_detection(entries) -> None:
    assert is_leave(entries[4])
    assert not is_public_holiday(entries[4])
    assert is_public_holiday(entries[5])
    assert not is_leave(entries[5])


def test_tasks_merge_by_number_or_description(entries) -> None:
    grouped = group_progress(entries)
    website = grouped["Alice"].projects["Website"]
    assert len(website.tasks) == 2
    numbered, standup = website.tasks
    assert numbered.task_number == "42"
    assert numbered.hours == pytest.approx(3.5)
    assert numbered.dates == ["2025-07-01", "2025-07-02"]
    assert standup.description == "Standup"
    assert standup.hours == pytest.approx(0.75)
    assert website.total_hours == pytest.approx(4.25)


def test_leave_and_holidays_listed_separately(entries) -> None:
    grouped = group_progress(entries)
    assert "Leave" not in grouped["Alice"].projects
    assert [note.date for note in grouped["Alice"].leave] == ["2025-07-04"]
    assert grouped["Alice"].total_hours == pytest.approx(12.25)
    assert grouped["Bob"].public_holidays[0].reason == "Public Holiday"
    assert grouped["Bob"].projects == {}


def test_report_text(entries) -> None:
    text = build_progress_report(group_progress(entries), "Intro.\n\n", generated_on=dt.date(2025, 7, 8))
    assert text.startswith("Team Progress Report\nGenerated on: 2025-07-08\n\nIntro.\n\n")
    assert "#42 | Cart page (2025-07-01, 2025-07-02)\n" in text
    assert "Standup (2025-07-02, 2025-07-03)\n" in text
    assert "2025-07-04 - Leave\n" in text
    assert "2025-07-07 - Public Holiday\n" in text


def test_report_text_defaults_to_intro(entries) -> None:
    text = build_progress_report(group_progress(entries), generated_on=dt.date(2025, 7, 8))
    assert text.startswith(f"Team Progress Report\nGenerated on: 2025-07-08\n\n{DEFAULT_INTRO}Alice\n")
