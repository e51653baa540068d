from __future__ import annotations

import datetime as dt
import re
from typing import Dict, Iterable, List, Mapping, Optional

from .grouping import TimeEntry, duration_to_hours
from .schemas import DayNote, ProgressTask, ProjectProgress, UserProgress

TASK_NUMBER_PATTERN = re.compile(r"#(\d+)")
DEFAULT_INTRO = "Here are the team's progress for the last 2 weeks as follows.\n\n"


def extract_task_number(task: Optional[str]) -> Optional[str]:
    match = TASK_NUMBER_PATTERN.search(task or "")
    return match.group(1) if match else None


def _mentions(entry: TimeEntry, *needles: str) -> bool:
    haystacks = [(entry.project or "").lower(), (entry.task or "").lower(), (entry.note or "").lower()]
    return any(needle in haystack for needle in needles for haystack in haystacks)


def is_public_holiday(entry: TimeEntry) -> bool:
    return _mentions(entry, "public holiday")


def is_leave(entry: TimeEntry) -> bool:
    return _mentions(entry, "leave") and not is_public_holiday(entry)


def _find_task(tasks: List[ProgressTask], number: Optional[str], description: str) -> Optional[ProgressTask]:
    for task in tasks:
        if number and task.task_number:
            if task.task_number == number:
                return task
        elif task.description == description:
            return task
    return None


def group_progress(entries: Iterable[TimeEntry]) -> Dict[str, UserProgress]:
    """Summarise entries per user and project, merging repeated work on one task."""
    grouped: Dict[str, UserProgress] = {}
    for entry in entries:
        user = grouped.setdefault(entry.user, UserProgress())
        hours = duration_to_hours(entry.duration)
        description = entry.note or ""
        if is_public_holiday(entry):
            user.public_holidays.append(
                DayNote(date=entry.date, reason=entry.note or entry.task or "Public Holiday")
            )
        elif is_leave(entry):
            user.leave.append(DayNote(date=entry.date, reason=entry.note or entry.task or "Leave"))
        else:
            project = user.projects.setdefault(entry.project, ProjectProgress())
            number = entry.task_number or extract_task_number(entry.task)
            task = _find_task(project.tasks, number, description)
            if task is None:
                project.tasks.append(
                    ProgressTask(task_number=number, description=description, hours=hours, dates=[entry.date])
                )
            else:
                task.hours += hours
                if entry.date not in task.dates:
                    task.dates.append(entry.date)
            project.total_hours += hours
        user.total_hours += hours
    return grouped


def build_progress_report(
    grouped: Mapping[str, UserProgress],
    report_text: str = "",
    generated_on: Optional[dt.date] = None,
) -> str:
    day = generated_on or dt.date.today()
    lines: List[str] = [
        "Team Progress Report\n",
        f"Generated on: {day.isoformat()}\n\n",
        report_text or DEFAULT_INTRO,
    ]
    for user, data in grouped.items():
        lines.append(f"{user}\n")
        for project, project_data in data.projects.items():
            if not project_data.tasks:
                continue
            lines.append(f"{project}\n")
            for task in project_data.tasks:
                prefix = f"#{task.task_number} | " if task.task_number else ""
                dates = f" ({', '.join(task.dates)})" if len(task.dates) > 1 else ""
                lines.append(f"{prefix}{task.description}{dates}\n")
            lines.append("\n")
        if data.public_holidays:
            lines.append(f"{', '.join(note.date for note in data.public_holidays)} - Public Holiday\n\n")
        if data.leave:
            lines.append(f"{', '.join(note.date for note in data.leave)} - Leave\n\n")
        lines.append("\n")
    return "".join(lines)
