from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, func, or_, text
from sqlalchemy.orm import Session, aliased

from .config import settings
from .grouping import TimeEntry
from .models import (
    TASK_NUMBER_FIELD_ID,
    Client,
    ClientProjectBind,
    CustomFieldLog,
    Project,
    Task,
    TimeLog,
    User,
)

logger = logging.getLogger(__name__)

ACTIVE = 1
LEAVE_PROJECT_PATTERNS = ("%Leave%", "%Out of Office%")
HOLIDAY_PROJECT_PATTERNS = ("%Public Holiday%", "%Holiday%")


@dataclass(slots=True)
class EntryFilters:
    user_id: Optional[int] = None
    project_ids: List[int] = field(default_factory=list)
    task_id: Optional[int] = None
    client_id: Optional[int] = None
    billable_only: bool = False
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None


@dataclass(slots=True)
class TeamSummaryData:
    users: List[User]
    clients: List[Client]
    entries: List[Dict[str, Any]]
    leave_project_id: Optional[int]
    holiday_project_id: Optional[int]
    working_days: int


def check_connection(db: Session) -> bool:
    db.execute(text("SELECT 1"))
    return True


def get_users(db: Session) -> List[User]:
    return (
        db.query(User)
        .filter(User.status == ACTIVE, User.group_id == settings.user_group_id)
        .order_by(User.name.asc())
        .all()
    )


def get_projects(db: Session) -> List[Project]:
    return db.query(Project).filter(Project.status == ACTIVE).order_by(Project.name.asc()).all()


def get_tasks(db: Session) -> List[Task]:
    return db.query(Task).filter(Task.status == ACTIVE).order_by(Task.name.asc()).all()


def get_clients(db: Session) -> List[Client]:
    return db.query(Client).filter(Client.status == ACTIVE).order_by(Client.name.asc()).all()


def get_projects_by_client(db: Session, client_id: int) -> List[Project]:
    return (
        db.query(Project)
        .join(ClientProjectBind, ClientProjectBind.project_id == Project.id)
        .filter(ClientProjectBind.client_id == client_id, Project.status == ACTIVE)
        .order_by(Project.name.asc())
        .all()
    )


def get_date_range(db: Session) -> Dict[str, Optional[dt.date]]:
    min_date, max_date = (
        db.query(func.min(TimeLog.date), func.max(TimeLog.date)).filter(TimeLog.status == ACTIVE).one()
    )
    return {"min_date": min_date, "max_date": max_date}


def get_time_entries(db: Session, filters: Optional[EntryFilters] = None) -> List[Dict[str, Any]]:
    filters = filters or EntryFilters()
    logger.debug("Loading time entries with filters %s", filters)
    task_number = aliased(CustomFieldLog)
    query = (
        db.query(
            TimeLog,
            User.name,
            User.login,
            Project.name,
            Task.name,
            Client.name,
            task_number.value,
        )
        .outerjoin(User, TimeLog.user_id == User.id)
        .outerjoin(Project, TimeLog.project_id == Project.id)
        .outerjoin(Task, TimeLog.task_id == Task.id)
        .outerjoin(Client, TimeLog.client_id == Client.id)
        .outerjoin(
            task_number,
            and_(
                task_number.log_id == TimeLog.id,
                task_number.field_id == TASK_NUMBER_FIELD_ID,
                task_number.status == ACTIVE,
            ),
        )
        .filter(TimeLog.status == ACTIVE)
    )
    if filters.user_id:
        query = query.filter(TimeLog.user_id == filters.user_id)
    if filters.project_ids:
        query = query.filter(TimeLog.project_id.in_(filters.project_ids))
    if filters.task_id:
        query = query.filter(TimeLog.task_id == filters.task_id)
    if filters.client_id:
        query = query.filter(TimeLog.client_id == filters.client_id)
    if filters.billable_only:
        query = query.filter(TimeLog.billable == 1)
    if filters.date_from:
        query = query.filter(TimeLog.date >= filters.date_from)
    if filters.date_to:
        query = query.filter(TimeLog.date <= filters.date_to)
    rows = query.order_by(TimeLog.date.asc(), TimeLog.created.asc(), TimeLog.id.asc()).all()
    logger.debug("Loaded %d time entries", len(rows))
    return [
        {
            "id": log.id,
            "user_id": log.user_id,
            "user_name": user_name,
            "user_login": user_login,
            "date": log.date,
            "start": log.start,
            "duration": log.duration,
            "client_id": log.client_id,
            "client_name": client_name,
            "project_id": log.project_id,
            "project_name": project_name,
            "task_id": log.task_id,
            "task_name": task_name,
            "task_number": number,
            "comment": log.comment,
            "billable": log.billable,
            "approved": log.approved,
            "paid": log.paid,
        }
        for log, user_name, user_login, project_name, task_name, client_name, number in rows
    ]


def record_to_entry(record: Dict[str, Any]) -> TimeEntry:
    """Map a joined ``tt_log`` row onto the report engine's entry shape."""
    day = record.get("date")
    return TimeEntry(
        date=day.isoformat() if isinstance(day, dt.date) else str(day or "").split("T")[0],
        user=record.get("user_name") or record.get("user_login") or "",
        client=record.get("client_name"),
        project=record.get("project_name") or "",
        task=record.get("task_number") or record.get("task_name"),
        duration=record.get("duration") or "",
        note=record.get("comment"),
        task_number=record.get("task_number"),
        billable=bool(record.get("billable")),
    )


def count_working_days(start: dt.date, end: dt.date) -> int:
    days = 0
    current = start
    while current <= end:
        if current.weekday() < 5:
            days += 1
        current += dt.timedelta(days=1)
    return days


def _find_project_id(db: Session, patterns: Sequence[str]) -> Optional[int]:
    project = (
        db.query(Project)
        .filter(or_(*[Project.name.like(pattern) for pattern in patterns]))
        .order_by(Project.id.asc())
        .first()
    )
    return project.id if project else None


def get_team_summary_data(db: Session, date_from: dt.date, date_to: dt.date) -> TeamSummaryData:
    logger.debug("Loading team summary data for %s to %s", date_from, date_to)
    entries = get_time_entries(db, EntryFilters(date_from=date_from, date_to=date_to))
    return TeamSummaryData(
        users=get_users(db),
        clients=get_clients(db),
        entries=entries,
        leave_project_id=_find_project_id(db, LEAVE_PROJECT_PATTERNS),
        holiday_project_id=_find_project_id(db, HOLIDAY_PROJECT_PATTERNS),
        working_days=count_working_days(date_from, date_to),
    )
