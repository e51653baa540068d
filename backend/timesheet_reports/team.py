from __future__ import annotations

import datetime as dt
from typing import Dict, List, Optional, Sequence

from .grouping import duration_to_hours
from .repository import TeamSummaryData
from .schemas import TeamMemberSummary, TeamSummaryResponse, TeamSummaryTotals


def _percentage(charged: float, paid: float) -> float:
    return (charged / paid) * 100 if paid > 0 else 0.0


def summarize_team(
    data: TeamSummaryData,
    date_from: dt.date,
    date_to: dt.date,
    user_ids: Optional[Sequence[int]] = None,
    paid_hours_per_day: float = 8.0,
) -> TeamSummaryResponse:
    selected = set(user_ids) if user_ids else {user.id for user in data.users}
    client_names = {client.id: client.name for client in data.clients}
    paid_hours = data.working_days * paid_hours_per_day

    members: List[TeamMemberSummary] = []
    for user in data.users:
        if user.id not in selected:
            continue
        worked = leave = holiday = charged = 0.0
        client_hours: Dict[str, float] = {}
        for entry in data.entries:
            if entry["user_id"] != user.id:
                continue
            hours = duration_to_hours(entry.get("duration"))
            worked += hours
            project_id = entry.get("project_id")
            if data.leave_project_id is not None and project_id == data.leave_project_id:
                leave += hours
            if data.holiday_project_id is not None and project_id == data.holiday_project_id:
                holiday += hours
            if entry.get("billable") == 1:
                charged += hours
                client_name = client_names.get(entry.get("client_id"))
                if client_name:
                    client_hours[client_name] = client_hours.get(client_name, 0.0) + hours
        members.append(
            TeamMemberSummary(
                user_id=user.id,
                name=user.name or user.login,
                paid_hours=paid_hours,
                worked_hours=worked,
                leave_hours=leave,
                public_holiday_hours=holiday,
                charged_hours=charged,
                charged_percentage=_percentage(charged, paid_hours),
                client_hours={name: value for name, value in client_hours.items() if value > 0},
            )
        )

    total_clients: Dict[str, float] = {}
    for member in members:
        for name, hours in member.client_hours.items():
            total_clients[name] = total_clients.get(name, 0.0) + hours
    total_paid = sum(member.paid_hours for member in members)
    total_charged = sum(member.charged_hours for member in members)
    totals = TeamSummaryTotals(
        paid_hours=total_paid,
        worked_hours=sum(member.worked_hours for member in members),
        leave_hours=sum(member.leave_hours for member in members),
        public_holiday_hours=sum(member.public_holiday_hours for member in members),
        charged_hours=total_charged,
        charged_percentage=_percentage(total_charged, total_paid),
        client_hours=total_clients,
    )
    return TeamSummaryResponse(
        date_from=date_from,
        date_to=date_to,
        working_days=data.working_days,
        members=members,
        totals=totals,
    )
