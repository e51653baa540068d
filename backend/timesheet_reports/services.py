from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from . import repository
from .analysis import AnalysisClient, AnalysisError
from .config import settings
from .grouping import Report, TimeEntry, build_report, minutes_to_hours, parse_grouping
from .models import User
from .profit import build_totals, calculate_hours
from .schemas import (
    ParsedData,
    ProfitRequest,
    ProfitSummary,
    ProfitUserRow,
    ReportResponse,
    ReportRowResponse,
    SessionUser,
)
from .state import UploadStore
from .token_utils import (
    SessionPayload,
    build_payload,
    create_session_token,
    legacy_password_hash,
)

logger = logging.getLogger(__name__)


# Authentication


def _require_secret() -> str:
    if not settings.session_secret:
        logger.error("Login attempted without a configured session secret")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server misconfigured")
    return settings.session_secret


def authenticate(db: Session, login: str, password: str) -> Tuple[User, str]:
    """Return the user and a signed session token for valid credentials."""
    secret = _require_secret()
    login = (login or "").strip()
    if not login or not password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing credentials")
    user = (
        db.query(User)
        .filter(
            User.login == login,
            User.password == legacy_password_hash(password),
            User.status == repository.ACTIVE,
        )
        .first()
    )
    if user is None:
        logger.info("Failed login for %s", login)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid login or password")
    payload = build_payload(user, settings.session_ttl_days * 24 * 60 * 60)
    logger.info("User %s logged in", user.login)
    return user, create_session_token(payload, secret)


def change_password(db: Session, session: SessionPayload, current_password: str, new_password: str) -> None:
    if not current_password or not new_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing fields")
    user = db.get(User, session.sub)
    if user is None or user.password != legacy_password_hash(current_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.password = legacy_password_hash(new_password)
    db.commit()
    logger.info("Password changed for %s", user.login)


def session_user(payload: SessionPayload) -> SessionUser:
    return SessionUser(id=payload.sub, login=payload.login, name=payload.name, role_id=payload.role_id)


# Reports


def resolve_entries(
    store: UploadStore, data: Optional[ParsedData], upload_id: Optional[str]
) -> Tuple[List[TimeEntry], Optional[str]]:
    """Entries and client name from the inline payload or a stored upload."""
    if data is None and upload_id:
        data = store.get(upload_id)
        if data is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
    if data is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid data format")
    return [item.to_entry() for item in data.entries], data.client


def make_report(entries: List[TimeEntry], grouping, totals_only: bool = False) -> Report:
    try:
        keys = parse_grouping(grouping)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return build_report(entries, keys, totals_only)


def report_response(report: Report) -> ReportResponse:
    return ReportResponse(
        grouping=[key.value for key in report.keys],
        totals_only=report.totals_only,
        entry_count=report.entry_count,
        total_duration=report.total_duration,
        total_hours=minutes_to_hours(report.total_minutes),
        users=report.users,
        projects=report.projects,
        rows=[ReportRowResponse.from_row(row) for row in report.rows],
    )


# Profit


def compute_profit(db: Session, request: ProfitRequest) -> ProfitSummary:
    users = repository.get_users(db)
    if request.user_ids:
        wanted = set(request.user_ids)
        users = [user for user in users if user.id in wanted]
    user_ids = [user.id for user in users]
    all_project_ids = [project.id for project in repository.get_projects(db)]
    records = repository.get_time_entries(
        db, repository.EntryFilters(date_from=request.date_from, date_to=request.date_to)
    )
    income_hours, cost_hours = calculate_hours(
        records, user_ids, request.project_ids, all_project_ids, request.extra_hours
    )
    rates = {user.id: float(user.rate or 0) for user in users}
    rates.update({user_id: rate for user_id, rate in request.user_rates.items() if user_id in rates})
    client_rate = request.client_rate if request.client_rate is not None else settings.default_client_rate
    totals = build_totals(
        [(user.id, user.name or user.login) for user in users],
        income_hours,
        cost_hours,
        rates,
        client_rate,
        request.other_incomes,
        request.expenses,
    )
    return ProfitSummary(
        date_from=request.date_from,
        date_to=request.date_to,
        client_rate=client_rate,
        currency=settings.currency,
        users=[
            ProfitUserRow(
                user_id=line.user_id,
                name=line.name,
                income_hours=line.income_hours,
                cost_hours=line.cost_hours,
                rate=line.rate,
                income=line.income,
                cost=line.cost,
                net=line.net,
            )
            for line in totals.lines
        ],
        client_income=totals.client_income,
        other_income_total=totals.other_income_total,
        total_income=totals.total_income,
        staff_cost=totals.staff_cost,
        other_expenses=totals.other_expenses,
        total_expenses=totals.total_expenses,
        profit=totals.profit,
    )


# Analysis


def run_analysis(prompt: str, data: Optional[dict]) -> str:
    if not prompt or not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing prompt or data")
    if not settings.analysis_api_key:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Analysis API key not configured")
    client = AnalysisClient(
        settings.analysis_api_url,
        settings.analysis_api_key,
        model=settings.analysis_model,
        timeout=settings.analysis_timeout,
    )
    try:
        return client.analyze(prompt, data)
    except AnalysisError as exc:
        logger.exception("Analysis request failed")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to generate AI analysis") from exc
