from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, Response, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, repository
from .config import settings
from .database import engine, get_db
from .middleware import SessionMiddleware
from .profit import XLSX_MEDIA_TYPE, export_filename, totals_from_export, write_profit_xlsx
from .progress import build_progress_report, group_progress
from .rendering import (
    render_profit_html,
    render_report_html,
    render_report_pdf,
    report_filename,
    write_report_xlsx,
)
from .schemas import (
    AnalysisRequest,
    AnalysisResponse,
    ChangePasswordRequest,
    ClientResponse,
    DateRangeResponse,
    HtmlDocumentResponse,
    LoginRequest,
    LoginResponse,
    NamedRecordResponse,
    OkResponse,
    ProfitExportPayload,
    ProfitRequest,
    ProfitSummary,
    ProgressReportRequest,
    ProgressRequest,
    ReportRequest,
    ReportResponse,
    SessionUser,
    TeamSummaryResponse,
    TimeEntryRecord,
    UploadResponse,
    UserProgress,
    UserResponse,
)
from .services import (
    authenticate,
    change_password,
    compute_profit,
    make_report,
    report_response,
    resolve_entries,
    run_analysis,
    session_user,
)
from .state import UploadStore
from .team import summarize_team
from .token_utils import SESSION_COOKIE, SessionPayload
from .uploads import parse_xml_document, transform_xml_rows

logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name)
app.state.upload_store = UploadStore(settings.upload_capacity)
app.add_middleware(SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s", request.url.path)
    return JSONResponse({"detail": "Database connection failed"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _store(request: Request) -> UploadStore:
    return request.app.state.upload_store


def _current_session(request: Request) -> SessionPayload:
    payload = getattr(request.state, "user", None)
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return payload


def _attachment(content: bytes, media_type: str, filename: str) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content, media_type=media_type, headers=headers)


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


# Authentication


@app.post("/api/login", response_model=LoginResponse)
def login(payload: LoginRequest, response: Response, db: Session = Depends(get_db)) -> LoginResponse:
    user, token = authenticate(db, payload.login, payload.password)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        max_age=settings.session_ttl_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return LoginResponse(user=SessionUser.model_validate(user))


@app.post("/api/logout", response_model=OkResponse)
def logout(response: Response) -> OkResponse:
    response.delete_cookie(SESSION_COOKIE, path="/")
    return OkResponse()


@app.get("/api/me", response_model=SessionUser)
def me(request: Request) -> SessionUser:
    return session_user(_current_session(request))


@app.post("/api/change-password", response_model=OkResponse)
def update_password(
    payload: ChangePasswordRequest, request: Request, db: Session = Depends(get_db)
) -> OkResponse:
    change_password(db, _current_session(request), payload.current_password, payload.new_password)
    return OkResponse()


# Uploaded timesheets


@app.post("/api/parse-xml", response_model=UploadResponse)
def parse_xml(request: Request, file: UploadFile = File(...)) -> UploadResponse:
    if not (file.filename or "").lower().endswith(".xml"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File must be an XML file")
    parsed = parse_xml_document(file.file.read())
    data = transform_xml_rows(parsed)
    upload_id = _store(request).put(data)
    logger.info("Stored upload %s with %d entries", upload_id, len(data.entries))
    return UploadResponse(upload_id=upload_id, client=data.client, entry_count=len(data.entries), data=parsed)


@app.delete("/api/uploads/{upload_id}", status_code=status.HTTP_204_NO_CONTENT)
def discard_upload(upload_id: str, request: Request) -> Response:
    if not _store(request).discard(upload_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Reports


@app.post("/api/report", response_model=ReportResponse)
def report_json(payload: ReportRequest, request: Request) -> ReportResponse:
    entries, _ = resolve_entries(_store(request), payload.data, payload.upload_id)
    return report_response(make_report(entries, payload.grouping, payload.totals_only))


@app.post("/api/generate-pdf", response_model=HtmlDocumentResponse)
def generate_pdf(payload: ReportRequest, request: Request) -> HtmlDocumentResponse:
    entries, client = resolve_entries(_store(request), payload.data, payload.upload_id)
    report = make_report(entries, payload.grouping, payload.totals_only)
    logger.info("Rendered report HTML with %d rows", len(report.rows))
    return HtmlDocumentResponse(html=render_report_html(report, client), filename=report_filename("pdf"))


@app.post("/api/report.pdf")
def report_pdf(payload: ReportRequest, request: Request) -> Response:
    entries, client = resolve_entries(_store(request), payload.data, payload.upload_id)
    report = make_report(entries, payload.grouping, payload.totals_only)
    return _attachment(render_report_pdf(report, client), "application/pdf", report_filename("pdf"))


@app.post("/api/report.xlsx")
def report_xlsx(payload: ReportRequest, request: Request) -> Response:
    entries, client = resolve_entries(_store(request), payload.data, payload.upload_id)
    report = make_report(entries, payload.grouping, payload.totals_only)
    return _attachment(write_report_xlsx(report, client), XLSX_MEDIA_TYPE, report_filename("xlsx"))


# Database browsing


def _entry_filters(
    user_id: Optional[int] = None,
    project_id: List[int] = Query([]),
    task_id: Optional[int] = None,
    client_id: Optional[int] = None,
    billable_only: bool = False,
    date_from: Optional[dt.date] = None,
    date_to: Optional[dt.date] = None,
) -> repository.EntryFilters:
    return repository.EntryFilters(
        user_id=user_id,
        project_ids=list(project_id),
        task_id=task_id,
        client_id=client_id,
        billable_only=billable_only,
        date_from=date_from,
        date_to=date_to,
    )


@app.get("/api/database/test", response_model=OkResponse)
def database_test(db: Session = Depends(get_db)) -> OkResponse:
    repository.check_connection(db)
    return OkResponse()


@app.get("/api/users", response_model=list[UserResponse])
def list_users(db: Session = Depends(get_db)) -> list[UserResponse]:
    return repository.get_users(db)


@app.get("/api/projects", response_model=list[NamedRecordResponse])
def list_projects(db: Session = Depends(get_db)) -> list[NamedRecordResponse]:
    return repository.get_projects(db)


@app.get("/api/tasks", response_model=list[NamedRecordResponse])
def list_tasks(db: Session = Depends(get_db)) -> list[NamedRecordResponse]:
    return repository.get_tasks(db)


@app.get("/api/clients", response_model=list[ClientResponse])
def list_clients(db: Session = Depends(get_db)) -> list[ClientResponse]:
    return repository.get_clients(db)


@app.get("/api/clients/{client_id}/projects", response_model=list[NamedRecordResponse])
def list_client_projects(client_id: int, db: Session = Depends(get_db)) -> list[NamedRecordResponse]:
    return repository.get_projects_by_client(db, client_id)


@app.get("/api/date-range", response_model=DateRangeResponse)
def date_range(db: Session = Depends(get_db)) -> DateRangeResponse:
    return DateRangeResponse(**repository.get_date_range(db))


@app.get("/api/time-entries", response_model=list[TimeEntryRecord])
def time_entries(
    filters: repository.EntryFilters = Depends(_entry_filters),
    db: Session = Depends(get_db),
) -> list[TimeEntryRecord]:
    return [TimeEntryRecord(**record) for record in repository.get_time_entries(db, filters)]


@app.get("/api/time-entries/report", response_model=ReportResponse)
def time_entries_report(
    grouping: str = "date",
    totals_only: bool = False,
    filters: repository.EntryFilters = Depends(_entry_filters),
    db: Session = Depends(get_db),
) -> ReportResponse:
    entries = [repository.record_to_entry(record) for record in repository.get_time_entries(db, filters)]
    return report_response(make_report(entries, grouping, totals_only))


# Profit calculator


@app.post("/api/profit", response_model=ProfitSummary)
def profit(payload: ProfitRequest, db: Session = Depends(get_db)) -> ProfitSummary:
    return compute_profit(db, payload)


@app.post("/api/export-profit-pdf", response_model=HtmlDocumentResponse)
def export_profit_pdf(payload: ProfitExportPayload) -> HtmlDocumentResponse:
    html = render_profit_html(payload, totals_from_export(payload))
    return HtmlDocumentResponse(html=html, filename=export_filename(payload, "pdf"))


@app.post("/api/export-excel")
def export_excel(payload: ProfitExportPayload) -> Response:
    content = write_profit_xlsx(payload)
    logger.info("Generated profit workbook for %s to %s", payload.date_from, payload.date_to)
    return _attachment(content, XLSX_MEDIA_TYPE, export_filename(payload, "xlsx"))


# Team summary


@app.get("/api/team-summary", response_model=TeamSummaryResponse)
def team_summary(
    date_from: dt.date,
    date_to: dt.date,
    user_id: List[int] = Query([]),
    db: Session = Depends(get_db),
) -> TeamSummaryResponse:
    if date_to < date_from:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date_to must not be before date_from")
    data = repository.get_team_summary_data(db, date_from, date_to)
    return summarize_team(data, date_from, date_to, user_id, settings.paid_hours_per_day)


# Progress report


@app.post("/api/progress", response_model=Dict[str, UserProgress])
def progress(payload: ProgressRequest, request: Request) -> Dict[str, UserProgress]:
    entries, _ = resolve_entries(_store(request), payload.data, payload.upload_id)
    return group_progress(entries)


@app.post("/api/generate-progress-report")
def generate_progress_report(payload: ProgressReportRequest) -> Response:
    content = build_progress_report(payload.grouped_progress, payload.report_text)
    return _attachment(content.encode("utf-8"), "text/plain; charset=utf-8", "team-progress-report.txt")


@app.post("/api/ai-analysis", response_model=AnalysisResponse)
def ai_analysis(payload: AnalysisRequest) -> AnalysisResponse:
    analysis = run_analysis(payload.prompt, payload.data)
    return AnalysisResponse(analysis=analysis, timestamp=dt.datetime.now(dt.timezone.utc), prompt=payload.prompt)
