from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .grouping import ReportRow, TimeEntry


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


class TimeEntryPayload(BaseModel):
    """Entry as carried by uploaded timesheets and report requests."""

    model_config = ConfigDict(extra="ignore")
    date: str = ""
    user: str = ""
    client: Optional[str] = ""
    project: str = ""
    task: Optional[str] = ""
    time_field_1307: Optional[str] = ""
    duration: str = "0"
    note: Optional[str] = ""
    task_number: Optional[str] = None
    billable: bool = False

    @field_validator("date", "user", "project", "duration", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("client", "task", "time_field_1307", "note", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        return _text(value)

    def to_entry(self) -> TimeEntry:
        return TimeEntry(
            date=self.date,
            user=self.user,
            client=self.client or None,
            project=self.project,
            task=self.task or self.time_field_1307 or None,
            duration=self.duration,
            note=self.note or None,
            task_number=self.task_number,
            billable=self.billable,
        )


class ParsedData(BaseModel):
    client: Optional[str] = None
    entries: List[TimeEntryPayload] = Field(default_factory=list)


class UploadResponse(BaseModel):
    upload_id: str
    client: Optional[str]
    entry_count: int
    data: Dict[str, Any]


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    data: Optional[ParsedData] = None
    upload_id: Optional[str] = Field(default=None, alias="uploadId")
    grouping: Union[str, List[str]] = "date"
    totals_only: bool = Field(default=False, alias="totalsOnly")

    @model_validator(mode="after")
    def _require_source(self) -> "ReportRequest":
        if self.data is None and not self.upload_id:
            raise ValueError("Either data or upload_id is required")
        return self


class HtmlDocumentResponse(BaseModel):
    html: str
    filename: str


class ReportRowResponse(BaseModel):
    kind: str
    level: int
    label: str
    entry_count: int
    duration: str
    entry: Optional[TimeEntryPayload] = None

    @classmethod
    def from_row(cls, row: ReportRow) -> "ReportRowResponse":
        entry = None
        if row.entry is not None:
            entry = TimeEntryPayload(
                date=row.entry.date,
                user=row.entry.user,
                client=row.entry.client,
                project=row.entry.project,
                task=row.entry.task,
                duration=row.duration,
                note=row.entry.note,
                task_number=row.entry.task_number,
                billable=row.entry.billable,
            )
        return cls(
            kind=row.kind,
            level=row.level,
            label=row.label,
            entry_count=row.entry_count,
            duration=row.duration,
            entry=entry,
        )


class ReportResponse(BaseModel):
    grouping: List[str]
    totals_only: bool
    entry_count: int
    total_duration: str
    total_hours: float
    users: List[str]
    projects: List[str]
    rows: List[ReportRowResponse]


# Authentication


class LoginRequest(BaseModel):
    login: str = ""
    password: str = ""


class SessionUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    login: str
    name: Optional[str]
    role_id: Optional[int] = None


class LoginResponse(BaseModel):
    ok: bool = True
    user: SessionUser


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    current_password: str = Field(default="", alias="currentPassword")
    new_password: str = Field(default="", alias="newPassword")


class OkResponse(BaseModel):
    ok: bool = True


# Reference data


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    login: str
    name: Optional[str]
    group_id: int
    role_id: Optional[int]
    rate: float
    email: Optional[str]
    status: int


class NamedRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str] = None
    status: int = 1


class ClientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    address: Optional[str]
    tax: float
    status: int


class DateRangeResponse(BaseModel):
    min_date: Optional[dt.date]
    max_date: Optional[dt.date]


class TimeEntryRecord(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str]
    user_login: Optional[str]
    date: dt.date
    start: Optional[str]
    duration: Optional[str]
    client_id: Optional[int]
    client_name: Optional[str]
    project_id: Optional[int]
    project_name: Optional[str]
    task_id: Optional[int]
    task_name: Optional[str]
    task_number: Optional[str]
    comment: Optional[str]
    billable: int
    approved: int
    paid: int


# Profit calculator


class MoneyRow(BaseModel):
    description: str = ""
    amount: float = 0.0

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0


class ExtraHoursRow(BaseModel):
    user_id: Optional[int] = None
    hours: float = 0.0


class ProfitRequest(BaseModel):
    date_from: dt.date
    date_to: dt.date
    client_rate: Optional[float] = None
    user_ids: Optional[List[int]] = None
    project_ids: List[int] = Field(default_factory=list)
    user_rates: Dict[int, float] = Field(default_factory=dict)
    extra_hours: List[ExtraHoursRow] = Field(default_factory=list)
    other_incomes: List[MoneyRow] = Field(default_factory=list)
    expenses: List[MoneyRow] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_range(self) -> "ProfitRequest":
        if self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self


class ProfitUserRow(BaseModel):
    user_id: int
    name: str
    income_hours: float
    cost_hours: float
    rate: float
    income: float
    cost: float
    net: float


class ProfitSummary(BaseModel):
    date_from: dt.date
    date_to: dt.date
    client_rate: float
    currency: str
    users: List[ProfitUserRow]
    client_income: float
    other_income_total: float
    total_income: float
    staff_cost: float
    other_expenses: float
    total_expenses: float
    profit: float


class ProfitUserRef(BaseModel):
    id: int
    name: str


class ProfitExportPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    date_from: str = Field(alias="dateFrom")
    date_to: str = Field(alias="dateTo")
    client_rate: float = Field(default=0.0, alias="clientRate")
    users: List[ProfitUserRef] = Field(default_factory=list)
    per_user_income_hours: Dict[int, float] = Field(default_factory=dict, alias="perUserIncomeHours")
    per_user_cost_hours: Dict[int, float] = Field(default_factory=dict, alias="perUserCostHours")
    user_rates: Dict[int, float] = Field(default_factory=dict, alias="userRates")
    other_incomes: List[MoneyRow] = Field(default_factory=list, alias="otherIncomes")
    expenses: List[MoneyRow] = Field(default_factory=list)
    selected_project_names: List[str] = Field(default_factory=list, alias="selectedProjectNames")


# Team summary


class TeamMemberSummary(BaseModel):
    user_id: int
    name: str
    paid_hours: float
    worked_hours: float
    leave_hours: float
    public_holiday_hours: float
    charged_hours: float
    charged_percentage: float
    client_hours: Dict[str, float]


class TeamSummaryTotals(BaseModel):
    paid_hours: float
    worked_hours: float
    leave_hours: float
    public_holiday_hours: float
    charged_hours: float
    charged_percentage: float
    client_hours: Dict[str, float]


class TeamSummaryResponse(BaseModel):
    date_from: dt.date
    date_to: dt.date
    working_days: int
    members: List[TeamMemberSummary]
    totals: TeamSummaryTotals


# Progress report


class ProgressTask(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    task_number: Optional[str] = Field(default=None, alias="taskNumber")
    description: str = ""
    hours: float = 0.0
    dates: List[str] = Field(default_factory=list)


class ProjectProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    tasks: List[ProgressTask] = Field(default_factory=list)
    total_hours: float = Field(default=0.0, alias="totalHours")


class DayNote(BaseModel):
    date: str
    reason: str


class UserProgress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    projects: Dict[str, ProjectProgress] = Field(default_factory=dict)
    leave: List[DayNote] = Field(default_factory=list)
    public_holidays: List[DayNote] = Field(default_factory=list, alias="publicHolidays")
    total_hours: float = Field(default=0.0, alias="totalHours")


class ProgressRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    data: Optional[ParsedData] = None
    upload_id: Optional[str] = Field(default=None, alias="uploadId")

    @model_validator(mode="after")
    def _require_source(self) -> "ProgressRequest":
        if self.data is None and not self.upload_id:
            raise ValueError("Either data or upload_id is required")
        return self


class ProgressReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    grouped_progress: Dict[str, UserProgress] = Field(default_factory=dict, alias="groupedProgress")
    report_text: str = Field(default="", alias="reportText")


class AnalysisRequest(BaseModel):
    prompt: str = ""
    data: Optional[Dict[str, Any]] = None


class AnalysisResponse(BaseModel):
    analysis: str
    timestamp: dt.datetime
    prompt: str
