from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from openpyxl import Workbook

from .grouping import duration_to_hours
from .schemas import ExtraHoursRow, MoneyRow, ProfitExportPayload

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass(slots=True)
class ProfitLine:
    user_id: int
    name: str
    income_hours: float
    cost_hours: float
    rate: float
    income: float
    cost: float
    net: float


@dataclass(slots=True)
class ProfitTotals:
    lines: List[ProfitLine]
    client_income: float
    other_income_total: float
    total_income: float
    staff_cost: float
    other_expenses: float
    total_expenses: float
    profit: float

    @property
    def income_hours(self) -> float:
        return sum(line.income_hours for line in self.lines)

    @property
    def cost_hours(self) -> float:
        return sum(line.cost_hours for line in self.lines)


def extra_hours_by_user(rows: Iterable[ExtraHoursRow]) -> Dict[int, float]:
    totals: Dict[int, float] = {}
    for row in rows:
        if not row.user_id:
            continue
        hours = float(row.hours or 0)
        if hours <= 0:
            continue
        totals[row.user_id] = totals.get(row.user_id, 0.0) + hours
    return totals


def calculate_hours(
    entries: Iterable[Mapping[str, Any]],
    user_ids: Sequence[int],
    project_ids: Sequence[int],
    all_project_ids: Sequence[int],
    extra_hours: Iterable[ExtraHoursRow] = (),
) -> Tuple[Dict[int, float], Dict[int, float]]:
    """Per-user income hours and cost hours for the selected users.

    Income hours count billable entries on the income projects only (every
    project when none or all are selected); cost hours count every entry.
    Manually added hours count towards both.
    """
    selected = set(user_ids)
    income: Dict[int, float] = {user_id: 0.0 for user_id in user_ids}
    cost: Dict[int, float] = {user_id: 0.0 for user_id in user_ids}
    project_set = set(project_ids)
    all_selected = not project_set or project_set >= set(all_project_ids)

    for entry in entries:
        user_id = entry.get("user_id")
        if user_id not in selected:
            continue
        hours = duration_to_hours(entry.get("duration"))
        cost[user_id] += hours
        project_id = entry.get("project_id")
        project_ok = all_selected or (project_id is not None and project_id in project_set)
        if entry.get("billable") == 1 and project_ok:
            income[user_id] += hours

    for user_id, hours in extra_hours_by_user(extra_hours).items():
        if user_id in selected:
            income[user_id] += hours
            cost[user_id] += hours
    return income, cost


def _money_total(rows: Iterable[MoneyRow]) -> float:
    return sum(float(row.amount or 0) for row in rows)


def build_totals(
    users: Sequence[Tuple[int, str]],
    income_hours: Mapping[int, float],
    cost_hours: Mapping[int, float],
    rates: Mapping[int, float],
    client_rate: float,
    other_incomes: Iterable[MoneyRow],
    expenses: Iterable[MoneyRow],
) -> ProfitTotals:
    lines: List[ProfitLine] = []
    for user_id, name in users:
        income_h = float(income_hours.get(user_id, 0.0))
        cost_h = float(cost_hours.get(user_id, 0.0))
        rate = float(rates.get(user_id, 0.0) or 0.0)
        income = income_h * client_rate
        cost = cost_h * rate
        lines.append(
            ProfitLine(
                user_id=user_id,
                name=name,
                income_hours=income_h,
                cost_hours=cost_h,
                rate=rate,
                income=income,
                cost=cost,
                net=income - cost,
            )
        )
    client_income = sum(line.income for line in lines)
    other_income_total = _money_total(other_incomes)
    staff_cost = sum(line.cost for line in lines)
    other_expenses = _money_total(expenses)
    total_income = client_income + other_income_total
    total_expenses = staff_cost + other_expenses
    return ProfitTotals(
        lines=lines,
        client_income=client_income,
        other_income_total=other_income_total,
        total_income=total_income,
        staff_cost=staff_cost,
        other_expenses=other_expenses,
        total_expenses=total_expenses,
        profit=total_income - total_expenses,
    )


def totals_from_export(payload: ProfitExportPayload) -> ProfitTotals:
    return build_totals(
        [(user.id, user.name) for user in payload.users],
        payload.per_user_income_hours,
        payload.per_user_cost_hours,
        payload.user_rates,
        payload.client_rate,
        payload.other_incomes,
        payload.expenses,
    )


def format_currency(amount: Optional[float]) -> str:
    value = float(amount or 0.0)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def export_filename(payload: ProfitExportPayload, suffix: str) -> str:
    if suffix == "xlsx":
        return f"profit_{payload.date_from}_to_{payload.date_to}.xlsx"
    return f"profit-{payload.date_from}-to-{payload.date_to}.{suffix}"


def write_profit_xlsx(payload: ProfitExportPayload) -> bytes:
    """Workbook with live formulas so figures can be tweaked in the spreadsheet."""
    wb = Workbook()
    ws_summary = wb.active
    ws_summary.title = "Summary"
    ws_users = wb.create_sheet("Users")
    ws_other = wb.create_sheet("Other Incomes")
    ws_expenses = wb.create_sheet("Expenses")

    ws_users.append(["Name", "Income Hours", "Rate ($/hr)", "Cost ($) = IncomeHours*Rate", "All Hours (Cost)"])
    for user in payload.users:
        row = ws_users.max_row + 1
        ws_users.append(
            [
                user.name,
                payload.per_user_income_hours.get(user.id, 0),
                payload.user_rates.get(user.id, 0),
                None,
                payload.per_user_cost_hours.get(user.id, 0),
            ]
        )
        ws_users[f"D{row}"] = f"=B{row}*C{row}"

    ws_other.append(["Description", "Amount"])
    for item in payload.other_incomes:
        ws_other.append([item.description or "", float(item.amount or 0)])

    ws_expenses.append(["Description", "Amount"])
    for item in payload.expenses:
        ws_expenses.append([item.description or "", float(item.amount or 0)])

    ws_summary.append(["Period", f"{payload.date_from} → {payload.date_to}"])
    ws_summary.append(["Client Rate ($/hr)", payload.client_rate])
    ws_summary.append(["Projects (income only)", ", ".join(payload.selected_project_names)])
    ws_summary.append(["Client Income", None])
    ws_summary.append(["Other Income Total", None])
    ws_summary.append([""])
    ws_summary.append(["Total Income", None])
    ws_summary.append([""])
    ws_summary.append(["Staff Cost", None])
    ws_summary.append(["Other Expenses", None])
    ws_summary.append([""])
    ws_summary.append(["Total Expenses", None])
    ws_summary.append([""])
    ws_summary.append(["Profit", None])

    ws_summary["B4"] = "=SUM(Users!B2:B1048576)*B2"
    ws_summary["B5"] = "=SUM('Other Incomes'!B2:B1048576)"
    ws_summary["B7"] = "=B4+B5"
    ws_summary["B9"] = "=SUM(Users!D2:D1048576)"
    ws_summary["B10"] = "=SUM(Expenses!B2:B1048576)"
    ws_summary["B12"] = "=B9+B10"
    ws_summary["B14"] = "=B7-B12"

    for column, width in zip("ABCDE", (28, 16, 14, 22, 16)):
        ws_users.column_dimensions[column].width = width
    for sheet in (ws_other, ws_expenses):
        sheet.column_dimensions["A"].width = 36
        sheet.column_dimensions["B"].width = 16
    ws_summary.column_dimensions["A"].width = 28
    ws_summary.column_dimensions["B"].width = 60

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
