"""Report serializer: header + row tables for every export template.

Template selection is a pure lookup on :class:`ReportTemplate`. Legacy CSV
output joins raw fields with commas and does not quote them, so a value
containing a comma shifts the remaining columns of its row. Pass
``escape_fields=True`` to :func:`render_csv` for RFC 4180 quoting.
"""

from __future__ import annotations

import csv
import enum
import io
import math
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from openpyxl import Workbook

from agiletrack.models.entities import MemberRole
from agiletrack.services.classifiers import MBR_CRITERIA, HealthBand, financial_health_label
from agiletrack.services.pipeline import PortfolioMetrics, ProjectAssessment
from agiletrack.services.rates import finite_or_zero

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FORMATS = ("csv", "xlsx")
NOT_AVAILABLE = "N/A"

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£"}


class ReportTemplate(str, enum.Enum):
    EXECUTIVE_SUMMARY = "EXECUTIVE_SUMMARY"
    PROJECT_PERFORMANCE = "PROJECT_PERFORMANCE"
    FINANCIAL_REPORT = "FINANCIAL_REPORT"
    PQG_MBR_REPORT = "PQG_MBR_REPORT"
    TEAM_PRODUCTIVITY = "TEAM_PRODUCTIVITY"
    COMPLIANCE_REPORT = "COMPLIANCE_REPORT"
    FINANCIAL_SUMMARY = "FINANCIAL_SUMMARY"


@dataclass(slots=True)
class ExportFilePayload:
    media_type: str
    filename: str
    content: bytes


@dataclass(frozen=True, slots=True)
class ReportContext:
    organization_name: str
    organization_slug: str
    period: str
    generated_at: datetime
    currency: str
    portfolio: PortfolioMetrics
    projects: tuple[ProjectAssessment, ...]


@dataclass(frozen=True, slots=True)
class ReportTable:
    headers: tuple[str, ...]
    rows: list[list[str]]
    # Same rows with numbers left unformatted, for typed spreadsheet cells.
    typed_rows: list[list[str | int | float]] = field(default_factory=list)


# ---------- Value formatting ----------
def format_number(value: float | int) -> str:
    """Render a number the way the web client printed raw values."""

    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value.is_integer():
        return str(int(value))
    return repr(value)


def fixed(value: float, digits: int) -> str:
    """Fixed-point rendering, halves rounded away from zero."""

    if not math.isfinite(value):
        return format_number(value)
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_currency(amount: float, currency: str = "USD") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), f"{currency.upper()} ")
    quantized = Decimal(abs(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if amount < 0 and quantized != 0 else ""
    return f"{sign}{symbol}{quantized:,.2f}"


def format_short_date(value: datetime | None) -> str:
    if value is None:
        return ""
    return f"{value.month}/{value.day}/{value.year}"


def _cell(value: object) -> str:
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return format_number(value)
    return "" if value is None else str(value)


def _typed_cell(value: object) -> str | int | float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return value
    return _cell(value)


# ---------- Row builders ----------
def _executive_summary_rows(context: ReportContext) -> list[list[object]]:
    metrics = context.portfolio
    money = context.currency
    return [
        ["Organization", context.organization_name, "Organization name"],
        ["Report Period", context.period, "Reporting period"],
        ["Generated Date", format_short_date(context.generated_at), "Report generation date"],
        ["Total Projects", metrics.total_projects, "Total number of projects"],
        ["Active Projects", metrics.active_projects, "Currently active projects"],
        [
            "Task Completion Rate",
            f"{fixed(metrics.task_completion_rate, 1)}%",
            "Overall task completion percentage",
        ],
        ["Budget Utilization", f"{fixed(metrics.budget_utilization, 1)}%", "Budget utilization percentage"],
        ["Total Budget", format_currency(metrics.total_budget, money), "Total allocated budget"],
        ["Spent Budget", format_currency(metrics.spent_budget, money), "Total spent amount"],
        ["Green Projects", metrics.green_projects, "Projects in good health"],
        ["Yellow Projects", metrics.yellow_projects, "Projects needing attention"],
        ["Red Projects", metrics.red_projects, "Projects in critical status"],
        ["Overdue Tasks", metrics.overdue_tasks, "Tasks past due date"],
    ]


def _project_performance_rows(context: ReportContext) -> list[list[object]]:
    return [
        [
            item.project.name,
            item.project.status,
            item.project.methodology,
            item.totals.total_tasks,
            item.totals.completed_tasks,
            fixed(item.rates.task_completion_rate, 1),
            item.totals.overdue_tasks,
            item.totals.allocated_budget,
            item.totals.spent_budget,
            fixed(item.rates.budget_utilization, 1),
            item.health,
            format_short_date(item.project.updated_at),
        ]
        for item in context.projects
    ]


def _financial_report_rows(context: ReportContext) -> list[list[object]]:
    rows: list[list[object]] = []
    for item in context.projects:
        currency = item.project.currency or context.currency
        remaining = item.totals.allocated_budget - item.totals.spent_budget
        rows.append(
            [
                item.project.name,
                format_currency(item.totals.allocated_budget, currency),
                format_currency(item.totals.spent_budget, currency),
                format_currency(remaining, currency),
                fixed(item.rates.budget_utilization, 1),
                item.project.status,
                item.totals.progress_report_count,
                financial_health_label(item.rates.budget_utilization),
            ]
        )
    return rows


def _pqg_mbr_rows(context: ReportContext) -> list[list[object]]:
    rows: list[list[object]] = []
    for item in context.projects:
        pqg = item.pqg
        ratings = [item.mbr.rating_for(criterion.key) for criterion in MBR_CRITERIA]
        rows.append(
            [
                item.project.name,
                (pqg.ugb if pqg else None) or NOT_AVAILABLE,
                (pqg.location if pqg else None) or NOT_AVAILABLE,
                f"Prioridade {pqg.priority}" if pqg and pqg.priority else NOT_AVAILABLE,
                (pqg.program if pqg else None) or NOT_AVAILABLE,
                item.totals.total_tasks,
                item.totals.completed_tasks,
                fixed(item.rates.task_completion_rate, 1),
                item.totals.allocated_budget,
                item.totals.spent_budget,
                fixed(item.rates.budget_utilization, 1),
                *ratings,
                item.mbr.overall_rating,
                f"Projeto em {item.project.status.value.lower()}. {item.totals.overdue_tasks} tarefas em atraso.",
            ]
        )
    return rows


def _team_productivity_rows(context: ReportContext) -> list[list[object]]:
    rows: list[list[object]] = []
    for item in context.projects:
        team_size = item.totals.team_size
        per_member = fixed(item.totals.total_tasks / team_size, 1) if team_size > 0 else "0"
        if item.totals.estimated_hours > 0:
            efficiency = fixed(finite_or_zero(item.rates.hour_efficiency), 1)
        else:
            efficiency = "100"
        rows.append(
            [
                item.project.name,
                team_size,
                item.totals.total_tasks,
                item.totals.completed_tasks,
                per_member,
                item.totals.estimated_hours,
                item.totals.actual_hours,
                efficiency,
                item.project.methodology,
                item.project.status,
            ]
        )
    return rows


def _compliance_rows(context: ReportContext) -> list[list[object]]:
    rows: list[list[object]] = []
    for item in context.projects:
        reports = item.totals.progress_report_count
        healthy = item.health == HealthBand.GREEN
        rows.append(
            [
                item.project.name,
                "Compliant" if healthy else "Non-Compliant",
                reports,
                "Recent" if reports > 0 else "None",
                "Compliant" if item.rates.budget_utilization <= 100 else "Non-Compliant",
                "Compliant" if item.totals.overdue_tasks == 0 else "Non-Compliant",
                "Compliant" if healthy else "Needs Review",
                item.health,
                "Yes" if item.health == HealthBand.RED else "No",
            ]
        )
    return rows


def _financial_summary_rows(context: ReportContext) -> list[list[object]]:
    return [
        [
            item.project.name,
            item.project.status,
            item.totals.allocated_budget,
            item.totals.spent_budget,
            item.totals.allocated_budget - item.totals.spent_budget,
            fixed(item.rates.budget_utilization, 2),
            fixed(item.rates.task_completion_rate, 2),
            item.totals.budget_categories,
            fixed(finite_or_zero(item.rates.hour_efficiency), 2),
        ]
        for item in context.projects
    ]


# ---------- Template registry ----------
@dataclass(frozen=True, slots=True)
class TemplateSpec:
    name: str
    description: str
    roles: frozenset[MemberRole]
    sections: tuple[str, ...]
    headers: tuple[str, ...]
    build_rows: Callable[[ReportContext], list[list[object]]]

    def as_dict(self, key: ReportTemplate) -> dict[str, object]:
        return {
            "key": key.value,
            "name": self.name,
            "description": self.description,
            "sections": list(self.sections),
            "formats": list(EXPORT_FORMATS),
        }


TEMPLATES: dict[ReportTemplate, TemplateSpec] = {
    ReportTemplate.EXECUTIVE_SUMMARY: TemplateSpec(
        name="Executive Summary",
        description="High-level overview for senior management and stakeholders",
        roles=frozenset(
            {MemberRole.ORG_ADMIN, MemberRole.PROJECT_MANAGER, MemberRole.DONOR_SPONSOR, MemberRole.MONITOR}
        ),
        sections=("Overview", "Key Metrics", "Project Health", "Financial Summary", "Recommendations"),
        headers=("Metric", "Value", "Description"),
        build_rows=_executive_summary_rows,
    ),
    ReportTemplate.PROJECT_PERFORMANCE: TemplateSpec(
        name="Project Performance Report",
        description="Detailed project-by-project performance analysis",
        roles=frozenset({MemberRole.PROJECT_MANAGER, MemberRole.MONITOR, MemberRole.ORG_ADMIN}),
        sections=("Project Details", "Task Analysis", "Budget Tracking", "Timeline Performance", "Risk Assessment"),
        headers=(
            "Project Name",
            "Status",
            "Methodology",
            "Total Tasks",
            "Completed Tasks",
            "Completion Rate %",
            "Overdue Tasks",
            "Total Budget",
            "Spent Budget",
            "Budget Utilization %",
            "Overall Health",
            "Last Updated",
        ),
        build_rows=_project_performance_rows,
    ),
    ReportTemplate.FINANCIAL_REPORT: TemplateSpec(
        name="Financial Report",
        description="Comprehensive financial analysis and budget utilization",
        roles=frozenset({MemberRole.DONOR_SPONSOR, MemberRole.ORG_ADMIN, MemberRole.PROJECT_MANAGER}),
        sections=("Budget Overview", "Expense Analysis", "Utilization Rates", "Financial Forecasting", "Approval Status"),
        headers=(
            "Project Name",
            "Allocated Budget",
            "Spent Amount",
            "Remaining Budget",
            "Utilization %",
            "Status",
            "Progress Reports",
            "Financial Health",
        ),
        build_rows=_financial_report_rows,
    ),
    ReportTemplate.PQG_MBR_REPORT: TemplateSpec(
        name="Relatório PQG/MBR",
        description="Government reporting format for Mozambique PQG compliance",
        roles=frozenset({MemberRole.PROJECT_MANAGER, MemberRole.MONITOR, MemberRole.ORG_ADMIN}),
        sections=("PQG Priorities", "Program Performance", "MBR Evaluation", "Geographic Distribution", "UGB Analysis"),
        headers=(
            "Nome do Projecto",
            "UGB",
            "Localização",
            "Prioridade PQG",
            "Programa",
            "Meta Física",
            "Real Alcançado",
            "% Execução Física",
            "Orçamento Alocado",
            "Orçamento Executado",
            "% Execução Orçamental",
            *(criterion.name for criterion in MBR_CRITERIA),
            "Avaliação Global MBR",
            "Observações",
        ),
        build_rows=_pqg_mbr_rows,
    ),
    ReportTemplate.TEAM_PRODUCTIVITY: TemplateSpec(
        name="Team Productivity Report",
        description="Team performance and resource utilization analysis",
        roles=frozenset({MemberRole.PROJECT_MANAGER, MemberRole.ORG_ADMIN}),
        sections=("Team Overview", "Task Distribution", "Performance Metrics", "Workload Analysis", "Recommendations"),
        headers=(
            "Project Name",
            "Team Size",
            "Total Tasks",
            "Completed Tasks",
            "Tasks per Team Member",
            "Estimated Hours",
            "Actual Hours",
            "Efficiency %",
            "Methodology",
            "Status",
        ),
        build_rows=_team_productivity_rows,
    ),
    ReportTemplate.COMPLIANCE_REPORT: TemplateSpec(
        name="Compliance & Audit Report",
        description="Detailed compliance tracking for government and donor requirements",
        roles=frozenset({MemberRole.ORG_ADMIN, MemberRole.MONITOR, MemberRole.DONOR_SPONSOR}),
        sections=("Compliance Status", "Audit Trail", "Document Tracking", "Risk Assessment", "Corrective Actions"),
        headers=(
            "Project Name",
            "Compliance Status",
            "Progress Reports",
            "Last Report Date",
            "Budget Compliance",
            "Schedule Compliance",
            "Quality Compliance",
            "Risk Level",
            "Corrective Actions Required",
        ),
        build_rows=_compliance_rows,
    ),
    ReportTemplate.FINANCIAL_SUMMARY: TemplateSpec(
        name="Financial Summary",
        description="Per-project budget utilization, task progress and hour efficiency",
        roles=frozenset(
            {MemberRole.ORG_ADMIN, MemberRole.SUPER_ADMIN, MemberRole.DONOR_SPONSOR, MemberRole.PROJECT_MANAGER}
        ),
        sections=("Budget Overview", "Utilization Rates", "Task Progress"),
        headers=(
            "Project Name",
            "Status",
            "Allocated Budget",
            "Spent Amount",
            "Remaining Budget",
            "Utilization %",
            "Task Progress %",
            "Budget Categories",
            "Hour Efficiency %",
        ),
        build_rows=_financial_summary_rows,
    ),
}


def resolve_template(key: str) -> ReportTemplate | None:
    try:
        return ReportTemplate(key.strip().upper().replace("-", "_"))
    except ValueError:
        return None


def available_templates(role: MemberRole) -> list[ReportTemplate]:
    return [key for key, spec in TEMPLATES.items() if role in spec.roles]


def build_table(template: ReportTemplate, context: ReportContext) -> ReportTable:
    spec = TEMPLATES[template]
    raw_rows = spec.build_rows(context)
    return ReportTable(
        headers=spec.headers,
        rows=[[_cell(value) for value in row] for row in raw_rows],
        typed_rows=[[_typed_cell(value) for value in row] for row in raw_rows],
    )


# ---------- Rendering ----------
def render_csv(table: ReportTable, *, escape_fields: bool = False) -> str:
    if not escape_fields:
        lines = [",".join(table.headers), *(",".join(row) for row in table.rows)]
        return "\n".join(lines)

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(table.headers)
    writer.writerows(table.rows)
    rendered = buffer.getvalue()
    return rendered[:-1] if rendered.endswith("\n") else rendered


def render_xlsx(table: ReportTable, *, sheet_title: str) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = sheet_title[:31]
    sheet.append(list(table.headers))
    for row in table.typed_rows:
        sheet.append(row)

    output = io.BytesIO()
    workbook.save(output)
    return output.getvalue()


def export_filename(template: ReportTemplate, context: ReportContext, extension: str) -> str:
    stamp = context.generated_at.date().isoformat()
    if template == ReportTemplate.FINANCIAL_SUMMARY:
        return f"financial-report-{context.organization_name}-{stamp}.{extension}"
    return f"{template.value.lower()}-{context.organization_slug}-{stamp}.{extension}"


def serialize_report(
    template: ReportTemplate,
    context: ReportContext,
    *,
    format_name: str = "csv",
    escape_fields: bool = False,
) -> ExportFilePayload:
    """Build and render one template. ``format_name`` must be in EXPORT_FORMATS."""

    table = build_table(template, context)
    if format_name == "xlsx":
        return ExportFilePayload(
            media_type=XLSX_MEDIA_TYPE,
            filename=export_filename(template, context, "xlsx"),
            content=render_xlsx(table, sheet_title=template.value.lower()),
        )
    return ExportFilePayload(
        media_type=CSV_MEDIA_TYPE,
        filename=export_filename(template, context, "csv"),
        content=render_csv(table, escape_fields=escape_fields).encode("utf-8"),
    )

