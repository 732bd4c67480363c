from __future__ import annotations

import csv
import io
import uuid
from datetime import datetime, timedelta, timezone

from openpyxl import load_workbook

from agiletrack.models.entities import MemberRole, ProjectMethodology, ProjectStatus, TaskStatus
from agiletrack.services.pipeline import assess_projects, reduce_portfolio
from agiletrack.services.report_serializer import (
    CSV_MEDIA_TYPE,
    TEMPLATES,
    XLSX_MEDIA_TYPE,
    ReportContext,
    ReportTemplate,
    available_templates,
    build_table,
    fixed,
    format_currency,
    format_number,
    format_short_date,
    render_csv,
    resolve_template,
    serialize_report,
)
from agiletrack.services.snapshots import BudgetSnapshot, ProjectSnapshot, TaskSnapshot

NOW = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)


def _project(name: str, *, completed: int = 7, total: int = 10, metadata: dict | None = None) -> ProjectSnapshot:
    tasks = tuple(
        TaskSnapshot(
            id=uuid.uuid4(),
            title=f"Task {index}",
            status=TaskStatus.DONE if index < completed else TaskStatus.TODO,
            due_date=NOW + timedelta(days=30),
        )
        for index in range(total)
    )
    return ProjectSnapshot(
        id=uuid.uuid4(),
        name=name,
        status=ProjectStatus.ACTIVE,
        methodology=ProjectMethodology.AGILE,
        metadata=metadata or {},
        tasks=tasks,
        budgets=(
            BudgetSnapshot(
                id=uuid.uuid4(),
                category="General",
                allocated_amount=1000.0,
                spent_amount=900.0,
                approved_amount=900.0,
            ),
        ),
    )


def _context(*projects: ProjectSnapshot) -> ReportContext:
    assessments = assess_projects(projects, now=NOW)
    return ReportContext(
        organization_name="Acme Relief",
        organization_slug="acme",
        period="current-quarter",
        generated_at=NOW,
        currency="USD",
        portfolio=reduce_portfolio(assessments),
        projects=tuple(assessments),
    )


def test_number_formatting() -> None:
    assert format_number(3) == "3"
    assert format_number(1000.0) == "1000"
    assert format_number(0.1 + 0.2) == "0.30000000000000004"
    assert format_number(float("inf")) == "Infinity"
    assert fixed(90, 1) == "90.0"
    assert fixed(0.125, 2) == "0.13"
    assert format_short_date(NOW) == "10/19/2026"
    assert format_short_date(None) == ""


def test_currency_formatting() -> None:
    assert format_currency(1234.5, "USD") == "$1,234.50"
    assert format_currency(10, "eur") == "€10.00"
    assert format_currency(1234.5, "MZN") == "MZN 1,234.50"
    assert format_currency(-50, "USD") == "-$50.00"


def test_resolve_template_and_role_visibility() -> None:
    assert resolve_template("executive-summary") == ReportTemplate.EXECUTIVE_SUMMARY
    assert resolve_template("pqg_mbr_report") == ReportTemplate.PQG_MBR_REPORT
    assert resolve_template("weekly-digest") is None

    assert available_templates(MemberRole.TEAM_MEMBER) == []
    assert len(available_templates(MemberRole.ORG_ADMIN)) == len(TEMPLATES)
    assert ReportTemplate.TEAM_PRODUCTIVITY not in available_templates(MemberRole.MONITOR)


def test_executive_summary_rows() -> None:
    table = build_table(ReportTemplate.EXECUTIVE_SUMMARY, _context(_project("Clinic")))
    rows = {row[0]: row[1] for row in table.rows}

    assert table.headers == ("Metric", "Value", "Description")
    assert rows["Organization"] == "Acme Relief"
    assert rows["Generated Date"] == "10/19/2026"
    assert rows["Total Projects"] == "1"
    assert rows["Task Completion Rate"] == "70.0%"
    assert rows["Budget Utilization"] == "90.0%"
    assert rows["Total Budget"] == "$1,000.00"
    assert rows["Yellow Projects"] == "1"


def test_project_performance_row() -> None:
    table = build_table(ReportTemplate.PROJECT_PERFORMANCE, _context(_project("Clinic")))

    assert len(table.headers) == 12
    assert table.rows == [
        ["Clinic", "ACTIVE", "AGILE", "10", "7", "70.0", "0", "1000", "900", "90.0", "YELLOW", ""]
    ]


def test_pqg_mbr_row_reads_project_metadata() -> None:
    project = _project(
        "Rural Roads",
        completed=10,
        metadata={"pqgPriority": "II", "pqgProgram": "Estradas", "ugb": "UGB Sofala", "location": "Beira"},
    )
    unclassified = _project("Back Office")

    table = build_table(ReportTemplate.PQG_MBR_REPORT, _context(project, unclassified))

    first, second = table.rows
    assert first[:5] == ["Rural Roads", "UGB Sofala", "Beira", "Prioridade II", "Estradas"]
    assert first[-1] == "Projeto em active. 0 tarefas em atraso."
    assert second[1:5] == ["N/A", "N/A", "N/A", "N/A"]
    assert len(first) == len(table.headers)


def test_legacy_csv_does_not_quote_commas() -> None:
    table = build_table(ReportTemplate.FINANCIAL_REPORT, _context(_project("Water, Sanitation")))

    rendered = render_csv(table)
    lines = rendered.split("\n")

    assert lines[0] == ",".join(table.headers)
    # The unquoted comma splits the project name into two columns.
    assert len(lines[1].split(",")) > len(table.headers)
    assert not rendered.endswith("\n")


def test_escaped_csv_round_trips_fields() -> None:
    table = build_table(ReportTemplate.FINANCIAL_REPORT, _context(_project("Water, Sanitation")))

    rendered = render_csv(table, escape_fields=True)
    parsed = list(csv.reader(io.StringIO(rendered)))

    assert parsed[0] == list(table.headers)
    assert parsed[1][0] == "Water, Sanitation"
    assert parsed[1][1] == "$1,000.00"


def test_serialize_csv_payload_and_filename() -> None:
    exported = serialize_report(ReportTemplate.COMPLIANCE_REPORT, _context(_project("Clinic")))

    assert exported.media_type == CSV_MEDIA_TYPE
    assert exported.filename == "compliance_report-acme-2026-10-19.csv"
    assert exported.content.decode("utf-8").startswith("Project Name,Compliance Status")


def test_financial_summary_filename_uses_organization_name() -> None:
    exported = serialize_report(ReportTemplate.FINANCIAL_SUMMARY, _context(_project("Clinic")))

    assert exported.filename == "financial-report-Acme Relief-2026-10-19.csv"


def test_serialize_xlsx_payload() -> None:
    exported = serialize_report(
        ReportTemplate.TEAM_PRODUCTIVITY,
        _context(_project("Clinic")),
        format_name="xlsx",
    )

    assert exported.media_type == XLSX_MEDIA_TYPE
    assert exported.filename.endswith(".xlsx")
    workbook = load_workbook(io.BytesIO(exported.content))
    sheet = workbook.active
    header = [cell.value for cell in next(sheet.iter_rows(min_row=1, max_row=1))]
    assert header == list(TEMPLATES[ReportTemplate.TEAM_PRODUCTIVITY].headers)
    assert sheet.cell(row=2, column=1).value == "Clinic"


def test_xlsx_keeps_counts_and_amounts_numeric() -> None:
    exported = serialize_report(
        ReportTemplate.PROJECT_PERFORMANCE,
        _context(_project("Clinic")),
        format_name="xlsx",
    )
    csv_rows = serialize_report(ReportTemplate.PROJECT_PERFORMANCE, _context(_project("Clinic"))).content

    sheet = load_workbook(io.BytesIO(exported.content)).active
    total_tasks = sheet.cell(row=2, column=4).value
    allocated = sheet.cell(row=2, column=8).value

    assert isinstance(total_tasks, int) and total_tasks == 10
    assert sheet.cell(row=2, column=5).value == 7
    assert isinstance(allocated, (int, float)) and allocated == 1000
    assert sheet.cell(row=2, column=9).value == 900
    assert sheet.cell(row=2, column=6).value == "70.0"
    assert sheet.cell(row=2, column=2).value == "ACTIVE"
    assert b"Clinic,ACTIVE,AGILE,10,7,70.0,0,1000,900" in csv_rows
