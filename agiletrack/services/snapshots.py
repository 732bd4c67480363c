"""Read-only organization snapshots consumed by the aggregation pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from agiletrack.models.entities import (
    ExpenseStatus,
    PhaseStatus,
    ProjectMethodology,
    ProjectStatus,
    TaskPriority,
    TaskStatus,
)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_float(value: Decimal | float | None) -> float:
    """Monetary Numeric columns are summed as floats; precision loss is accepted."""

    return float(value) if value is not None else 0.0


@dataclass(frozen=True, slots=True)
class ExpenseSnapshot:
    id: UUID
    budget_id: UUID
    amount: float
    description: str
    expense_date: date
    status: ExpenseStatus
    reported_by_id: UUID
    reported_at: datetime
    reviewed_by_id: UUID | None = None
    reviewed_at: datetime | None = None


PQG_METADATA_KEYS = ("pqgPriority", "pqgProgram", "pqgIndicators", "ugb", "interventionArea", "location")


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True, slots=True)
class PqgData:
    priority: str | None
    program: str | None
    indicators: tuple[str, ...]
    ugb: str | None
    intervention_area: str | None
    location: str | None

    def as_dict(self) -> dict[str, object]:
        return {
            "pqg_priority": self.priority,
            "pqg_program": self.program,
            "pqg_indicators": list(self.indicators),
            "ugb": self.ugb,
            "intervention_area": self.intervention_area,
            "location": self.location,
        }


def extract_pqg_data(metadata: object) -> PqgData | None:
    """Government-plan classification stored on project metadata.

    Metadata without any PQG key (e.g. only `priority` or `tags`) carries no
    classification and yields None.
    """

    if not isinstance(metadata, Mapping):
        return None
    if not any(metadata.get(key) not in (None, "", []) for key in PQG_METADATA_KEYS):
        return None
    indicators = metadata.get("pqgIndicators")
    if isinstance(indicators, str):
        indicators = [indicators]
    if not isinstance(indicators, list):
        indicators = []
    return PqgData(
        priority=_optional_str(metadata.get("pqgPriority")),
        program=_optional_str(metadata.get("pqgProgram")),
        indicators=tuple(str(item) for item in indicators),
        ugb=_optional_str(metadata.get("ugb")),
        intervention_area=_optional_str(metadata.get("interventionArea")),
        location=_optional_str(metadata.get("location")),
    )


@dataclass(frozen=True, slots=True)
class BudgetSnapshot:
    id: UUID
    category: str
    allocated_amount: float
    spent_amount: float
    approved_amount: float
    expenses: tuple[ExpenseSnapshot, ...] = ()


@dataclass(frozen=True, slots=True)
class TaskSnapshot:
    id: UUID
    title: str
    status: TaskStatus
    due_date: datetime | None = None
    assignee_id: UUID | None = None
    estimated_hours: float | None = None
    actual_hours: float | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class PhaseSnapshot:
    id: UUID
    name: str
    status: PhaseStatus
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True, slots=True)
class ProjectSnapshot:
    id: UUID
    name: str
    status: ProjectStatus
    methodology: ProjectMethodology
    currency: str = "USD"
    budget: float | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    tasks: tuple[TaskSnapshot, ...] = ()
    budgets: tuple[BudgetSnapshot, ...] = ()
    phases: tuple[PhaseSnapshot, ...] = ()
    progress_report_count: int = 0
    last_report_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def pqg(self) -> PqgData | None:
        return extract_pqg_data(self.metadata)


@dataclass(frozen=True, slots=True)
class OrganizationSnapshot:
    id: UUID
    slug: str
    name: str
    projects: tuple[ProjectSnapshot, ...] = ()
    member_count: int = 0
