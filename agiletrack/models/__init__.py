"""ORM model package."""

from agiletrack.models.entities import (
    ExpenseStatus,
    MemberRole,
    Organization,
    OrganizationMember,
    PhaseStatus,
    ProgressReport,
    Project,
    ProjectBudget,
    ProjectExpense,
    ProjectMethodology,
    ProjectPhase,
    ProjectPriority,
    ProjectStatus,
    ReportType,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)

__all__ = [
    "ExpenseStatus",
    "MemberRole",
    "Organization",
    "OrganizationMember",
    "PhaseStatus",
    "ProgressReport",
    "Project",
    "ProjectBudget",
    "ProjectExpense",
    "ProjectMethodology",
    "ProjectPhase",
    "ProjectPriority",
    "ProjectStatus",
    "ReportType",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "User",
]
