"""Rate calculator: percentages derived from reducer totals."""

from __future__ import annotations

import math
from dataclasses import dataclass

from agiletrack.services.metrics import FinancialSummary, ProjectTotals


def safe_rate(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator * 100


def utilization_rate(spent: float, allocated: float) -> float:
    return safe_rate(spent, allocated)


def completion_rate(completed: int, total: int) -> float:
    return safe_rate(completed, total)


def overdue_rate(overdue: int, total: int) -> float:
    return safe_rate(overdue, total)


def approval_rate(total_expenses: int, pending_expenses: int) -> float:
    return safe_rate(total_expenses - pending_expenses, total_expenses)


def hour_efficiency(estimated: float, actual: float) -> float:
    """Estimated vs actual hours.

    Returns ``inf`` when work was estimated but no hours were logged; callers
    displaying the value go through :func:`finite_or_zero`.
    """

    if estimated <= 0:
        return 0.0
    if actual == 0:
        return math.inf
    return estimated / actual * 100


def schedule_performance(estimated: float, actual: float) -> float:
    if estimated <= 0:
        return 100.0
    return estimated / (actual or estimated) * 100


def average_per_project(total_allocated: float, project_count: int) -> float:
    if project_count == 0:
        return 0.0
    return total_allocated / project_count


def finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


@dataclass(frozen=True, slots=True)
class ProjectRates:
    task_completion_rate: float
    budget_utilization: float
    overdue_rate: float
    hour_efficiency: float
    schedule_performance: float


@dataclass(frozen=True, slots=True)
class OrganizationRates:
    utilization_rate: float
    approval_rate: float
    average_budget_per_project: float


def compute_project_rates(totals: ProjectTotals) -> ProjectRates:
    return ProjectRates(
        task_completion_rate=completion_rate(totals.completed_tasks, totals.total_tasks),
        budget_utilization=utilization_rate(totals.spent_budget, totals.allocated_budget),
        overdue_rate=overdue_rate(totals.overdue_tasks, totals.total_tasks),
        hour_efficiency=hour_efficiency(totals.estimated_hours, totals.actual_hours),
        schedule_performance=schedule_performance(totals.estimated_hours, totals.actual_hours),
    )


def compute_organization_rates(summary: FinancialSummary) -> OrganizationRates:
    return OrganizationRates(
        utilization_rate=utilization_rate(summary.total_spent, summary.total_allocated),
        approval_rate=approval_rate(summary.total_expenses, summary.pending_expenses),
        average_budget_per_project=average_per_project(summary.total_allocated, summary.project_count),
    )
