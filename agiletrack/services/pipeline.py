"""Per-project assessment: reduce -> rate -> classify in one pass."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from agiletrack.models.entities import ProjectStatus
from agiletrack.services.classifiers import (
    HealthBand,
    MbrEvaluation,
    MethodologyEvaluation,
    ScoringInputs,
    evaluate_mbr,
    evaluate_methodology,
)
from agiletrack.services.metrics import ProjectTotals, reduce_project_totals
from agiletrack.services.rates import ProjectRates, completion_rate, compute_project_rates, utilization_rate
from agiletrack.services.snapshots import PqgData, ProjectSnapshot


@dataclass(frozen=True, slots=True)
class ProjectAssessment:
    project: ProjectSnapshot
    totals: ProjectTotals
    rates: ProjectRates
    inputs: ScoringInputs
    mbr: MbrEvaluation
    methodology: MethodologyEvaluation

    @property
    def health(self) -> HealthBand:
        return self.inputs.health

    @property
    def pqg(self) -> PqgData | None:
        return self.project.pqg


def assess_project(project: ProjectSnapshot, *, now: datetime) -> ProjectAssessment:
    totals = reduce_project_totals(project, now=now)
    rates = compute_project_rates(totals)
    inputs = ScoringInputs.build(totals, rates)
    return ProjectAssessment(
        project=project,
        totals=totals,
        rates=rates,
        inputs=inputs,
        mbr=evaluate_mbr(inputs),
        methodology=evaluate_methodology(project.methodology, inputs),
    )


def assess_projects(projects: Iterable[ProjectSnapshot], *, now: datetime) -> list[ProjectAssessment]:
    return [assess_project(project, now=now) for project in projects]


@dataclass(frozen=True, slots=True)
class PortfolioMetrics:
    total_projects: int = 0
    active_projects: int = 0
    total_tasks: int = 0
    completed_tasks: int = 0
    overdue_tasks: int = 0
    total_budget: float = 0.0
    spent_budget: float = 0.0
    green_projects: int = 0
    yellow_projects: int = 0
    red_projects: int = 0

    @property
    def task_completion_rate(self) -> float:
        return completion_rate(self.completed_tasks, self.total_tasks)

    @property
    def budget_utilization(self) -> float:
        return utilization_rate(self.spent_budget, self.total_budget)

    def as_dict(self) -> dict[str, object]:
        return {
            "total_projects": self.total_projects,
            "active_projects": self.active_projects,
            "total_tasks": self.total_tasks,
            "completed_tasks": self.completed_tasks,
            "overdue_tasks": self.overdue_tasks,
            "total_budget": self.total_budget,
            "spent_budget": self.spent_budget,
            "task_completion_rate": self.task_completion_rate,
            "budget_utilization": self.budget_utilization,
            "green_projects": self.green_projects,
            "yellow_projects": self.yellow_projects,
            "red_projects": self.red_projects,
        }


def reduce_portfolio(assessments: Sequence[ProjectAssessment]) -> PortfolioMetrics:
    health_counts = {band: 0 for band in HealthBand}
    for assessment in assessments:
        health_counts[assessment.health] += 1

    return PortfolioMetrics(
        total_projects=len(assessments),
        active_projects=sum(1 for item in assessments if item.project.status == ProjectStatus.ACTIVE),
        total_tasks=sum(item.totals.total_tasks for item in assessments),
        completed_tasks=sum(item.totals.completed_tasks for item in assessments),
        overdue_tasks=sum(item.totals.overdue_tasks for item in assessments),
        total_budget=sum(item.totals.allocated_budget for item in assessments),
        spent_budget=sum(item.totals.spent_budget for item in assessments),
        green_projects=health_counts[HealthBand.GREEN],
        yellow_projects=health_counts[HealthBand.YELLOW],
        red_projects=health_counts[HealthBand.RED],
    )
