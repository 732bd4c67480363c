"""PQG (government five-year plan) portfolio breakdowns."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from agiletrack.models.entities import ProjectMethodology
from agiletrack.services.pipeline import PortfolioMetrics, ProjectAssessment, reduce_portfolio

UNSPECIFIED_GROUP = "Não Especificado"


@dataclass(frozen=True, slots=True)
class PqgPriority:
    key: str
    name: str
    description: str


PQG_PRIORITIES: tuple[PqgPriority, ...] = (
    PqgPriority("I", "DESENVOLVIMENTO DO CAPITAL HUMANO E SOCIAL", "Human capital development and social progress"),
    PqgPriority("II", "INFRAESTRUTURAS E DESENVOLVIMENTO SUSTENTÁVEL", "Infrastructure and sustainable development"),
    PqgPriority("III", "DESENVOLVIMENTO ECONÓMICO E COMPETITIVIDADE", "Economic development and competitiveness"),
    PqgPriority("IV", "BOA GOVERNAÇÃO, SEGURANÇA E ESTADO DE DIREITO", "Good governance, security and rule of law"),
)


def government_projects(assessments: Sequence[ProjectAssessment]) -> list[ProjectAssessment]:
    """Waterfall projects that carry PQG classification metadata."""

    return [
        item
        for item in assessments
        if item.project.methodology == ProjectMethodology.WATERFALL and item.pqg is not None
    ]


def _metrics_payload(metrics: PortfolioMetrics, *, include_financials: bool) -> dict[str, object]:
    payload = metrics.as_dict()
    if not include_financials:
        for key in ("total_budget", "spent_budget", "budget_utilization"):
            payload.pop(key)
    return payload


def _group_by(assessments: Sequence[ProjectAssessment], attribute: str) -> dict[str, list[ProjectAssessment]]:
    groups: dict[str, list[ProjectAssessment]] = {}
    for item in assessments:
        label = getattr(item.pqg, attribute, None) or UNSPECIFIED_GROUP
        groups.setdefault(label, []).append(item)
    return groups


def _project_ref(item: ProjectAssessment) -> dict[str, object]:
    return {
        "id": str(item.project.id),
        "name": item.project.name,
        "health": item.health.value,
        "task_completion_rate": item.rates.task_completion_rate,
        "mbr_rating": item.mbr.overall_rating.value,
    }


def analyze_pqg(assessments: Sequence[ProjectAssessment], *, include_financials: bool) -> dict[str, object]:
    """Priority, UGB and location breakdowns over waterfall projects carrying PQG data."""

    projects = government_projects(assessments)

    priorities = []
    for priority in PQG_PRIORITIES:
        members = [item for item in projects if item.pqg.priority == priority.key]
        priorities.append(
            {
                "key": priority.key,
                "name": priority.name,
                "description": priority.description,
                "metrics": _metrics_payload(reduce_portfolio(members), include_financials=include_financials),
                "projects": [_project_ref(item) for item in members],
            }
        )

    return {
        "overall": _metrics_payload(reduce_portfolio(projects), include_financials=include_financials),
        "priorities": priorities,
        "ugb_groups": [
            {"ugb": label, "projects": [_project_ref(item) for item in members]}
            for label, members in _group_by(projects, "ugb").items()
        ],
        "location_groups": [
            {"location": label, "projects": [_project_ref(item) for item in members]}
            for label, members in _group_by(projects, "location").items()
        ],
    }
