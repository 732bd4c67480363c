"""Health and score classifiers.

Fixed threshold tables that turn rates into categorical bands, plus the
methodology and MBR (results-based management) scorecards built on them.
Classifiers never raise: inputs outside a table fall into its lowest or
highest band.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass

from agiletrack.models.entities import ProjectMethodology
from agiletrack.services.metrics import ProjectTotals
from agiletrack.services.rates import ProjectRates

NEUTRAL_SCORE = 75.0


class UtilizationSeverity(str, enum.Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    CAUTION = "caution"
    HEALTHY = "healthy"

    @property
    def color(self) -> str:
        return _SEVERITY_COLORS[self]


_SEVERITY_COLORS = {
    UtilizationSeverity.CRITICAL: "red",
    UtilizationSeverity.WARNING: "orange",
    UtilizationSeverity.CAUTION: "yellow",
    UtilizationSeverity.HEALTHY: "green",
}


class HealthBand(str, enum.Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


class MbrRating(str, enum.Enum):
    VERDE = "Verde"
    AMARELO = "Amarelo"
    VERMELHO = "Vermelho"

    @classmethod
    def from_health(cls, band: HealthBand) -> "MbrRating":
        return {HealthBand.GREEN: cls.VERDE, HealthBand.YELLOW: cls.AMARELO}.get(band, cls.VERMELHO)


def classify_utilization(rate: float) -> UtilizationSeverity:
    if rate >= 90:
        return UtilizationSeverity.CRITICAL
    if rate >= 75:
        return UtilizationSeverity.WARNING
    if rate >= 50:
        return UtilizationSeverity.CAUTION
    return UtilizationSeverity.HEALTHY


def classify_mbr(score: float) -> MbrRating:
    if score >= 75:
        return MbrRating.VERDE
    if score >= 50:
        return MbrRating.AMARELO
    return MbrRating.VERMELHO


def classify_score(score: float) -> HealthBand:
    """Band for methodology criterion and overall monitoring scores."""

    if score >= 80:
        return HealthBand.GREEN
    if score >= 60:
        return HealthBand.YELLOW
    return HealthBand.RED


def classify_project_health(
    completion_rate: float,
    budget_utilization: float,
    overdue_tasks: int,
    total_tasks: int,
) -> HealthBand:
    overdue_pct = overdue_tasks / total_tasks * 100 if total_tasks > 0 else 0.0

    if completion_rate < 50 or budget_utilization > 120 or overdue_pct > 25:
        return HealthBand.RED
    if completion_rate < 75 or budget_utilization > 90 or overdue_pct > 10:
        return HealthBand.YELLOW
    return HealthBand.GREEN


def financial_health_label(utilization: float) -> str:
    if utilization > 90:
        return "High Risk"
    if utilization > 75:
        return "Monitor"
    return "Healthy"


def _clamp(score: float) -> float:
    return min(max(score, 0.0), 100.0)


@dataclass(frozen=True, slots=True)
class ScoringInputs:
    """Per-project figures every scorecard draws from."""

    completion_rate: float
    budget_utilization: float
    schedule_performance: float
    overdue_tasks: int
    total_tasks: int
    progress_reports: int
    health: HealthBand

    @classmethod
    def build(cls, totals: ProjectTotals, rates: ProjectRates) -> "ScoringInputs":
        return cls(
            completion_rate=rates.task_completion_rate,
            budget_utilization=rates.budget_utilization,
            schedule_performance=rates.schedule_performance,
            overdue_tasks=totals.overdue_tasks,
            total_tasks=totals.total_tasks,
            progress_reports=totals.progress_report_count,
            health=classify_project_health(
                rates.task_completion_rate,
                rates.budget_utilization,
                totals.overdue_tasks,
                totals.total_tasks,
            ),
        )


def _health_points(high: float, mid: float, low: float) -> Callable[[ScoringInputs], float]:
    def score(inputs: ScoringInputs) -> float:
        if inputs.health == HealthBand.GREEN:
            return high
        if inputs.health == HealthBand.YELLOW:
            return mid
        return low

    return score


# ---------- MBR scorecard ----------
@dataclass(frozen=True, slots=True)
class MbrCriterion:
    key: str
    name: str


MBR_CRITERIA: tuple[MbrCriterion, ...] = (
    MbrCriterion("relevance", "Relevância"),
    MbrCriterion("efficiency", "Eficiência"),
    MbrCriterion("effectiveness", "Eficácia"),
    MbrCriterion("impact", "Impacto"),
    MbrCriterion("sustainability", "Sustentabilidade"),
    MbrCriterion("coordination", "Coordenação"),
)

_MBR_SCORERS: dict[str, Callable[[ScoringInputs], float]] = {
    "relevance": _health_points(85, 65, 45),
    "impact": _health_points(85, 65, 45),
    "efficiency": lambda inputs: min(100 - inputs.budget_utilization, 100),
    "effectiveness": lambda inputs: inputs.completion_rate,
    "sustainability": lambda inputs: 90 if inputs.overdue_tasks == 0 else 70,
    "coordination": lambda inputs: 80 if inputs.progress_reports > 0 else 60,
}


def mbr_criterion_score(key: str, inputs: ScoringInputs) -> float:
    scorer = _MBR_SCORERS.get(key)
    if scorer is None:
        return NEUTRAL_SCORE
    # Unbounded: efficiency goes negative once spending passes the allocation.
    return float(scorer(inputs))


@dataclass(frozen=True, slots=True)
class CriterionScore:
    key: str
    name: str
    score: float
    weight: float | None = None

    def as_dict(self, rating: str) -> dict[str, object]:
        payload: dict[str, object] = {"key": self.key, "name": self.name, "score": self.score, "rating": rating}
        if self.weight is not None:
            payload["weight"] = self.weight
        return payload


@dataclass(frozen=True, slots=True)
class MbrEvaluation:
    criteria: tuple[CriterionScore, ...]
    overall_score: float
    overall_rating: MbrRating

    def rating_for(self, key: str) -> MbrRating:
        for criterion in self.criteria:
            if criterion.key == key:
                return classify_mbr(criterion.score)
        return classify_mbr(NEUTRAL_SCORE)

    def as_dict(self) -> dict[str, object]:
        return {
            "criteria": [item.as_dict(classify_mbr(item.score).value) for item in self.criteria],
            "overall_score": self.overall_score,
            "overall_rating": self.overall_rating.value,
        }


def evaluate_mbr(inputs: ScoringInputs) -> MbrEvaluation:
    scores = tuple(
        CriterionScore(key=criterion.key, name=criterion.name, score=mbr_criterion_score(criterion.key, inputs))
        for criterion in MBR_CRITERIA
    )
    average = sum(item.score for item in scores) / len(scores)
    return MbrEvaluation(criteria=scores, overall_score=average, overall_rating=classify_mbr(average))


# ---------- Methodology scorecard ----------
@dataclass(frozen=True, slots=True)
class MonitoringCriterion:
    key: str
    name: str
    weight: int


METHODOLOGY_CRITERIA: dict[ProjectMethodology, tuple[MonitoringCriterion, ...]] = {
    ProjectMethodology.AGILE: (
        MonitoringCriterion("sprint_velocity", "Sprint Velocity", 25),
        MonitoringCriterion("burndown_trend", "Burndown Trend", 25),
        MonitoringCriterion("team_satisfaction", "Team Satisfaction", 20),
        MonitoringCriterion("stakeholder_feedback", "Stakeholder Feedback", 30),
    ),
    ProjectMethodology.WATERFALL: (
        MonitoringCriterion("milestone_adherence", "Milestone Adherence", 30),
        MonitoringCriterion("scope_control", "Scope Control", 25),
        MonitoringCriterion("quality_metrics", "Quality Metrics", 25),
        MonitoringCriterion("risk_management", "Risk Management", 20),
    ),
    ProjectMethodology.HYBRID: (
        MonitoringCriterion("phase_delivery", "Phase Delivery", 25),
        MonitoringCriterion("iteration_success", "Iteration Success", 25),
        MonitoringCriterion("stakeholder_engagement", "Stakeholder Engagement", 25),
        MonitoringCriterion("adaptive_capacity", "Adaptive Capacity", 25),
    ),
    ProjectMethodology.KANBAN: (
        MonitoringCriterion("flow_efficiency", "Flow Efficiency", 30),
        MonitoringCriterion("cycle_time", "Cycle Time", 25),
        MonitoringCriterion("throughput", "Throughput", 25),
        MonitoringCriterion("quality_rate", "Quality Rate", 20),
    ),
    ProjectMethodology.SCRUM: (
        MonitoringCriterion("sprint_completion", "Sprint Completion", 30),
        MonitoringCriterion("velocity_consistency", "Velocity Consistency", 25),
        MonitoringCriterion("retrospective_actions", "Retrospective Actions", 20),
        MonitoringCriterion("team_collaboration", "Team Collaboration", 25),
    ),
}


def _overdue_points(inputs: ScoringInputs) -> float:
    if inputs.overdue_tasks == 0:
        return 90
    if inputs.overdue_tasks < 5:
        return 70
    return 40


_BASE_METRICS: dict[str, Callable[[ScoringInputs], float]] = {
    "completion": lambda inputs: inputs.completion_rate,
    "utilization": lambda inputs: min(inputs.budget_utilization, 100),
    "schedule": lambda inputs: inputs.schedule_performance,
    "health": _health_points(85, 65, 45),
    "overdue": _overdue_points,
}

CRITERION_BASE_METRIC: dict[str, str] = {
    "milestone_adherence": "completion",
    "phase_delivery": "completion",
    "sprint_completion": "completion",
    "scope_control": "utilization",
    "quality_metrics": "utilization",
    "sprint_velocity": "schedule",
    "burndown_trend": "schedule",
    "flow_efficiency": "schedule",
    "team_satisfaction": "health",
    "team_collaboration": "health",
    "stakeholder_engagement": "health",
    "risk_management": "overdue",
}

_UNROUTED_CRITERION = _health_points(80, 60, 40)


def resolve_methodology(methodology: ProjectMethodology | str | None) -> ProjectMethodology:
    """Unknown or missing methodologies are scored as HYBRID."""

    try:
        return ProjectMethodology(methodology)
    except ValueError:
        return ProjectMethodology.HYBRID


def criteria_for(methodology: ProjectMethodology | str | None) -> tuple[MonitoringCriterion, ...]:
    return METHODOLOGY_CRITERIA[resolve_methodology(methodology)]


def monitoring_criterion_score(key: str, inputs: ScoringInputs) -> float:
    metric = _BASE_METRICS.get(CRITERION_BASE_METRIC.get(key, ""), _UNROUTED_CRITERION)
    return _clamp(float(metric(inputs)))


@dataclass(frozen=True, slots=True)
class MethodologyEvaluation:
    methodology: ProjectMethodology
    criteria: tuple[CriterionScore, ...]
    overall_score: float

    @property
    def band(self) -> HealthBand:
        return classify_score(self.overall_score)

    def as_dict(self) -> dict[str, object]:
        return {
            "methodology": self.methodology.value,
            "criteria": [item.as_dict(classify_score(item.score).value) for item in self.criteria],
            "overall_score": self.overall_score,
            "band": self.band.value,
        }


def evaluate_methodology(
    methodology: ProjectMethodology | str | None,
    inputs: ScoringInputs,
) -> MethodologyEvaluation:
    resolved = resolve_methodology(methodology)
    scores = tuple(
        CriterionScore(
            key=criterion.key,
            name=criterion.name,
            score=monitoring_criterion_score(criterion.key, inputs),
            weight=criterion.weight,
        )
        for criterion in METHODOLOGY_CRITERIA[resolved]
    )
    overall = sum(item.score * item.weight / 100 for item in scores)
    return MethodologyEvaluation(methodology=resolved, criteria=scores, overall_score=overall)


# ---------- Recommendations ----------
@dataclass(frozen=True, slots=True)
class Recommendation:
    kind: str
    title: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"type": self.kind, "title": self.title, "message": self.message}


LOW_SCORE_RECOMMENDATIONS: dict[str, Recommendation] = {
    "sprint_velocity": Recommendation(
        "warning", "Low Sprint Velocity", "Consider reviewing sprint planning and removing impediments"
    ),
    "milestone_adherence": Recommendation(
        "danger", "Milestone Delays", "Review project timeline and resource allocation"
    ),
    "team_satisfaction": Recommendation(
        "warning", "Team Satisfaction Issues", "Conduct team retrospectives and address concerns"
    ),
    "quality_metrics": Recommendation(
        "danger", "Quality Concerns", "Implement additional quality assurance measures"
    ),
}


def recommendations(
    evaluation: MethodologyEvaluation,
    inputs: ScoringInputs,
    *,
    include_financial: bool,
) -> list[Recommendation]:
    items = [
        LOW_SCORE_RECOMMENDATIONS[criterion.key]
        for criterion in evaluation.criteria
        if criterion.score < 60 and criterion.key in LOW_SCORE_RECOMMENDATIONS
    ]
    if inputs.overdue_tasks > 0:
        items.append(
            Recommendation(
                "warning",
                "Overdue Tasks",
                f"{inputs.overdue_tasks} tasks are overdue. Review task assignments and priorities.",
            )
        )
    if include_financial and inputs.budget_utilization > 90:
        items.append(
            Recommendation("danger", "Budget Alert", "Budget utilization is above 90%. Monitor spending closely.")
        )
    return items
