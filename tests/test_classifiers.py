from __future__ import annotations

import pytest

from agiletrack.models.entities import ProjectMethodology
from agiletrack.services.classifiers import (
    METHODOLOGY_CRITERIA,
    NEUTRAL_SCORE,
    HealthBand,
    MbrRating,
    ScoringInputs,
    UtilizationSeverity,
    classify_mbr,
    classify_project_health,
    classify_score,
    classify_utilization,
    evaluate_mbr,
    evaluate_methodology,
    financial_health_label,
    mbr_criterion_score,
    recommendations,
    resolve_methodology,
)

SEVERITY_ORDER = [
    UtilizationSeverity.HEALTHY,
    UtilizationSeverity.CAUTION,
    UtilizationSeverity.WARNING,
    UtilizationSeverity.CRITICAL,
]


def _inputs(**overrides: object) -> ScoringInputs:
    values: dict[str, object] = {
        "completion_rate": 100.0,
        "budget_utilization": 50.0,
        "schedule_performance": 100.0,
        "overdue_tasks": 0,
        "total_tasks": 10,
        "progress_reports": 1,
        "health": HealthBand.GREEN,
    }
    values.update(overrides)
    return ScoringInputs(**values)


@pytest.mark.parametrize(
    ("rate", "expected"),
    [
        (0.0, UtilizationSeverity.HEALTHY),
        (49.9, UtilizationSeverity.HEALTHY),
        (50.0, UtilizationSeverity.CAUTION),
        (75.0, UtilizationSeverity.WARNING),
        (90.0, UtilizationSeverity.CRITICAL),
        (250.0, UtilizationSeverity.CRITICAL),
    ],
)
def test_classify_utilization_bands(rate: float, expected: UtilizationSeverity) -> None:
    assert classify_utilization(rate) == expected


def test_utilization_severity_never_decreases_with_rate() -> None:
    ranks = [SEVERITY_ORDER.index(classify_utilization(float(rate))) for rate in range(0, 151)]

    assert ranks == sorted(ranks)
    assert classify_utilization(90.0).color == "red"


def test_mbr_and_score_bands() -> None:
    assert classify_mbr(75) == MbrRating.VERDE
    assert classify_mbr(74.9) == MbrRating.AMARELO
    assert classify_mbr(49.9) == MbrRating.VERMELHO
    assert classify_score(80) == HealthBand.GREEN
    assert classify_score(60) == HealthBand.YELLOW
    assert classify_score(59.9) == HealthBand.RED


@pytest.mark.parametrize(
    ("completion", "utilization", "overdue", "total", "expected"),
    [
        (80.0, 50.0, 0, 10, HealthBand.GREEN),
        (60.0, 50.0, 0, 10, HealthBand.YELLOW),
        (80.0, 95.0, 0, 10, HealthBand.YELLOW),
        (80.0, 50.0, 2, 10, HealthBand.YELLOW),
        (40.0, 50.0, 0, 10, HealthBand.RED),
        (80.0, 121.0, 0, 10, HealthBand.RED),
        (80.0, 50.0, 3, 10, HealthBand.RED),
        (0.0, 0.0, 0, 0, HealthBand.RED),
    ],
)
def test_classify_project_health(
    completion: float, utilization: float, overdue: int, total: int, expected: HealthBand
) -> None:
    assert classify_project_health(completion, utilization, overdue, total) == expected


def test_financial_health_label() -> None:
    assert financial_health_label(95) == "High Risk"
    assert financial_health_label(80) == "Monitor"
    assert financial_health_label(75) == "Healthy"


def test_mbr_evaluation_for_healthy_project() -> None:
    evaluation = evaluate_mbr(_inputs())
    scores = {item.key: item.score for item in evaluation.criteria}

    assert scores == {
        "relevance": 85.0,
        "efficiency": 50.0,
        "effectiveness": 100.0,
        "impact": 85.0,
        "sustainability": 90.0,
        "coordination": 80.0,
    }
    assert evaluation.overall_rating == MbrRating.VERDE
    assert evaluation.rating_for("efficiency") == MbrRating.AMARELO


def test_mbr_efficiency_goes_negative_when_over_budget() -> None:
    evaluation = evaluate_mbr(_inputs(budget_utilization=150.0, health=HealthBand.RED))
    scores = {item.key: item.score for item in evaluation.criteria}

    assert scores["efficiency"] == -50.0
    # 45 + 45 - 50 + 100 + 90 + 80 over six criteria.
    assert evaluation.overall_score == pytest.approx(310 / 6)
    assert evaluation.rating_for("efficiency") == MbrRating.VERMELHO
    assert evaluation.overall_rating == MbrRating.AMARELO


def test_unknown_mbr_criterion_scores_neutral() -> None:
    assert mbr_criterion_score("unknown", _inputs()) == NEUTRAL_SCORE


@pytest.mark.parametrize("methodology", list(ProjectMethodology))
def test_methodology_weights_sum_to_one_hundred(methodology: ProjectMethodology) -> None:
    assert sum(criterion.weight for criterion in METHODOLOGY_CRITERIA[methodology]) == 100


def test_unknown_methodology_falls_back_to_hybrid() -> None:
    assert resolve_methodology("LEAN") == ProjectMethodology.HYBRID
    assert resolve_methodology(None) == ProjectMethodology.HYBRID
    assert evaluate_methodology("LEAN", _inputs()).methodology == ProjectMethodology.HYBRID


def test_agile_methodology_evaluation() -> None:
    evaluation = evaluate_methodology(ProjectMethodology.AGILE, _inputs())
    scores = {item.key: item.score for item in evaluation.criteria}

    assert scores == {
        "sprint_velocity": 100.0,
        "burndown_trend": 100.0,
        "team_satisfaction": 85.0,
        "stakeholder_feedback": 80.0,
    }
    assert evaluation.overall_score == pytest.approx(91.0)
    assert evaluation.band == HealthBand.GREEN


def test_recommendations_for_struggling_waterfall_project() -> None:
    inputs = _inputs(completion_rate=40.0, budget_utilization=95.0, overdue_tasks=2, health=HealthBand.RED)
    evaluation = evaluate_methodology(ProjectMethodology.WATERFALL, inputs)

    titles = [item.title for item in recommendations(evaluation, inputs, include_financial=True)]
    hidden = [item.title for item in recommendations(evaluation, inputs, include_financial=False)]

    assert titles == ["Milestone Delays", "Overdue Tasks", "Budget Alert"]
    assert hidden == ["Milestone Delays", "Overdue Tasks"]


def test_healthy_project_gets_no_recommendations() -> None:
    inputs = _inputs()
    evaluation = evaluate_methodology(ProjectMethodology.SCRUM, inputs)

    assert recommendations(evaluation, inputs, include_financial=True) == []
