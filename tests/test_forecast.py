from __future__ import annotations

from dataclasses import replace

import pytest

from backend.repository.data_repository import CourseHistoryRecord, DataRepository
from backend.services.forecast_service import (
    BudgetForecast,
    BudgetForecastService,
    ForecastType,
    ForecastValidationError,
    metric_trend,
)
from backend.utils.config import get_settings


HISTORY = [
    CourseHistoryRecord(academic_year=2023, course_id=1, department_id=1, total_cost=1000.0, expected_students=5),
    CourseHistoryRecord(academic_year=2024, course_id=1, department_id=1, total_cost=8000.0, expected_students=20),
    CourseHistoryRecord(academic_year=2024, course_id=2, department_id=1, total_cost=10000.0, expected_students=30),
    CourseHistoryRecord(academic_year=2024, course_id=3, department_id=2, total_cost=99999.0, expected_students=99),
]


def _service() -> BudgetForecastService:
    settings = replace(get_settings(), forecast_tuition_per_student=5000.0, seed_sample_data=True)
    repository = DataRepository(settings)
    repository.seed_sample_data()
    return BudgetForecastService(repository=repository, settings=settings)


def _forecast(name: str, revenue: float, expenses: float) -> BudgetForecast:
    return BudgetForecast(
        scenario_name=name,
        forecast_type=ForecastType.REALISTIC,
        department_id=None,
        academic_year=2025,
        projected_revenue=revenue,
        projected_expenses=expenses,
        projected_enrollment=100,
    )


# --- forecasts ---


@pytest.mark.parametrize(
    ("forecast_type", "expenses", "enrollment"),
    [
        (ForecastType.REALISTIC, 18900.0, 51),
        (ForecastType.OPTIMISTIC, 16200.0, 55),
        (ForecastType.PESSIMISTIC, 21600.0, 45),
    ],
)
def test_forecast_scales_latest_year_baseline(
    forecast_type: ForecastType,
    expenses: float,
    enrollment: int,
) -> None:
    forecast = _service().forecast_budget(forecast_type, department_id=1, history=HISTORY)

    assert forecast.projected_expenses == pytest.approx(expenses)
    assert forecast.projected_enrollment == enrollment
    assert forecast.projected_revenue == pytest.approx(enrollment * 5000.0)
    assert forecast.scenario_name == f"{forecast_type.value.title()} forecast"


def test_forecast_without_history_uses_defaults() -> None:
    forecast = _service().forecast_budget("realistic", history=[])

    assert forecast.projected_expenses == pytest.approx(84000.0)
    assert forecast.projected_enrollment == 255


def test_forecast_respects_explicit_figures() -> None:
    forecast = _service().forecast_budget(
        ForecastType.OPTIMISTIC,
        scenario_name="Grant funded",
        academic_year=2026,
        projected_revenue=100000.0,
        projected_expenses=80000.0,
        projected_enrollment=40,
    )

    assert forecast.net_result == pytest.approx(20000.0)
    assert forecast.roi_percentage == pytest.approx(20.0)
    assert forecast.to_api_dict()["forecast_type"] == "OPTIMISTIC"
    assert forecast.to_api_dict()["scenario_name"] == "Grant funded"


def test_forecast_roi_is_zero_without_revenue() -> None:
    assert _forecast("none", 0.0, 500.0).roi_percentage == 0.0


def test_forecast_rejects_bad_inputs() -> None:
    service = _service()

    with pytest.raises(ForecastValidationError):
        service.forecast_budget("unlikely")
    with pytest.raises(ForecastValidationError):
        service.forecast_budget(projected_expenses=-1.0)


def test_forecast_reads_repository_history() -> None:
    forecast = _service().forecast_budget(department_id=4)

    # World History in 2024: cost 5200, 25 students, one course.
    assert forecast.projected_expenses == pytest.approx(5200.0 * 1.05)
    assert forecast.projected_enrollment == 26


# --- comparison ---


def test_compare_forecasts_picks_best_and_worst() -> None:
    comparison = _service().compare_forecasts(
        [
            _forecast("steady", 100000.0, 90000.0),
            _forecast("growth", 150000.0, 100000.0),
            _forecast("decline", 80000.0, 95000.0),
        ]
    )

    assert comparison["best_case"] == "growth"
    assert comparison["worst_case"] == "decline"
    assert comparison["analysis"]["revenue_range"]["max"] == 150000.0
    assert comparison["analysis"]["enrollment_range"]["avg"] == 100.0
    assert any("High revenue variance" in text for text in comparison["recommendations"])


def test_compare_forecasts_requires_two() -> None:
    with pytest.raises(ForecastValidationError):
        _service().compare_forecasts([_forecast("only", 1.0, 1.0)])


# --- trends ---


def test_metric_trend_directions() -> None:
    rising = metric_trend([100.0, 200.0, 300.0])
    flat = metric_trend([4.0, 4.0, 4.0])
    short = metric_trend([7.0])

    assert rising.direction == "increasing"
    assert rising.slope == pytest.approx(100.0)
    assert rising.correlation == pytest.approx(1.0)
    assert rising.next_value == pytest.approx(400.0)
    assert flat.direction == "stable"
    assert flat.correlation == 0.0
    assert short.direction == "insufficient_data"
    assert short.next_value == 7.0
    assert metric_trend([]).next_value == 0.0


def test_analyze_trends_groups_by_year() -> None:
    history = [
        CourseHistoryRecord(academic_year=year, course_id=1, department_id=1, total_cost=cost, expected_students=20)
        for year, cost in ((2022, 100.0), (2023, 200.0), (2024, 300.0))
    ]

    result = _service().analyze_trends(history=history)

    assert [row["academic_year"] for row in result["historical_data"]] == [2022, 2023, 2024]
    assert result["trends"]["course_cost"]["direction"] == "increasing"
    assert result["trends"]["course_count"]["direction"] == "stable"
    assert result["projections"]["academic_year"] == 2025
    assert result["projections"]["projected_expenses"] == pytest.approx(400.0)
    assert result["projections"]["confidence_intervals"]["avg_cost"]["lower_bound"] == pytest.approx(90.0)
    assert result["projections"]["confidence_intervals"]["avg_cost"]["upper_bound"] == pytest.approx(330.0)


def test_analyze_trends_with_sample_history() -> None:
    result = _service().analyze_trends(department_id=2)

    assert len(result["historical_data"]) == 3
    assert result["trends"]["course_cost"]["direction"] == "increasing"


def test_analyze_trends_without_history() -> None:
    result = _service().analyze_trends(history=[])

    assert result["historical_data"] == []
    assert result["projections"]["academic_year"] is None
    assert result["trends"]["enrollment"]["direction"] == "insufficient_data"
