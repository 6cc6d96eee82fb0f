"""Budget forecasting and historical trend analysis on course offering history."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional, Sequence

import numpy as np
import pandas as pd

from backend.repository.data_repository import CourseHistoryRecord, DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


DEFAULT_AVERAGE_COURSE_COST = 8000.0
DEFAULT_AVERAGE_ENROLLMENT = 25.0
DEFAULT_COURSE_COUNT = 10
TREND_STABILITY_BAND = 0.01
REVENUE_SPREAD_THRESHOLD = 0.2


class ForecastValidationError(Exception):
    """Raised when forecast inputs are invalid."""


class ForecastType(str, Enum):
    OPTIMISTIC = "OPTIMISTIC"
    PESSIMISTIC = "PESSIMISTIC"
    REALISTIC = "REALISTIC"


EXPENSE_FACTORS = {
    ForecastType.OPTIMISTIC: 0.9,
    ForecastType.PESSIMISTIC: 1.2,
    ForecastType.REALISTIC: 1.05,
}
ENROLLMENT_FACTORS = {
    ForecastType.OPTIMISTIC: 1.1,
    ForecastType.PESSIMISTIC: 0.9,
    ForecastType.REALISTIC: 1.02,
}


@dataclass(frozen=True)
class BudgetForecast:
    scenario_name: str
    forecast_type: ForecastType
    department_id: Optional[int]
    academic_year: Optional[int]
    projected_revenue: float
    projected_expenses: float
    projected_enrollment: int

    @property
    def net_result(self) -> float:
        return self.projected_revenue - self.projected_expenses

    @property
    def roi_percentage(self) -> float:
        if self.projected_revenue <= 0:
            return 0.0
        return self.net_result / self.projected_revenue * 100.0

    def to_api_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["forecast_type"] = self.forecast_type.value
        payload["net_result"] = self.net_result
        payload["roi_percentage"] = self.roi_percentage
        return payload


@dataclass(frozen=True)
class MetricTrend:
    direction: str
    slope: float
    correlation: float
    next_value: float

    def to_api_dict(self) -> dict[str, Any]:
        return asdict(self)


def _history_frame(history: Sequence[CourseHistoryRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [asdict(record) for record in history],
        columns=["academic_year", "course_id", "department_id", "total_cost", "expected_students"],
    )


def _range(values: Sequence[float]) -> dict[str, float]:
    array = np.asarray(values, dtype=float)
    return {
        "min": float(array.min()),
        "max": float(array.max()),
        "avg": float(array.mean()),
    }


def metric_trend(values: Sequence[float]) -> MetricTrend:
    """Least-squares slope over the sequence index plus a one-step projection."""
    series = np.asarray(values, dtype=float)
    if series.size < 2:
        last = float(series[-1]) if series.size else 0.0
        return MetricTrend(direction="insufficient_data", slope=0.0, correlation=0.0, next_value=last)

    positions = np.arange(series.size, dtype=float)
    slope = float(np.polyfit(positions, series, 1)[0])
    if np.isclose(series.std(), 0.0):
        correlation = 0.0
    else:
        correlation = float(np.corrcoef(positions, series)[0, 1])

    if slope > TREND_STABILITY_BAND:
        direction = "increasing"
    elif slope < -TREND_STABILITY_BAND:
        direction = "decreasing"
    else:
        direction = "stable"
    return MetricTrend(
        direction=direction,
        slope=slope,
        correlation=correlation,
        next_value=float(series[-1]) + slope,
    )


class BudgetForecastService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def _resolve_history(
        self,
        history: Optional[Sequence[CourseHistoryRecord]],
        department_id: Optional[int],
    ) -> list[CourseHistoryRecord]:
        if history is None:
            return self._repository.fetch_course_history(department_id)
        return [
            record
            for record in history
            if department_id is None or record.department_id == department_id
        ]

    def baseline(self, history: Sequence[CourseHistoryRecord]) -> dict[str, float]:
        """Average cost, enrollment and course count for the latest recorded year."""
        frame = _history_frame(history)
        if frame.empty:
            return {
                "average_course_cost": DEFAULT_AVERAGE_COURSE_COST,
                "average_enrollment": DEFAULT_AVERAGE_ENROLLMENT,
                "course_count": float(DEFAULT_COURSE_COUNT),
            }

        latest = frame[frame["academic_year"] == frame["academic_year"].max()]
        average_cost = float(latest["total_cost"].mean())
        average_enrollment = float(latest["expected_students"].mean())
        return {
            "average_course_cost": average_cost or DEFAULT_AVERAGE_COURSE_COST,
            "average_enrollment": average_enrollment or DEFAULT_AVERAGE_ENROLLMENT,
            "course_count": float(len(latest)),
        }

    def forecast_budget(
        self,
        forecast_type: ForecastType | str = ForecastType.REALISTIC,
        department_id: Optional[int] = None,
        scenario_name: Optional[str] = None,
        academic_year: Optional[int] = None,
        projected_revenue: Optional[float] = None,
        projected_expenses: Optional[float] = None,
        projected_enrollment: Optional[int] = None,
        history: Optional[Sequence[CourseHistoryRecord]] = None,
    ) -> BudgetForecast:
        try:
            kind = ForecastType(str(getattr(forecast_type, "value", forecast_type)).upper())
        except ValueError as exc:
            raise ForecastValidationError(f"Unknown forecast_type '{forecast_type}'") from exc
        for label, value in (
            ("projected_revenue", projected_revenue),
            ("projected_expenses", projected_expenses),
            ("projected_enrollment", projected_enrollment),
        ):
            if value is not None and value < 0:
                raise ForecastValidationError(f"{label} must be >= 0")

        baseline = self.baseline(self._resolve_history(history, department_id))
        if projected_expenses is None:
            projected_expenses = (
                baseline["average_course_cost"] * baseline["course_count"] * EXPENSE_FACTORS[kind]
            )
        if projected_enrollment is None:
            projected_enrollment = int(round(
                baseline["average_enrollment"] * baseline["course_count"] * ENROLLMENT_FACTORS[kind]
            ))
        if projected_revenue is None:
            projected_revenue = projected_enrollment * self._settings.forecast_tuition_per_student

        forecast = BudgetForecast(
            scenario_name=scenario_name or f"{kind.value.title()} forecast",
            forecast_type=kind,
            department_id=department_id,
            academic_year=academic_year,
            projected_revenue=float(projected_revenue),
            projected_expenses=float(projected_expenses),
            projected_enrollment=int(projected_enrollment),
        )
        logger.info(
            "Budget forecast generated | type=%s | department_id=%s | revenue=%.2f | expenses=%.2f",
            kind.value,
            department_id,
            forecast.projected_revenue,
            forecast.projected_expenses,
        )
        return forecast

    def compare_forecasts(self, forecasts: Sequence[BudgetForecast]) -> dict[str, Any]:
        if len(forecasts) < 2:
            raise ForecastValidationError("At least 2 forecasts are required for comparison")

        best = forecasts[0]
        worst = forecasts[0]
        for forecast in forecasts[1:]:
            if forecast.net_result > best.net_result:
                best = forecast
            if forecast.net_result < worst.net_result:
                worst = forecast

        revenue_range = _range([item.projected_revenue for item in forecasts])
        recommendations = [
            f"Best case scenario: {best.scenario_name} with net result of ${best.net_result:,.2f}",
            f"Worst case scenario: {worst.scenario_name} with net result of ${worst.net_result:,.2f}",
        ]
        if revenue_range["avg"] > 0:
            spread = (revenue_range["max"] - revenue_range["min"]) / revenue_range["avg"]
            if spread > REVENUE_SPREAD_THRESHOLD:
                recommendations.append(
                    "High revenue variance detected; consider risk mitigation strategies"
                )

        return {
            "forecasts": [item.to_api_dict() for item in forecasts],
            "analysis": {
                "revenue_range": revenue_range,
                "expense_range": _range([item.projected_expenses for item in forecasts]),
                "enrollment_range": _range([item.projected_enrollment for item in forecasts]),
            },
            "best_case": best.scenario_name,
            "worst_case": worst.scenario_name,
            "recommendations": recommendations,
        }

    def analyze_trends(
        self,
        department_id: Optional[int] = None,
        history: Optional[Sequence[CourseHistoryRecord]] = None,
    ) -> dict[str, Any]:
        frame = _history_frame(self._resolve_history(history, department_id))
        if frame.empty:
            yearly = pd.DataFrame(columns=["academic_year", "course_count", "avg_cost", "avg_students"])
        else:
            yearly = (
                frame.groupby("academic_year", sort=True)
                .agg(
                    course_count=("course_id", "count"),
                    avg_cost=("total_cost", "mean"),
                    avg_students=("expected_students", "mean"),
                )
                .reset_index()
            )

        trends = {
            "course_cost": metric_trend(yearly["avg_cost"].tolist()),
            "course_count": metric_trend(yearly["course_count"].tolist()),
            "enrollment": metric_trend(yearly["avg_students"].tolist()),
        }

        if yearly.empty:
            next_year = None
            confidence_intervals: dict[str, dict[str, float]] = {}
        else:
            next_year = int(yearly["academic_year"].max()) + 1
            confidence_intervals = {
                "avg_cost": {
                    "lower_bound": float(yearly["avg_cost"].min()) * 0.9,
                    "upper_bound": float(yearly["avg_cost"].max()) * 1.1,
                },
                "avg_students": {
                    "lower_bound": float(yearly["avg_students"].min()) * 0.9,
                    "upper_bound": float(yearly["avg_students"].max()) * 1.1,
                },
            }

        projections = {
            "academic_year": next_year,
            "projected_expenses": trends["course_cost"].next_value * trends["course_count"].next_value,
            "projected_enrollment": trends["enrollment"].next_value * trends["course_count"].next_value,
            "confidence_intervals": confidence_intervals,
        }
        logger.info(
            "Trend analysis completed | department_id=%s | years=%s | cost_direction=%s",
            department_id,
            len(yearly),
            trends["course_cost"].direction,
        )
        return {
            "historical_data": [
                {
                    "academic_year": int(row.academic_year),
                    "course_count": int(row.course_count),
                    "avg_cost": float(row.avg_cost),
                    "avg_students": float(row.avg_students),
                }
                for row in yearly.itertuples(index=False)
            ],
            "trends": {name: trend.to_api_dict() for name, trend in trends.items()},
            "projections": projections,
        }
