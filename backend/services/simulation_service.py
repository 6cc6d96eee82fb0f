"""Budget variance and what-if scenario analysis.

Scenarios are evaluated on deep copies of the base figures so the caller's
data and the repository snapshot are never mutated by a what-if run.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from numbers import Real
from typing import Any, Mapping, Optional, Sequence

from backend.domain.models import AllocationPlan, Course
from backend.repository.data_repository import DataRepository, ResourceFilter
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


SIGNIFICANT_VARIANCE_PERCENT = 10.0
PESSIMISTIC_RISK_FRACTION = 0.2
DEFAULT_SCENARIO_OVERHEAD_RATE = 0.15
SCENARIO_NAMES = ("optimistic", "pessimistic", "realistic")


class ScenarioValidationError(Exception):
    """Raised when variance or scenario inputs are invalid."""


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _percent(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return part / whole * 100.0


@dataclass(frozen=True)
class CategoryVariance:
    category: str
    budgeted: float
    actual: float
    variance: float
    variance_percent: float


@dataclass(frozen=True)
class VarianceReport:
    period: str
    total_budgeted: float
    total_actual: float
    total_variance: float
    total_variance_percent: float
    categories: tuple[CategoryVariance, ...]
    favorable: tuple[str, ...]
    unfavorable: tuple[str, ...]
    significant: tuple[str, ...]

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "total_budgeted": self.total_budgeted,
            "total_actual": self.total_actual,
            "total_variance": self.total_variance,
            "total_variance_percent": self.total_variance_percent,
            "category_variances": {
                item.category: {
                    "budgeted": item.budgeted,
                    "actual": item.actual,
                    "variance": item.variance,
                    "variance_percent": item.variance_percent,
                }
                for item in self.categories
            },
            "favorable": list(self.favorable),
            "unfavorable": list(self.unfavorable),
            "significant": list(self.significant),
        }


@dataclass(frozen=True)
class ScenarioComparison:
    total_cost: float
    difference: float
    percent_difference: float

    def to_api_dict(self) -> dict[str, float]:
        return {
            "total_cost": self.total_cost,
            "difference": self.difference,
            "percent_difference": self.percent_difference,
        }


@dataclass(frozen=True)
class ScenarioAnalysis:
    scenarios: dict[str, dict[str, Any]]
    comparison: dict[str, ScenarioComparison]
    recommendations: tuple[str, ...]

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "scenarios": self.scenarios,
            "comparison": {name: item.to_api_dict() for name, item in self.comparison.items()},
            "recommendations": list(self.recommendations),
        }


def _validate_figures(figures: Mapping[str, Any], label: str) -> None:
    for key, value in figures.items():
        if not _is_number(value):
            raise ScenarioValidationError(f"{label}['{key}'] must be numeric")


def _total(figures: Mapping[str, float]) -> float:
    if "total" in figures:
        return float(figures["total"])
    return float(sum(value for key, value in figures.items() if key != "total"))


def apply_variation(base: Mapping[str, Any], variation: Mapping[str, float]) -> dict[str, Any]:
    scenario = copy.deepcopy(dict(base))
    for key, factor in variation.items():
        value = scenario.get(key)
        if _is_number(value):
            scenario[key] = value * (1 + factor)
    return scenario


class ScenarioAnalysisService:
    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)

    def variance_analysis(
        self,
        budgeted: Mapping[str, float],
        actual: Mapping[str, float],
        period: str = "",
    ) -> VarianceReport:
        _validate_figures(budgeted, "budgeted")
        _validate_figures(actual, "actual")
        if not budgeted:
            raise ScenarioValidationError("budgeted figures must not be empty")

        total_budgeted = _total(budgeted)
        total_actual = _total(actual)
        total_variance = total_actual - total_budgeted

        categories: list[CategoryVariance] = []
        favorable: list[str] = []
        unfavorable: list[str] = []
        significant: list[str] = []
        for category, budgeted_amount in budgeted.items():
            if category == "total":
                continue
            actual_amount = float(actual.get(category, 0.0))
            variance = actual_amount - budgeted_amount
            variance_percent = _percent(variance, budgeted_amount)
            categories.append(
                CategoryVariance(
                    category=category,
                    budgeted=float(budgeted_amount),
                    actual=actual_amount,
                    variance=variance,
                    variance_percent=variance_percent,
                )
            )
            if abs(variance_percent) > SIGNIFICANT_VARIANCE_PERCENT:
                significant.append(category)
            if variance < 0:
                favorable.append(category)
            elif variance > 0:
                unfavorable.append(category)

        logger.info(
            "Variance analysis completed | period=%s | total_variance=%.2f | significant=%s",
            period,
            total_variance,
            significant,
        )
        return VarianceReport(
            period=period,
            total_budgeted=total_budgeted,
            total_actual=total_actual,
            total_variance=total_variance,
            total_variance_percent=_percent(total_variance, total_budgeted),
            categories=tuple(categories),
            favorable=tuple(favorable),
            unfavorable=tuple(unfavorable),
            significant=tuple(significant),
        )

    def scenario_analysis(
        self,
        base: Mapping[str, Any],
        variations: Mapping[str, Mapping[str, float]],
    ) -> ScenarioAnalysis:
        """Apply optimistic / pessimistic / realistic factors to a base scenario.

        Each named field is multiplied by (1 + factor); fields that are absent
        from the base or non-numeric are left untouched, and a missing variant
        equals the base. Comparisons read `total_cost` as given, so varying a
        component does not recompute the total.
        """

        if not _is_number(base.get("total_cost")):
            raise ScenarioValidationError("base scenario requires a numeric 'total_cost'")
        unknown = sorted(set(variations) - set(SCENARIO_NAMES))
        if unknown:
            raise ScenarioValidationError(f"Unknown scenario names: {unknown}")
        for name, variation in variations.items():
            for key, factor in variation.items():
                if not _is_number(factor):
                    raise ScenarioValidationError(f"{name}['{key}'] factor must be numeric")
                if factor < -1:
                    raise ScenarioValidationError(f"{name}['{key}'] factor must be >= -1")

        scenarios: dict[str, dict[str, Any]] = {"base": copy.deepcopy(dict(base))}
        for name in SCENARIO_NAMES:
            scenarios[name] = apply_variation(base, variations.get(name, {}))

        base_total = float(base["total_cost"])
        comparison = {
            name: ScenarioComparison(
                total_cost=float(scenarios[name]["total_cost"]),
                difference=float(scenarios[name]["total_cost"]) - base_total,
                percent_difference=_percent(float(scenarios[name]["total_cost"]) - base_total, base_total),
            )
            for name in SCENARIO_NAMES
        }

        recommendations: list[str] = []
        optimistic_savings = base_total - comparison["optimistic"].total_cost
        pessimistic_increase = comparison["pessimistic"].total_cost - base_total
        if optimistic_savings > 0:
            recommendations.append(
                f"Potential savings of ${optimistic_savings:,.2f} in the optimistic scenario"
            )
        if pessimistic_increase > base_total * PESSIMISTIC_RISK_FRACTION:
            recommendations.append(
                "Pessimistic scenario shows a cost increase above 20%; plan risk mitigation"
            )

        logger.info(
            "Scenario analysis completed | base_total=%.2f | optimistic=%.2f | pessimistic=%.2f",
            base_total,
            comparison["optimistic"].total_cost,
            comparison["pessimistic"].total_cost,
        )
        return ScenarioAnalysis(
            scenarios=scenarios,
            comparison=comparison,
            recommendations=tuple(recommendations),
        )

    def base_scenario_from_courses(
        self,
        courses: Sequence[Course],
        overhead_rate: float = DEFAULT_SCENARIO_OVERHEAD_RATE,
    ) -> dict[str, float]:
        instructor_costs = sum(course.instructor_cost for course in courses)
        facility_costs = sum(course.classroom_cost for course in courses)
        direct = instructor_costs + facility_costs
        overhead = direct * overhead_rate
        return {
            "total_cost": direct + overhead,
            "instructor_costs": instructor_costs,
            "facility_costs": facility_costs,
            "equipment_costs": 0.0,
            "overhead_costs": overhead,
        }

    def base_scenario_from_plan(self, plan: AllocationPlan) -> dict[str, float]:
        costs = plan.cost_breakdown
        return {
            "total_cost": costs.total_cost,
            "instructor_costs": costs.instructor_costs,
            "facility_costs": costs.facility_costs,
            "equipment_costs": costs.equipment_costs,
            "overhead_costs": costs.overhead_costs,
        }

    def department_base_scenario(self, department_id: Optional[int] = None) -> dict[str, float]:
        courses = self._repository.fetch_courses(ResourceFilter(department_id=department_id))
        return self.base_scenario_from_courses(courses)
