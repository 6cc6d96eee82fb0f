"""Course cost model: instructor, facility, equipment, overhead and depreciation."""

from __future__ import annotations

import math
from datetime import date
from typing import Iterable, Optional

from backend.domain.constraints import CostRates, validate_cost_rates
from backend.domain.costs import (
    CostBreakdown,
    DepreciationMethod,
    DepreciationResult,
    EquipmentCost,
    FacilityCost,
    InstructorCost,
    OverheadCost,
)
from backend.domain.models import (
    SEMESTER_WEEKS,
    Course,
    EmploymentType,
    Equipment,
    Facility,
    Instructor,
)
from backend.utils.config import Settings, get_settings


DEFAULT_ADJUNCT_HOURLY_RATE = 50.0
ANNUAL_FACILITY_HOURS = 52 * 40
INSTRUCTOR_WEEKLY_CAPACITY_HOURS = 40
FACILITY_WEEKLY_CAPACITY_HOURS = 50
ESTIMATED_LIFE_HOURS = 10_000.0
ANNUAL_USAGE_HOURS = 2_000.0
MAX_DEPRECIATION_FRACTION = 0.9
RESIDUAL_VALUE_FRACTION = 0.1
DAYS_PER_YEAR = 365.25


def _safe_divide(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _declining_charge(remaining: float, residual: float, declining_rate: float) -> float:
    # A year's charge never takes the book value below the residual.
    return min(remaining * declining_rate, max(remaining - residual, 0.0))


def efficiency_score(used: float, available: float) -> float:
    """Score how close a utilization ratio sits to the 75-85% target band."""
    if available <= 0:
        return 0.0
    utilization = used / available
    if 0.75 <= utilization <= 0.85:
        return 100.0
    if 0.65 <= utilization < 0.75 or 0.85 < utilization <= 0.95:
        return 85.0
    if utilization < 0.65:
        return utilization * 100.0
    return max(0.0, 100.0 - (utilization - 0.95) * 200.0)


class CostModel:
    """Pure cost computations for a (course, instructor, facility, equipment) placement."""

    def __init__(
        self,
        rates: Optional[CostRates] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        if rates is None:
            resolved = settings or get_settings()
            rates = CostRates(
                administrative_rate=resolved.cost_administrative_rate,
                general_rate=resolved.cost_general_rate,
                doctoral_differential=resolved.cost_doctoral_differential,
                masters_differential=resolved.cost_masters_differential,
            )
        validate_cost_rates(rates)
        self._rates = rates

    @property
    def rates(self) -> CostRates:
        return self._rates

    def qualification_differential(self, instructor: Instructor) -> float:
        qualifications = instructor.qualifications.lower()
        rate = 0.0
        if "phd" in qualifications or "doctor" in qualifications:
            rate += self._rates.doctoral_differential
        if "master" in qualifications:
            rate += self._rates.masters_differential
        return rate

    def instructor_cost(self, course: Course, instructor: Instructor) -> InstructorCost:
        employment = instructor.employment_type
        if employment is EmploymentType.PART_TIME:
            base_salary = course.instructor_cost * 0.8
            benefits = course.instructor_cost * 0.15
        elif employment is EmploymentType.ADJUNCT:
            hourly_rate = (
                instructor.hourly_rate
                if instructor.hourly_rate is not None
                else DEFAULT_ADJUNCT_HOURLY_RATE
            )
            base_salary = hourly_rate * course.hours_per_semester
            benefits = base_salary * 0.05
        elif employment is EmploymentType.CONTRACT:
            base_salary = course.instructor_cost * 1.2
            benefits = 0.0
        else:
            base_salary = course.instructor_cost
            benefits = base_salary * 0.30

        differential = base_salary * self.qualification_differential(instructor)
        return InstructorCost(
            base_salary=base_salary,
            benefits=benefits,
            differential=differential,
            total=base_salary + benefits + differential,
        )

    def facility_cost(self, course: Course, facility: Facility) -> FacilityCost:
        hours = course.hours_per_semester
        base_rental = facility.hourly_cost * hours
        share_of_year = hours / ANNUAL_FACILITY_HOURS
        utilities = facility.utilities_cost_annual * share_of_year
        maintenance = facility.maintenance_cost_annual * share_of_year
        overhead = base_rental * self._rates.facility_overhead_rate(facility.facility_type)
        return FacilityCost(
            base_rental=base_rental,
            utilities=utilities,
            maintenance=maintenance,
            overhead=overhead,
            total=base_rental + utilities + maintenance + overhead,
        )

    def equipment_cost(
        self,
        equipment: Iterable[Equipment],
        expected_students: int,
        as_of: Optional[date] = None,
    ) -> EquipmentCost:
        depreciation = 0.0
        maintenance = 0.0
        for item in equipment:
            result = self.depreciation(
                purchase_cost=item.purchase_cost,
                purchase_date=item.purchase_date,
                rate=item.depreciation_rate,
                method=DepreciationMethod.STRAIGHT_LINE,
                as_of=as_of,
            )
            depreciation += result.annual_depreciation / 2
            maintenance += item.maintenance_cost_annual / 2

        per_student = _safe_divide(depreciation + maintenance, expected_students)
        return EquipmentCost(
            depreciation=depreciation,
            maintenance=maintenance,
            per_student_allocation=per_student,
            total=depreciation + maintenance,
        )

    def overhead_cost(self, course: Course) -> OverheadCost:
        direct_costs = course.direct_cost
        administrative = direct_costs * self._rates.administrative_rate
        general = direct_costs * self._rates.general_rate
        return OverheadCost(
            administrative=administrative,
            general=general,
            total=administrative + general,
        )

    def comprehensive_cost(
        self,
        course: Course,
        instructor: Instructor,
        facility: Facility,
        equipment: Iterable[Equipment] = (),
        as_of: Optional[date] = None,
    ) -> CostBreakdown:
        instructor_part = self.instructor_cost(course, instructor)
        facility_part = self.facility_cost(course, facility)
        equipment_part = self.equipment_cost(equipment, course.expected_students, as_of=as_of)
        overhead_part = self.overhead_cost(course)

        total = (
            instructor_part.total
            + facility_part.total
            + equipment_part.total
            + overhead_part.total
        )
        return CostBreakdown(
            instructor=instructor_part,
            facility=facility_part,
            equipment=equipment_part,
            overhead=overhead_part,
            total_cost=total,
            cost_per_student=_safe_divide(total, course.expected_students),
            cost_per_credit_hour=_safe_divide(
                total, course.expected_students * course.credit_hours
            ),
        )

    def depreciation(
        self,
        purchase_cost: float,
        purchase_date: date,
        rate: float,
        method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        as_of: Optional[date] = None,
        years_owned: Optional[float] = None,
    ) -> DepreciationResult:
        """Compute book value for an asset.

        `years_owned` overrides the elapsed time derived from `purchase_date`
        and `as_of` (today when omitted). Accumulated depreciation is capped at
        90% of cost and the current value never drops below a 10% residual.
        """

        if years_owned is None:
            reference = as_of or date.today()
            years_owned = max((reference - purchase_date).days / DAYS_PER_YEAR, 0.0)
        else:
            years_owned = max(float(years_owned), 0.0)

        if method is DepreciationMethod.DECLINING_BALANCE:
            declining_rate = rate * 2
            residual = purchase_cost * RESIDUAL_VALUE_FRACTION
            remaining = purchase_cost
            accumulated = 0.0
            for _ in range(math.floor(years_owned)):
                charge = _declining_charge(remaining, residual, declining_rate)
                accumulated += charge
                remaining -= charge
            annual = _declining_charge(remaining, residual, declining_rate)
        elif method is DepreciationMethod.UNITS_OF_PRODUCTION:
            per_hour = purchase_cost / ESTIMATED_LIFE_HOURS
            annual = per_hour * ANNUAL_USAGE_HOURS
            accumulated = per_hour * years_owned * ANNUAL_USAGE_HOURS
        else:
            annual = purchase_cost * rate
            accumulated = annual * years_owned

        accumulated = min(accumulated, purchase_cost * MAX_DEPRECIATION_FRACTION)
        current_value = max(
            purchase_cost - accumulated,
            purchase_cost * RESIDUAL_VALUE_FRACTION,
        )
        return DepreciationResult(
            method=method,
            years_owned=years_owned,
            annual_depreciation=annual,
            accumulated_depreciation=accumulated,
            current_value=current_value,
        )

    def cost_per_credit_hour(
        self,
        component_totals: dict[str, float],
        total_credit_hours: float,
    ) -> dict[str, float]:
        return {
            component: _safe_divide(amount, total_credit_hours)
            for component, amount in component_totals.items()
        }

    def utilization_rates(
        self,
        instructor_count: int,
        facility_count: int,
        weekly_hours: Iterable[float],
    ) -> dict[str, dict[str, float]]:
        """Hours-based utilization of instructors and facilities over a semester."""
        used_hours = sum(hours * SEMESTER_WEEKS for hours in weekly_hours)
        instructor_hours = instructor_count * INSTRUCTOR_WEEKLY_CAPACITY_HOURS * SEMESTER_WEEKS
        facility_hours = facility_count * FACILITY_WEEKLY_CAPACITY_HOURS * SEMESTER_WEEKS

        instructors = {
            "total_available": float(instructor_hours),
            "total_used": float(used_hours),
            "utilization_rate": _safe_divide(used_hours, instructor_hours) * 100.0,
            "efficiency": efficiency_score(used_hours, instructor_hours),
        }
        facilities = {
            "total_available": float(facility_hours),
            "total_used": float(used_hours),
            "utilization_rate": _safe_divide(used_hours, facility_hours) * 100.0,
            "efficiency": efficiency_score(used_hours, facility_hours),
        }
        overall = {
            "average_utilization": (
                instructors["utilization_rate"] + facilities["utilization_rate"]
            ) / 2,
            "efficiency": (instructors["efficiency"] + facilities["efficiency"]) / 2,
        }
        return {"instructors": instructors, "facilities": facilities, "overall": overall}
