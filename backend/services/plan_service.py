"""Turns committed assignments into an allocation plan with metrics and advice."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Optional, Sequence

from backend.domain.constraints import AllocationConstraints
from backend.domain.models import (
    AllocationPlan,
    AllocationStrategy,
    Assignment,
    Course,
    PlanCostBreakdown,
    ResourcePool,
    ResourceUtilization,
    UnassignedCourse,
    UtilizationStat,
)
from backend.services.cost_service import CostModel


INSTRUCTOR_UTILIZATION_FLOOR = 70.0
FACILITY_UTILIZATION_FLOOR = 60.0
INSTRUCTOR_UTILIZATION_CEILING = 90.0
FACILITY_UTILIZATION_CEILING = 85.0
OPTIMIZATION_SCORE_FLOOR = 70
EFFICIENCY_FLOOR = 70.0

COST_RANGES: tuple[tuple[str, float, float], ...] = (
    ("under_5k", 0.0, 5000.0),
    ("5k_to_10k", 5000.0, 10000.0),
    ("10k_to_15k", 10000.0, 15000.0),
    ("over_15k", 15000.0, float("inf")),
)


def _percentage(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return part / whole * 100.0


def cost_efficiency_band(average_cost: float, benchmark: float) -> float:
    if average_cost <= benchmark * 0.8:
        return 100.0
    if average_cost <= benchmark:
        return 80.0
    if average_cost <= benchmark * 1.2:
        return 60.0
    return 40.0


def cost_distribution(assignments: Sequence[Assignment]) -> dict[str, int]:
    distribution = {label: 0 for label, _, _ in COST_RANGES}
    for assignment in assignments:
        for label, low, high in COST_RANGES:
            if low <= assignment.cost < high:
                distribution[label] += 1
                break
    return distribution


def quality_distribution(assignments: Sequence[Assignment]) -> dict[str, int]:
    distribution = {"excellent": 0, "good": 0, "fair": 0, "poor": 0}
    for assignment in assignments:
        if assignment.quality_score >= 80:
            distribution["excellent"] += 1
        elif assignment.quality_score >= 70:
            distribution["good"] += 1
        elif assignment.quality_score >= 60:
            distribution["fair"] += 1
        else:
            distribution["poor"] += 1
    return distribution


class PlanAssembler:
    def __init__(
        self,
        cost_model: Optional[CostModel] = None,
        constraints: Optional[AllocationConstraints] = None,
    ) -> None:
        self._cost_model = cost_model or CostModel()
        self._constraints = constraints or AllocationConstraints()

    def resource_utilization(
        self,
        assignments: Sequence[Assignment],
        resources: ResourcePool,
    ) -> ResourceUtilization:
        assigned_instructors = len({item.instructor_id for item in assignments})
        assigned_facilities = len({item.facility_id for item in assignments})
        instructors = UtilizationStat(
            assigned=assigned_instructors,
            total=len(resources.instructors),
            percentage=_percentage(assigned_instructors, len(resources.instructors)),
        )
        facilities = UtilizationStat(
            assigned=assigned_facilities,
            total=len(resources.facilities),
            percentage=_percentage(assigned_facilities, len(resources.facilities)),
        )
        return ResourceUtilization(
            instructors=instructors,
            facilities=facilities,
            overall_efficiency=(instructors.percentage + facilities.percentage) / 2,
        )

    def cost_breakdown(self, assignments: Sequence[Assignment]) -> PlanCostBreakdown:
        department_costs: dict[int, float] = defaultdict(float)
        for assignment in assignments:
            department_costs[assignment.department_id] += assignment.cost

        total = sum(item.cost for item in assignments)
        return PlanCostBreakdown(
            total_cost=total,
            instructor_costs=sum(item.cost_breakdown.instructor.total for item in assignments),
            facility_costs=sum(item.cost_breakdown.facility.total for item in assignments),
            equipment_costs=sum(item.cost_breakdown.equipment.total for item in assignments),
            overhead_costs=sum(item.cost_breakdown.overhead.total for item in assignments),
            department_costs=dict(department_costs),
            average_cost_per_course=total / len(assignments) if assignments else 0.0,
        )

    def optimization_score(
        self,
        utilization: ResourceUtilization,
        costs: PlanCostBreakdown,
        warning_count: int,
    ) -> int:
        band = cost_efficiency_band(costs.average_cost_per_course, self._constraints.cost_benchmark)
        constraint_score = max(0, 100 - 10 * warning_count)
        return int(round(
            utilization.overall_efficiency * 0.4 + band * 0.3 + constraint_score * 0.3
        ))

    def department_cost_per_credit_hour(
        self,
        assignments: Sequence[Assignment],
        courses_by_id: dict[int, Course],
    ) -> dict[int, dict[str, float]]:
        components: dict[int, dict[str, float]] = defaultdict(
            lambda: {"total": 0.0, "instructor": 0.0, "facility": 0.0, "equipment": 0.0, "overhead": 0.0}
        )
        credit_hours: dict[int, float] = defaultdict(float)
        for assignment in assignments:
            course = courses_by_id[assignment.course_id]
            bucket = components[assignment.department_id]
            bucket["total"] += assignment.cost
            bucket["instructor"] += assignment.cost_breakdown.instructor.total
            bucket["facility"] += assignment.cost_breakdown.facility.total
            bucket["equipment"] += assignment.cost_breakdown.equipment.total
            bucket["overhead"] += assignment.cost_breakdown.overhead.total
            credit_hours[assignment.department_id] += course.credit_hours * course.expected_students

        return {
            department_id: self._cost_model.cost_per_credit_hour(totals, credit_hours[department_id])
            for department_id, totals in sorted(components.items())
        }

    def assemble(
        self,
        strategy: AllocationStrategy,
        assignments: Sequence[Assignment],
        unassigned: Sequence[UnassignedCourse],
        resources: ResourcePool,
        courses: Sequence[Course],
    ) -> AllocationPlan:
        utilization = self.resource_utilization(assignments, resources)
        costs = self.cost_breakdown(assignments)

        warnings: list[str] = []
        if utilization.instructors.percentage < INSTRUCTOR_UTILIZATION_FLOOR:
            warnings.append(
                f"Low instructor utilization: {utilization.instructors.percentage:.1f}%"
            )
        if utilization.facilities.percentage < FACILITY_UTILIZATION_FLOOR:
            warnings.append(
                f"Low facility utilization: {utilization.facilities.percentage:.1f}%"
            )
        for item in unassigned:
            warnings.append(f"Course {item.course_id} could not be assigned: {item.reason}")

        score = self.optimization_score(utilization, costs, len(warnings))
        if score < OPTIMIZATION_SCORE_FLOOR:
            warnings.append(f"Optimization score is below target: {score}")

        recommendations: list[str] = []
        if utilization.instructors.percentage > INSTRUCTOR_UTILIZATION_CEILING:
            recommendations.append(
                "Instructor utilization is high; consider hiring additional instructors"
            )
        if utilization.facilities.percentage > FACILITY_UTILIZATION_CEILING:
            recommendations.append(
                "Facility utilization is high; consider expanding or optimizing facility usage"
            )
        if costs.average_cost_per_course > self._constraints.high_cost_threshold:
            recommendations.append(
                "Average cost per course is high; review cost structures and resource allocation"
            )
        if unassigned:
            recommendations.append(
                f"{len(unassigned)} course(s) remain unassigned; consider additional instructors "
                "or expanded facility capacity"
            )
        if utilization.overall_efficiency < EFFICIENCY_FLOOR:
            recommendations.append(
                "Overall resource efficiency is low; consider consolidating courses or resources"
            )

        return AllocationPlan(
            strategy=strategy,
            assignments=tuple(assignments),
            unassigned=tuple(unassigned),
            resource_utilization=utilization,
            cost_breakdown=costs,
            optimization_score=score,
            warnings=tuple(warnings),
            recommendations=tuple(recommendations),
            summary=self._summary(assignments, unassigned, resources, courses),
        )

    def _summary(
        self,
        assignments: Sequence[Assignment],
        unassigned: Sequence[UnassignedCourse],
        resources: ResourcePool,
        courses: Sequence[Course],
    ) -> dict[str, Any]:
        courses_by_id = {course.course_id: course for course in courses}
        average_quality = (
            sum(item.quality_score for item in assignments) / len(assignments)
            if assignments
            else 0.0
        )
        return {
            "total_assignments": len(assignments),
            "unassigned_count": len(unassigned),
            "cost_distribution": cost_distribution(assignments),
            "average_quality_score": average_quality,
            "quality_distribution": quality_distribution(assignments),
            "utilization_rates": self._cost_model.utilization_rates(
                instructor_count=len(resources.instructors),
                facility_count=len(resources.facilities),
                weekly_hours=[
                    courses_by_id[item.course_id].hours_per_week for item in assignments
                ],
            ),
            "department_cost_per_credit_hour": self.department_cost_per_credit_hour(
                assignments, courses_by_id
            ),
        }
