"""Heuristic scores used to rank candidate placements."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from backend.domain.constraints import AllocationConstraints
from backend.domain.models import (
    Candidate,
    Course,
    Equipment,
    Facility,
    FacilityType,
    Feasibility,
    Instructor,
)
from backend.services.cost_service import CostModel


SWEET_SPOT_LOW = 0.7
SWEET_SPOT_HIGH = 0.9
UNDERFILLED_RATIO = 0.5


def capacity_ratio(course: Course, facility: Facility) -> float:
    if facility.capacity <= 0:
        return 0.0
    return course.expected_students / facility.capacity


def in_sweet_spot(course: Course, facility: Facility) -> bool:
    if facility.capacity <= 0:
        return False
    return SWEET_SPOT_LOW <= capacity_ratio(course, facility) <= SWEET_SPOT_HIGH


def qualification_score(instructor: Instructor) -> float:
    qualifications = instructor.qualifications.lower()
    score = 50.0
    if "phd" in qualifications:
        score += 30.0
    elif "master" in qualifications:
        score += 20.0
    elif "bachelor" in qualifications:
        score += 10.0
    score += min(instructor.years_experience * 2, 20)
    return score


def course_priority(course: Course) -> float:
    priority = 50.0 + min(course.expected_students / 5, 20.0)
    if course.is_required:
        priority += 15.0
    if course.level > 100:
        priority += 10.0
    return priority


def course_complexity(course: Course) -> float:
    complexity = 1.0
    if course.facility_type is FacilityType.LAB:
        complexity += 0.5
    if course.level > 300:
        complexity += 0.3
    if course.expected_students > 30:
        complexity += 0.2
    return complexity


class ScoringEngine:
    def __init__(
        self,
        cost_model: Optional[CostModel] = None,
        constraints: Optional[AllocationConstraints] = None,
    ) -> None:
        self._cost_model = cost_model or CostModel()
        self._constraints = constraints or AllocationConstraints()

    @property
    def cost_model(self) -> CostModel:
        return self._cost_model

    def utility_score(self, course: Course, instructor: Instructor, facility: Facility) -> float:
        score = 100.0
        name_tokens = course.name.split()
        if name_tokens and name_tokens[0].lower() in instructor.qualifications.lower():
            score += 20.0

        if facility.capacity > 0:
            ratio = capacity_ratio(course, facility)
            if SWEET_SPOT_LOW <= ratio <= SWEET_SPOT_HIGH:
                score += 15.0
            elif ratio < UNDERFILLED_RATIO:
                score -= 10.0

        if facility.department_id is not None and facility.department_id == instructor.department_id:
            score += 10.0
        return score

    def feasibility(self, course: Course, instructor: Instructor, facility: Facility) -> Feasibility:
        if facility.capacity < course.expected_students:
            return Feasibility(
                feasible=False,
                violations=(
                    f"Facility {facility.facility_id} capacity {facility.capacity} "
                    f"below {course.expected_students} expected students",
                ),
            )

        violations: list[str] = []
        if course.expected_students < self._constraints.min_class_size:
            violations.append(
                f"Class size {course.expected_students} below minimum "
                f"{self._constraints.min_class_size}"
            )
        if course.expected_students > self._constraints.max_class_size:
            violations.append(
                f"Class size {course.expected_students} above maximum "
                f"{self._constraints.max_class_size}"
            )
        return Feasibility(feasible=True, violations=tuple(violations))

    def quality_score(self, course: Course, instructor: Instructor, facility: Facility) -> float:
        score = 50.0 + qualification_score(instructor) * 0.3
        if facility.facility_type is course.facility_type:
            score += 20.0
        if in_sweet_spot(course, facility):
            score += 15.0
        return score

    def utilization_score(self, course: Course, facility: Facility, instructor_load: int) -> float:
        load_ratio = instructor_load / self._constraints.max_instructor_load
        return (capacity_ratio(course, facility) + load_ratio) / 2 * 100.0

    def candidate(
        self,
        course: Course,
        instructor: Instructor,
        facility: Facility,
        generation_order: int,
        equipment: Iterable[Equipment] = (),
        as_of: Optional[date] = None,
    ) -> Candidate:
        breakdown = self._cost_model.comprehensive_cost(
            course, instructor, facility, equipment, as_of=as_of
        )
        return Candidate(
            course_id=course.course_id,
            instructor_id=instructor.instructor_id,
            facility_id=facility.facility_id,
            cost_breakdown=breakdown,
            utility_score=self.utility_score(course, instructor, facility),
            feasibility=self.feasibility(course, instructor, facility),
            generation_order=generation_order,
        )
