"""Hard-constraint filtering of instructors and facilities per course."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from backend.domain.models import (
    Course,
    Facility,
    FacilityStatus,
    FacilityType,
    Instructor,
    InstructorStatus,
)


@dataclass(frozen=True)
class CompatibleResources:
    instructors: tuple[Instructor, ...]
    facilities: tuple[Facility, ...]

    def pairs(self) -> Iterator[tuple[Instructor, Facility]]:
        """Yield pairs in generation order: instructors outer, facilities inner."""
        for instructor in self.instructors:
            for facility in self.facilities:
                yield instructor, facility

    @property
    def is_empty(self) -> bool:
        return not self.instructors or not self.facilities


def is_instructor_compatible(course: Course, instructor: Instructor) -> bool:
    if instructor.status is not InstructorStatus.ACTIVE:
        return False
    if instructor.department_id == course.department_id:
        return True
    if not course.subject:
        return False
    return course.subject.strip().lower() in instructor.qualifications.lower()


def is_facility_compatible(course: Course, facility: Facility) -> bool:
    if facility.status is not FacilityStatus.AVAILABLE:
        return False
    if facility.capacity < course.expected_students:
        return False
    return facility.facility_type in (course.facility_type, FacilityType.CLASSROOM)


class CompatibilityIndex:
    """Per-course compatible instructors and facilities, in input order."""

    def __init__(self, entries: dict[int, CompatibleResources]) -> None:
        self._entries = entries

    @classmethod
    def build(
        cls,
        courses: Sequence[Course],
        instructors: Sequence[Instructor],
        facilities: Sequence[Facility],
    ) -> "CompatibilityIndex":
        entries: dict[int, CompatibleResources] = {}
        for course in courses:
            entries[course.course_id] = CompatibleResources(
                instructors=tuple(
                    instructor
                    for instructor in instructors
                    if is_instructor_compatible(course, instructor)
                ),
                facilities=tuple(
                    facility
                    for facility in facilities
                    if is_facility_compatible(course, facility)
                ),
            )
        return cls(entries)

    def for_course(self, course_id: int) -> CompatibleResources:
        return self._entries.get(course_id, CompatibleResources(instructors=(), facilities=()))

    def as_dict(self) -> dict[int, CompatibleResources]:
        return dict(self._entries)


def build_candidates(
    courses: Sequence[Course],
    instructors: Sequence[Instructor],
    facilities: Sequence[Facility],
) -> dict[int, CompatibleResources]:
    return CompatibilityIndex.build(courses, instructors, facilities).as_dict()
