"""Repository layer: data-provider contract and an in-memory snapshot."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from typing import Optional, Protocol

from backend.domain.models import (
    Assignment,
    Course,
    EmploymentType,
    Equipment,
    EquipmentStatus,
    Facility,
    FacilityStatus,
    FacilityType,
    Instructor,
    InstructorStatus,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class ResourceFilter:
    department_id: Optional[int] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class CourseHistoryRecord:
    """Historical course offering used for trend analysis and forecasting."""

    academic_year: int
    course_id: int
    department_id: int
    total_cost: float
    expected_students: int


class ResourceProvider(Protocol):
    def fetch_courses(self, resource_filter: Optional[ResourceFilter] = None) -> list[Course]:
        ...

    def fetch_instructors(self, resource_filter: Optional[ResourceFilter] = None) -> list[Instructor]:
        ...

    def fetch_facilities(self, resource_filter: Optional[ResourceFilter] = None) -> list[Facility]:
        ...

    def fetch_equipment(self, resource_filter: Optional[ResourceFilter] = None) -> list[Equipment]:
        ...

    def fetch_department_budgets(
        self,
        resource_filter: Optional[ResourceFilter] = None,
    ) -> dict[int, float]:
        ...

    def get_course(self, course_id: int) -> Optional[Course]:
        ...

    def get_instructor(self, instructor_id: int) -> Optional[Instructor]:
        ...

    def get_facility(self, facility_id: int) -> Optional[Facility]:
        ...

    def persist_assignment(self, assignment: Assignment) -> int:
        ...


SAMPLE_DEPARTMENT_BUDGETS: dict[int, float] = {
    1: 50000.0,
    2: 75000.0,
    3: 40000.0,
    4: 35000.0,
    5: 30000.0,
}

SAMPLE_COURSES: tuple[Course, ...] = (
    Course(course_id=1, department_id=1, name="Algebra I", subject="Mathematics",
           expected_students=25, instructor_cost=5000.0, classroom_cost=1500.0,
           is_required=True, equipment_ids=(1,)),
    Course(course_id=2, department_id=1, name="Geometry", subject="Mathematics",
           expected_students=20, instructor_cost=5000.0, classroom_cost=1500.0, level=200),
    Course(course_id=3, department_id=2, name="Biology", subject="Biology",
           expected_students=30, instructor_cost=6000.0, classroom_cost=2500.0,
           facility_type=FacilityType.LAB, hours_per_week=4.0, equipment_ids=(2,)),
    Course(course_id=4, department_id=2, name="Chemistry", subject="Chemistry",
           expected_students=22, instructor_cost=6500.0, classroom_cost=3000.0,
           facility_type=FacilityType.LAB, hours_per_week=4.0, level=200,
           equipment_ids=(5, 8)),
    Course(course_id=5, department_id=3, name="English Literature", subject="English",
           expected_students=28, instructor_cost=4500.0, classroom_cost=1000.0,
           is_required=True, equipment_ids=(3,)),
    Course(course_id=6, department_id=4, name="World History", subject="History",
           expected_students=25, instructor_cost=4000.0, classroom_cost=1200.0),
)

SAMPLE_INSTRUCTORS: tuple[Instructor, ...] = (
    Instructor(instructor_id=1, department_id=1, name="Sarah Johnson",
               qualifications="PhD Mathematics, Masters in Education",
               hourly_rate=75.0, years_experience=12),
    Instructor(instructor_id=2, department_id=2, name="Michael Chen",
               qualifications="PhD Chemistry", hourly_rate=80.0, years_experience=15),
    Instructor(instructor_id=3, department_id=3, name="Emily Rodriguez",
               qualifications="MA English Literature", hourly_rate=65.0, years_experience=8),
    Instructor(instructor_id=4, department_id=1, name="Alice Smith",
               qualifications="MS Mathematics", hourly_rate=68.0, years_experience=6),
    Instructor(instructor_id=5, department_id=2, name="Bob Wilson",
               qualifications="PhD Biology", hourly_rate=78.0, years_experience=10),
    Instructor(instructor_id=6, department_id=3, name="Carol Davis",
               employment_type=EmploymentType.PART_TIME,
               qualifications="MA English", hourly_rate=55.0, years_experience=4),
    Instructor(instructor_id=7, department_id=2, name="Frank Miller",
               qualifications="PhD Chemistry", hourly_rate=72.0, years_experience=9),
    Instructor(instructor_id=8, department_id=4, name="David Brown",
               qualifications="MA History", hourly_rate=65.0, years_experience=7),
    Instructor(instructor_id=9, department_id=2, name="Frank Lee",
               employment_type=EmploymentType.ADJUNCT,
               qualifications="MS Physics", hourly_rate=45.0, years_experience=3),
)

SAMPLE_FACILITIES: tuple[Facility, ...] = (
    Facility(facility_id=1, name="Math Lab A", facility_type=FacilityType.LAB, capacity=30,
             hourly_cost=35.0, maintenance_cost_annual=3000.0, utilities_cost_annual=4500.0,
             department_id=1),
    Facility(facility_id=2, name="Science Lab B", facility_type=FacilityType.LAB, capacity=25,
             hourly_cost=45.0, maintenance_cost_annual=5000.0, utilities_cost_annual=6000.0,
             department_id=2),
    Facility(facility_id=3, name="Lecture Hall 101", facility_type=FacilityType.AUDITORIUM,
             capacity=150, hourly_cost=75.0, maintenance_cost_annual=8000.0,
             utilities_cost_annual=12000.0),
    Facility(facility_id=4, name="Classroom 201", facility_type=FacilityType.CLASSROOM,
             capacity=35, hourly_cost=25.0, maintenance_cost_annual=2000.0,
             utilities_cost_annual=3000.0, department_id=3),
    Facility(facility_id=5, name="Computer Lab C", facility_type=FacilityType.LAB, capacity=40,
             hourly_cost=50.0, maintenance_cost_annual=4000.0, utilities_cost_annual=5500.0,
             department_id=1),
    Facility(facility_id=6, name="Gymnasium", facility_type=FacilityType.GYM, capacity=200,
             hourly_cost=60.0, maintenance_cost_annual=10000.0, utilities_cost_annual=8000.0,
             department_id=5),
    Facility(facility_id=7, name="Library Study Room", facility_type=FacilityType.CLASSROOM,
             capacity=20, hourly_cost=15.0, maintenance_cost_annual=1500.0,
             utilities_cost_annual=2000.0),
    Facility(facility_id=8, name="Chemistry Lab", facility_type=FacilityType.LAB, capacity=28,
             hourly_cost=55.0, maintenance_cost_annual=6000.0, utilities_cost_annual=7000.0,
             department_id=2),
)

SAMPLE_EQUIPMENT: tuple[Equipment, ...] = (
    Equipment(equipment_id=1, name="Graphing Calculators (Set of 30)", department_id=1,
              purchase_cost=3600.0, purchase_date=date(2022, 8, 15), depreciation_rate=0.15,
              maintenance_cost_annual=200.0),
    Equipment(equipment_id=2, name="Microscopes (Set of 15)", department_id=2,
              purchase_cost=7500.0, purchase_date=date(2021, 6, 10), depreciation_rate=0.10,
              maintenance_cost_annual=500.0),
    Equipment(equipment_id=3, name="Projector System", department_id=3,
              purchase_cost=2800.0, purchase_date=date(2023, 1, 20), depreciation_rate=0.20,
              maintenance_cost_annual=300.0),
    Equipment(equipment_id=4, name="Desktop Computers (Set of 20)", department_id=1,
              purchase_cost=24000.0, purchase_date=date(2022, 9, 1), depreciation_rate=0.25,
              maintenance_cost_annual=1200.0),
    Equipment(equipment_id=5, name="Chemistry Fume Hood", department_id=2,
              purchase_cost=8500.0, purchase_date=date(2020, 3, 15), depreciation_rate=0.08,
              maintenance_cost_annual=800.0),
    Equipment(equipment_id=6, name="Gym Equipment Set", department_id=5,
              purchase_cost=5200.0, purchase_date=date(2021, 7, 20), depreciation_rate=0.12,
              maintenance_cost_annual=600.0),
    Equipment(equipment_id=7, name="3D Printer", department_id=1,
              purchase_cost=4200.0, purchase_date=date(2023, 2, 10), depreciation_rate=0.30,
              maintenance_cost_annual=400.0),
    Equipment(equipment_id=8, name="Spectrophotometer", department_id=2,
              purchase_cost=12000.0, purchase_date=date(2019, 11, 5), depreciation_rate=0.10,
              maintenance_cost_annual=1000.0),
)

# Per-year growth applied to the sample courses to build offering history.
_HISTORY_YEARS: tuple[tuple[int, float, float], ...] = (
    (2022, 0.90, 0.92),
    (2023, 0.95, 0.96),
    (2024, 1.00, 1.00),
)


def _sample_history() -> list[CourseHistoryRecord]:
    records: list[CourseHistoryRecord] = []
    for year, cost_factor, enrollment_factor in _HISTORY_YEARS:
        for course in SAMPLE_COURSES:
            records.append(
                CourseHistoryRecord(
                    academic_year=year,
                    course_id=course.course_id,
                    department_id=course.department_id,
                    total_cost=round(course.direct_cost * cost_factor, 2),
                    expected_students=int(round(course.expected_students * enrollment_factor)),
                )
            )
    return records


def _matches_department(department_id: Optional[int], resource_filter: Optional[ResourceFilter]) -> bool:
    if resource_filter is None or resource_filter.department_id is None:
        return True
    return department_id == resource_filter.department_id


def _matches_status(status: str, resource_filter: Optional[ResourceFilter]) -> bool:
    if resource_filter is None or resource_filter.status is None:
        return True
    return status == resource_filter.status.upper()


class DataRepository:
    """Thread-safe in-memory snapshot implementing the resource-provider contract."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._lock = threading.RLock()
        self._courses: list[Course] = []
        self._instructors: list[Instructor] = []
        self._facilities: list[Facility] = []
        self._equipment: list[Equipment] = []
        self._budgets: dict[int, float] = {}
        self._history: list[CourseHistoryRecord] = []
        self._assignments: dict[int, Assignment] = {}
        self._next_assignment_id = 1

    def seed_sample_data(self) -> None:
        """Load the departmental sample snapshot; no-op if courses already exist."""
        with self._lock:
            if self._courses:
                logger.info("Sample data already loaded | courses=%s", len(self._courses))
                return
            self._courses = list(SAMPLE_COURSES)
            self._instructors = list(SAMPLE_INSTRUCTORS)
            self._facilities = list(SAMPLE_FACILITIES)
            self._equipment = list(SAMPLE_EQUIPMENT)
            self._budgets = dict(SAMPLE_DEPARTMENT_BUDGETS)
            self._history = _sample_history()
        logger.info(
            "Sample data loaded | courses=%s | instructors=%s | facilities=%s | equipment=%s",
            len(SAMPLE_COURSES),
            len(SAMPLE_INSTRUCTORS),
            len(SAMPLE_FACILITIES),
            len(SAMPLE_EQUIPMENT),
        )

    def fetch_courses(self, resource_filter: Optional[ResourceFilter] = None) -> list[Course]:
        with self._lock:
            return [
                course
                for course in self._courses
                if _matches_department(course.department_id, resource_filter)
            ]

    def fetch_instructors(self, resource_filter: Optional[ResourceFilter] = None) -> list[Instructor]:
        with self._lock:
            return [
                instructor
                for instructor in self._instructors
                if _matches_department(instructor.department_id, resource_filter)
                and _matches_status(InstructorStatus(instructor.status).value, resource_filter)
            ]

    def fetch_facilities(self, resource_filter: Optional[ResourceFilter] = None) -> list[Facility]:
        with self._lock:
            return [
                facility
                for facility in self._facilities
                if _matches_department(facility.department_id, resource_filter)
                and _matches_status(FacilityStatus(facility.status).value, resource_filter)
            ]

    def fetch_equipment(self, resource_filter: Optional[ResourceFilter] = None) -> list[Equipment]:
        with self._lock:
            return [
                item
                for item in self._equipment
                if _matches_department(item.department_id, resource_filter)
                and _matches_status(EquipmentStatus(item.status).value, resource_filter)
            ]

    def fetch_department_budgets(
        self,
        resource_filter: Optional[ResourceFilter] = None,
    ) -> dict[int, float]:
        with self._lock:
            return {
                department_id: amount
                for department_id, amount in self._budgets.items()
                if _matches_department(department_id, resource_filter)
            }

    def fetch_course_history(self, department_id: Optional[int] = None) -> list[CourseHistoryRecord]:
        with self._lock:
            return [
                record
                for record in self._history
                if department_id is None or record.department_id == department_id
            ]

    def get_course(self, course_id: int) -> Optional[Course]:
        return next((item for item in self.fetch_courses() if item.course_id == course_id), None)

    def get_instructor(self, instructor_id: int) -> Optional[Instructor]:
        return next(
            (item for item in self.fetch_instructors() if item.instructor_id == instructor_id),
            None,
        )

    def get_facility(self, facility_id: int) -> Optional[Facility]:
        return next((item for item in self.fetch_facilities() if item.facility_id == facility_id), None)

    def persist_assignment(self, assignment: Assignment) -> int:
        with self._lock:
            assignment_id = self._next_assignment_id
            self._assignments[assignment_id] = assignment
            self._next_assignment_id += 1
        logger.info(
            "Assignment persisted | id=%s | course_id=%s | instructor_id=%s | facility_id=%s",
            assignment_id,
            assignment.course_id,
            assignment.instructor_id,
            assignment.facility_id,
        )
        return assignment_id

    def count_assignments(self) -> int:
        with self._lock:
            return len(self._assignments)
