"""Domain models for course resource allocation and planning."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from backend.domain.costs import CostBreakdown


SEMESTER_WEEKS = 15
DEFAULT_HOURS_PER_SEMESTER = 45.0


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    ADJUNCT = "ADJUNCT"
    CONTRACT = "CONTRACT"


class InstructorStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ON_LEAVE = "ON_LEAVE"


class FacilityType(str, Enum):
    CLASSROOM = "CLASSROOM"
    LAB = "LAB"
    AUDITORIUM = "AUDITORIUM"
    LIBRARY = "LIBRARY"
    GYM = "GYM"
    OFFICE = "OFFICE"


class FacilityStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    MAINTENANCE = "MAINTENANCE"
    UNAVAILABLE = "UNAVAILABLE"


class EquipmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    RETIRED = "RETIRED"


class AllocationStrategy(str, Enum):
    COST_MINIMIZATION = "cost_minimization"
    UTILIZATION_MAXIMIZATION = "utilization_maximization"
    QUALITY_FOCUSED = "quality_focused"
    BALANCED = "balanced"


@dataclass(frozen=True)
class Course:
    course_id: int
    department_id: int
    expected_students: int
    instructor_cost: float = 0.0
    classroom_cost: float = 0.0
    credit_hours: int = 3
    hours_per_week: float = 3.0
    facility_type: FacilityType = FacilityType.CLASSROOM
    is_required: bool = False
    level: int = 100
    name: str = ""
    subject: Optional[str] = None
    equipment_ids: tuple[int, ...] = ()

    @property
    def hours_per_semester(self) -> float:
        hours = self.hours_per_week * SEMESTER_WEEKS
        return hours if hours > 0 else DEFAULT_HOURS_PER_SEMESTER

    @property
    def direct_cost(self) -> float:
        return self.instructor_cost + self.classroom_cost


@dataclass(frozen=True)
class Instructor:
    instructor_id: int
    department_id: int
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    hourly_rate: Optional[float] = None
    qualifications: str = ""
    status: InstructorStatus = InstructorStatus.ACTIVE
    years_experience: int = 0
    name: str = ""


@dataclass(frozen=True)
class Facility:
    facility_id: int
    capacity: int
    facility_type: FacilityType = FacilityType.CLASSROOM
    department_id: Optional[int] = None
    hourly_cost: float = 0.0
    utilities_cost_annual: float = 0.0
    maintenance_cost_annual: float = 0.0
    status: FacilityStatus = FacilityStatus.AVAILABLE
    name: str = ""


@dataclass(frozen=True)
class Equipment:
    equipment_id: int
    purchase_cost: float
    purchase_date: date
    depreciation_rate: float
    maintenance_cost_annual: float = 0.0
    status: EquipmentStatus = EquipmentStatus.ACTIVE
    department_id: Optional[int] = None
    name: str = ""


@dataclass(frozen=True)
class ResourcePool:
    instructors: list[Instructor]
    facilities: list[Facility]
    equipment: list[Equipment] = field(default_factory=list)


@dataclass(frozen=True)
class TimeSlot:
    """Placeholder slot; time-of-day conflicts are not solved for."""

    day: str = "Monday"
    start_time: str = "10:00"
    end_time: str = "11:00"

    def to_dict(self) -> dict[str, str]:
        return {"day": self.day, "start_time": self.start_time, "end_time": self.end_time}


@dataclass(frozen=True)
class Feasibility:
    feasible: bool
    violations: tuple[str, ...] = ()


@dataclass(frozen=True)
class Candidate:
    course_id: int
    instructor_id: int
    facility_id: int
    cost_breakdown: CostBreakdown
    utility_score: float
    feasibility: Feasibility
    generation_order: int

    @property
    def cost(self) -> float:
        return self.cost_breakdown.total_cost


@dataclass(frozen=True)
class Assignment:
    course_id: int
    instructor_id: int
    facility_id: int
    department_id: int
    cost: float
    cost_breakdown: CostBreakdown
    utility_score: float
    quality_score: float
    utilization: float
    strategy_score: float
    time_slot: TimeSlot = field(default_factory=TimeSlot)
    violations: tuple[str, ...] = ()
    assigned_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
        compare=False,
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": self.course_id,
            "instructor_id": self.instructor_id,
            "facility_id": self.facility_id,
            "department_id": self.department_id,
            "cost": self.cost,
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "utility_score": self.utility_score,
            "quality_score": self.quality_score,
            "utilization": self.utilization,
            "strategy_score": self.strategy_score,
            "time_slot": self.time_slot.to_dict(),
            "violations": list(self.violations),
            "assigned_at": self.assigned_at.isoformat(),
        }


@dataclass(frozen=True)
class UnassignedCourse:
    course_id: int
    department_id: int
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": self.course_id,
            "department_id": self.department_id,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class UtilizationStat:
    assigned: int
    total: int
    percentage: float

    def to_dict(self) -> dict[str, float | int]:
        return {"assigned": self.assigned, "total": self.total, "percentage": self.percentage}


@dataclass(frozen=True)
class ResourceUtilization:
    instructors: UtilizationStat
    facilities: UtilizationStat
    overall_efficiency: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "instructors": self.instructors.to_dict(),
            "facilities": self.facilities.to_dict(),
            "overall": {"efficiency": self.overall_efficiency},
        }


@dataclass(frozen=True)
class PlanCostBreakdown:
    total_cost: float
    instructor_costs: float
    facility_costs: float
    equipment_costs: float
    overhead_costs: float
    department_costs: Mapping[int, float]
    average_cost_per_course: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "department_costs", MappingProxyType(dict(self.department_costs)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_cost": self.total_cost,
            "instructor_costs": self.instructor_costs,
            "facility_costs": self.facility_costs,
            "equipment_costs": self.equipment_costs,
            "overhead_costs": self.overhead_costs,
            "department_costs": dict(self.department_costs),
            "average_cost_per_course": self.average_cost_per_course,
        }


@dataclass(frozen=True)
class AllocationPlan:
    strategy: AllocationStrategy
    assignments: tuple[Assignment, ...]
    unassigned: tuple[UnassignedCourse, ...]
    resource_utilization: ResourceUtilization
    cost_breakdown: PlanCostBreakdown
    optimization_score: int
    warnings: tuple[str, ...]
    recommendations: tuple[str, ...]
    summary: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "summary", MappingProxyType(dict(self.summary)))

    @property
    def unassigned_course_ids(self) -> list[int]:
        return [item.course_id for item in self.unassigned]

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "assignments": [assignment.to_dict() for assignment in self.assignments],
            "unassigned": [item.to_dict() for item in self.unassigned],
            "resource_utilization": self.resource_utilization.to_dict(),
            "cost_breakdown": self.cost_breakdown.to_dict(),
            "optimization_score": self.optimization_score,
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "summary": dict(self.summary),
        }
