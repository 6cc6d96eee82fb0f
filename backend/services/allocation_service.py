"""Greedy course allocation under budget, workload and facility constraints."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Mapping, Optional, Sequence, Union

from backend.domain.constraints import AllocationConstraints, validate_allocation_constraints
from backend.domain.costs import (
    AssetBookValue,
    CostBreakdown,
    DepreciationMethod,
    DepreciationReport,
)
from backend.domain.models import (
    AllocationPlan,
    AllocationStrategy,
    Assignment,
    Candidate,
    Course,
    Equipment,
    EquipmentStatus,
    Facility,
    Instructor,
    ResourcePool,
    TimeSlot,
    UnassignedCourse,
)
from backend.repository.data_repository import DataRepository, ResourceFilter, ResourceProvider
from backend.services.compatibility_service import CompatibilityIndex
from backend.services.cost_service import CostModel
from backend.services.plan_service import PlanAssembler
from backend.services.scoring_service import ScoringEngine, course_complexity, course_priority
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


REASON_NO_INSTRUCTOR = "no compatible instructor"
REASON_NO_FACILITY = "no compatible facility"
REASON_BUDGET = "department budget exhausted"
REASON_COMMITTED = "compatible resources already committed"
REASON_INFEASIBLE = "no feasible instructor and facility pairing"


class AllocationValidationError(Exception):
    """Raised when allocation inputs are invalid."""


class ResourceNotFoundError(Exception):
    """Raised when a referenced course, instructor or facility does not exist."""


@dataclass
class AllocationState:
    """Mutable bookkeeping for a single allocation run."""

    used_instructors: set[int] = field(default_factory=set)
    used_facilities: dict[int, TimeSlot] = field(default_factory=dict)
    department_spend: dict[int, float] = field(default_factory=dict)
    instructor_load: Counter = field(default_factory=Counter)

    def spend(self, department_id: int) -> float:
        return self.department_spend.get(department_id, 0.0)

    def commit(self, assignment: Assignment) -> None:
        self.used_instructors.add(assignment.instructor_id)
        self.used_facilities[assignment.facility_id] = assignment.time_slot
        self.instructor_load[assignment.instructor_id] += 1
        self.department_spend[assignment.department_id] = (
            self.spend(assignment.department_id) + assignment.cost
        )


@dataclass(frozen=True)
class ScoredOption:
    """A scored `Candidate` plus the strategy-facing quality and utilization."""

    candidate: Candidate
    quality: float
    utilization: float
    score: float = 0.0

    @property
    def cost(self) -> float:
        return self.candidate.cost


@dataclass(frozen=True)
class RunContext:
    scoring: ScoringEngine
    constraints: AllocationConstraints
    budgets: Mapping[int, float]
    equipment_by_id: Mapping[int, Equipment]
    as_of: Optional[date] = None

    def budget_limit(self, department_id: int) -> float:
        return self.budgets.get(department_id, 0.0) * (1 - self.constraints.budget_buffer)

    def equipment_for(self, course: Course) -> list[Equipment]:
        return [self.equipment_by_id[equipment_id] for equipment_id in course.equipment_ids]


class Strategy(ABC):
    """Course ordering plus candidate objective; the greedy loop is shared."""

    kind: AllocationStrategy

    @abstractmethod
    def order_courses(self, courses: Sequence[Course]) -> list[Course]:
        """Return courses in the order they claim resources."""

    @abstractmethod
    def objective(self, course: Course, option: ScoredOption) -> float:
        """Score one admissible option for the course."""

    def is_better(self, option: ScoredOption, best: ScoredOption) -> bool:
        return option.score > best.score

    def run(
        self,
        index: CompatibilityIndex,
        courses: Sequence[Course],
        context: RunContext,
        state: AllocationState,
    ) -> tuple[list[Assignment], list[UnassignedCourse]]:
        assignments: list[Assignment] = []
        unassigned: list[UnassignedCourse] = []

        for course in self.order_courses(courses):
            compatible = index.for_course(course.course_id)
            if not compatible.instructors:
                unassigned.append(
                    UnassignedCourse(course.course_id, course.department_id, REASON_NO_INSTRUCTOR)
                )
                continue
            if not compatible.facilities:
                unassigned.append(
                    UnassignedCourse(course.course_id, course.department_id, REASON_NO_FACILITY)
                )
                continue

            best: Optional[ScoredOption] = None
            rejections: set[str] = set()
            for order, (instructor, facility) in enumerate(compatible.pairs()):
                option, rejection = self._evaluate(course, instructor, facility, order, context, state)
                if option is None:
                    rejections.add(rejection)
                    continue
                if best is None or self.is_better(option, best):
                    best = option

            if best is None:
                unassigned.append(
                    UnassignedCourse(course.course_id, course.department_id, _pick_reason(rejections))
                )
                continue

            candidate = best.candidate
            assignment = Assignment(
                course_id=candidate.course_id,
                instructor_id=candidate.instructor_id,
                facility_id=candidate.facility_id,
                department_id=course.department_id,
                cost=candidate.cost,
                cost_breakdown=candidate.cost_breakdown,
                utility_score=candidate.utility_score,
                quality_score=best.quality,
                utilization=best.utilization,
                strategy_score=best.score,
                violations=candidate.feasibility.violations,
            )
            state.commit(assignment)
            assignments.append(assignment)

        return assignments, unassigned

    def _evaluate(
        self,
        course: Course,
        instructor: Instructor,
        facility: Facility,
        order: int,
        context: RunContext,
        state: AllocationState,
    ) -> tuple[Optional[ScoredOption], str]:
        if instructor.instructor_id in state.used_instructors:
            return None, REASON_COMMITTED
        load = state.instructor_load[instructor.instructor_id]
        if load >= context.constraints.max_instructor_load:
            return None, REASON_COMMITTED
        if facility.facility_id in state.used_facilities:
            return None, REASON_COMMITTED

        scoring = context.scoring
        candidate = scoring.candidate(
            course,
            instructor,
            facility,
            generation_order=order,
            equipment=context.equipment_for(course),
            as_of=context.as_of,
        )
        if not candidate.feasibility.feasible:
            return None, REASON_INFEASIBLE

        projected_spend = state.spend(course.department_id) + candidate.cost
        if projected_spend > context.budget_limit(course.department_id):
            return None, REASON_BUDGET

        option = ScoredOption(
            candidate=candidate,
            quality=scoring.quality_score(course, instructor, facility),
            utilization=scoring.utilization_score(course, facility, load),
        )
        return replace(option, score=self.objective(course, option)), ""


def _pick_reason(rejections: set[str]) -> str:
    for reason in (REASON_BUDGET, REASON_COMMITTED, REASON_INFEASIBLE):
        if reason in rejections:
            return reason
    return REASON_INFEASIBLE


def direct_cost_per_student(course: Course) -> float:
    return course.direct_cost / max(course.expected_students, 1)


class CostMinimizationStrategy(Strategy):
    kind = AllocationStrategy.COST_MINIMIZATION

    def order_courses(self, courses: Sequence[Course]) -> list[Course]:
        return sorted(courses, key=direct_cost_per_student)

    def objective(self, course: Course, option: ScoredOption) -> float:
        return option.cost

    def is_better(self, option: ScoredOption, best: ScoredOption) -> bool:
        return option.cost < best.cost


class UtilizationMaximizationStrategy(Strategy):
    kind = AllocationStrategy.UTILIZATION_MAXIMIZATION

    def order_courses(self, courses: Sequence[Course]) -> list[Course]:
        return sorted(courses, key=lambda course: course.expected_students, reverse=True)

    def objective(self, course: Course, option: ScoredOption) -> float:
        return option.utilization


class QualityFocusedStrategy(Strategy):
    kind = AllocationStrategy.QUALITY_FOCUSED

    def order_courses(self, courses: Sequence[Course]) -> list[Course]:
        return sorted(
            courses,
            key=lambda course: course_priority(course) * course_complexity(course),
            reverse=True,
        )

    def objective(self, course: Course, option: ScoredOption) -> float:
        return option.quality


def balanced_course_score(course: Course) -> float:
    cost = direct_cost_per_student(course)
    if cost == 0:
        return 0.0
    return course_priority(course) * course_complexity(course) / (cost / 1000)


class BalancedStrategy(Strategy):
    kind = AllocationStrategy.BALANCED

    def order_courses(self, courses: Sequence[Course]) -> list[Course]:
        return sorted(courses, key=balanced_course_score, reverse=True)

    def objective(self, course: Course, option: ScoredOption) -> float:
        cost_term = 10000 / option.cost if option.cost > 0 else 0.0
        return option.quality * 0.4 + option.utilization * 0.3 + cost_term * 0.3


STRATEGIES: dict[AllocationStrategy, type[Strategy]] = {
    AllocationStrategy.COST_MINIMIZATION: CostMinimizationStrategy,
    AllocationStrategy.UTILIZATION_MAXIMIZATION: UtilizationMaximizationStrategy,
    AllocationStrategy.QUALITY_FOCUSED: QualityFocusedStrategy,
    AllocationStrategy.BALANCED: BalancedStrategy,
}


def resolve_strategy(strategy: Union[str, AllocationStrategy]) -> AllocationStrategy:
    if isinstance(strategy, AllocationStrategy):
        return strategy
    try:
        return AllocationStrategy(str(strategy).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in AllocationStrategy)
        raise AllocationValidationError(
            f"Unknown allocation strategy '{strategy}'; expected one of: {allowed}"
        ) from exc


def _ensure_unique(ids: Sequence[int], label: str) -> None:
    duplicates = sorted(item for item, count in Counter(ids).items() if count > 1)
    if duplicates:
        raise AllocationValidationError(f"Duplicate {label} ids: {duplicates}")


def validate_allocation_inputs(
    resources: ResourcePool,
    courses: Sequence[Course],
    constraints: AllocationConstraints,
    budgets: Mapping[int, float],
) -> None:
    if not courses:
        raise AllocationValidationError("At least one course is required")

    try:
        validate_allocation_constraints(constraints)
    except ValueError as exc:
        raise AllocationValidationError(str(exc)) from exc

    _ensure_unique([course.course_id for course in courses], "course")
    _ensure_unique([item.instructor_id for item in resources.instructors], "instructor")
    _ensure_unique([item.facility_id for item in resources.facilities], "facility")
    _ensure_unique([item.equipment_id for item in resources.equipment], "equipment")

    equipment_ids = {item.equipment_id for item in resources.equipment}
    for course in courses:
        if course.expected_students < 0:
            raise AllocationValidationError(
                f"Course {course.course_id} expected_students must be >= 0"
            )
        if course.credit_hours < 0 or course.hours_per_week < 0:
            raise AllocationValidationError(
                f"Course {course.course_id} credit_hours and hours_per_week must be >= 0"
            )
        if course.instructor_cost < 0 or course.classroom_cost < 0:
            raise AllocationValidationError(
                f"Course {course.course_id} costs must be >= 0"
            )
        missing = [item for item in course.equipment_ids if item not in equipment_ids]
        if missing:
            raise AllocationValidationError(
                f"Course {course.course_id} references unknown equipment ids: {missing}"
            )

    for instructor in resources.instructors:
        if instructor.hourly_rate is not None and instructor.hourly_rate < 0:
            raise AllocationValidationError(
                f"Instructor {instructor.instructor_id} hourly_rate must be >= 0"
            )
    for facility in resources.facilities:
        if facility.capacity <= 0:
            raise AllocationValidationError(
                f"Facility {facility.facility_id} capacity must be > 0"
            )

    for department_id, amount in budgets.items():
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            raise AllocationValidationError(
                f"Budget for department {department_id} must be numeric"
            )
        if amount < 0:
            raise AllocationValidationError(
                f"Budget for department {department_id} must be >= 0"
            )


class Allocator:
    """Runs one strategy over a resource snapshot and assembles the plan."""

    def __init__(self, cost_model: Optional[CostModel] = None) -> None:
        self._cost_model = cost_model or CostModel()

    @property
    def cost_model(self) -> CostModel:
        return self._cost_model

    def run(
        self,
        strategy: Union[str, AllocationStrategy],
        resources: ResourcePool,
        courses: Sequence[Course],
        constraints: Optional[AllocationConstraints] = None,
        budgets: Optional[Mapping[int, float]] = None,
        as_of: Optional[date] = None,
    ) -> AllocationPlan:
        kind = resolve_strategy(strategy)
        constraints = constraints or AllocationConstraints()
        budgets = dict(budgets or {})
        validate_allocation_inputs(resources, courses, constraints, budgets)

        index = CompatibilityIndex.build(courses, resources.instructors, resources.facilities)
        context = RunContext(
            scoring=ScoringEngine(self._cost_model, constraints),
            constraints=constraints,
            budgets=budgets,
            equipment_by_id={item.equipment_id: item for item in resources.equipment},
            as_of=as_of,
        )
        state = AllocationState()
        assignments, unassigned = STRATEGIES[kind]().run(index, courses, context, state)

        plan = PlanAssembler(self._cost_model, constraints).assemble(
            strategy=kind,
            assignments=assignments,
            unassigned=unassigned,
            resources=resources,
            courses=courses,
        )
        logger.info(
            (
                "Allocation run completed | strategy=%s | assignments=%s | unassigned=%s | "
                "total_cost=%.2f | score=%s"
            ),
            kind.value,
            len(plan.assignments),
            len(plan.unassigned),
            plan.cost_breakdown.total_cost,
            plan.optimization_score,
        )
        return plan


@dataclass(frozen=True)
class AllocationRunResult:
    plan: AllocationPlan
    persisted_ids: tuple[int, ...] = ()


class ResourceAllocationService:
    """Fetches a snapshot from the data provider and runs the allocator."""

    def __init__(
        self,
        repository: Optional[ResourceProvider] = None,
        settings: Optional[Settings] = None,
        allocator: Optional[Allocator] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._allocator = allocator or Allocator(CostModel(settings=self._settings))

    @property
    def cost_model(self) -> CostModel:
        return self._allocator.cost_model

    def _build_constraints(
        self,
        buffer_fraction: Optional[float],
        max_instructor_load: Optional[int],
    ) -> AllocationConstraints:
        return AllocationConstraints(
            budget_buffer=(
                buffer_fraction
                if buffer_fraction is not None
                else self._settings.allocation_budget_buffer
            ),
            max_instructor_load=(
                max_instructor_load
                if max_instructor_load is not None
                else self._settings.allocation_max_instructor_load
            ),
            min_class_size=self._settings.allocation_min_class_size,
            max_class_size=self._settings.allocation_max_class_size,
            cost_benchmark=self._settings.plan_cost_benchmark,
            high_cost_threshold=self._settings.plan_high_cost_threshold,
        )

    def optimize_allocation(
        self,
        strategy: Optional[Union[str, AllocationStrategy]] = None,
        department_id: Optional[int] = None,
        buffer_fraction: Optional[float] = None,
        max_instructor_load: Optional[int] = None,
        persist_outputs: bool = False,
        as_of: Optional[date] = None,
    ) -> AllocationRunResult:
        department_filter = ResourceFilter(department_id=department_id)
        courses = self._repository.fetch_courses(department_filter)
        resources = ResourcePool(
            instructors=self._repository.fetch_instructors(),
            facilities=self._repository.fetch_facilities(),
            equipment=self._repository.fetch_equipment(),
        )
        budgets = self._repository.fetch_department_budgets(department_filter)

        plan = self._allocator.run(
            strategy=strategy or self._settings.allocation_default_strategy,
            resources=resources,
            courses=courses,
            constraints=self._build_constraints(buffer_fraction, max_instructor_load),
            budgets=budgets,
            as_of=as_of,
        )

        persisted_ids: tuple[int, ...] = ()
        if persist_outputs:
            persisted_ids = tuple(
                self._repository.persist_assignment(assignment)
                for assignment in plan.assignments
            )
            logger.info("Allocation outputs persisted | count=%s", len(persisted_ids))
        return AllocationRunResult(plan=plan, persisted_ids=persisted_ids)

    def estimate_cost(
        self,
        course_id: int,
        instructor_id: int,
        facility_id: int,
        as_of: Optional[date] = None,
    ) -> CostBreakdown:
        course = self._repository.get_course(course_id)
        if course is None:
            raise ResourceNotFoundError(f"Course {course_id} not found")
        instructor = self._repository.get_instructor(instructor_id)
        if instructor is None:
            raise ResourceNotFoundError(f"Instructor {instructor_id} not found")
        facility = self._repository.get_facility(facility_id)
        if facility is None:
            raise ResourceNotFoundError(f"Facility {facility_id} not found")

        equipment_by_id = {item.equipment_id: item for item in self._repository.fetch_equipment()}
        equipment = [
            equipment_by_id[equipment_id]
            for equipment_id in course.equipment_ids
            if equipment_id in equipment_by_id
        ]
        return self.cost_model.comprehensive_cost(course, instructor, facility, equipment, as_of=as_of)

    def depreciation_report(
        self,
        department_id: Optional[int] = None,
        method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        as_of: Optional[date] = None,
    ) -> DepreciationReport:
        """Book values of every non-retired asset, optionally for one department."""
        equipment = [
            item
            for item in self._repository.fetch_equipment(ResourceFilter(department_id=department_id))
            if EquipmentStatus(item.status) is not EquipmentStatus.RETIRED
        ]
        equipment.sort(key=lambda item: (item.department_id or 0, item.equipment_id))

        items = tuple(
            AssetBookValue(
                equipment_id=item.equipment_id,
                name=item.name,
                department_id=item.department_id,
                purchase_cost=item.purchase_cost,
                purchase_date=item.purchase_date,
                depreciation_rate=item.depreciation_rate,
                maintenance_cost_annual=item.maintenance_cost_annual,
                depreciation=self.cost_model.depreciation(
                    purchase_cost=item.purchase_cost,
                    purchase_date=item.purchase_date,
                    rate=item.depreciation_rate,
                    method=method,
                    as_of=as_of,
                ),
            )
            for item in equipment
        )
        report = DepreciationReport(method=method, items=items)
        logger.info(
            "Depreciation report built | department_id=%s | method=%s | assets=%s | book_value=%.2f",
            department_id,
            method.value,
            len(items),
            report.totals["current_value"],
        )
        return report
