from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from backend.domain.constraints import AllocationConstraints, CostRates
from backend.domain.costs import DepreciationMethod
from backend.domain.models import (
    AllocationStrategy,
    Course,
    EmploymentType,
    Equipment,
    EquipmentStatus,
    Facility,
    Instructor,
    ResourcePool,
)
from backend.repository.data_repository import (
    SAMPLE_COURSES,
    SAMPLE_DEPARTMENT_BUDGETS,
    SAMPLE_EQUIPMENT,
    SAMPLE_FACILITIES,
    SAMPLE_INSTRUCTORS,
    DataRepository,
    ResourceFilter,
)
from backend.services.allocation_service import (
    REASON_BUDGET,
    REASON_COMMITTED,
    REASON_NO_FACILITY,
    REASON_NO_INSTRUCTOR,
    AllocationState,
    AllocationValidationError,
    Allocator,
    ResourceAllocationService,
    ResourceNotFoundError,
    Strategy,
    balanced_course_score,
    resolve_strategy,
)
from backend.services.cost_service import CostModel
from backend.services.scoring_service import ScoringEngine
from backend.utils.config import get_settings


AS_OF = date(2025, 1, 1)


def _allocator() -> Allocator:
    return Allocator(CostModel(rates=CostRates()))


def _sample_pool() -> ResourcePool:
    return ResourcePool(
        instructors=list(SAMPLE_INSTRUCTORS),
        facilities=list(SAMPLE_FACILITIES),
        equipment=list(SAMPLE_EQUIPMENT),
    )


def _three_course_scenario() -> tuple[ResourcePool, list[Course]]:
    # Course 3 only fits the 45-seat room and is too expensive once course 1 is placed.
    courses = [
        Course(course_id=1, department_id=1, expected_students=25, instructor_cost=2000.0),
        Course(course_id=2, department_id=1, expected_students=20, instructor_cost=2400.0),
        Course(course_id=3, department_id=1, expected_students=40, instructor_cost=4000.0),
    ]
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=i, department_id=1) for i in (1, 2, 3)],
        facilities=[
            Facility(facility_id=1, capacity=30),
            Facility(facility_id=2, capacity=45, hourly_cost=40.0),
        ],
    )
    return resources, courses


# --- end-to-end ---


def test_cost_minimization_respects_budget_buffer() -> None:
    resources, courses = _three_course_scenario()

    plan = _allocator().run(
        AllocationStrategy.COST_MINIMIZATION,
        resources,
        courses,
        constraints=AllocationConstraints(budget_buffer=0.05),
        budgets={1: 10000.0},
    )

    placed = {(a.course_id, a.instructor_id, a.facility_id) for a in plan.assignments}
    assert placed == {(1, 1, 1), (2, 2, 2)}
    assert [a.course_id for a in plan.assignments] == [1, 2]
    assert plan.assignments[0].cost == pytest.approx(3000.0)
    assert plan.assignments[1].cost == pytest.approx(5580.0)
    assert plan.cost_breakdown.total_cost == pytest.approx(8580.0)
    assert plan.cost_breakdown.total_cost <= 9500.0

    assert plan.unassigned_course_ids == [3]
    assert plan.unassigned[0].reason == REASON_BUDGET
    assert "Course 3 could not be assigned: department budget exhausted" in plan.warnings
    assert plan.optimization_score == 87


def test_plan_utilization_and_recommendations() -> None:
    resources, courses = _three_course_scenario()

    plan = _allocator().run(
        "cost_minimization",
        resources,
        courses,
        budgets={1: 10000.0},
    )

    assert plan.resource_utilization.instructors.assigned == 2
    assert plan.resource_utilization.instructors.percentage == pytest.approx(200 / 3)
    assert plan.resource_utilization.facilities.percentage == pytest.approx(100.0)
    assert any(text.startswith("Low instructor utilization") for text in plan.warnings)
    assert any("expanding" in text for text in plan.recommendations)
    assert any("1 course(s) remain unassigned" in text for text in plan.recommendations)
    assert plan.summary["total_assignments"] == 2
    assert plan.summary["unassigned_count"] == 1


# --- invariants over the sample snapshot ---


@pytest.mark.parametrize("strategy", list(AllocationStrategy))
def test_sample_snapshot_invariants(strategy: AllocationStrategy) -> None:
    constraints = AllocationConstraints()
    plan = _allocator().run(
        strategy,
        _sample_pool(),
        list(SAMPLE_COURSES),
        constraints=constraints,
        budgets=SAMPLE_DEPARTMENT_BUDGETS,
        as_of=AS_OF,
    )

    instructor_ids = [a.instructor_id for a in plan.assignments]
    facility_ids = [a.facility_id for a in plan.assignments]
    assert len(instructor_ids) == len(set(instructor_ids))
    assert len(facility_ids) == len(set(facility_ids))

    for department_id, spend in plan.cost_breakdown.department_costs.items():
        assert spend <= SAMPLE_DEPARTMENT_BUDGETS[department_id] * (1 - constraints.budget_buffer)

    assigned = {a.course_id for a in plan.assignments}
    unassigned = set(plan.unassigned_course_ids)
    assert assigned.isdisjoint(unassigned)
    assert assigned | unassigned == {course.course_id for course in SAMPLE_COURSES}

    facilities = {f.facility_id: f for f in SAMPLE_FACILITIES}
    courses = {c.course_id: c for c in SAMPLE_COURSES}
    for assignment in plan.assignments:
        assert facilities[assignment.facility_id].capacity >= courses[assignment.course_id].expected_students


def test_repeated_runs_are_identical() -> None:
    allocator = _allocator()
    kwargs = dict(
        strategy=AllocationStrategy.BALANCED,
        resources=_sample_pool(),
        courses=list(SAMPLE_COURSES),
        budgets=SAMPLE_DEPARTMENT_BUDGETS,
        as_of=AS_OF,
    )

    first = allocator.run(**kwargs)
    second = allocator.run(**kwargs)

    assert first.assignments == second.assignments
    assert first.unassigned == second.unassigned
    assert first.optimization_score == second.optimization_score


def test_oversized_course_is_reported_without_disturbing_others() -> None:
    courses = list(SAMPLE_COURSES)
    baseline = _allocator().run(
        AllocationStrategy.COST_MINIMIZATION,
        _sample_pool(),
        courses,
        budgets=SAMPLE_DEPARTMENT_BUDGETS,
        as_of=AS_OF,
    )
    oversized = replace(courses[-1], expected_students=500)
    plan = _allocator().run(
        AllocationStrategy.COST_MINIMIZATION,
        _sample_pool(),
        courses[:-1] + [oversized],
        budgets=SAMPLE_DEPARTMENT_BUDGETS,
        as_of=AS_OF,
    )

    reasons = {item.course_id: item.reason for item in plan.unassigned}
    assert reasons[oversized.course_id] == REASON_NO_FACILITY
    assert len(plan.assignments) <= len(baseline.assignments)


def test_missing_department_budget_blocks_costly_courses() -> None:
    resources, courses = _three_course_scenario()

    plan = _allocator().run(AllocationStrategy.BALANCED, resources, courses, budgets={})

    assert plan.assignments == ()
    assert {item.reason for item in plan.unassigned} == {REASON_BUDGET}


def test_course_without_instructor_is_unassigned() -> None:
    course = Course(course_id=1, department_id=7, expected_students=10, subject="Astronomy")
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=1, department_id=1, qualifications="PhD History")],
        facilities=[Facility(facility_id=1, capacity=20)],
    )

    plan = _allocator().run(AllocationStrategy.QUALITY_FOCUSED, resources, [course], budgets={7: 1e6})

    assert plan.unassigned[0].reason == REASON_NO_INSTRUCTOR


# --- strategy objectives ---


def test_utilization_strategy_prefers_tight_fit() -> None:
    course = Course(course_id=1, department_id=1, expected_students=25)
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=1, department_id=1)],
        facilities=[Facility(facility_id=1, capacity=100), Facility(facility_id=2, capacity=30)],
    )

    plan = _allocator().run(
        AllocationStrategy.UTILIZATION_MAXIMIZATION, resources, [course], budgets={1: 1e6}
    )

    assert plan.assignments[0].facility_id == 2


def test_quality_strategy_prefers_qualified_instructor() -> None:
    course = Course(course_id=1, department_id=1, expected_students=25)
    resources = ResourcePool(
        instructors=[
            Instructor(instructor_id=1, department_id=1),
            Instructor(instructor_id=2, department_id=1, qualifications="PhD Mathematics"),
        ],
        facilities=[Facility(facility_id=1, capacity=30)],
    )

    plan = _allocator().run(AllocationStrategy.QUALITY_FOCUSED, resources, [course], budgets={1: 1e6})

    assert plan.assignments[0].instructor_id == 2


def test_cost_strategy_prefers_cheaper_instructor() -> None:
    course = Course(course_id=1, department_id=1, expected_students=25, instructor_cost=2000.0)
    resources = ResourcePool(
        instructors=[
            Instructor(instructor_id=1, department_id=1),
            Instructor(
                instructor_id=2,
                department_id=1,
                employment_type=EmploymentType.ADJUNCT,
                hourly_rate=20.0,
            ),
        ],
        facilities=[Facility(facility_id=1, capacity=30)],
    )

    plan = _allocator().run(AllocationStrategy.COST_MINIMIZATION, resources, [course], budgets={1: 1e6})

    assert plan.assignments[0].instructor_id == 2
    assert plan.assignments[0].cost == pytest.approx(945.0 + 400.0)


def test_balanced_strategy_prefers_cheaper_room_when_otherwise_equal() -> None:
    course = Course(course_id=1, department_id=1, expected_students=25, instructor_cost=2000.0)
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=1, department_id=1)],
        facilities=[
            Facility(facility_id=1, capacity=30, hourly_cost=50.0),
            Facility(facility_id=2, capacity=30, hourly_cost=10.0),
        ],
    )

    plan = _allocator().run(AllocationStrategy.BALANCED, resources, [course], budgets={1: 1e6})

    assert plan.assignments[0].facility_id == 2


def test_strategy_base_cannot_be_instantiated() -> None:
    with pytest.raises(TypeError):
        Strategy()


# --- course ordering under contention ---


def _single_room_pool() -> ResourcePool:
    return ResourcePool(
        instructors=[Instructor(instructor_id=1, department_id=1), Instructor(instructor_id=2, department_id=1)],
        facilities=[Facility(facility_id=1, capacity=30)],
    )


def test_utilization_ordering_gives_room_to_larger_course() -> None:
    courses = [
        Course(course_id=1, department_id=1, expected_students=10),
        Course(course_id=2, department_id=1, expected_students=28),
    ]

    plan = _allocator().run(
        AllocationStrategy.UTILIZATION_MAXIMIZATION, _single_room_pool(), courses, budgets={1: 1e6}
    )

    assert [a.course_id for a in plan.assignments] == [2]
    assert [(item.course_id, item.reason) for item in plan.unassigned] == [(1, REASON_COMMITTED)]


def test_quality_ordering_gives_room_to_required_upper_level_course() -> None:
    # priority x complexity: 54 for the elective, 79 for the required 200-level course.
    courses = [
        Course(course_id=1, department_id=1, expected_students=20),
        Course(course_id=2, department_id=1, expected_students=20, is_required=True, level=200),
    ]

    plan = _allocator().run(AllocationStrategy.QUALITY_FOCUSED, _single_room_pool(), courses, budgets={1: 1e6})

    assert [a.course_id for a in plan.assignments] == [2]
    assert [(item.course_id, item.reason) for item in plan.unassigned] == [(1, REASON_COMMITTED)]


def test_balanced_ordering_gives_room_to_cheaper_course_per_student() -> None:
    expensive = Course(course_id=1, department_id=1, expected_students=20, instructor_cost=4000.0)
    cheap = Course(course_id=2, department_id=1, expected_students=20, instructor_cost=1000.0)

    plan = _allocator().run(AllocationStrategy.BALANCED, _single_room_pool(), [expensive, cheap], budgets={1: 1e6})

    assert balanced_course_score(cheap) == pytest.approx(1080.0)
    assert balanced_course_score(expensive) == pytest.approx(270.0)
    assert [a.course_id for a in plan.assignments] == [2]
    assert [(item.course_id, item.reason) for item in plan.unassigned] == [(1, REASON_COMMITTED)]


@pytest.mark.parametrize("strategy", list(AllocationStrategy))
def test_ties_keep_first_generated_pair(strategy: AllocationStrategy) -> None:
    course = Course(course_id=1, department_id=1, expected_students=25, instructor_cost=1000.0)
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=8, department_id=1), Instructor(instructor_id=3, department_id=1)],
        facilities=[Facility(facility_id=5, capacity=30), Facility(facility_id=4, capacity=30)],
    )

    plan = _allocator().run(strategy, resources, [course], budgets={1: 1e6})

    assert (plan.assignments[0].instructor_id, plan.assignments[0].facility_id) == (8, 5)


def test_zero_score_candidate_is_still_assigned() -> None:
    course = Course(course_id=1, department_id=1, expected_students=0)
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=1, department_id=1)],
        facilities=[Facility(facility_id=1, capacity=30)],
    )

    plan = _allocator().run(
        AllocationStrategy.UTILIZATION_MAXIMIZATION, resources, [course], budgets={1: 100.0}
    )

    assert len(plan.assignments) == 1
    assert plan.assignments[0].strategy_score == 0.0
    assert plan.assignments[0].violations


def test_assignment_is_built_from_scoring_engine_candidate() -> None:
    course = Course(course_id=1, department_id=1, expected_students=25, instructor_cost=2000.0)
    instructor = Instructor(instructor_id=1, department_id=1, qualifications="PhD Mathematics")
    facility = Facility(facility_id=1, capacity=30)
    allocator = _allocator()

    plan = allocator.run(
        AllocationStrategy.BALANCED,
        ResourcePool(instructors=[instructor], facilities=[facility]),
        [course],
        budgets={1: 1e6},
    )
    expected = ScoringEngine(allocator.cost_model, AllocationConstraints()).candidate(
        course, instructor, facility, generation_order=0
    )

    assignment = plan.assignments[0]
    assert assignment.cost_breakdown == expected.cost_breakdown
    assert assignment.cost == pytest.approx(expected.cost)
    assert assignment.utility_score == pytest.approx(expected.utility_score)
    assert assignment.violations == expected.feasibility.violations


def test_state_commit_tracks_usage() -> None:
    resources, courses = _three_course_scenario()
    plan = _allocator().run(AllocationStrategy.COST_MINIMIZATION, resources, courses, budgets={1: 10000.0})
    state = AllocationState()

    for assignment in plan.assignments:
        state.commit(assignment)

    assert state.used_instructors == {1, 2}
    assert set(state.used_facilities) == {1, 2}
    assert state.instructor_load[1] == 1
    assert state.spend(1) == pytest.approx(8580.0)
    assert state.spend(2) == 0.0


# --- validation ---


def test_resolve_strategy_accepts_strings() -> None:
    assert resolve_strategy(" Balanced ") is AllocationStrategy.BALANCED
    with pytest.raises(AllocationValidationError):
        resolve_strategy("random")


@pytest.mark.parametrize(
    ("courses", "budgets"),
    [
        ([], {1: 1000.0}),
        (
            [
                Course(course_id=1, department_id=1, expected_students=10),
                Course(course_id=1, department_id=1, expected_students=12),
            ],
            {1: 1000.0},
        ),
        ([Course(course_id=1, department_id=1, expected_students=-1)], {1: 1000.0}),
        ([Course(course_id=1, department_id=1, expected_students=10, equipment_ids=(42,))], {1: 1000.0}),
        ([Course(course_id=1, department_id=1, expected_students=10)], {1: -5.0}),
        ([Course(course_id=1, department_id=1, expected_students=10)], {1: "lots"}),
    ],
)
def test_invalid_inputs_raise(courses: list[Course], budgets: dict) -> None:
    resources = ResourcePool(
        instructors=[Instructor(instructor_id=1, department_id=1)],
        facilities=[Facility(facility_id=1, capacity=30)],
    )

    with pytest.raises(AllocationValidationError):
        _allocator().run(AllocationStrategy.BALANCED, resources, courses, budgets=budgets)


def test_invalid_constraints_raise_validation_error() -> None:
    resources, courses = _three_course_scenario()

    with pytest.raises(AllocationValidationError):
        _allocator().run(
            AllocationStrategy.BALANCED,
            resources,
            courses,
            constraints=AllocationConstraints(budget_buffer=1.5),
            budgets={1: 1000.0},
        )


# --- service ---


def _seeded_service() -> tuple[ResourceAllocationService, DataRepository]:
    settings = replace(get_settings(), seed_sample_data=True)
    repository = DataRepository(settings)
    repository.seed_sample_data()
    return ResourceAllocationService(repository=repository, settings=settings), repository


def test_service_persists_assignments() -> None:
    service, repository = _seeded_service()

    result = service.optimize_allocation(
        strategy="cost_minimization",
        persist_outputs=True,
        as_of=AS_OF,
    )

    assert len(result.persisted_ids) == len(result.plan.assignments)
    assert list(result.persisted_ids) == list(range(1, len(result.plan.assignments) + 1))
    assert repository.count_assignments() == len(result.plan.assignments)


def test_service_department_filter_limits_courses() -> None:
    service, _ = _seeded_service()

    plan = service.optimize_allocation(strategy="balanced", department_id=2, as_of=AS_OF).plan

    assert {a.department_id for a in plan.assignments} <= {2}
    assert {a.course_id for a in plan.assignments} | set(plan.unassigned_course_ids) == {3, 4}


def test_service_estimate_cost_and_missing_ids() -> None:
    service, _ = _seeded_service()

    breakdown = service.estimate_cost(course_id=1, instructor_id=1, facility_id=1, as_of=AS_OF)

    assert breakdown.total_cost > 0
    assert breakdown.equipment.total > 0
    with pytest.raises(ResourceNotFoundError):
        service.estimate_cost(course_id=999, instructor_id=1, facility_id=1)
    with pytest.raises(ResourceNotFoundError):
        service.estimate_cost(course_id=1, instructor_id=999, facility_id=1)
    with pytest.raises(ResourceNotFoundError):
        service.estimate_cost(course_id=1, instructor_id=1, facility_id=999)


def test_repository_lookups_by_id() -> None:
    _, repository = _seeded_service()

    assert repository.get_course(1).course_id == 1
    assert repository.get_instructor(2).instructor_id == 2
    assert repository.get_facility(3).facility_id == 3
    assert repository.get_course(999) is None


# --- depreciation report ---


class _FleetRepository:
    def __init__(self, equipment: list[Equipment]) -> None:
        self._equipment = equipment

    def fetch_equipment(self, resource_filter: ResourceFilter | None = None) -> list[Equipment]:
        department_id = resource_filter.department_id if resource_filter else None
        return [
            item
            for item in self._equipment
            if department_id is None or item.department_id == department_id
        ]


def test_depreciation_report_for_one_department() -> None:
    service, _ = _seeded_service()

    report = service.depreciation_report(department_id=2, as_of=AS_OF)

    assert [item.equipment_id for item in report.items] == [2, 5, 8]
    assert report.totals["purchase_cost"] == pytest.approx(28000.0)
    assert report.totals["annual_depreciation"] == pytest.approx(750.0 + 680.0 + 1200.0)
    for item in report.items:
        assert item.depreciation.current_value + item.depreciation.accumulated_depreciation == pytest.approx(
            item.purchase_cost
        )
    assert set(report.department_totals) == {2}
    assert report.department_totals[2]["equipment_count"] == 3


def test_depreciation_report_skips_retired_assets_and_groups_by_department() -> None:
    fleet = [
        Equipment(equipment_id=1, department_id=1, purchase_cost=10000.0,
                  purchase_date=date(2023, 1, 1), depreciation_rate=0.6),
        Equipment(equipment_id=2, department_id=1, purchase_cost=5000.0,
                  purchase_date=date(2015, 1, 1), depreciation_rate=0.1,
                  status=EquipmentStatus.RETIRED),
        Equipment(equipment_id=3, department_id=4, purchase_cost=2000.0,
                  purchase_date=date(2024, 1, 1), depreciation_rate=0.1),
    ]
    service = ResourceAllocationService(repository=_FleetRepository(fleet), settings=get_settings())

    report = service.depreciation_report(
        method=DepreciationMethod.DECLINING_BALANCE, as_of=date(2024, 6, 1)
    )

    assert [item.equipment_id for item in report.items] == [1, 3]
    heavy = report.items[0].depreciation
    assert heavy.accumulated_depreciation == pytest.approx(9000.0)
    assert heavy.annual_depreciation == pytest.approx(0.0)
    assert report.department_totals[1]["current_value"] == pytest.approx(1000.0)
    assert report.department_totals[4]["annual_depreciation"] == pytest.approx(400.0)
    assert report.to_dict()["totals"]["equipment_count"] == 2
