"""Domain-level validation rules for allocation runs and cost rates."""

from __future__ import annotations

from dataclasses import dataclass, field

from backend.domain.models import FacilityType


@dataclass(frozen=True)
class AllocationConstraints:
    budget_buffer: float = 0.05
    max_instructor_load: int = 6
    min_class_size: int = 8
    max_class_size: int = 35
    cost_benchmark: float = 8000.0
    high_cost_threshold: float = 10000.0


@dataclass(frozen=True)
class CostRates:
    administrative_rate: float = 0.12
    general_rate: float = 0.08
    doctoral_differential: float = 0.15
    masters_differential: float = 0.08
    facility_overhead_rates: dict[FacilityType, float] = field(
        default_factory=lambda: {
            FacilityType.LAB: 0.20,
            FacilityType.AUDITORIUM: 0.15,
        }
    )
    default_facility_overhead_rate: float = 0.10

    def facility_overhead_rate(self, facility_type: FacilityType) -> float:
        return self.facility_overhead_rates.get(facility_type, self.default_facility_overhead_rate)


def validate_allocation_constraints(constraints: AllocationConstraints) -> None:
    if not 0.0 <= constraints.budget_buffer < 1.0:
        raise ValueError("budget_buffer must be in [0, 1)")
    if constraints.max_instructor_load <= 0:
        raise ValueError("max_instructor_load must be > 0")
    if constraints.min_class_size < 0:
        raise ValueError("min_class_size must be >= 0")
    if constraints.max_class_size < constraints.min_class_size:
        raise ValueError("max_class_size must be >= min_class_size")
    if constraints.cost_benchmark <= 0:
        raise ValueError("cost_benchmark must be > 0")
    if constraints.high_cost_threshold <= 0:
        raise ValueError("high_cost_threshold must be > 0")


def validate_cost_rates(rates: CostRates) -> None:
    for name in ("administrative_rate", "general_rate", "doctoral_differential", "masters_differential"):
        value = getattr(rates, name)
        if not 0.0 <= value <= 1.0:
            raise ValueError(f"{name} must be between 0 and 1")
    for facility_type, rate in rates.facility_overhead_rates.items():
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"facility overhead rate for {facility_type.value} must be between 0 and 1")
    if not 0.0 <= rates.default_facility_overhead_rate <= 1.0:
        raise ValueError("default_facility_overhead_rate must be between 0 and 1")
