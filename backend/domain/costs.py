"""Cost breakdown value types produced by the cost model."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional, Sequence


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"
    UNITS_OF_PRODUCTION = "units_of_production"


@dataclass(frozen=True)
class InstructorCost:
    base_salary: float
    benefits: float
    differential: float
    total: float


@dataclass(frozen=True)
class FacilityCost:
    base_rental: float
    utilities: float
    maintenance: float
    overhead: float
    total: float


@dataclass(frozen=True)
class EquipmentCost:
    depreciation: float
    maintenance: float
    per_student_allocation: float
    total: float


@dataclass(frozen=True)
class OverheadCost:
    administrative: float
    general: float
    total: float


@dataclass(frozen=True)
class CostBreakdown:
    instructor: InstructorCost
    facility: FacilityCost
    equipment: EquipmentCost
    overhead: OverheadCost
    total_cost: float
    cost_per_student: float
    cost_per_credit_hour: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DepreciationResult:
    method: DepreciationMethod
    years_owned: float
    annual_depreciation: float
    accumulated_depreciation: float
    current_value: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "years_owned": self.years_owned,
            "annual_depreciation": self.annual_depreciation,
            "accumulated_depreciation": self.accumulated_depreciation,
            "current_value": self.current_value,
        }


@dataclass(frozen=True)
class AssetBookValue:
    equipment_id: int
    name: str
    department_id: Optional[int]
    purchase_cost: float
    purchase_date: date
    depreciation_rate: float
    maintenance_cost_annual: float
    depreciation: DepreciationResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "equipment_id": self.equipment_id,
            "name": self.name,
            "department_id": self.department_id,
            "purchase_cost": self.purchase_cost,
            "purchase_date": self.purchase_date.isoformat(),
            "depreciation_rate": self.depreciation_rate,
            "maintenance_cost_annual": self.maintenance_cost_annual,
            "years_owned": self.depreciation.years_owned,
            "annual_depreciation": self.depreciation.annual_depreciation,
            "accumulated_depreciation": self.depreciation.accumulated_depreciation,
            "current_value": self.depreciation.current_value,
        }


def _book_totals(items: Sequence[AssetBookValue]) -> dict[str, float]:
    return {
        "equipment_count": len(items),
        "purchase_cost": sum(item.purchase_cost for item in items),
        "current_value": sum(item.depreciation.current_value for item in items),
        "accumulated_depreciation": sum(item.depreciation.accumulated_depreciation for item in items),
        "annual_depreciation": sum(item.depreciation.annual_depreciation for item in items),
        "annual_maintenance": sum(item.maintenance_cost_annual for item in items),
    }


@dataclass(frozen=True)
class DepreciationReport:
    """Book values for a set of assets, with fleet and per-department totals."""

    method: DepreciationMethod
    items: tuple[AssetBookValue, ...]

    @property
    def totals(self) -> dict[str, float]:
        return _book_totals(self.items)

    @property
    def department_totals(self) -> dict[Optional[int], dict[str, float]]:
        grouped: dict[Optional[int], list[AssetBookValue]] = defaultdict(list)
        for item in self.items:
            grouped[item.department_id].append(item)
        return {department_id: _book_totals(group) for department_id, group in grouped.items()}

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "items": [item.to_dict() for item in self.items],
            "totals": self.totals,
            "department_totals": self.department_totals,
        }
