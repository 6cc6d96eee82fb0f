"""HTTP controller layer for allocation runs and cost estimation."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from backend.controllers.dependencies import get_allocation_service
from backend.domain.costs import DepreciationMethod
from backend.domain.models import AllocationStrategy
from backend.services.allocation_service import (
    AllocationValidationError,
    ResourceAllocationService,
    ResourceNotFoundError,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["allocation"])


class OptimizeAllocationRequest(BaseModel):
    """Input DTO validated before entering service layer."""

    strategy: str | None = None
    department_id: int | None = Field(default=None, gt=0)
    buffer_fraction: float | None = Field(default=None, ge=0.0, lt=1.0)
    max_instructor_load: int | None = Field(default=None, gt=0)
    persist_outputs: bool = False
    as_of: date | None = None

    @field_validator("strategy")
    @classmethod
    def validate_strategy(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip().lower()
        allowed = {item.value for item in AllocationStrategy}
        if normalized not in allowed:
            raise ValueError(f"strategy must be one of: {', '.join(sorted(allowed))}")
        return normalized


class AssignmentResponse(BaseModel):
    course_id: int
    instructor_id: int
    facility_id: int
    department_id: int
    cost: float = Field(ge=0.0)
    quality_score: float
    utilization: float
    strategy_score: float
    time_slot: dict[str, str]
    violations: list[str]


class OptimizeAllocationResponse(BaseModel):
    strategy: str
    assignments: list[AssignmentResponse]
    unassigned: list[dict[str, Any]]
    resource_utilization: dict[str, Any]
    cost_breakdown: dict[str, Any]
    optimization_score: int = Field(ge=0, le=100)
    warnings: list[str]
    recommendations: list[str]
    summary: dict[str, Any]
    persisted_ids: list[int]


class EstimateCostRequest(BaseModel):
    course_id: int = Field(gt=0)
    instructor_id: int = Field(gt=0)
    facility_id: int = Field(gt=0)
    as_of: date | None = None


class DepreciationRequest(BaseModel):
    purchase_cost: float = Field(ge=0.0)
    purchase_date: date
    depreciation_rate: float = Field(ge=0.0, le=1.0)
    method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    as_of: date | None = None
    years_owned: float | None = Field(default=None, ge=0.0)


class DepreciationResponse(BaseModel):
    method: str
    years_owned: float = Field(ge=0.0)
    annual_depreciation: float
    accumulated_depreciation: float = Field(ge=0.0)
    current_value: float = Field(ge=0.0)


@router.post(
    "/optimize_allocation",
    response_model=OptimizeAllocationResponse,
    status_code=status.HTTP_200_OK,
)
async def optimize_allocation(
    payload: OptimizeAllocationRequest,
    service: ResourceAllocationService = Depends(get_allocation_service),
) -> OptimizeAllocationResponse:
    """Run the greedy allocator over the current resource snapshot."""
    try:
        result = service.optimize_allocation(
            strategy=payload.strategy,
            department_id=payload.department_id,
            buffer_fraction=payload.buffer_fraction,
            max_instructor_load=payload.max_instructor_load,
            persist_outputs=payload.persist_outputs,
            as_of=payload.as_of,
        )
        plan = result.plan.to_dict()
        return OptimizeAllocationResponse(
            strategy=plan["strategy"],
            assignments=[AssignmentResponse(**_assignment_fields(item)) for item in plan["assignments"]],
            unassigned=plan["unassigned"],
            resource_utilization=plan["resource_utilization"],
            cost_breakdown=plan["cost_breakdown"],
            optimization_score=plan["optimization_score"],
            warnings=plan["warnings"],
            recommendations=plan["recommendations"],
            summary=plan["summary"],
            persisted_ids=list(result.persisted_ids),
        )
    except AllocationValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected allocation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to optimize allocation",
        ) from exc


def _assignment_fields(item: dict[str, Any]) -> dict[str, Any]:
    return {name: item[name] for name in AssignmentResponse.model_fields}


@router.post(
    "/estimate_cost",
    status_code=status.HTTP_200_OK,
)
async def estimate_cost(
    payload: EstimateCostRequest,
    service: ResourceAllocationService = Depends(get_allocation_service),
) -> dict[str, Any]:
    """Comprehensive cost breakdown for one course, instructor and facility."""
    try:
        breakdown = service.estimate_cost(
            course_id=payload.course_id,
            instructor_id=payload.instructor_id,
            facility_id=payload.facility_id,
            as_of=payload.as_of,
        )
        return breakdown.to_dict()
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected cost estimation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to estimate cost",
        ) from exc


@router.post(
    "/depreciation",
    response_model=DepreciationResponse,
    status_code=status.HTTP_200_OK,
)
async def depreciation(
    payload: DepreciationRequest,
    service: ResourceAllocationService = Depends(get_allocation_service),
) -> DepreciationResponse:
    try:
        result = service.cost_model.depreciation(
            purchase_cost=payload.purchase_cost,
            purchase_date=payload.purchase_date,
            rate=payload.depreciation_rate,
            method=payload.method,
            as_of=payload.as_of,
            years_owned=payload.years_owned,
        )
        return DepreciationResponse(**result.to_dict())
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected depreciation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute depreciation",
        ) from exc


@router.get("/depreciation_report", status_code=status.HTTP_200_OK)
async def depreciation_report(
    department_id: int | None = Query(default=None, gt=0),
    method: DepreciationMethod = Query(default=DepreciationMethod.STRAIGHT_LINE),
    as_of: date | None = Query(default=None),
    service: ResourceAllocationService = Depends(get_allocation_service),
) -> dict[str, Any]:
    """Book values for the equipment fleet with per-department totals."""
    try:
        report = service.depreciation_report(department_id=department_id, method=method, as_of=as_of)
        return report.to_dict()
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected depreciation report failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to build depreciation report",
        ) from exc
