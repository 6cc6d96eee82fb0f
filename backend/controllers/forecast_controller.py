"""HTTP controller layer for variance, scenario and budget forecasting reports."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator

from backend.controllers.dependencies import (
    get_allocation_service,
    get_forecast_service,
    get_scenario_service,
)
from backend.domain.models import AllocationStrategy
from backend.services.allocation_service import (
    AllocationValidationError,
    ResourceAllocationService,
)
from backend.services.forecast_service import (
    BudgetForecast,
    BudgetForecastService,
    ForecastType,
    ForecastValidationError,
)
from backend.services.simulation_service import (
    SCENARIO_NAMES,
    ScenarioAnalysisService,
    ScenarioValidationError,
)
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["forecasting"])


class VarianceAnalysisRequest(BaseModel):
    budgeted: dict[str, float]
    actual: dict[str, float]
    period: str = ""

    @field_validator("budgeted")
    @classmethod
    def validate_budgeted(cls, value: dict[str, float]) -> dict[str, float]:
        if not value:
            raise ValueError("budgeted must contain at least one category")
        return value


class ScenarioAnalysisRequest(BaseModel):
    base: dict[str, float] | None = None
    department_id: int | None = Field(default=None, gt=0)
    plan_strategy: AllocationStrategy | None = None
    as_of: date | None = None
    variations: dict[str, dict[str, float]] = Field(default_factory=dict)

    @field_validator("variations")
    @classmethod
    def validate_variations(cls, value: dict[str, dict[str, float]]) -> dict[str, dict[str, float]]:
        for name, fields in value.items():
            if name not in SCENARIO_NAMES:
                raise ValueError(f"variations keys must be one of: {', '.join(SCENARIO_NAMES)}")
            for key, factor in fields.items():
                if factor < -1.0:
                    raise ValueError(f"variation factor for '{name}.{key}' must be >= -1")
        return value


class BudgetForecastRequest(BaseModel):
    forecast_type: ForecastType = ForecastType.REALISTIC
    department_id: int | None = Field(default=None, gt=0)
    scenario_name: str | None = None
    academic_year: int | None = Field(default=None, ge=2000, le=2100)
    projected_revenue: float | None = Field(default=None, ge=0.0)
    projected_expenses: float | None = Field(default=None, ge=0.0)
    projected_enrollment: int | None = Field(default=None, ge=0)


class BudgetForecastResponse(BaseModel):
    scenario_name: str
    forecast_type: str
    department_id: int | None
    academic_year: int | None
    projected_revenue: float = Field(ge=0.0)
    projected_expenses: float = Field(ge=0.0)
    projected_enrollment: int = Field(ge=0)
    net_result: float
    roi_percentage: float


class CompareForecastsRequest(BaseModel):
    forecasts: list[BudgetForecastRequest] = Field(min_length=2)


@router.post("/variance_analysis", status_code=status.HTTP_200_OK)
async def variance_analysis(
    payload: VarianceAnalysisRequest,
    service: ScenarioAnalysisService = Depends(get_scenario_service),
) -> dict[str, Any]:
    try:
        report = service.variance_analysis(
            budgeted=payload.budgeted,
            actual=payload.actual,
            period=payload.period,
        )
        return report.to_api_dict()
    except ScenarioValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected variance analysis failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run variance analysis",
        ) from exc


@router.post("/scenario_analysis", status_code=status.HTTP_200_OK)
async def scenario_analysis(
    payload: ScenarioAnalysisRequest,
    service: ScenarioAnalysisService = Depends(get_scenario_service),
    allocation_service: ResourceAllocationService = Depends(get_allocation_service),
) -> dict[str, Any]:
    """Compare optimistic / pessimistic / realistic variants against a base scenario.

    Without an explicit base, the base is the cost breakdown of an allocation
    plan when `plan_strategy` is given, otherwise the department course costs.
    """
    try:
        base = payload.base
        if base is None and payload.plan_strategy is not None:
            plan = allocation_service.optimize_allocation(
                strategy=payload.plan_strategy,
                department_id=payload.department_id,
                as_of=payload.as_of,
            ).plan
            base = service.base_scenario_from_plan(plan)
        elif base is None:
            base = service.department_base_scenario(payload.department_id)
        return service.scenario_analysis(base=base, variations=payload.variations).to_api_dict()
    except (ScenarioValidationError, AllocationValidationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected scenario analysis failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run scenario analysis",
        ) from exc


def _forecast(service: BudgetForecastService, payload: BudgetForecastRequest) -> BudgetForecast:
    return service.forecast_budget(
        forecast_type=payload.forecast_type,
        department_id=payload.department_id,
        scenario_name=payload.scenario_name,
        academic_year=payload.academic_year,
        projected_revenue=payload.projected_revenue,
        projected_expenses=payload.projected_expenses,
        projected_enrollment=payload.projected_enrollment,
    )


@router.post(
    "/budget_forecast",
    response_model=BudgetForecastResponse,
    status_code=status.HTTP_200_OK,
)
async def budget_forecast(
    payload: BudgetForecastRequest,
    service: BudgetForecastService = Depends(get_forecast_service),
) -> BudgetForecastResponse:
    try:
        return BudgetForecastResponse(**_forecast(service, payload).to_api_dict())
    except ForecastValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected budget forecast failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate budget forecast",
        ) from exc


@router.post("/compare_forecasts", status_code=status.HTTP_200_OK)
async def compare_forecasts(
    payload: CompareForecastsRequest,
    service: BudgetForecastService = Depends(get_forecast_service),
) -> dict[str, Any]:
    try:
        forecasts = [_forecast(service, item) for item in payload.forecasts]
        return service.compare_forecasts(forecasts)
    except ForecastValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected forecast comparison failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compare forecasts",
        ) from exc


@router.get("/trend_analysis", status_code=status.HTTP_200_OK)
async def trend_analysis(
    department_id: int | None = Query(default=None, gt=0),
    service: BudgetForecastService = Depends(get_forecast_service),
) -> dict[str, Any]:
    try:
        return service.analyze_trends(department_id=department_id)
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected trend analysis failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to analyze trends",
        ) from exc
