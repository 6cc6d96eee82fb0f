"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import ResourceAllocationService
from backend.services.forecast_service import BudgetForecastService
from backend.services.simulation_service import ScenarioAnalysisService
from backend.utils.config import get_settings


def _repository(request: Request) -> DataRepository | None:
    return getattr(request.app.state, "repository", None)


def get_allocation_service(request: Request) -> ResourceAllocationService:
    service = getattr(request.app.state, "allocation_service", None)
    if service is None:
        repository = _repository(request)
        if repository is not None:
            service = ResourceAllocationService(repository=repository, settings=get_settings())
            request.app.state.allocation_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Allocation service is not initialized",
        )
    return service


def get_scenario_service(request: Request) -> ScenarioAnalysisService:
    service = getattr(request.app.state, "scenario_service", None)
    if service is None:
        repository = _repository(request)
        if repository is not None:
            service = ScenarioAnalysisService(repository=repository, settings=get_settings())
            request.app.state.scenario_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Scenario analysis service is not initialized",
        )
    return service


def get_forecast_service(request: Request) -> BudgetForecastService:
    service = getattr(request.app.state, "forecast_service", None)
    if service is None:
        repository = _repository(request)
        if repository is not None:
            service = BudgetForecastService(repository=repository, settings=get_settings())
            request.app.state.forecast_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Forecast service is not initialized",
        )
    return service
