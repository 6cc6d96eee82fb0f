"""
app.py: FastAPI application factory and startup lifecycle.

Wires the repository and planning services, registers routers and loads the
sample departmental snapshot on startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.allocation_controller import router as allocation_router
from backend.controllers.forecast_controller import router as forecast_router
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import ResourceAllocationService
from backend.services.forecast_service import BudgetForecastService
from backend.services.simulation_service import ScenarioAnalysisService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service shares one repository instance through app.state.
    """
    settings = settings or get_settings()

    repository = DataRepository(settings)
    allocation_service = ResourceAllocationService(repository=repository, settings=settings)
    scenario_service = ScenarioAnalysisService(repository=repository, settings=settings)
    forecast_service = BudgetForecastService(repository=repository, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(allocation_router)
    app.include_router(forecast_router)

    app.state.repository = repository
    app.state.allocation_service = allocation_service
    app.state.scenario_service = scenario_service
    app.state.forecast_service = forecast_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """Idempotent: seeding is skipped once a snapshot is loaded."""
    repository: DataRepository = app.state.repository

    if settings.seed_sample_data:
        logger.info("Startup: loading sample departmental snapshot")
        repository.seed_sample_data()
    else:
        logger.info("Startup: sample data disabled; repository starts empty")

    logger.info("Startup complete | app=%s | version=%s", settings.app_name, settings.app_version)


app = create_app()
