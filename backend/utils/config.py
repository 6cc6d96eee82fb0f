"""Environment-driven application settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str

    allocation_default_strategy: str
    allocation_budget_buffer: float
    allocation_max_instructor_load: int
    allocation_min_class_size: int
    allocation_max_class_size: int

    plan_cost_benchmark: float
    plan_high_cost_threshold: float

    cost_administrative_rate: float
    cost_general_rate: float
    cost_doctoral_differential: float
    cost_masters_differential: float

    forecast_tuition_per_student: float
    seed_sample_data: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once per process; call `get_settings.cache_clear()` to reload."""
    return Settings(
        app_name=_env_str("APP_NAME", "Departmental Resource Planner"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        allocation_default_strategy=_env_str("ALLOCATION_DEFAULT_STRATEGY", "balanced"),
        allocation_budget_buffer=_env_float("ALLOCATION_BUDGET_BUFFER", 0.05),
        allocation_max_instructor_load=_env_int("ALLOCATION_MAX_INSTRUCTOR_LOAD", 6),
        allocation_min_class_size=_env_int("ALLOCATION_MIN_CLASS_SIZE", 8),
        allocation_max_class_size=_env_int("ALLOCATION_MAX_CLASS_SIZE", 35),
        plan_cost_benchmark=_env_float("PLAN_COST_BENCHMARK", 8000.0),
        plan_high_cost_threshold=_env_float("PLAN_HIGH_COST_THRESHOLD", 10000.0),
        cost_administrative_rate=_env_float("COST_ADMINISTRATIVE_RATE", 0.12),
        cost_general_rate=_env_float("COST_GENERAL_RATE", 0.08),
        cost_doctoral_differential=_env_float("COST_DOCTORAL_DIFFERENTIAL", 0.15),
        cost_masters_differential=_env_float("COST_MASTERS_DIFFERENTIAL", 0.08),
        forecast_tuition_per_student=_env_float("FORECAST_TUITION_PER_STUDENT", 5000.0),
        seed_sample_data=_env_bool("SEED_SAMPLE_DATA", True),
    )
