#!/usr/bin/env python3
"""Validate local planner environment readiness."""

from __future__ import annotations

import importlib
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.costs import DepreciationMethod
from backend.repository.data_repository import DataRepository
from backend.services.allocation_service import ResourceAllocationService
from backend.services.forecast_service import BudgetForecastService
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44
REFERENCE_DATE = date(2025, 1, 1)


def _result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True

    if sys.version_info >= (3, 11):
        ok, line = _result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _result("Python version >= 3.11", False, f"found {sys.version.split()[0]}")
    results.append(line)
    all_passed = all_passed and ok

    missing: list[str] = []
    for module_name in ("fastapi", "uvicorn", "pydantic", "numpy", "pandas", "httpx", "pytest"):
        try:
            importlib.import_module(module_name)
        except ImportError as exc:
            missing.append(f"{module_name} ({exc})")
    if missing:
        ok, line = _result("Required packages", False, "missing -> " + "; ".join(missing))
    else:
        ok, line = _result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    settings = replace(get_settings(), seed_sample_data=True)
    repository = DataRepository(settings)

    try:
        repository.seed_sample_data()
        course_count = len(repository.fetch_courses())
        if course_count == 0:
            raise RuntimeError("no courses loaded")
        ok, line = _result("Sample snapshot", True, f": {course_count} courses")
    except Exception as exc:
        ok, line = _result("Sample snapshot", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    allocation_service = ResourceAllocationService(repository=repository, settings=settings)
    try:
        plan = allocation_service.optimize_allocation(as_of=REFERENCE_DATE).plan
        ok, line = _result(
            "Allocation run",
            True,
            f": {len(plan.assignments)} assigned, score={plan.optimization_score}",
        )
    except Exception as exc:
        ok, line = _result("Allocation run", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    try:
        depreciation = allocation_service.cost_model.depreciation(
            purchase_cost=10000.0,
            purchase_date=REFERENCE_DATE,
            rate=0.10,
            method=DepreciationMethod.STRAIGHT_LINE,
            years_owned=3,
        )
        if round(depreciation.current_value, 2) != 7000.0:
            raise RuntimeError(f"expected 7000.0, got {depreciation.current_value}")
        ok, line = _result("Depreciation check", True)
    except Exception as exc:
        ok, line = _result("Depreciation check", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    try:
        forecast = BudgetForecastService(repository=repository, settings=settings).forecast_budget()
        ok, line = _result(
            "Budget forecast",
            True,
            f": revenue={forecast.projected_revenue:.0f} expenses={forecast.projected_expenses:.0f}",
        )
    except Exception as exc:
        ok, line = _result("Budget forecast", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    print(SEPARATOR_LINE)
    print(" Planner Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
