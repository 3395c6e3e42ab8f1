#!/usr/bin/env python3
"""Validate local resource optimizer environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tutoring_backend.repository.document_store import (
    Collections,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
)
from tutoring_backend.repository.seed_data import seed_demo_data_if_empty
from tutoring_backend.services.inefficiency_service import InefficiencyDetector
from tutoring_backend.services.plan_service import OptimizationPlanGenerator
from tutoring_backend.services.workload_service import WorkloadCalculator
from tutoring_backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="tutoring-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("ortools", "ortools"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        settings = replace(get_settings(), data_dir=Path(temp_dir) / "data")

        # CHECK 3: JSON document store round trip
        try:
            json_store = JsonFileDocumentStore(settings)
            json_store.initialize_collections()
            seeded = seed_demo_data_if_empty(json_store)
            reloaded = JsonFileDocumentStore(settings)
            users = reloaded.count(Collections.USERS)
            if seeded == 0 or users == 0:
                raise RuntimeError("demo dataset was not persisted")
            ok, line = _print_result("JSON document store", True, f": {users} users persisted")
        except Exception as exc:
            ok, line = _print_result("JSON document store", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        store = InMemoryDocumentStore()
        seed_demo_data_if_empty(store)

        # CHECK 4: Workload calculation
        try:
            workload = WorkloadCalculator(store=store, settings=settings).calculate_tutor_workload("tut_1")
            ok, line = _print_result(
                "Workload calculation",
                True,
                f": tut_1 {workload.total_hours}h ({workload.workload.value})",
            )
        except Exception as exc:
            ok, line = _print_result("Workload calculation", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Inefficiency scan
        detector = InefficiencyDetector(store=store, settings=settings)
        try:
            findings = detector.identify_inefficiencies()
            if not findings:
                raise RuntimeError("expected findings in the demo dataset")
            ok, line = _print_result("Inefficiency scan", True, f": {len(findings)} findings")
        except Exception as exc:
            ok, line = _print_result("Inefficiency scan", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6: CP-SAT backed plan generation
        try:
            plan = OptimizationPlanGenerator(
                store=store,
                detector=detector,
                settings=settings,
            ).generate_optimization_plan()
            ok, line = _print_result("Plan generation", True, f": {len(plan.changes)} changes")
        except Exception as exc:
            ok, line = _print_result("Plan generation", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Resource Optimizer Environment Validation")
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
