#!/usr/bin/env python3
"""Validate local CAM Ledger environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import date
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from camledger.domain.models import AllocationInput
from camledger.repository.data_repository import DataRepository
from camledger.services.expense_service import ExpenseLifecycleService
from camledger.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="cam-ledger-env-")

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

    # CHECK 2: Required packages importable
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("pandas", "pandas"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    from importlib.metadata import PackageNotFoundError, version

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
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "cam_ledger_validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo directory seeding
        try:
            seeded_units = repository.seed_demo_data()
            if seeded_units != 7:
                raise RuntimeError(f"expected 7 seeded units, got {seeded_units}")
            ok, line = _print_result("Demo directory: 7 units", True)
        except RuntimeError as exc:
            ok, line = _print_result("Demo directory", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Allocation reconciles and persists once
        service = ExpenseLifecycleService(
            repository=repository,
            settings=validation_settings,
            today_provider=lambda: date(2025, 2, 1),
        )
        payload = AllocationInput(
            building_id=1,
            period_start=date(2025, 1, 1),
            period_end=date(2025, 1, 31),
            other_cam_costs=150000.0,
        )
        try:
            summary = service.calculate(payload).summary
            drift = abs(summary.tenants_cam + summary.owner_cam - summary.total_cam_costs)
            if drift > validation_settings.reconciliation_tolerance:
                raise RuntimeError(f"tenants + owner drift {drift}")
            record = service.create(payload)
            ok, line = _print_result(
                "CAM allocation",
                True,
                f": tenants={summary.tenants_cam:.2f} owner={record.total_amount:.2f}",
            )
        except Exception as exc:  # pragma: no cover
            ok, line = _print_result("CAM allocation", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" CAM Ledger Environment Validation")
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
