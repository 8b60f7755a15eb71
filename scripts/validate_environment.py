#!/usr/bin/env python3
"""Validate local cellwall environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cellwall.domain.collection import PatronCollection
from cellwall.domain.models import Patron
from cellwall.repository.result_repository import ResultRepository
from cellwall.services.allocation_service import CellAllocationService
from cellwall.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="cellwall-env-")

    # CHECK 1: Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = ["fastapi", "uvicorn", "pydantic", "pandas", "httpx", "typer", "pytest"]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - runtime guard
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
        base_settings = get_settings()

        # CHECK 3: Cache directory writable
        try:
            base_settings.cache_dir.mkdir(parents=True, exist_ok=True)
            marker = base_settings.cache_dir / ".write-check"
            marker.write_text("ok", encoding="utf-8")
            marker.unlink()
            ok, line = _print_result("Cache directory writable", True, f": {base_settings.cache_dir}")
        except OSError as exc:
            ok, line = _print_result("Cache directory writable", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Allocation self-check (two whole cells, one joint cell)
        validation_settings = replace(
            base_settings,
            result_path=Path(temp_dir) / "data.json",
        )
        try:
            collection = PatronCollection.build(
                [
                    Patron(patron_id=1, pledge_amount=100, cell_price=50),
                    Patron(patron_id=2, pledge_amount=20, cell_price=50),
                    Patron(patron_id=3, pledge_amount=30, cell_price=50),
                ]
            )
            result = CellAllocationService(settings=validation_settings).allocate(collection)
            if len(result.cells) != 3 or result.pending_patrons:
                raise RuntimeError(f"expected 3 cells and no pending patrons, got {result}")
            ok, line = _print_result("Allocation self-check", True)
        except Exception as exc:
            ok, line = _print_result("Allocation self-check", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Atomic result publish
        try:
            repository = ResultRepository(validation_settings)
            repository.publish(result, collection)
            if not repository.read_raw().startswith(b"{"):
                raise RuntimeError("published document is not a JSON object")
            ok, line = _print_result("Result publish", True)
        except Exception as exc:
            ok, line = _print_result("Result publish", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" cellwall Environment Validation")
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
