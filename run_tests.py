#!/usr/bin/env python3
"""
Campus Guardian — Single-Command Test Runner
=============================================
Run:  python run_tests.py
      python run_tests.py --quick      (engine and store tests only, no TestClient)
      python run_tests.py --verbose    (verbose output)
"""

import os
import shutil
import subprocess
import sys

ROOT_DIR = os.path.dirname(os.path.abspath(__file__))

UNIT_TESTS = [
    "tests/test_store.py",
    "tests/test_export.py",
    "tests/test_support.py",
]

API_TESTS = [
    "tests/test_api_core.py",
    "tests/test_incidents.py",
    "tests/test_appointments.py",
    "tests/test_safety.py",
    "tests/test_errorbus.py",
    "tests/test_live.py",
    "tests/test_e2e_workflows.py",
]


def main():
    args = sys.argv[1:]
    quick = "--quick" in args
    verbose = "--verbose" in args or "-v" in args

    # Clean stale test DB and uploads
    test_db = os.path.join(ROOT_DIR, "guardian_test.db")
    if os.path.exists(test_db):
        try:
            os.remove(test_db)
        except OSError:
            pass
    shutil.rmtree(os.path.join(ROOT_DIR, "test_uploads"), ignore_errors=True)

    cmd = [sys.executable, "-m", "pytest"]
    cmd.extend(UNIT_TESTS if quick else UNIT_TESTS + API_TESTS)
    cmd.append("-v" if verbose else "-q")
    cmd.append("--tb=short")

    print(f"[Guardian] Running: {' '.join(cmd)}")
    print(f"[Guardian] {'Quick mode (unit only)' if quick else 'Full suite (unit + API)'}")
    print()

    result = subprocess.run(cmd, cwd=ROOT_DIR)
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
