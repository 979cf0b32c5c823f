#!/usr/bin/env python3
"""Test runner for sqlnav.

Wraps pytest with the markers used by the suite (``unit`` and
``integration``) and the code quality tools listed in the ``dev`` extra.
Integration tests need live servers, see ``tests/integration``.
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent

QUALITY_CHECKS = [
    (["black", "--check", "src", "tests"], "Code formatting (black)"),
    (["isort", "--check-only", "src", "tests"], "Import sorting (isort)"),
    (["flake8", "src", "tests"], "Code linting (flake8)"),
    (["mypy", "src"], "Type checking (mypy)"),
]


def run_command(cmd: List[str], *, env: Optional[Dict[str, str]] = None) -> int:
    print(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, cwd=PROJECT_ROOT, env=env).returncode


def run_tests(
    test_type: str = "all",
    *,
    coverage: bool = False,
    verbose: bool = False,
    fail_fast: bool = False,
    postgres_dsn: Optional[str] = None,
    mysql_dsn: Optional[str] = None,
) -> int:
    """Run the test suite.

    Args:
        test_type: all, unit or integration
        coverage: Report coverage of ``src/sqlnav``
        verbose: Verbose pytest output
        fail_fast: Stop on first failure
        postgres_dsn: DSN for the live PostgreSQL tests
        mysql_dsn: DSN for the live MySQL tests

    Returns:
        Exit code from pytest
    """
    cmd = [sys.executable, "-m", "pytest"]

    if test_type != "all":
        cmd.extend(["-m", test_type])

    if coverage:
        cmd.extend([
            "--cov=src/sqlnav",
            "--cov-report=term-missing:skip-covered",
            "--cov-report=xml:coverage.xml",
        ])

    if verbose:
        cmd.append("-v")
    if fail_fast:
        cmd.append("-x")
    cmd.append("--durations=10")

    env = dict(os.environ)
    if postgres_dsn:
        env["SQLNAV_TEST_POSTGRES_DSN"] = postgres_dsn
    if mysql_dsn:
        env["SQLNAV_TEST_MYSQL_DSN"] = mysql_dsn

    return run_command(cmd, env=env)


def run_quality_checks() -> int:
    failed = []
    for cmd, description in QUALITY_CHECKS:
        print(f"\n{'=' * 60}\nRunning {description}\n{'=' * 60}")
        if run_command(cmd) != 0:
            failed.append(description)

    if failed:
        print("\nQuality checks failed:")
        for description in failed:
            print(f"  - {description}")
        return 1

    print("\nAll quality checks passed")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="sqlnav test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # Run all tests
  %(prog)s --type unit --coverage            # Unit tests with coverage
  %(prog)s --type integration --postgres-dsn postgresql://app:pw@localhost/app
  %(prog)s --quality                         # Formatting, lint and type checks
        """,
    )
    parser.add_argument(
        "--type", "-t",
        choices=["all", "unit", "integration"],
        default="all",
        help="Type of tests to run (default: all)",
    )
    parser.add_argument("--coverage", "-c", action="store_true", help="Enable coverage reporting")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--fail-fast", "-x", action="store_true", help="Stop on first failure")
    parser.add_argument("--postgres-dsn", help="Run live PostgreSQL tests against this DSN")
    parser.add_argument("--mysql-dsn", help="Run live MySQL tests against this DSN")
    parser.add_argument(
        "--quality", "-q",
        action="store_true",
        help="Run code quality checks instead of tests",
    )

    args = parser.parse_args()

    if args.quality:
        return run_quality_checks()

    return run_tests(
        test_type=args.type,
        coverage=args.coverage,
        verbose=args.verbose,
        fail_fast=args.fail_fast,
        postgres_dsn=args.postgres_dsn,
        mysql_dsn=args.mysql_dsn,
    )


if __name__ == "__main__":
    sys.exit(main())
