#!/usr/bin/env python3
"""
Test Runner for orderbot

PURPOSE:
    Convenience wrapper around pytest for running the unit suites, the
    store / controller / API suites, or everything, with optional coverage.

USAGE:
    python tests/run_tests.py [options]

    Options:
    --unit           Run the pure interpretation suites (no database)
    --integration    Run the store, controller and API suites
    --all            Run all available tests
    --coverage       Run tests with coverage reporting
    --verbose        Run with verbose output
"""

import argparse
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent

UNIT_SUITES = [
    "tests/test_normalizer.py",
    "tests/test_segmenter.py",
    "tests/test_catalog_matcher.py",
    "tests/test_customer_resolver.py",
    "tests/test_automation.py",
    "tests/test_order_agent.py",
    "tests/test_stock_commands.py",
    "tests/test_cache_service.py",
]
INTEGRATION_SUITES = [
    "tests/test_store.py",
    "tests/test_controller.py",
    "tests/test_api.py",
]


def run_command(command, description):
    """Run a command and report whether it succeeded."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"Command: {' '.join(command)}")
    print(f"{'='*60}")

    try:
        subprocess.run(command, check=True, cwd=project_root)
        print(f"\n✅ {description} completed successfully!")
        return True
    except subprocess.CalledProcessError as e:
        print(f"\n❌ {description} failed with exit code {e.returncode}")
        return False


def pytest_command(paths, verbose=False, coverage=False):
    command = [sys.executable, "-m", "pytest", *paths]
    if verbose:
        command.append("-v")
    if coverage:
        command.extend(["--cov=orderbot", "--cov-report=term-missing"])
    return command


def main():
    parser = argparse.ArgumentParser(
        description="Test Runner for orderbot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tests/run_tests.py --unit
  python tests/run_tests.py --integration --verbose
  python tests/run_tests.py --all --coverage
        """
    )
    parser.add_argument("--unit", action="store_true", help="Run the pure interpretation suites")
    parser.add_argument("--integration", action="store_true", help="Run the store, controller and API suites")
    parser.add_argument("--all", action="store_true", help="Run all available tests")
    parser.add_argument("--coverage", action="store_true", help="Run tests with coverage reporting")
    parser.add_argument("--verbose", action="store_true", help="Run with verbose output")
    args = parser.parse_args()

    print("🧪 orderbot Test Runner")
    print("=" * 60)

    runs = []
    if args.all:
        runs.append(("All Tests", ["tests/"]))
    else:
        if args.unit:
            runs.append(("Unit Tests", UNIT_SUITES))
        if args.integration:
            runs.append(("Integration Tests", INTEGRATION_SUITES))
    if not runs:
        runs.append(("Unit Tests", UNIT_SUITES))

    success_count = sum(
        run_command(pytest_command(paths, args.verbose, args.coverage), description)
        for description, paths in runs
    )
    total = len(runs)

    print(f"\n{'='*60}")
    print("TEST RUN SUMMARY")
    print(f"{'='*60}")
    print(f"Suites run: {total}")
    print(f"Successful: {success_count}")
    print(f"Failed: {total - success_count}")

    if success_count == total:
        print("\n🎉 All tests passed!")
        sys.exit(0)
    print(f"\n❌ {total - success_count} test run(s) failed!")
    sys.exit(1)


if __name__ == "__main__":
    main()
