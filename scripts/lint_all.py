#!/usr/bin/env python3
"""Run import sorting, formatting and the test suite.

Runs isort, black and pytest in sequence from the project root.

Usage:
    python scripts/lint_all.py [--check] [--skip-tests]

Options:
    --check: Only report formatting problems (don't modify files)
    --skip-tests: Skip running pytest
"""

import argparse
import subprocess
import sys
from pathlib import Path
from typing import List

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
SOURCE_DIRS = ["src", "tests", "scripts"]


def run_command(cmd: List[str], description: str) -> bool:
    """Run a command from the project root.

    Args:
        cmd: Command to run as list of strings
        description: Human-readable name of the check

    Returns:
        True if the command exited with code 0, False otherwise
    """
    print(f"\n{'=' * 60}")
    print(f"{description}: {' '.join(cmd)}")
    print(f"{'=' * 60}\n")

    try:
        result = subprocess.run(cmd, cwd=PROJECT_ROOT, check=False)
    except FileNotFoundError as e:
        print(f"✗ {description}: {e}. Is it installed? (pip install -e .[dev])")
        return False

    passed = result.returncode == 0
    print(f"\n{'✓' if passed else '✗'} {description} "
          f"{'passed' if passed else f'failed (exit code: {result.returncode})'}")
    return passed


def formatting_commands(check_only: bool) -> List[tuple]:
    isort_cmd = ["isort", *SOURCE_DIRS]
    black_cmd = ["black", *SOURCE_DIRS]
    if check_only:
        isort_cmd += ["--check-only", "--diff"]
        black_cmd += ["--check"]
    return [(isort_cmd, "isort"), (black_cmd, "black")]


def main() -> int:
    """Run every check and return the process exit code."""
    parser = argparse.ArgumentParser(description="Run formatting and test checks")
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only check formatting (don't modify files)",
    )
    parser.add_argument(
        "--skip-tests",
        action="store_true",
        help="Skip running pytest",
    )
    args = parser.parse_args()

    print("ShopPersona code quality checks")

    results = [
        run_command(cmd, description)
        for cmd, description in formatting_commands(args.check)
    ]
    if not args.skip_tests:
        results.append(run_command(["pytest", "tests/", "-v"], "pytest"))

    if all(results):
        print("\n✓ All checks passed!")
        return 0
    print("\n✗ Some checks failed. Please fix the issues above.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
