#!/usr/bin/env python3
"""
Development scripts for chibi-izumi-merge.

These scripts integrate with uv to run tests, linters, type checkers and demos.
"""

import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

PACKAGE_DIR = "src/izumi/merge/"
DEMO_DIR = Path("demo")


def run_command(cmd: list[str], description: str) -> bool:
    """Run a command and return True if successful."""
    print(f"\n🔄 {description}...")
    print(f"Running: {' '.join(cmd)}")

    try:
        subprocess.run(cmd, check=True, capture_output=False)
        print(f"✅ {description} passed")
        return True
    except subprocess.CalledProcessError as e:
        print(f"❌ {description} failed with exit code {e.returncode}")
        return False
    except FileNotFoundError:
        print(f"❌ Command not found: {cmd[0]}")
        return False


def run_all(checks: list[tuple[list[str], str]]) -> bool:
    """Run every command, even after a failure, and report whether all passed."""
    results = [run_command(cmd, desc) for cmd, desc in checks]
    return all(results)


def run_tests() -> int:
    """Run the test suite, including the async driver tests."""
    print("🧪 Running test suite")
    success = run_command(["uv", "run", "pytest", "-v"], "Tests")
    return 0 if success else 1


def run_lint() -> int:
    """Run linting checks."""
    print("🔍 Running linting checks")

    passed = run_all(
        [
            (["uv", "run", "ruff", "check", "."], "Ruff linting"),
            (["uv", "run", "ruff", "format", "--check", "."], "Ruff formatting"),
        ]
    )
    if not passed:
        print("\n💡 To auto-fix formatting and some lint issues, run: python scripts.py format")

    return 0 if passed else 1


def run_format() -> int:
    """Apply ruff formatting and safe lint fixes."""
    print("🧹 Formatting sources")

    passed = run_all(
        [
            (["uv", "run", "ruff", "format", "."], "Ruff format"),
            (["uv", "run", "ruff", "check", "--fix", "."], "Ruff fixes"),
        ]
    )
    return 0 if passed else 1


def run_typecheck() -> int:
    """Run type checking of the merge engine with both mypy and pyright."""
    print("🔬 Running type checking")

    passed = run_all(
        [
            (["uv", "run", "mypy", PACKAGE_DIR], "MyPy type checking"),
            (["uv", "run", "pyright", PACKAGE_DIR], "Pyright type checking"),
        ]
    )
    return 0 if passed else 1


def run_demos() -> int:
    """Run the demo scripts, which merge sample declarations end to end."""
    print("🎭 Running demo scripts")

    if not DEMO_DIR.exists():
        print("❌ Demo directory not found")
        return 1

    demo_files = sorted(f for f in DEMO_DIR.glob("*.py") if not f.name.startswith("_"))
    if not demo_files:
        print("⚠️  No demo files found in demo directory")
        return 0

    passed = run_all([(["uv", "run", "python", str(f)], f"Demo: {f.name}") for f in demo_files])
    return 0 if passed else 1


def check_all() -> int:
    """Run all checks: tests, linting, type checking and demos."""
    print("🚀 Running all checks for chibi-izumi-merge")
    print("=" * 50)

    checks = [
        ("Tests", run_tests),
        ("Linting", run_lint),
        ("Type Checking", run_typecheck),
        ("Demos", run_demos),
    ]

    results = {}
    for name, func in checks:
        print(f"\n{'=' * 20} {name} {'=' * 20}")
        results[name] = func() == 0

    print(f"\n{'=' * 20} SUMMARY {'=' * 20}")
    for name, passed in results.items():
        status = "✅ PASS" if passed else "❌ FAIL"
        print(f"{name:<15} {status}")

    if all(results.values()):
        print("\n🎉 All checks passed!")
        return 0
    print("\n💥 Some checks failed. Please fix the issues above.")
    return 1


COMMANDS: dict[str, Callable[[], int]] = {
    "test": run_tests,
    "lint": run_lint,
    "format": run_format,
    "typecheck": run_typecheck,
    "demos": run_demos,
    "check": check_all,
}


if __name__ == "__main__":
    available = ", ".join(COMMANDS)
    if len(sys.argv) < 2:
        print(f"Available commands: {available}")
        print("Usage: python scripts.py <command>")
        sys.exit(0)

    command = COMMANDS.get(sys.argv[1])
    if command is None:
        print(f"Unknown command: {sys.argv[1]}")
        print(f"Available commands: {available}")
        sys.exit(1)
    sys.exit(command())
