#!/usr/bin/env python3
"""
Run selections of the hashpage test suite.

    ./run_tests.py sanitizer -v
    ./run_tests.py all --coverage --html-coverage
"""

import argparse
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).parent

SUITES: dict[str, list[str]] = {
    "all": ["tests/"],
    "unit": ["tests/test_services.py", "tests/test_utils.py"],
    "sanitizer": ["tests/test_utils.py", "-k", "Sanitiz or Iframe or Image or Idempotence"],
    "transport": ["tests/test_services.py", "-k", "Encod or Decode or Buffer"],
    "handoff": ["tests/test_services.py", "-k", "Handoff or Sync"],
    "routes": ["tests/test_routes.py"],
    "integration": ["tests/test_integration.py"],
    # Header, CSRF and fail-closed checks across the suite
    "security": ["tests/", "-k", "csrf or csp or headers or failure or malformed"],
}


def build_command(suite: str, verbose: bool, coverage: bool, html_coverage: bool) -> list[str]:
    cmd = [sys.executable, "-m", "pytest", *SUITES[suite]]
    if verbose:
        cmd.append("-v")
    if coverage or html_coverage:
        cmd.extend(["--cov=app", "--cov-report=term-missing"])
    if html_coverage:
        cmd.append("--cov-report=html:htmlcov")
    return cmd


def main() -> int:
    parser = argparse.ArgumentParser(description="Run tests for the hashpage application")
    parser.add_argument("suite", choices=sorted(SUITES), help="Which tests to run")
    parser.add_argument("--verbose", "-v", action="store_true", help="Run tests in verbose mode")
    parser.add_argument("--coverage", "-c", action="store_true", help="Report coverage for the app package")
    parser.add_argument("--html-coverage", action="store_true", help="Also write an HTML report to htmlcov/")
    args = parser.parse_args()

    cmd = build_command(args.suite, args.verbose, args.coverage, args.html_coverage)
    print(f"Running {args.suite} tests: {' '.join(cmd)}")
    exit_code = subprocess.run(cmd, cwd=ROOT).returncode

    if exit_code == 0:
        print(f"✅ {args.suite} tests passed")
        if args.html_coverage:
            print("📊 HTML coverage report generated in htmlcov/index.html")
    else:
        print(f"❌ {args.suite} tests failed with exit code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
