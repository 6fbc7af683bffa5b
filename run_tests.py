#!/usr/bin/env python3
"""
Test runner script for the GopherVR Gopher client.

Wraps pytest with marker selection, coverage reporting and an optional
live Gopher server for the integration suite.
"""

import argparse
import os
import subprocess
import sys


def run_command(cmd, env=None, description=""):
    """Run a command and report its exit status."""
    if description:
        print(f"\n{description}")
        print("=" * len(description))

    print(f"Running: {' '.join(cmd)}")
    result = subprocess.run(cmd, env=env)

    if result.returncode != 0:
        print(f"Command failed with exit code {result.returncode}")
        return False
    return True


def build_pytest_command(args):
    """Translate runner options into a pytest command line."""
    cmd = [sys.executable, "-m", "pytest"]

    if args.verbose:
        cmd.append("-vv")

    if args.unit:
        cmd.extend(["-m", "unit"])
    elif args.integration:
        cmd.extend(["-m", "integration"])

    if args.file:
        cmd.append(f"tests/{args.file}")
    elif args.test:
        cmd.extend(["-k", args.test])

    if args.coverage or args.html:
        cmd.extend(["--cov=gophervr", "--cov-report=term-missing"])
        if args.html:
            cmd.append("--cov-report=html:htmlcov")

    return cmd


def main():
    """Main test runner function."""
    parser = argparse.ArgumentParser(description="Gopher Client Test Runner")
    parser.add_argument("--unit", action="store_true", help="Run only unit tests")
    parser.add_argument("--integration", action="store_true", help="Run only integration tests")
    parser.add_argument("--live", metavar="HOST[:PORT]", help="Live Gopher server for tests/test_integration.py")
    parser.add_argument("--coverage", action="store_true", help="Generate coverage report")
    parser.add_argument("--html", action="store_true", help="Generate HTML coverage report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--file", "-f", help="Run specific test file")
    parser.add_argument("--test", "-t", help="Run specific test function")

    args = parser.parse_args()

    env = dict(os.environ)
    if args.live:
        host, _, port = args.live.partition(":")
        env["GOPHER_HOST"] = host
        if port:
            env["GOPHER_PORT"] = port

    success = run_command(build_pytest_command(args), env, "Running Gopher Client Tests")

    if not success:
        print("\nSome tests failed!")
        return 1

    print("\nAll tests passed!")
    if args.html or args.coverage:
        print("\nCoverage report generated:")
        if args.html:
            print("  HTML report: htmlcov/index.html")
        print("  Terminal report shown above")
    return 0


if __name__ == "__main__":
    sys.exit(main())
