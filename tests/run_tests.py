#!/usr/bin/env python3
"""
Standalone runner for the Kiln end-to-end programs in tests/e2e/.

Each program is compiled with `kilnc --no-link` and the exit code is checked
against the filename convention:
- test_*.kiln: 0 (success, no warnings)
- test_warn_*.kiln: 1 (success with warnings)
- test_err_*.kiln: 2 (compilation failed)

Usage:
    python tests/run_tests.py
    python tests/run_tests.py --verbose
    python tests/run_tests.py --filter struct
"""

import argparse
import json
import subprocess
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from tqdm import tqdm


def get_expected_exit_code(test_file: Path) -> int:
    """Expected exit code from the filename convention."""
    name = test_file.name
    if name.startswith("test_warn_"):
        return 1
    if name.startswith("test_err_"):
        return 2
    return 0


def compile_command(test_file: Path, output_path: Path) -> list[str]:
    return [sys.executable, "-m", "kiln_lang.compiler.cli", str(test_file),
            "-o", str(output_path), "--no-link"]


def run_single_test(test_file: Path, bin_dir: Path, project_root: Path) -> tuple[str, bool, int, int, str]:
    """Compile one program and return (name, passed, expected, actual, output)."""
    expected = get_expected_exit_code(test_file)
    # unique output name per program, tests run in parallel
    output_path = bin_dir / test_file.stem

    try:
        result = subprocess.run(
            compile_command(test_file, output_path),
            cwd=project_root,
            capture_output=True,
            text=True,
            timeout=30,
        )
    except subprocess.TimeoutExpired:
        return test_file.name, False, expected, -1, "TEST TIMEOUT"

    output = ""
    if result.stdout:
        output += f"STDOUT:\n{result.stdout}\n"
    if result.stderr:
        output += f"STDERR:\n{result.stderr}\n"
    return test_file.name, result.returncode == expected, expected, result.returncode, output


def main() -> int:
    parser = argparse.ArgumentParser(description="Run Kiln end-to-end compiler tests")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show detailed output for each test")
    parser.add_argument("-j", "--jobs", type=int, default=4,
                        help="Number of parallel test jobs (default: 4)")
    parser.add_argument("--filter", type=str,
                        help="Only run tests whose name contains this pattern")
    parser.add_argument("--json", action="store_true",
                        help="Output results in JSON format")
    args = parser.parse_args()

    project_root = Path(__file__).parent.parent
    tests_dir = project_root / "tests" / "e2e"
    bin_dir = project_root / "tests" / "bin"
    bin_dir.mkdir(exist_ok=True)

    test_files = sorted(tests_dir.glob("test_*.kiln"))
    if args.filter:
        test_files = [f for f in test_files if args.filter in f.name]
    if not test_files:
        if not args.json:
            print("No test files found!")
        return 1

    if not args.json:
        print(f"Running {len(test_files)} tests with {args.jobs} parallel jobs...")
        print()

    start_time = time.time()
    results = []
    show_progress = not args.json and not args.verbose
    with ThreadPoolExecutor(max_workers=args.jobs) as executor:
        futures = {executor.submit(run_single_test, f, bin_dir, project_root): f for f in test_files}
        with tqdm(total=len(test_files), desc="Running tests", unit="test",
                  disable=not show_progress) as pbar:
            for future in as_completed(futures):
                results.append(future.result())
                pbar.update(1)
    duration = time.time() - start_time

    passed_tests = []
    failed_tests = []
    for test_name, passed, expected, actual, output in sorted(results):
        if passed:
            passed_tests.append(test_name)
            if args.verbose and not args.json:
                print(f"✓ {test_name} (expected: {expected}, actual: {actual})")
        else:
            failed_tests.append((test_name, expected, actual, output))
            if not args.json:
                print(f"✗ {test_name} (expected: {expected}, actual: {actual})")
                if args.verbose and output:
                    print(f"  Output: {output}")

    if args.json:
        print(json.dumps({
            "total_tests": len(results),
            "passed": len(passed_tests),
            "failed": len(failed_tests),
            "duration_seconds": round(duration, 2),
            "failed_tests": [
                {"name": name, "expected_exit_code": expected, "actual_exit_code": actual}
                for name, expected, actual, _ in failed_tests
            ],
        }, indent=2))
        return 1 if failed_tests else 0

    print()
    print(f"Test Results ({duration:.2f}s):")
    print(f"  Passed: {len(passed_tests)}")
    print(f"  Failed: {len(failed_tests)}")
    print(f"  Total:  {len(results)}")

    if failed_tests:
        print()
        print("Failed tests:")
        for test_name, expected, actual, _ in failed_tests:
            print(f"  {test_name}: expected {expected}, got {actual}")
        return 1

    print()
    print("All tests passed! ✓")
    return 0


if __name__ == "__main__":
    sys.exit(main())
