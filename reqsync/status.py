"""Component status derived from the file listing and the last test run."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Collection, Dict, Iterable, Mapping

from .models import ComponentStatus, TestFailure, TestStatus


def analyze_status(
    expected_files: Mapping[str, str],
    file_list: Collection[str],
    failing_tests: Iterable[TestFailure],
) -> ComponentStatus:
    """Build a fresh ComponentStatus; side-effect free and cheap."""
    present = file_list if isinstance(file_list, (set, frozenset)) else set(file_list)
    actual = [path for path in expected_files.values() if path in present]
    test_file = expected_files.get("test_file")
    relevant_failures = [failure.title for failure in failing_tests if test_file and failure.file == test_file]
    review_file = expected_files.get("review_file")

    return ComponentStatus(
        spec_exists=expected_files.get("spec_file") in present,
        code_exists=expected_files.get("code_file") in present,
        test_exists=test_file in present,
        design_exists=expected_files.get("design_file") in present,
        review_exists=review_file is not None and review_file in present,
        test_status=determine_test_status(relevant_failures, present, test_file),
        expected_files=dict(expected_files),
        actual_files=actual,
        failing_tests=relevant_failures,
        computed_at=datetime.now(UTC),
    )


def determine_test_status(
    failing_tests: Collection[str], file_list: Collection[str], expected_test_file: str | None
) -> TestStatus:
    if not expected_test_file or expected_test_file not in file_list:
        return TestStatus.NOT_RUN
    if failing_tests:
        return TestStatus.FAILING
    return TestStatus.PASSING


def next_action(status: ComponentStatus) -> str:
    """Return the next recommended step for the component."""
    if not status.spec_exists:
        return "create_spec"
    if not status.code_exists:
        return "implement_code"
    if not status.test_exists:
        return "write_tests"
    if status.test_status is TestStatus.FAILING:
        return "fix_tests"
    return "complete"


def status_to_dict(status: ComponentStatus) -> Dict[str, object]:
    return {
        "spec_exists": status.spec_exists,
        "code_exists": status.code_exists,
        "test_exists": status.test_exists,
        "design_exists": status.design_exists,
        "review_exists": status.review_exists,
        "test_status": status.test_status.value,
        "expected_files": dict(status.expected_files),
        "failing_tests": list(status.failing_tests),
        "next_action": next_action(status),
    }


__all__ = [
    "analyze_status",
    "determine_test_status",
    "next_action",
    "status_to_dict",
]
