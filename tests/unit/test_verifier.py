"""Unit tests for the verifier module.

Tests cover:
- Running several checks in order
- Violation aggregation
- Empty check list handling
- Checks that crash or fail to run an external command
"""

from typing import Any, List

import pytest

from fluxlab.core.errors import CommandError
from fluxlab.core.schema.violation import Violation
from fluxlab.core.verifier import collect_violations, has_errors, run_checks

# Test fixtures and mock checks


def passing_check(target: Any) -> List[Violation]:
    """Check that always passes (returns no violations)."""
    return []


def failing_check(target: Any) -> List[Violation]:
    """Check that returns one error and one warning."""
    return [
        Violation(
            id="test.ONE",
            message="Test failure 1",
            path=["rg", "cluster"],
            severity="error",
        ),
        Violation(
            id="test.TWO",
            message="Test warning",
            path=["rg"],
            severity="warning",
        ),
    ]


def warning_check(target: Any) -> List[Violation]:
    return [Violation(id="test.WARN", message="just a warning", path=[], severity="warning")]


def crashing_check(target: Any) -> List[Violation]:
    """Check that raises an exception."""
    raise RuntimeError("Check crashed unexpectedly")


class NamedCommandCheck:
    name = "needs-az"

    def __call__(self, target):
        raise CommandError("az failed", command=["az", "group", "show"], returncode=1, stderr="boom")


# Test cases


def test_empty_check_list():
    assert run_checks(object(), []) == []


def test_single_passing_check():
    results = run_checks(object(), [passing_check])

    assert len(results) == 1
    assert results[0].name == "passing_check"
    assert results[0].passed


def test_aggregates_violations_in_order():
    results = run_checks(object(), [passing_check, failing_check])

    violations = collect_violations(results)
    assert [v.id for v in violations] == ["test.ONE", "test.TWO"]
    assert has_errors(results)


def test_warnings_do_not_fail():
    results = run_checks(object(), [warning_check])

    assert results[0].passed
    assert not has_errors(results)


def test_crashing_check_becomes_violation():
    results = run_checks(object(), [crashing_check, passing_check])

    assert len(results) == 2
    violation = results[0].violations[0]
    assert violation.id == "check_error.crashing_check"
    assert "crashed unexpectedly" in violation.message
    assert violation.evidence["exception_type"] == "RuntimeError"
    assert results[1].passed


def test_command_error_becomes_violation():
    results = run_checks(object(), [NamedCommandCheck()])

    violation = results[0].violations[0]
    assert violation.id == "check_error.needs-az"
    assert violation.evidence["command"] == "az group show"
    assert violation.evidence["stderr"] == "boom"


def test_invalid_severity_rejected():
    with pytest.raises(ValueError):
        Violation(id="x.Y", message="m", path=[], severity="fatal")


def test_violation_helpers():
    v = Violation(id="azure.CLUSTER_MISSING", message="m", path=["rg", "aks"], evidence={"a": 1})

    assert v.area == "azure"
    assert v.location() == "rg/aks"
    assert v.to_dict()["evidence"] == {"a": 1}
