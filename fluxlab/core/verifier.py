"""Verifier for executing checks and aggregating violations."""

import logging
from dataclasses import dataclass, field
from typing import Any, List

from fluxlab.core.errors import CommandError
from fluxlab.core.schema.check import Check, check_name
from fluxlab.core.schema.violation import Violation

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Violations reported by one check."""

    name: str
    violations: List[Violation] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not any(v.is_error for v in self.violations)


def run_checks(target: Any, checks: List[Check]) -> List[CheckResult]:
    """Execute all checks against target, in order.

    Every check runs even when an earlier one fails, so a single run shows
    every problem. A check that raises is reported as a ``check_error``
    violation instead of aborting the run.

    Args:
        target: What the checks inspect (ManifestTree, ClusterTarget, ...)
        checks: Checks to execute

    Returns:
        One CheckResult per check. Empty list if no checks were given.

    Example:
        >>> results = run_checks(tree, [LayoutCheck(), WorkloadCheck()])
        >>> all(r.passed for r in results)
        True
    """
    results: List[CheckResult] = []

    for check in checks:
        name = check_name(check)
        try:
            violations = list(check(target))
        except CommandError as e:
            logger.info(f"Check {name} could not run: {e}")
            violations = [
                Violation(
                    id=f"check_error.{name}",
                    message=str(e),
                    path=[name],
                    severity="error",
                    evidence={"command": e.command_line, "stderr": e.stderr},
                )
            ]
        except Exception as e:
            logger.exception(f"Check {name} crashed")
            violations = [
                Violation(
                    id=f"check_error.{name}",
                    message=f"Check execution failed: {e}",
                    path=[name],
                    severity="error",
                    evidence={"exception_type": type(e).__name__},
                )
            ]
        results.append(CheckResult(name=name, violations=violations))

    return results


def collect_violations(results: List[CheckResult]) -> List[Violation]:
    """Flatten check results into one violation list."""
    return [v for r in results for v in r.violations]


def has_errors(results: List[CheckResult]) -> bool:
    return any(not r.passed for r in results)
