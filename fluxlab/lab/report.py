"""Printable reports for check results."""

from typing import Callable, List

from fluxlab.core.verifier import CheckResult, collect_violations

_SEVERITY_MARKS = {"error": "✗", "warning": "!", "info": "i"}


def format_results(results: List[CheckResult]) -> List[str]:
    """Render check results as report lines.

    One line per check, followed by an indented line per violation and a
    summary line.
    """
    lines = []
    for result in results:
        mark = "✓" if result.passed else "✗"
        lines.append(f"{mark} {result.name}")
        for v in result.violations:
            lines.append(f"    {_SEVERITY_MARKS.get(v.severity, '?')} {v.id}: {v.message}")
            if v.path:
                lines.append(f"      at {v.location()}")

    violations = collect_violations(results)
    errors = sum(1 for v in violations if v.severity == "error")
    warnings = sum(1 for v in violations if v.severity == "warning")
    passed = sum(1 for r in results if r.passed)
    lines.append("")
    lines.append(
        f"{passed}/{len(results)} checks passed, {errors} error(s), {warnings} warning(s)"
    )
    return lines


def print_results(results: List[CheckResult], out: Callable[[str], None] = print) -> None:
    for line in format_results(results):
        out(line)
