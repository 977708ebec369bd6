"""Violation model for representing failed lab checks."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

SEVERITIES = ("error", "warning", "info")


@dataclass
class Violation:
    """A problem found by a check.

    Violations are returned by checks during validation and describe what
    is wrong, where, and how bad it is.

    Attributes:
        id: Dotted identifier "<area>.<CODE>", e.g. "azure.CLUSTER_MISSING"
        message: Human-readable description of the problem
        path: Location as list of strings, e.g. a resource path
              ["rg-gitops-jdoe", "aks-gitops-jdoe"] or a file path
              ["overlays/dev", "kustomization.yaml"]
        severity: "error", "warning" or "info". Only errors fail a run.
        evidence: Extra data for reporting (tool output, observed state, ...)
    """

    id: str
    message: str
    path: List[str]
    severity: str = "error"
    evidence: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(
                f"Invalid severity '{self.severity}'. Must be one of: {', '.join(SEVERITIES)}"
            )

    @property
    def area(self) -> str:
        return self.id.split(".", 1)[0]

    @property
    def is_error(self) -> bool:
        return self.severity == "error"

    def location(self) -> str:
        return "/".join(str(p) for p in self.path)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "id": self.id,
            "message": self.message,
            "path": list(self.path),
            "severity": self.severity,
        }
        if self.evidence:
            result["evidence"] = self.evidence
        return result
