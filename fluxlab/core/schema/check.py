"""Check protocol for lab validation functions."""

from typing import Any, List, Protocol

from fluxlab.core.schema.violation import Violation


class Check(Protocol):
    """Validation function interface.

    A check is a callable that inspects a target and returns a list of
    violations. The target depends on the kind of check:

    - Repository checks receive a ManifestTree (the GitOps repo on disk)
    - Cluster checks receive a ClusterTarget (settings plus az/kubectl
      wrappers) and query live state through the external CLIs

    Example:
        class MyCheck:
            name = "my-check"

            def __call__(self, target) -> List[Violation]:
                return []
    """

    name: str

    def __call__(self, target: Any) -> List[Violation]:
        """Inspect target and return violations.

        Returns:
            List of violations found. Empty list if the target passes.
        """
        ...


def check_name(check: Any) -> str:
    """Best-effort display name for a check or plain function."""
    name = getattr(check, "name", None)
    if name:
        return name
    if hasattr(check, "__name__"):
        return check.__name__
    return type(check).__name__
