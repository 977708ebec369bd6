"""Thin wrapper around kubectl."""

import logging
from typing import Any, Dict, List, Optional

from fluxlab.core.runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class Kubectl:
    """kubectl calls used by the lab.

    Args:
        runner: Command runner
        context: Optional kubeconfig context (defaults to the current one)
    """

    def __init__(self, runner: CommandRunner, context: Optional[str] = None):
        self.runner = runner
        self.context = context

    def _base(self) -> List[str]:
        args = ["kubectl"]
        if self.context:
            args += ["--context", self.context]
        return args

    def current_context(self) -> Optional[str]:
        """Name of the current kubeconfig context, or None if unset."""
        result = self.runner.run(self._base() + ["config", "current-context"], check=False, mutating=False)
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def get(
        self,
        kind: str,
        namespace: Optional[str] = None,
        all_namespaces: bool = False,
    ) -> List[Dict[str, Any]]:
        """List resources of a kind.

        Args:
            kind: Resource name as accepted by kubectl get
            namespace: Namespace to list (ignored with all_namespaces)
            all_namespaces: List across all namespaces

        Returns:
            The "items" of the returned List (empty list when none)
        """
        args = self._base() + ["get", kind]
        if all_namespaces:
            args.append("--all-namespaces")
        elif namespace:
            args += ["--namespace", namespace]
        data = self.runner.run_json(args)
        if not data:
            return []
        return list(data.get("items", []))

    def kustomize(self, path: str) -> CommandResult:
        """Render a kustomization directory without applying it.

        Returns:
            The CommandResult; callers inspect returncode and stderr
        """
        return self.runner.run(self._base() + ["kustomize", path], check=False, mutating=False)
