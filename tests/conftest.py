"""Shared fixtures: a scripted command runner and default lab settings."""

import json
from typing import Any, List, Optional

import pytest

from fluxlab.core.config import LabSettings
from fluxlab.core.runner import CommandResult, CommandRunner

NOT_FOUND_STDERR = "ERROR: (ResourceNotFound) The Resource was not found."


class FakeRunner(CommandRunner):
    """CommandRunner that answers from a script instead of spawning processes.

    Responses are matched by argument prefix; the longest matching prefix
    wins, and among equally long prefixes the one registered last. Commands without a scripted response succeed with empty output,
    which the Azure wrapper reads as "resource does not exist".
    """

    def __init__(self, tools=("az", "kubectl", "git"), dry_run: bool = False):
        super().__init__(dry_run=dry_run)
        self.responses: List[tuple] = []
        self.tools = set(tools)

    def on(
        self,
        *prefix: str,
        json_data: Any = None,
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> "FakeRunner":
        if json_data is not None:
            stdout = json.dumps(json_data)
        self.responses.append((list(prefix), returncode, stdout, stderr))
        return self

    def not_found(self, *prefix: str) -> "FakeRunner":
        return self.on(*prefix, returncode=3, stderr=NOT_FOUND_STDERR)

    def which(self, tool: str) -> bool:
        return tool in self.tools

    def _execute(self, args: List[str]) -> CommandResult:
        best: Optional[tuple] = None
        for response in self.responses:
            prefix = response[0]
            if args[:len(prefix)] == prefix and (best is None or len(prefix) >= len(best[0])):
                best = response
        if best is None:
            return CommandResult(command=args, returncode=0)
        _, returncode, stdout, stderr = best
        return CommandResult(command=args, returncode=returncode, stdout=stdout, stderr=stderr)

    def ran(self, *prefix: str) -> bool:
        return any(cmd[:len(prefix)] == list(prefix) for cmd in self.history)

    def commands_starting(self, *prefix: str) -> List[List[str]]:
        return [cmd for cmd in self.history if cmd[:len(prefix)] == list(prefix)]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def make_runner():
    """Factory for extra runners, e.g. make_runner(tools=["az"])."""
    return FakeRunner


@pytest.fixture
def settings():
    return LabSettings(student_alias="jdoe", github_user="jdoe-gh").validate()


@pytest.fixture
def healthy_runner(settings):
    """A runner scripted with a fully provisioned, reconciled lab."""
    runner = FakeRunner()
    runner.on("az", "account", "show", json_data={"name": "Lab Subscription", "id": "0000"})
    runner.on("az", "group", "show", json_data={"name": settings.resource_group, "location": "eastus"})
    runner.on("az", "aks", "show", json_data={
        "name": settings.cluster_name,
        "provisioningState": "Succeeded",
        "powerState": {"code": "Running"},
    })
    runner.on("az", "k8s-extension", "show", json_data={"name": "flux", "provisioningState": "Succeeded"})
    runner.on("az", "k8s-configuration", "flux", "show", json_data={
        "name": settings.config_name,
        "complianceState": "Compliant",
        "provisioningState": "Succeeded",
        "gitRepository": {"url": settings.repo_url, "repositoryRef": {"branch": "main"}},
        "sourceSyncedCommitId": "main@sha1:abc123",
        "statuses": [],
    })
    ready = {"status": {"conditions": [{"type": "Ready", "status": "True", "reason": "Succeeded"}]}}
    runner.on("kubectl", "--context", settings.cluster_name, "get", "gitrepositories.source.toolkit.fluxcd.io",
              json_data={"items": [dict(ready, metadata={"name": "gitops-config", "namespace": "flux-system"})]})
    runner.on("kubectl", "--context", settings.cluster_name, "get", "kustomizations.kustomize.toolkit.fluxcd.io",
              json_data={"items": [dict(ready, metadata={"name": "gitops-config-apps", "namespace": "flux-system"})]})
    runner.on("kubectl", "--context", settings.cluster_name, "get", "helmreleases.helm.toolkit.fluxcd.io",
              json_data={"items": [dict(ready, metadata={"name": "podinfo", "namespace": "gitops-demo"})]})
    runner.on("kubectl", "--context", settings.cluster_name, "get", "pods", json_data={"items": [{
        "metadata": {"name": "hello-gitops-abc"},
        "status": {"phase": "Running", "containerStatuses": [{"ready": True}]},
    }]})
    return runner
