"""Live checks of a provisioned lab.

Each check queries Azure or the cluster through the CLI wrappers and turns
the observed state into Violations. Together they walk the same path as the
lab itself: tools, login, resource group, cluster, Flux extension, Flux
configuration, Flux resources, and finally the application pods.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fluxlab.azure.cli import AzureCli
from fluxlab.azure.setup import REQUIRED_TOOLS
from fluxlab.core.config import LabSettings
from fluxlab.core.errors import CommandError
from fluxlab.core.runner import CommandRunner
from fluxlab.core.schema.violation import Violation
from fluxlab.k8s.conditions import ready_condition, resource_id
from fluxlab.k8s.constants import FLUX_RESOURCES
from fluxlab.k8s.kubectl import Kubectl

logger = logging.getLogger(__name__)


@dataclass
class ClusterTarget:
    """Everything a cluster check needs to look at the lab."""

    settings: LabSettings
    azure: AzureCli
    kubectl: Kubectl
    runner: CommandRunner

    @classmethod
    def create(cls, settings: LabSettings, runner: CommandRunner) -> "ClusterTarget":
        """Build a target; AKS clusters use the context written by get-credentials."""
        context = settings.cluster_name if settings.cluster_type == "aks" else None
        return cls(
            settings=settings,
            azure=AzureCli(runner),
            kubectl=Kubectl(runner, context=context),
            runner=runner,
        )

    def resource_path(self, *parts: str) -> List[str]:
        return [self.settings.resource_group, *parts]


class PrerequisiteCheck:
    """az, kubectl and git must be installed."""

    name = "prerequisites"

    def __init__(self, tools: Optional[List[str]] = None):
        self.tools = tools or REQUIRED_TOOLS

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        return [
            Violation(
                id="tools.MISSING_TOOL",
                message=f"'{tool}' is not installed or not on PATH",
                path=[tool],
                severity="error",
            )
            for tool in self.tools
            if not target.runner.which(tool)
        ]


class AzureLoginCheck:
    name = "azure-login"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        account = target.azure.account_show()
        if account is None:
            return [Violation(
                id="azure.NOT_LOGGED_IN",
                message="Not logged in to Azure. Run 'az login'.",
                path=["az", "account"],
                severity="error",
            )]
        logger.info(f"Logged in to subscription {account.get('name')}")
        return []


class ResourceGroupCheck:
    name = "resource-group"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        if target.azure.group_show(target.settings) is None:
            return [Violation(
                id="azure.RESOURCE_GROUP_MISSING",
                message=f"Resource group {target.settings.resource_group} does not exist",
                path=target.resource_path(),
                severity="error",
            )]
        return []


class ClusterCheck:
    """The cluster exists and is provisioned (AKS) or connected (Arc)."""

    name = "cluster"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        settings = target.settings
        cluster = target.azure.cluster_show(settings)
        path = target.resource_path(settings.cluster_name)

        if cluster is None:
            return [Violation(
                id="azure.CLUSTER_MISSING",
                message=f"Cluster {settings.cluster_name} does not exist",
                path=path,
                severity="error",
            )]

        violations = []
        state = cluster.get("provisioningState")
        if state != "Succeeded":
            violations.append(Violation(
                id="azure.CLUSTER_NOT_READY",
                message=f"Cluster {settings.cluster_name} provisioningState is {state}",
                path=path,
                severity="error",
                evidence={"provisioningState": state},
            ))

        if settings.cluster_type == "arc":
            connectivity = cluster.get("connectivityStatus")
            if connectivity != "Connected":
                violations.append(Violation(
                    id="azure.CLUSTER_NOT_READY",
                    message=f"Arc cluster {settings.cluster_name} connectivityStatus is {connectivity}",
                    path=path,
                    severity="error",
                    evidence={"connectivityStatus": connectivity},
                ))
        else:
            power = (cluster.get("powerState") or {}).get("code")
            if power and power != "Running":
                violations.append(Violation(
                    id="azure.CLUSTER_NOT_READY",
                    message=f"Cluster {settings.cluster_name} is {power}. Run 'az aks start'.",
                    path=path,
                    severity="error",
                    evidence={"powerState": power},
                ))

        return violations


class FluxExtensionCheck:
    name = "flux-extension"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        settings = target.settings
        extension = target.azure.k8s_extension_show(settings)
        path = target.resource_path(settings.cluster_name, "extensions", "flux")

        if extension is None:
            return [Violation(
                id="flux.EXTENSION_MISSING",
                message="The Flux extension (microsoft.flux) is not installed on the cluster",
                path=path,
                severity="error",
            )]

        state = extension.get("provisioningState")
        if state != "Succeeded":
            return [Violation(
                id="flux.EXTENSION_NOT_READY",
                message=f"Flux extension provisioningState is {state}",
                path=path,
                severity="error",
                evidence={"provisioningState": state},
            )]
        return []


class FluxConfigurationCheck:
    """The Flux configuration exists and reports Compliant."""

    name = "flux-configuration"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        settings = target.settings
        config = target.azure.flux_show(settings)
        path = target.resource_path(settings.cluster_name, "fluxConfigurations", settings.config_name)

        if config is None:
            return [Violation(
                id="flux.CONFIG_MISSING",
                message=f"Flux configuration {settings.config_name} does not exist",
                path=path,
                severity="error",
            )]

        compliance = config.get("complianceState")
        if compliance == "Compliant":
            return []

        failing = [
            f"{s.get('kind')}/{s.get('name')}: {s.get('complianceState')}"
            for s in config.get("statuses") or []
            if s.get("complianceState") != "Compliant"
        ]
        evidence: Dict[str, Any] = {"complianceState": compliance, "statuses": failing}
        if config.get("errorMessage"):
            evidence["errorMessage"] = config["errorMessage"]

        if compliance == "Pending":
            return [Violation(
                id="flux.CONFIG_NOT_COMPLIANT",
                message=f"Flux configuration {settings.config_name} is still reconciling (Pending)",
                path=path,
                severity="warning",
                evidence=evidence,
            )]
        return [Violation(
            id="flux.CONFIG_NOT_COMPLIANT",
            message=f"Flux configuration {settings.config_name} is {compliance}",
            path=path,
            severity="error",
            evidence=evidence,
        )]


class FluxResourceCheck:
    """All Flux resources of one kind report Ready=True.

    Args:
        kind: "gitrepository", "kustomization" or "helmrelease"
        none_severity: Severity when no resource of this kind exists
    """

    def __init__(self, kind: str, none_severity: str = "error"):
        if kind not in FLUX_RESOURCES:
            raise ValueError(f"Unknown Flux resource kind: {kind}. Available: {', '.join(FLUX_RESOURCES)}")
        self.kind = kind
        self.none_severity = none_severity
        self.name = f"flux-{kind}"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        code = self.kind.upper()
        try:
            resources = target.kubectl.get(FLUX_RESOURCES[self.kind], all_namespaces=True)
        except CommandError as e:
            if "doesn't have a resource type" in e.stderr:
                return [Violation(
                    id="kube.FLUX_NOT_INSTALLED",
                    message=f"The cluster does not know {self.kind} resources; Flux is not installed",
                    path=["cluster", self.kind],
                    severity="error",
                    evidence={"stderr": e.stderr},
                )]
            raise

        if not resources:
            return [Violation(
                id=f"kube.{code}_NONE",
                message=f"No {self.kind} resources found in the cluster",
                path=["cluster", self.kind],
                severity=self.none_severity,
            )]

        violations = []
        for resource in resources:
            ready, reason, message = ready_condition(resource)
            if ready:
                continue
            violations.append(Violation(
                id=f"kube.{code}_NOT_READY",
                message=f"{self.kind} {resource_id(resource)} is not ready ({reason}): {message}",
                path=["cluster", self.kind, resource_id(resource)],
                severity="error",
                evidence={"reason": reason, "message": message},
            ))
        return violations


class WorkloadPodsCheck:
    """Pods in the application namespace are running and ready."""

    name = "workload-pods"

    def __call__(self, target: ClusterTarget) -> List[Violation]:
        namespace = target.settings.app_namespace
        pods = target.kubectl.get("pods", namespace=namespace)

        if not pods:
            return [Violation(
                id="kube.NO_PODS",
                message=f"No pods in namespace {namespace} yet; Flux may still be reconciling",
                path=["cluster", namespace],
                severity="warning",
            )]

        unhealthy = []
        for pod in pods:
            status = pod.get("status") or {}
            phase = status.get("phase")
            if phase == "Succeeded":
                continue
            containers_ready = all(
                cs.get("ready") for cs in status.get("containerStatuses") or []
            )
            if phase != "Running" or not containers_ready:
                unhealthy.append(f"{(pod.get('metadata') or {}).get('name')} ({phase})")

        if unhealthy:
            return [Violation(
                id="kube.PODS_NOT_RUNNING",
                message=f"{len(unhealthy)} pod(s) in {namespace} are not running: {', '.join(unhealthy)}",
                path=["cluster", namespace],
                severity="error",
                evidence={"pods": unhealthy},
            )]
        return []
