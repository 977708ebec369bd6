"""Named check sets.

One place that decides which checks the lint and validate commands run.

It supports:
- Static repository checks (always available)
- Checks that need kubectl (render)
- Live cluster checks
"""

from typing import Any, List, Optional

from fluxlab.core.runner import CommandRunner
from fluxlab.lab.cluster_checks import (
    AzureLoginCheck,
    ClusterCheck,
    FluxConfigurationCheck,
    FluxExtensionCheck,
    FluxResourceCheck,
    PrerequisiteCheck,
    ResourceGroupCheck,
    WorkloadPodsCheck,
)
from fluxlab.lab.layout_checks import (
    FluxManifestCheck,
    KustomizationRefCheck,
    LayoutCheck,
    RenderCheck,
    WorkloadCheck,
)


class CheckConfig:
    """Configuration for a check set.

    Args:
        name: Configuration name (e.g., "layout", "cluster")
        checks: Checks that are always run
        external_checks: Checks that shell out to external tools
        description: Description of this configuration
    """

    def __init__(
        self,
        name: str,
        checks: List[Any],
        external_checks: Optional[List[Any]] = None,
        description: str = ""
    ):
        self.name = name
        self.checks = checks
        self.external_checks = external_checks or []
        self.description = description

    def get_checks(self, include_external: bool = True) -> List[Any]:
        checks = list(self.checks)
        if include_external:
            checks.extend(self.external_checks)
        return checks


def layout_config(runner: Optional[CommandRunner] = None) -> CheckConfig:
    return CheckConfig(
        name="layout",
        checks=[
            LayoutCheck(),
            KustomizationRefCheck(),
            WorkloadCheck(),
            FluxManifestCheck(),
        ],
        external_checks=[
            RenderCheck(runner),
        ],
        description="Repository checks: layout, kustomization references, workloads, Flux objects",
    )


def cluster_config() -> CheckConfig:
    return CheckConfig(
        name="cluster",
        checks=[
            PrerequisiteCheck(),
            AzureLoginCheck(),
            ResourceGroupCheck(),
            ClusterCheck(),
            FluxExtensionCheck(),
            FluxConfigurationCheck(),
            FluxResourceCheck("gitrepository"),
            FluxResourceCheck("kustomization"),
            FluxResourceCheck("helmrelease", none_severity="info"),
            WorkloadPodsCheck(),
        ],
        description="Live lab checks: Azure resources, Flux extension and configuration, cluster state",
    )


def get_check_set(config_name: str, runner: Optional[CommandRunner] = None) -> List[Any]:
    """Get the checks of a named set.

    Args:
        config_name: "layout", "layout_full" or "cluster"
        runner: Runner for checks that call external tools

    Returns:
        List of check instances

    Raises:
        ValueError: If config_name is not recognized
    """
    if config_name == "layout":
        return layout_config(runner).get_checks(include_external=False)
    if config_name == "layout_full":
        return layout_config(runner).get_checks(include_external=True)
    if config_name == "cluster":
        return cluster_config().get_checks()
    raise ValueError(
        f"Unknown check set: {config_name}. "
        "Available: layout, layout_full, cluster"
    )
