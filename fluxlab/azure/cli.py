"""Thin wrapper around the Azure CLI.

Each method maps to exactly one ``az`` invocation. Methods named ``*_show``
return the parsed resource, or None when Azure reports that it does not
exist; every other failure raises CommandError with the CLI's own message.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from fluxlab.core.config import LabSettings
from fluxlab.core.errors import CommandError, ToolNotFoundError
from fluxlab.core.runner import CommandRunner

logger = logging.getLogger(__name__)

RESOURCE_PROVIDERS = [
    "Microsoft.ContainerService",
    "Microsoft.Kubernetes",
    "Microsoft.KubernetesConfiguration",
]

CLI_EXTENSIONS = ["k8s-configuration", "k8s-extension"]

FLUX_EXTENSION_NAME = "flux"
FLUX_EXTENSION_TYPE = "microsoft.flux"

_NOT_FOUND = re.compile(r"not ?found|could not be found|does not exist", re.IGNORECASE)


def is_not_found(error: CommandError) -> bool:
    """Whether an az failure means "the resource does not exist"."""
    return bool(_NOT_FOUND.search(error.stderr or str(error)))


class AzureCli:
    """Azure CLI calls used by the lab."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def _show(self, args: List[str]) -> Optional[Dict[str, Any]]:
        try:
            return self.runner.run_json(args)
        except ToolNotFoundError:
            raise
        except CommandError as e:
            if is_not_found(e):
                logger.debug(f"Not found: {' '.join(args)}")
                return None
            raise

    # Account, providers, extensions

    def account_show(self) -> Optional[Dict[str, Any]]:
        """Current subscription, or None when not logged in."""
        try:
            return self.runner.run_json(["az", "account", "show"])
        except ToolNotFoundError:
            raise
        except CommandError as e:
            logger.debug(f"az account show failed: {e}")
            return None

    def provider_register(self, namespace: str) -> None:
        self.runner.run(["az", "provider", "register", "--namespace", namespace])

    def extension_add(self, name: str) -> None:
        self.runner.run(["az", "extension", "add", "--upgrade", "--yes", "--name", name])

    # Resource group

    def group_create(self, settings: LabSettings) -> None:
        self.runner.run([
            "az", "group", "create",
            "--name", settings.resource_group,
            "--location", settings.location,
        ])

    def group_show(self, settings: LabSettings) -> Optional[Dict[str, Any]]:
        return self._show(["az", "group", "show", "--name", settings.resource_group])

    def group_delete(self, settings: LabSettings, no_wait: bool = False) -> None:
        args = ["az", "group", "delete", "--name", settings.resource_group, "--yes"]
        if no_wait:
            args.append("--no-wait")
        self.runner.run(args)

    # Clusters

    def aks_create(self, settings: LabSettings) -> None:
        args = [
            "az", "aks", "create",
            "--resource-group", settings.resource_group,
            "--name", settings.cluster_name,
            "--location", settings.location,
            "--node-count", str(settings.node_count),
            "--node-vm-size", settings.node_vm_size,
            "--generate-ssh-keys",
        ]
        if settings.no_wait:
            args.append("--no-wait")
        self.runner.run(args)

    def aks_show(self, settings: LabSettings) -> Optional[Dict[str, Any]]:
        return self._show([
            "az", "aks", "show",
            "--resource-group", settings.resource_group,
            "--name", settings.cluster_name,
        ])

    def aks_get_credentials(self, settings: LabSettings) -> None:
        self.runner.run([
            "az", "aks", "get-credentials",
            "--resource-group", settings.resource_group,
            "--name", settings.cluster_name,
            "--overwrite-existing",
        ])

    def connectedk8s_connect(self, settings: LabSettings) -> None:
        self.runner.run([
            "az", "connectedk8s", "connect",
            "--resource-group", settings.resource_group,
            "--name", settings.cluster_name,
            "--location", settings.location,
        ])

    def connectedk8s_show(self, settings: LabSettings) -> Optional[Dict[str, Any]]:
        return self._show([
            "az", "connectedk8s", "show",
            "--resource-group", settings.resource_group,
            "--name", settings.cluster_name,
        ])

    def cluster_show(self, settings: LabSettings) -> Optional[Dict[str, Any]]:
        """Show the lab cluster, whichever kind it is."""
        if settings.cluster_type == "arc":
            return self.connectedk8s_show(settings)
        return self.aks_show(settings)

    # Flux extension

    def _cluster_args(self, settings: LabSettings) -> List[str]:
        return [
            "--resource-group", settings.resource_group,
            "--cluster-name", settings.cluster_name,
            "--cluster-type", settings.azure_cluster_type,
        ]

    def k8s_extension_create(self, settings: LabSettings) -> None:
        self.runner.run(
            ["az", "k8s-extension", "create"]
            + self._cluster_args(settings)
            + ["--name", FLUX_EXTENSION_NAME, "--extension-type", FLUX_EXTENSION_TYPE]
        )

    def k8s_extension_show(self, settings: LabSettings) -> Optional[Dict[str, Any]]:
        return self._show(
            ["az", "k8s-extension", "show"]
            + self._cluster_args(settings)
            + ["--name", FLUX_EXTENSION_NAME]
        )

    def k8s_extension_delete(self, settings: LabSettings) -> None:
        self.runner.run(
            ["az", "k8s-extension", "delete"]
            + self._cluster_args(settings)
            + ["--name", FLUX_EXTENSION_NAME, "--yes"]
        )

    # Flux configuration

    def flux_create(self, settings: LabSettings) -> None:
        settings.require_github_user()
        self.runner.run(
            ["az", "k8s-configuration", "flux", "create"]
            + self._cluster_args(settings)
            + [
                "--name", settings.config_name,
                "--namespace", settings.flux_namespace,
                "--scope", "cluster",
                "--url", settings.repo_url,
                "--branch", settings.branch,
                "--kustomization", f"name=apps path={settings.overlay_path} prune=true",
            ]
        )

    def flux_show(self, settings: LabSettings) -> Optional[Dict[str, Any]]:
        return self._show(
            ["az", "k8s-configuration", "flux", "show"]
            + self._cluster_args(settings)
            + ["--name", settings.config_name]
        )

    def flux_delete(self, settings: LabSettings) -> None:
        self.runner.run(
            ["az", "k8s-configuration", "flux", "delete"]
            + self._cluster_args(settings)
            + ["--name", settings.config_name, "--yes"]
        )
