"""Lab teardown: remove the Flux configuration, extension and resource group."""

import logging
from typing import Callable, List

from fluxlab.azure.cli import AzureCli
from fluxlab.core.config import LabSettings

logger = logging.getLogger(__name__)


def run_cleanup(
    settings: LabSettings,
    azure: AzureCli,
    keep_group: bool = False,
    no_wait: bool = False,
    out: Callable[[str], None] = print,
) -> List[str]:
    """Delete what setup created, innermost first.

    The Flux configuration and extension are only deleted when the cluster
    still exists; deleting the resource group removes everything else.

    Args:
        settings: Lab settings identifying the resources
        azure: Azure CLI wrapper
        keep_group: Keep the resource group (and cluster), only remove Flux
        no_wait: Do not wait for the resource group deletion to finish
        out: Output function for progress lines

    Returns:
        Keys of the resources that were deleted
    """
    deleted: List[str] = []

    if azure.group_show(settings) is None:
        out(f"Resource group {settings.resource_group} does not exist, nothing to clean up")
        return deleted

    if azure.cluster_show(settings) is not None:
        if azure.flux_show(settings) is not None:
            out(f"Deleting Flux configuration {settings.config_name}...")
            azure.flux_delete(settings)
            deleted.append("flux-configuration")
        if azure.k8s_extension_show(settings) is not None:
            out("Deleting Flux extension...")
            azure.k8s_extension_delete(settings)
            deleted.append("flux-extension")
    else:
        logger.info(f"Cluster {settings.cluster_name} not found, skipping Flux cleanup")

    if keep_group:
        out(f"Keeping resource group {settings.resource_group}")
        return deleted

    out(f"Deleting resource group {settings.resource_group}...")
    azure.group_delete(settings, no_wait=no_wait)
    deleted.append("resource-group")
    if no_wait:
        out("    deletion continues in the background")
    return deleted
