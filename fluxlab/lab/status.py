"""Human-readable status of the Flux configuration and its resources."""

import logging
from typing import List

from fluxlab.core.errors import CommandError
from fluxlab.k8s.conditions import summarize
from fluxlab.k8s.constants import FLUX_RESOURCES
from fluxlab.lab.cluster_checks import ClusterTarget

logger = logging.getLogger(__name__)


def status_lines(target: ClusterTarget) -> List[str]:
    """Describe the Flux configuration and every Flux resource.

    Returns:
        Lines to print. Azure errors propagate; a kubectl failure for one
        resource kind is shown inline so the other kinds still appear.
    """
    settings = target.settings
    lines = [f"Cluster: {settings.cluster_name} ({settings.resource_group})"]

    config = target.azure.flux_show(settings)
    if config is None:
        lines.append(f"Flux configuration {settings.config_name}: not found")
    else:
        lines.append(
            f"Flux configuration {settings.config_name}: "
            f"{config.get('complianceState', 'Unknown')} "
            f"(provisioning {config.get('provisioningState', 'Unknown')})"
        )
        git = config.get("gitRepository") or {}
        if git.get("url"):
            branch = (git.get("repositoryRef") or {}).get("branch", "")
            lines.append(f"  source: {git['url']} @ {branch}")
        if config.get("sourceSyncedCommitId"):
            lines.append(f"  synced commit: {config['sourceSyncedCommitId']}")

    for kind, resource in FLUX_RESOURCES.items():
        lines.append(f"{kind}:")
        try:
            items = target.kubectl.get(resource, all_namespaces=True)
        except CommandError as e:
            logger.info(f"kubectl get {resource} failed: {e}")
            lines.append(f"  unavailable: {e}")
            continue
        if not items:
            lines.append("  (none)")
        for item in items:
            lines.append(f"  {summarize(item)}")

    return lines
