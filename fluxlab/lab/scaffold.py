"""Starter repository for the lab.

Generates the manifests a student pushes to their fork before wiring the
cluster to it: a small web app in base/, dev and prod overlays, a Helm
release shared by both overlays, and the Flux objects for clusters that are
bootstrapped by hand instead of through the AKS extension.
"""

from typing import Any, Dict

from fluxlab.core.config import LabSettings
from fluxlab.lab.manifests import ManifestTree, dump_documents

DEFAULT_APP_NAME = "hello-gitops"
DEFAULT_IMAGE = "mcr.microsoft.com/azuredocs/aks-helloworld:v1"

PODINFO_REPO_URL = "https://stefanprodan.github.io/podinfo"
PODINFO_CHART_VERSION = ">=6.0.0"

KUSTOMIZE_API = "kustomize.config.k8s.io/v1beta1"


def _kustomization(**fields: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {"apiVersion": KUSTOMIZE_API, "kind": "Kustomization"}
    doc.update(fields)
    return doc


def base_manifests(app_name: str, image: str = DEFAULT_IMAGE) -> Dict[str, str]:
    labels = {"app": app_name}
    deployment = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": app_name, "labels": dict(labels)},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [{
                        "name": app_name,
                        "image": image,
                        "ports": [{"containerPort": 80}],
                        "env": [{"name": "TITLE", "value": "Deployed by Flux"}],
                        "resources": {
                            "requests": {"cpu": "100m", "memory": "128Mi"},
                            "limits": {"cpu": "250m", "memory": "256Mi"},
                        },
                    }],
                },
            },
        },
    }
    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": app_name, "labels": dict(labels)},
        "spec": {
            "type": "ClusterIP",
            "selector": dict(labels),
            "ports": [{"port": 80, "targetPort": 80}],
        },
    }
    return {
        "base/deployment.yaml": dump_documents([deployment]),
        "base/service.yaml": dump_documents([service]),
        "base/kustomization.yaml": dump_documents([
            _kustomization(resources=["deployment.yaml", "service.yaml"]),
        ]),
    }


def infrastructure_manifests(settings: LabSettings) -> Dict[str, str]:
    """HelmRepository + HelmRelease for the podinfo chart."""
    helm_repository = {
        "apiVersion": "source.toolkit.fluxcd.io/v1",
        "kind": "HelmRepository",
        "metadata": {"name": "podinfo", "namespace": settings.app_namespace},
        "spec": {"interval": "10m", "url": PODINFO_REPO_URL},
    }
    helm_release = {
        "apiVersion": "helm.toolkit.fluxcd.io/v2",
        "kind": "HelmRelease",
        "metadata": {"name": "podinfo", "namespace": settings.app_namespace},
        "spec": {
            "interval": "10m",
            "chart": {
                "spec": {
                    "chart": "podinfo",
                    "version": PODINFO_CHART_VERSION,
                    "sourceRef": {
                        "kind": "HelmRepository",
                        "name": "podinfo",
                    },
                },
            },
            "values": {"replicaCount": 1},
        },
    }
    return {
        "infrastructure/helmrepository.yaml": dump_documents([helm_repository]),
        "infrastructure/helmrelease.yaml": dump_documents([helm_release]),
        "infrastructure/kustomization.yaml": dump_documents([
            _kustomization(resources=["helmrepository.yaml", "helmrelease.yaml"]),
        ]),
    }


def overlay_manifests(settings: LabSettings, app_name: str) -> Dict[str, str]:
    namespace = {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {"name": settings.app_namespace},
    }
    files = {
        "overlays/dev/namespace.yaml": dump_documents([namespace]),
        "overlays/dev/kustomization.yaml": dump_documents([
            _kustomization(
                namespace=settings.app_namespace,
                resources=["namespace.yaml", "../../base", "../../infrastructure"],
                labels=[{"pairs": {"env": "dev"}}],
                replicas=[{"name": app_name, "count": 1}],
            ),
        ]),
        "overlays/prod/namespace.yaml": dump_documents([namespace]),
        "overlays/prod/kustomization.yaml": dump_documents([
            _kustomization(
                namespace=settings.app_namespace,
                resources=["namespace.yaml", "../../base", "../../infrastructure"],
                labels=[{"pairs": {"env": "prod"}}],
                patches=[
                    {"path": "patches/replicas.yaml"},
                    {"path": "patches/resources.yaml"},
                ],
            ),
        ]),
        "overlays/prod/patches/replicas.yaml": dump_documents([{
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": app_name},
            "spec": {"replicas": 3},
        }]),
        "overlays/prod/patches/resources.yaml": dump_documents([{
            "apiVersion": "apps/v1",
            "kind": "Deployment",
            "metadata": {"name": app_name},
            "spec": {
                "template": {
                    "spec": {
                        "containers": [{
                            "name": app_name,
                            "resources": {
                                "requests": {"cpu": "250m", "memory": "256Mi"},
                                "limits": {"cpu": "500m", "memory": "512Mi"},
                            },
                        }],
                    },
                },
            },
        }]),
    }
    return files


def cluster_manifests(settings: LabSettings) -> Dict[str, str]:
    """Flux source and Kustomization for a hand-bootstrapped cluster."""
    git_repository = {
        "apiVersion": "source.toolkit.fluxcd.io/v1",
        "kind": "GitRepository",
        "metadata": {"name": settings.config_name, "namespace": settings.flux_namespace},
        "spec": {
            "interval": "1m",
            "url": settings.repo_url,
            "ref": {"branch": settings.branch},
        },
    }
    flux_kustomization = {
        "apiVersion": "kustomize.toolkit.fluxcd.io/v1",
        "kind": "Kustomization",
        "metadata": {"name": f"{settings.config_name}-apps", "namespace": settings.flux_namespace},
        "spec": {
            "interval": "10m",
            "path": settings.overlay_path,
            "prune": True,
            "sourceRef": {"kind": "GitRepository", "name": settings.config_name},
        },
    }
    env_dir = f"clusters/{settings.environment}"
    return {
        f"{env_dir}/gitrepository.yaml": dump_documents([git_repository]),
        f"{env_dir}/apps.yaml": dump_documents([flux_kustomization]),
    }


def scaffold_tree(settings: LabSettings, app_name: str = DEFAULT_APP_NAME) -> ManifestTree:
    """Build the complete starter repository.

    Args:
        settings: Lab settings (GitHub user, branch, environment, namespaces)
        app_name: Name of the sample Deployment and Service

    Returns:
        ManifestTree ready to be written with write_to_dir()
    """
    settings.require_github_user()
    files: Dict[str, str] = {}
    files.update(base_manifests(app_name))
    files.update(infrastructure_manifests(settings))
    files.update(overlay_manifests(settings, app_name))
    files.update(cluster_manifests(settings))
    return ManifestTree(files=files)
