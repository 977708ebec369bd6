"""Static checks for the GitOps repository.

These checks inspect a ManifestTree and report Violations for the mistakes
students typically make before Flux ever sees the repository: a missing
overlay directory, a kustomization referencing a file that was renamed, a
Service whose selector no longer matches the Deployment, or a Flux
Kustomization pointing at a path that does not exist.

Only RenderCheck runs an external tool (kubectl kustomize); it is skipped
when kubectl is not installed.
"""

import logging
import posixpath
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple

from fluxlab.core.runner import CommandRunner
from fluxlab.core.schema.violation import Violation
from fluxlab.k8s.constants import FLUX_HELM_GROUP, FLUX_KUSTOMIZE_GROUP, FLUX_SOURCE_GROUP
from fluxlab.k8s.kubectl import Kubectl
from fluxlab.lab.manifests import ManifestTree, normalize

logger = logging.getLogger(__name__)

REQUIRED_DIRS = ["base", "overlays/dev", "overlays/prod", "overlays/prod/patches"]
KUSTOMIZATION_DIRS = ["base", "overlays/dev", "overlays/prod"]
KUSTOMIZATION_FILENAMES = ("kustomization.yaml", "kustomization.yml")


def find_kustomization_file(tree: ManifestTree, directory: str) -> Optional[str]:
    """Path of the kustomization file in directory, if any."""
    for filename in KUSTOMIZATION_FILENAMES:
        candidate = normalize(posixpath.join(directory, filename))
        if tree.is_file(candidate):
            return candidate
    return None


def is_kustomization_file(path: str) -> bool:
    return PurePosixPath(path).name in KUSTOMIZATION_FILENAMES


def is_remote(reference: str) -> bool:
    return "://" in reference or reference.startswith(("github.com/", "git@"))


def api_group(doc: Dict[str, Any]) -> str:
    return str(doc.get("apiVersion", "")).split("/", 1)[0]


def kustomization_files(tree: ManifestTree) -> List[str]:
    return [p for p in sorted(tree.files) if is_kustomization_file(p)]


class LayoutCheck:
    """Checks the base/overlays directory layout.

    Every directory in REQUIRED_DIRS must exist, the base and each overlay
    must carry a kustomization.yaml, and every YAML file must parse.
    """

    name = "layout"

    def __call__(self, tree: ManifestTree) -> List[Violation]:
        violations = []

        for directory in REQUIRED_DIRS:
            if not tree.has_dir(directory):
                violations.append(Violation(
                    id="layout.MISSING_DIR",
                    message=f"Directory '{directory}/' is missing",
                    path=[directory],
                    severity="error",
                ))

        for directory in KUSTOMIZATION_DIRS:
            if tree.has_dir(directory) and find_kustomization_file(tree, directory) is None:
                violations.append(Violation(
                    id="layout.MISSING_KUSTOMIZATION",
                    message=f"'{directory}/' has no kustomization.yaml",
                    path=[directory, "kustomization.yaml"],
                    severity="error",
                ))

        for file_path in sorted(tree.files):
            if is_kustomization_file(file_path):
                # reported by KustomizationRefCheck
                continue
            try:
                tree.documents(file_path)
            except Exception as e:
                violations.append(Violation(
                    id="layout.INVALID_YAML",
                    message=f"Failed to parse YAML: {e}",
                    path=[file_path],
                    severity="error",
                ))

        return violations


class KustomizationRefCheck:
    """Checks that every kustomization.yaml only references existing paths.

    Covers resources, bases, components, patches (path form),
    patchesStrategicMerge, patchesJson6902 and the files and env files of
    configMapGenerator and secretGenerator. Overlays must build on base/.
    """

    name = "kustomization-refs"

    def __call__(self, tree: ManifestTree) -> List[Violation]:
        violations = []

        for file_path in kustomization_files(tree):
            directory = str(PurePosixPath(file_path).parent)
            if directory == ".":
                directory = ""

            try:
                docs = tree.documents(file_path)
            except Exception as e:
                violations.append(Violation(
                    id="kustomize.INVALID_YAML",
                    message=f"Failed to parse YAML: {e}",
                    path=[file_path],
                    severity="error",
                ))
                continue

            if not docs or not isinstance(docs[0], dict):
                violations.append(Violation(
                    id="kustomize.INVALID_YAML",
                    message="kustomization.yaml must contain a mapping",
                    path=[file_path],
                    severity="error",
                ))
                continue

            doc = docs[0]
            if api_group(doc) == FLUX_KUSTOMIZE_GROUP:
                # a Flux Kustomization that happens to use this filename
                continue

            resolved_resources = []
            for field_name in ("resources", "bases", "components"):
                for entry in doc.get(field_name) or []:
                    if not isinstance(entry, str) or is_remote(entry):
                        continue
                    target = normalize(posixpath.join(directory, entry))
                    resolved_resources.append(target)
                    violations.extend(self._check_resource(tree, file_path, field_name, entry, target))

            for entry in self._patch_paths(doc):
                target = normalize(posixpath.join(directory, entry))
                if not tree.is_file(target):
                    violations.append(Violation(
                        id="kustomize.MISSING_PATCH",
                        message=f"Patch '{entry}' referenced by {file_path} does not exist",
                        path=[file_path, "patches", entry],
                        severity="error",
                        evidence={"resolved": target},
                    ))

            for field_name, entry in self._generator_paths(doc):
                target = normalize(posixpath.join(directory, entry))
                if not tree.is_file(target):
                    violations.append(Violation(
                        id="kustomize.MISSING_GENERATOR_FILE",
                        message=f"File '{entry}' used by {field_name} in {file_path} does not exist",
                        path=[file_path, field_name, entry],
                        severity="error",
                        evidence={"resolved": target},
                    ))

            if directory.startswith("overlays/") and not any(
                t == "base" or t.startswith("base/") for t in resolved_resources
            ):
                violations.append(Violation(
                    id="kustomize.OVERLAY_WITHOUT_BASE",
                    message=f"Overlay '{directory}' does not include the base (expected '../../base' in resources)",
                    path=[file_path, "resources"],
                    severity="error",
                ))

        return violations

    def _check_resource(
        self, tree: ManifestTree, file_path: str, field_name: str, entry: str, target: str
    ) -> List[Violation]:
        if tree.is_file(target):
            return []
        if tree.has_dir(target):
            if find_kustomization_file(tree, target) is None:
                return [Violation(
                    id="kustomize.MISSING_RESOURCE",
                    message=f"Directory '{entry}' referenced by {file_path} has no kustomization.yaml",
                    path=[file_path, field_name, entry],
                    severity="error",
                    evidence={"resolved": target},
                )]
            return []
        return [Violation(
            id="kustomize.MISSING_RESOURCE",
            message=f"Resource '{entry}' referenced by {file_path} does not exist",
            path=[file_path, field_name, entry],
            severity="error",
            evidence={"resolved": target},
        )]

    @staticmethod
    def _patch_paths(doc: Dict[str, Any]) -> List[str]:
        paths = []
        for patch in doc.get("patches") or []:
            if isinstance(patch, dict) and patch.get("path"):
                paths.append(patch["path"])
            elif isinstance(patch, str):
                paths.append(patch)
        for patch in doc.get("patchesStrategicMerge") or []:
            # inline patches are YAML documents, not paths
            if isinstance(patch, str) and "\n" not in patch:
                paths.append(patch)
        for patch in doc.get("patchesJson6902") or []:
            if isinstance(patch, dict) and patch.get("path"):
                paths.append(patch["path"])
        return paths

    @staticmethod
    def _generator_paths(doc: Dict[str, Any]) -> List[Tuple[str, str]]:
        """(generator field, file path) pairs; ``key=path`` entries yield the path."""
        paths = []
        for field_name in ("configMapGenerator", "secretGenerator"):
            for generator in doc.get(field_name) or []:
                if not isinstance(generator, dict):
                    continue
                entries = list(generator.get("files") or []) + list(generator.get("envs") or [])
                if generator.get("env"):
                    entries.append(generator["env"])
                for entry in entries:
                    if isinstance(entry, str) and entry:
                        paths.append((field_name, entry.split("=", 1)[-1]))
        return paths


class WorkloadCheck:
    """Checks Deployments and Services in the repository.

    Partial Deployments under patches/ directories are ignored.
    """

    name = "workloads"

    def __call__(self, tree: ManifestTree) -> List[Violation]:
        violations = []
        template_labels: List[Dict[str, Any]] = []
        services = []

        for file_path, doc in tree.iter_documents():
            if "patches" in PurePosixPath(file_path).parts:
                continue
            kind = doc.get("kind")
            if kind == "Deployment":
                labels = self._check_deployment(file_path, doc, violations)
                template_labels.append(labels)
            elif kind == "Service":
                services.append((file_path, doc))

        for file_path, doc in services:
            selector = (doc.get("spec") or {}).get("selector") or {}
            if not selector:
                continue
            if not any(_is_subset(selector, labels) for labels in template_labels):
                name = (doc.get("metadata") or {}).get("name", "unknown")
                violations.append(Violation(
                    id="workload.SERVICE_SELECTOR_UNMATCHED",
                    message=f"Service {name} selector {dict(selector)} matches no Deployment in the repository",
                    path=[file_path, "spec", "selector"],
                    severity="warning",
                    evidence={"selector": dict(selector)},
                ))

        return violations

    def _check_deployment(self, file_path: str, doc: Dict[str, Any], violations: List[Violation]) -> Dict[str, Any]:
        name = (doc.get("metadata") or {}).get("name", "unknown")
        spec = doc.get("spec") or {}
        template = spec.get("template") or {}
        labels = (template.get("metadata") or {}).get("labels") or {}
        match_labels = (spec.get("selector") or {}).get("matchLabels") or {}

        if not match_labels or not _is_subset(match_labels, labels):
            violations.append(Violation(
                id="workload.SELECTOR_MISMATCH",
                message=f"Deployment {name} selector.matchLabels {dict(match_labels)} must match the pod template labels {dict(labels)}",
                path=[file_path, "spec", "selector"],
                severity="error",
                evidence={"matchLabels": dict(match_labels), "templateLabels": dict(labels)},
            ))

        containers = (template.get("spec") or {}).get("containers") or []
        for i, container in enumerate(containers):
            container_name = container.get("name", f"container-{i}")
            if not container.get("resources"):
                violations.append(Violation(
                    id="workload.MISSING_RESOURCES",
                    message=f"Container {container_name} in Deployment {name} sets no resource requests/limits",
                    path=[file_path, "spec", "template", "spec", "containers", container_name],
                    severity="warning",
                ))
            image = container.get("image", "")
            if image and _uses_latest(image):
                violations.append(Violation(
                    id="workload.LATEST_TAG",
                    message=f"Container {container_name} uses '{image}'; pin a version so Flux deploys what Git says",
                    path=[file_path, "spec", "template", "spec", "containers", container_name, "image"],
                    severity="warning",
                    evidence={"image": image},
                ))

        return labels


class FluxManifestCheck:
    """Checks Flux objects committed to the repository.

    - Kustomization.spec.path must exist in the repository
    - sourceRefs should name a source defined in the repository (sources
      created by the AKS Flux extension are not visible here, so this only
      warns when the repository defines sources of that kind)
    - HelmRelease must name a chart
    """

    name = "flux-manifests"

    def __call__(self, tree: ManifestTree) -> List[Violation]:
        violations = []
        sources: Dict[str, set] = {}
        consumers = []

        for file_path, doc in tree.iter_documents():
            group = api_group(doc)
            kind = doc.get("kind")
            name = (doc.get("metadata") or {}).get("name", "unknown")
            if group == FLUX_SOURCE_GROUP:
                sources.setdefault(kind, set()).add(name)
            elif group in (FLUX_KUSTOMIZE_GROUP, FLUX_HELM_GROUP):
                consumers.append((file_path, doc))

        for file_path, doc in consumers:
            kind = doc.get("kind")
            name = (doc.get("metadata") or {}).get("name", "unknown")
            spec = doc.get("spec") or {}

            if kind == "Kustomization":
                path = normalize(str(spec.get("path", "./")).lstrip("/"))
                if path and not tree.has_dir(path):
                    violations.append(Violation(
                        id="flux.KUSTOMIZATION_PATH_MISSING",
                        message=f"Flux Kustomization {name} points at '{spec.get('path')}', which does not exist in the repository",
                        path=[file_path, "spec", "path"],
                        severity="error",
                        evidence={"path": spec.get("path")},
                    ))
                source_ref = spec.get("sourceRef") or {}
            elif kind == "HelmRelease":
                chart_spec = ((spec.get("chart") or {}).get("spec")) or {}
                if not spec.get("chartRef") and not (chart_spec.get("chart") and chart_spec.get("sourceRef")):
                    violations.append(Violation(
                        id="flux.HELMRELEASE_NO_CHART",
                        message=f"HelmRelease {name} must set spec.chart.spec.chart and spec.chart.spec.sourceRef",
                        path=[file_path, "spec", "chart"],
                        severity="error",
                    ))
                source_ref = chart_spec.get("sourceRef") or spec.get("chartRef") or {}
            else:
                continue

            ref_kind = source_ref.get("kind")
            ref_name = source_ref.get("name")
            if ref_kind in sources and ref_name not in sources[ref_kind]:
                violations.append(Violation(
                    id="flux.UNKNOWN_SOURCE",
                    message=f"{kind} {name} references {ref_kind} '{ref_name}', which is not defined in the repository",
                    path=[file_path, "spec", "sourceRef"],
                    severity="warning",
                    evidence={"kind": ref_kind, "name": ref_name, "defined": sorted(sources[ref_kind])},
                ))

        return violations


class RenderCheck:
    """Renders every overlay with ``kubectl kustomize``.

    The tree is written to a temporary directory first. Skipped (no
    violations) when kubectl is not installed.
    """

    name = "render"

    def __init__(self, runner: Optional[CommandRunner] = None):
        self.runner = runner or CommandRunner()

    def __call__(self, tree: ManifestTree) -> List[Violation]:
        if not self.runner.which("kubectl"):
            logger.info("kubectl not available, skipping render check")
            return []

        overlays = sorted(
            d for d in tree.directories()
            if PurePosixPath(d).parent.as_posix() == "overlays" and find_kustomization_file(tree, d)
        )

        violations = []
        kubectl = Kubectl(self.runner)
        with tempfile.TemporaryDirectory() as tmpdir:
            tree.write_to_dir(tmpdir, overwrite=True)
            for overlay in overlays:
                result = kubectl.kustomize(str(Path(tmpdir) / overlay))
                if not result.ok:
                    violations.append(Violation(
                        id="render.KUSTOMIZE_FAILED",
                        message=f"kubectl kustomize {overlay} failed: {result.stderr.strip()}",
                        path=[overlay],
                        severity="error",
                        evidence={"stderr": result.stderr},
                    ))

        return violations


def _is_subset(subset: Dict[str, Any], superset: Dict[str, Any]) -> bool:
    return all(superset.get(k) == v for k, v in subset.items())


def _uses_latest(image: str) -> bool:
    if "@" in image:
        return False
    last = image.rsplit("/", 1)[-1]
    if ":" not in last:
        return True
    return last.rsplit(":", 1)[1] == "latest"
