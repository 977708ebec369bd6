"""GitOps repository representation.

The lab repository is a tree of YAML files laid out the way Flux's source
and kustomize controllers expect::

    base/                     Deployment, Service, kustomization.yaml
    overlays/dev/             kustomization.yaml referencing ../../base
    overlays/prod/            kustomization.yaml + patches/
    clusters/<env>/           Flux GitRepository, Kustomization, HelmRelease

ManifestTree holds such a tree in memory so checks can run without touching
the filesystem. Files kustomize reads but that are not YAML (JSON patches,
configMapGenerator inputs, .env files) are carried along unparsed.
"""

import io
import posixpath
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterator, List, Set, Tuple

from ruamel.yaml import YAML

YAML_SUFFIXES = (".yaml", ".yml")


def load_documents(content: str) -> List[Any]:
    """Parse every document of a (possibly multi-document) YAML string.

    Empty documents are dropped.

    Raises:
        ruamel.yaml.YAMLError: The content is not valid YAML
    """
    yaml = YAML(typ="safe", pure=True)
    return [doc for doc in yaml.load_all(content) if doc is not None]


def dump_documents(documents: List[Dict[str, Any]]) -> str:
    """Serialize documents to a YAML string, separated by ---."""
    yaml = YAML()
    yaml.default_flow_style = False
    yaml.width = 4096
    yaml.indent(mapping=2, sequence=4, offset=2)
    stream = io.StringIO()
    yaml.dump_all(documents, stream)
    return stream.getvalue()


def normalize(path: str) -> str:
    """Normalize a relative POSIX path ("./a/../b/" -> "b")."""
    normalized = posixpath.normpath(str(PurePosixPath(path)))
    return "" if normalized == "." else normalized


@dataclass(frozen=True)
class ManifestTree:
    """A GitOps repository as a mapping of relative path to YAML text.

    Attributes:
        files: Mapping from POSIX-style relative path to YAML content.
               Example: ``{"base/deployment.yaml": "apiVersion: apps/v1\\n..."}``
        assets: Mapping from relative path to the raw bytes of every other
                file, e.g. ``overlays/prod/patches/ops.json``. Never parsed.

    Example:
        >>> tree = ManifestTree.from_dir("my-gitops-repo")
        >>> tree.has_dir("overlays/prod/patches")
        True
    """
    files: Dict[str, str]
    assets: Dict[str, bytes] = field(default_factory=dict)

    def exists(self, path: str) -> bool:
        """Whether a file or directory exists in the tree."""
        path = normalize(path)
        return self.is_file(path) or self.has_dir(path)

    def is_file(self, path: str) -> bool:
        path = normalize(path)
        return path in self.files or path in self.assets

    def has_dir(self, path: str) -> bool:
        path = normalize(path)
        if path == "":
            return bool(self.files or self.assets)
        return path in self.directories()

    def directories(self) -> Set[str]:
        """Every directory that contains at least one file, at any depth."""
        dirs: Set[str] = set()
        for file_path in list(self.files) + list(self.assets):
            parent = PurePosixPath(file_path).parent
            while str(parent) not in ("", "."):
                dirs.add(str(parent))
                parent = parent.parent
        return dirs

    def documents(self, path: str) -> List[Any]:
        """Parsed YAML documents of one file.

        Raises:
            KeyError: The file is not in the tree
            ruamel.yaml.YAMLError: The file is not valid YAML
        """
        return load_documents(self.files[normalize(path)])

    def iter_documents(self) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Yield (path, document) for every mapping document in the tree.

        Files that fail to parse are skipped; LayoutCheck and
        KustomizationRefCheck report them.
        """
        for file_path in sorted(self.files):
            try:
                docs = self.documents(file_path)
            except Exception:
                continue
            for doc in docs:
                if isinstance(doc, dict):
                    yield file_path, doc

    def write_to_dir(self, dir_path: str, overwrite: bool = False) -> List[str]:
        """Write the files below dir_path.

        Args:
            dir_path: Root directory of the repository
            overwrite: Replace files that already exist

        Returns:
            Relative paths that were written (existing files are skipped
            unless overwrite is set)
        """
        root = Path(dir_path)
        root.mkdir(parents=True, exist_ok=True)

        written = []
        for rel_path, content in sorted(self.files.items()):
            file_path = root / rel_path
            if file_path.exists() and not overwrite:
                continue
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
            written.append(rel_path)
        for rel_path, data in sorted(self.assets.items()):
            file_path = root / rel_path
            if file_path.exists() and not overwrite:
                continue
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(data)
            written.append(rel_path)
        return written

    @classmethod
    def from_dir(cls, dir_path: str) -> "ManifestTree":
        """Load the repository below dir_path.

        YAML files go to ``files``, everything else to ``assets``. Hidden
        files and directories (.git, .github, ...) are ignored.

        Raises:
            FileNotFoundError: dir_path is not a directory
        """
        root = Path(dir_path)
        if not root.is_dir():
            raise FileNotFoundError(f"Repository directory not found: {dir_path}")

        files = {}
        assets = {}
        for file_path in sorted(root.rglob("*")):
            if not file_path.is_file():
                continue
            rel_path = file_path.relative_to(root)
            if any(part.startswith(".") for part in rel_path.parts):
                continue
            if file_path.suffix in YAML_SUFFIXES:
                files[rel_path.as_posix()] = file_path.read_text(encoding="utf-8")
            else:
                assets[rel_path.as_posix()] = file_path.read_bytes()

        return cls(files=files, assets=assets)
