"""Centralized configuration loading for fluxlab.

Settings come from three places, in order of precedence: command-line
flags, a config.json file, and environment variables. The helpers here read
the file and the environment; :func:`resolve_settings` merges them with the
parsed command-line arguments into a :class:`LabSettings`.

Example config.json::

    {
      "lab": {"student_alias": "jdoe", "location": "westeurope"},
      "github": {"user": "jdoe", "repo_name": "aks-gitops-lab"}
    }
"""

import json
import logging
import os
import re
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from fluxlab.core.errors import LabConfigError

logger = logging.getLogger(__name__)

CLUSTER_TYPES = {
    "aks": "managedClusters",
    "arc": "connectedClusters",
}

ENVIRONMENTS = ("dev", "prod")

ALIAS_PATTERN = re.compile(r"^[a-z][a-z0-9]{1,11}$")


def load_config(config_path: str = "config.json") -> Dict[str, Any]:
    """Load configuration from JSON file.

    Returns empty dict if file doesn't exist or is invalid.

    Args:
        config_path: Path to config.json file (default: "config.json")

    Returns:
        Configuration dictionary, or empty dict if file not found/invalid
    """
    path = Path(config_path)

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable config file {config_path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {config_path}: top level must be an object")
        return {}
    return data


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Get nested configuration value with fallback to environment variable.

    Supports key paths like ["lab", "location"] or ["github", "user"].
    Also checks environment variables as fallback (e.g., LAB_LOCATION for
    lab.location, GITHUB_USER for github.user).

    Args:
        keys: List of keys to traverse (e.g., ["lab", "location"])
        default: Default value if key not found
        config: Optional config dict (uses load_config() if not provided)

    Returns:
        Configuration value, or default if not found
    """
    if config is None:
        config = load_config()

    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
            if value is None:
                break
        else:
            value = None
            break

    if value is not None:
        return value

    env_key = "_".join(k.upper() for k in keys)
    env_value = os.environ.get(env_key)
    if env_value is not None:
        return env_value

    return default


@dataclass
class LabSettings:
    """Everything needed to provision, validate and tear down one lab.

    Names of the Azure resources are derived from the student alias so that
    several students can share one subscription.
    """

    student_alias: str
    location: str = "eastus"
    github_user: Optional[str] = None
    repo_name: str = "aks-gitops-lab"
    branch: str = "main"
    cluster_type: str = "aks"
    environment: str = "dev"
    node_count: int = 2
    node_vm_size: str = "Standard_B2s"
    flux_namespace: str = "flux-system"
    config_name: str = "gitops-config"
    app_namespace: str = "gitops-demo"
    no_wait: bool = False

    @property
    def resource_group(self) -> str:
        return f"rg-gitops-{self.student_alias}"

    @property
    def cluster_name(self) -> str:
        return f"{self.cluster_type}-gitops-{self.student_alias}"

    @property
    def azure_cluster_type(self) -> str:
        return CLUSTER_TYPES[self.cluster_type]

    @property
    def repo_url(self) -> str:
        return f"https://github.com/{self.github_user}/{self.repo_name}"

    @property
    def overlay_path(self) -> str:
        return f"./overlays/{self.environment}"

    def validate(self) -> "LabSettings":
        """Check the settings, raising LabConfigError on the first problem.

        Returns:
            self, so calls can be chained
        """
        if not self.student_alias:
            raise LabConfigError(
                "A student alias is required (--student-alias, lab.student_alias "
                "in config.json, or LAB_STUDENT_ALIAS)"
            )
        if not ALIAS_PATTERN.match(self.student_alias):
            raise LabConfigError(
                f"Invalid student alias '{self.student_alias}': use 2-12 lowercase "
                "letters or digits, starting with a letter"
            )
        if not self.location:
            raise LabConfigError("An Azure location is required")
        if self.cluster_type not in CLUSTER_TYPES:
            raise LabConfigError(
                f"Unknown cluster type '{self.cluster_type}'. "
                f"Available: {', '.join(CLUSTER_TYPES)}"
            )
        if self.environment not in ENVIRONMENTS:
            raise LabConfigError(
                f"Unknown environment '{self.environment}'. "
                f"Available: {', '.join(ENVIRONMENTS)}"
            )
        if int(self.node_count) < 1:
            raise LabConfigError("Node count must be at least 1")
        return self

    def require_github_user(self) -> str:
        if not self.github_user:
            raise LabConfigError(
                "A GitHub user is required to configure Flux (--github-user, "
                "github.user in config.json, or GITHUB_USER)"
            )
        return self.github_user

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# (settings field, argparse attribute, config keys)
_SETTING_SOURCES = [
    ("student_alias", "student_alias", ["lab", "student_alias"]),
    ("location", "location", ["lab", "location"]),
    ("github_user", "github_user", ["github", "user"]),
    ("repo_name", "repo_name", ["github", "repo_name"]),
    ("branch", "branch", ["github", "branch"]),
    ("cluster_type", "cluster_type", ["lab", "cluster_type"]),
    ("environment", "environment", ["lab", "environment"]),
    ("node_count", "node_count", ["aks", "node_count"]),
    ("node_vm_size", "node_vm_size", ["aks", "node_vm_size"]),
    ("flux_namespace", "flux_namespace", ["flux", "namespace"]),
    ("config_name", "config_name", ["flux", "config_name"]),
    ("app_namespace", "app_namespace", ["lab", "app_namespace"]),
]


def resolve_settings(
    args: Any = None,
    config: Optional[Dict[str, Any]] = None,
    fallback: Optional[Dict[str, Any]] = None,
) -> LabSettings:
    """Build LabSettings from CLI args, config.json, environment and defaults.

    Args:
        args: argparse Namespace (attributes that are None are ignored)
        config: Parsed config.json (loaded from the working directory if None)
        fallback: Previously saved settings (e.g. from the lab state file),
                  used only where nothing else provides a value

    Returns:
        Unvalidated LabSettings; call validate() before use
    """
    if config is None:
        config = load_config()
    fallback = fallback or {}

    values: Dict[str, Any] = {}
    for field_name, arg_name, keys in _SETTING_SOURCES:
        value = getattr(args, arg_name, None) if args is not None else None
        if value is None:
            value = get_config_value(keys, config=config)
        if value is None:
            value = fallback.get(field_name)
        if value is not None:
            values[field_name] = value

    if "node_count" in values:
        try:
            values["node_count"] = int(values["node_count"])
        except (TypeError, ValueError):
            raise LabConfigError(f"Node count must be an integer, got {values['node_count']!r}")

    values["no_wait"] = bool(getattr(args, "no_wait", False)) if args is not None else False
    values.setdefault("student_alias", "")
    return LabSettings(**values)
