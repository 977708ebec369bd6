"""Helpers for reading status conditions of Flux resources."""

from typing import Any, Dict, List, Optional, Tuple


def get_conditions(resource: Dict[str, Any]) -> List[Dict[str, Any]]:
    return (resource.get("status") or {}).get("conditions") or []


def find_condition(resource: Dict[str, Any], condition_type: str) -> Optional[Dict[str, Any]]:
    for condition in get_conditions(resource):
        if condition.get("type") == condition_type:
            return condition
    return None


def ready_condition(resource: Dict[str, Any]) -> Tuple[bool, str, str]:
    """Read the Ready condition of a resource.

    Args:
        resource: Kubernetes object as parsed from kubectl JSON output

    Returns:
        Tuple of (ready, reason, message). A resource without a Ready
        condition is reported as not ready with reason "Unknown".
    """
    condition = find_condition(resource, "Ready")
    if condition is None:
        return False, "Unknown", "no Ready condition reported yet"
    ready = str(condition.get("status", "")).lower() == "true"
    return ready, condition.get("reason", ""), condition.get("message", "")


def resource_id(resource: Dict[str, Any]) -> str:
    """"namespace/name" of a resource."""
    metadata = resource.get("metadata", {})
    namespace = metadata.get("namespace")
    name = metadata.get("name", "<unnamed>")
    return f"{namespace}/{name}" if namespace else name


def summarize(resource: Dict[str, Any]) -> str:
    """One printable status line for a resource."""
    ready, reason, message = ready_condition(resource)
    mark = "✓" if ready else "✗"
    line = f"{mark} {resource_id(resource)}"
    if reason:
        line += f" [{reason}]"
    if message and not ready:
        line += f": {message}"
    return line
