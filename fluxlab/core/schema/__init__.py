"""
Schema definitions for check results.

Violations are what checks return; the Check protocol describes the
callables that produce them.
"""

from fluxlab.core.schema.check import Check, check_name
from fluxlab.core.schema.violation import SEVERITIES, Violation

__all__ = [
    "Check",
    "check_name",
    "SEVERITIES",
    "Violation",
]
