"""
fluxlab: AKS + Flux GitOps lab automation

Provisions Azure Kubernetes Service clusters, wires them to the Flux GitOps
extension, scaffolds the base/overlays repository layout that Flux reconciles,
and validates each stage of the lab from the command line.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
