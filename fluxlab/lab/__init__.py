"""GitOps repository and lab validation for fluxlab.

This module provides:
- ManifestTree: the base/overlays repository as a set of YAML files
- scaffold: generates the lab's starter repository
- layout_checks: static checks over the repository
- cluster_checks: live checks of the provisioned lab
- check_config: named sets of checks
"""
