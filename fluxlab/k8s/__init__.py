"""Kubernetes side of the lab.

- Kubectl: queries the cluster and renders overlays with kubectl kustomize
- conditions: reads Ready conditions from Flux custom resources
"""
