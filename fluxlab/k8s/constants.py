"""Flux resource kinds and API groups queried by the lab."""

# kubectl resource names, fully qualified so they never clash with other CRDs
GITREPOSITORY = "gitrepositories.source.toolkit.fluxcd.io"
KUSTOMIZATION = "kustomizations.kustomize.toolkit.fluxcd.io"
HELMRELEASE = "helmreleases.helm.toolkit.fluxcd.io"

FLUX_RESOURCES = {
    "gitrepository": GITREPOSITORY,
    "kustomization": KUSTOMIZATION,
    "helmrelease": HELMRELEASE,
}

# apiVersion prefixes
FLUX_SOURCE_GROUP = "source.toolkit.fluxcd.io"
FLUX_KUSTOMIZE_GROUP = "kustomize.toolkit.fluxcd.io"
FLUX_HELM_GROUP = "helm.toolkit.fluxcd.io"
KUSTOMIZE_CONFIG_GROUP = "kustomize.config.k8s.io"
