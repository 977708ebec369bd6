"""Azure side of the lab.

- AzureCli: one method per az invocation the lab needs
- setup: provisions resource group, cluster, Flux extension and configuration
- cleanup: removes them again
"""
