"""Core building blocks for fluxlab.

Configuration, error types, external command execution, check results
and the verifier that runs checks.
"""
