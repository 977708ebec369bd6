"""Command-line interface for fluxlab."""
