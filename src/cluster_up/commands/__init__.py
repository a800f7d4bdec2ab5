"""CLI commands for cluster-up."""
