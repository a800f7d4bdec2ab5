"""Shared modules for cluster-up.

This module provides functionality used across commands:
- Logging (structlog setup and the injected Logger capability)
- Paths (CLI directory, host base directory, container log files)
"""

from .logging import Logger, configure_logging, get_logger, level_for_verbosity
from .paths import (
    CLUSTER_UP_DIR,
    default_base_dir,
    get_container_log_files,
    in_openshift_local,
    make_abs,
    resolve_base_dir,
)

__all__ = [
    # Paths
    "CLUSTER_UP_DIR",
    "default_base_dir",
    "get_container_log_files",
    "in_openshift_local",
    "make_abs",
    "resolve_base_dir",
    # Logging
    "Logger",
    "configure_logging",
    "get_logger",
    "level_for_verbosity",
]
