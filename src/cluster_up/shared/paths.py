"""Path management for cluster-up.

Manages ~/.cluster-up/ and the host base directory the cluster state and
container logs are written to.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base directory for cluster-up CLI data (config file)
CLUSTER_UP_DIR = Path.home() / ".cluster-up"

# Prefix of the directories created on the host for cluster state
OPENSHIFT_LOCAL_PREFIX = "openshift.local"


def in_openshift_local(name: str) -> str:
    """Return the directory name used for ``name`` on the host.

    Args:
        name: Short name (e.g., "cluster-up", "etcd")

    Returns:
        e.g. "openshift.local.cluster-up"
    """
    return f"{OPENSHIFT_LOCAL_PREFIX}.{name}"


def make_abs(path: str | Path, base: str | Path | None = None) -> Path:
    """Make ``path`` absolute, relative to ``base`` (default: current directory)."""
    path = Path(path)
    if path.is_absolute():
        return path
    return Path(base or os.getcwd()) / path


def default_base_dir() -> Path:
    """Default host base directory, relative to the current directory."""
    return make_abs(in_openshift_local("cluster-up"))


def resolve_base_dir(base_dir: str | Path | None) -> Path:
    """Resolve the --base-dir value to an absolute path."""
    if not base_dir:
        return default_base_dir()
    return make_abs(base_dir)


def get_container_log_files(base_dir: Path, name: str) -> tuple[Path, Path]:
    """Get the stdout/stderr log paths for a container.

    Args:
        base_dir: Host base directory
        name: Container name

    Returns:
        (stdout log path, stderr log path)
    """
    log_dir = base_dir / "logs"
    return log_dir / f"{name}.stdout.log", log_dir / f"{name}.stderr.log"
