"""cluster-up - Minimal single-node cluster bootstrap on Docker."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cluster-up")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .main import main

__all__ = ["main", "__version__"]
