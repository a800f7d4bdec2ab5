"""CLI configuration management.

Handles persistent CLI configuration stored in ~/.cluster-up/config.yaml.
Supports environment variable overrides and CLI flag precedence.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .defaults import DEFAULT_IMAGE_PREFIX, DEFAULT_IMAGE_TAG, origin_image
from .shared.logging import DEFAULT_VERBOSITY
from .shared.paths import CLUSTER_UP_DIR

# Environment variable mappings
ENV_VARS = {
    "image": "CLUSTER_UP_IMAGE",
    "tag": "CLUSTER_UP_TAG",
    "base_dir": "CLUSTER_UP_BASE_DIR",
    "loglevel": "CLUSTER_UP_LOGLEVEL",
}

CONFIG_KEYS = tuple(ENV_VARS)


@dataclass
class ClusterUpConfig:
    """CLI configuration."""

    image: str = DEFAULT_IMAGE_PREFIX
    tag: str = DEFAULT_IMAGE_TAG
    base_dir: str = ""
    loglevel: int = DEFAULT_VERBOSITY

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def origin_image(self) -> str:
        """Origin image pull spec for the configured prefix and tag."""
        return origin_image(self.image, self.tag)

    def apply_overrides(self, **overrides: Any) -> "ClusterUpConfig":
        """Apply CLI flag values. None means the flag was not given."""
        for key, value in overrides.items():
            if key not in CONFIG_KEYS or value is None:
                continue
            setattr(self, key, _coerce(key, value))
            self._sources[key] = "flag"
        return self


def _coerce(key: str, value: Any) -> Any:
    if key == "loglevel":
        return int(value)
    return str(value)


def get_config_path() -> Path:
    """Get the CLI config file path.

    Returns:
        Path to ~/.cluster-up/config.yaml
    """
    return CLUSTER_UP_DIR / "config.yaml"


def load_config() -> ClusterUpConfig:
    """Load CLI configuration.

    Precedence (highest to lowest):
    1. CLI flags (see ClusterUpConfig.apply_overrides)
    2. Environment variables
    3. Config file (~/.cluster-up/config.yaml)
    4. Defaults

    Returns:
        ClusterUpConfig with values and sources
    """
    config = ClusterUpConfig()
    sources: dict[str, str] = {key: "default" for key in CONFIG_KEYS}

    # Load from config file
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}

            for key in CONFIG_KEYS:
                if key in file_config:
                    setattr(config, key, _coerce(key, file_config[key]))
                    sources[key] = "config file"
        except (OSError, ValueError, TypeError, AttributeError, yaml.YAMLError):
            pass  # Ignore config file errors, use defaults

    # Override with environment variables
    for key, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if not value:
            continue
        try:
            setattr(config, key, _coerce(key, value))
            sources[key] = "environment"
        except ValueError:
            pass

    config._sources = sources
    return config
