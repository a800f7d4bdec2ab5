"""Pre-flight checks run before any cluster container is created.

This package provides:
1. Docker API version check
2. Insecure registry configuration check
3. Stale cluster container detection (and cleanup of stopped ones)
4. Local socat availability (only with port forwarding)
"""

from __future__ import annotations

from ..container import EngineClient
from ..shared.logging import Logger
from .base import EngineValidator, Validator, ValidatorChain
from .docker_version import DockerVersion
from .existing_container import CONTAINERS_TO_CHECK, ExistingContainer
from .insecure_registry import InsecureRegistry
from .socat import Socat


def new_validator(
    client: EngineClient,
    port_forward: bool = False,
    skip_registry_check: bool = False,
    logger: Logger | None = None,
) -> ValidatorChain:
    """Build the pre-flight validator chain.

    Args:
        client: Container engine client shared by the engine checks.
        port_forward: Whether ports will be forwarded (requires local socat).
        skip_registry_check: Leave out the insecure registry check.
        logger: Logging capability.

    Returns:
        ValidatorChain ready to validate().
    """
    chain = ValidatorChain(logger)
    chain.add(DockerVersion(client, logger))
    if not skip_registry_check:
        chain.add(InsecureRegistry(client, logger))
    chain.add(ExistingContainer(client, logger))
    if port_forward:
        chain.add(Socat(logger))
    return chain


__all__ = [
    "CONTAINERS_TO_CHECK",
    "DockerVersion",
    "EngineValidator",
    "ExistingContainer",
    "InsecureRegistry",
    "Socat",
    "Validator",
    "ValidatorChain",
    "new_validator",
]
