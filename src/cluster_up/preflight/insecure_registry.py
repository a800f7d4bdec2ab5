"""Insecure registry configuration check."""

from __future__ import annotations

from ..container import EngineClient
from ..defaults import INSECURE_REGISTRY_ADDRESS
from ..errors import PreflightCheckError
from ..shared.logging import Logger
from .base import EngineValidator


class InsecureRegistry(EngineValidator):
    """Fails unless the daemon trusts the cluster registry CIDR as insecure."""

    def __init__(
        self,
        client: EngineClient,
        logger: Logger | None = None,
        address: str = INSECURE_REGISTRY_ADDRESS,
    ):
        super().__init__(client, logger)
        self.address = address

    def message(self) -> str:
        return f"Checking insecure registry configuration has {self.address}"

    async def validate(self) -> None:
        info = await self.client.info()
        cidrs = [c.strip("[]") for c in info.insecure_registry_cidrs]
        if any(self.address in cidr for cidr in cidrs):
            return
        raise self.logger.error(
            "insecure registry",
            PreflightCheckError(
                f"insecure registry {self.address!r} must be configured in Docker "
                f"(found: {','.join(cidrs)!r})"
            ),
        )
