"""Docker daemon API version check."""

from __future__ import annotations

from docker.utils import version_lt

from ..container import EngineClient
from ..defaults import MIN_SUPPORTED_DOCKER_VERSION
from ..errors import PreflightCheckError
from ..shared.logging import Logger
from .base import EngineValidator


class DockerVersion(EngineValidator):
    """Fails when the daemon API version is older than the supported minimum."""

    def __init__(
        self,
        client: EngineClient,
        logger: Logger | None = None,
        min_version: str = MIN_SUPPORTED_DOCKER_VERSION,
    ):
        super().__init__(client, logger)
        self.min_version = min_version

    def message(self) -> str:
        return f"Checking if Docker version is >= {self.min_version}"

    async def validate(self) -> None:
        version = await self.client.server_version()
        if not version.api_version or version_lt(version.api_version, self.min_version):
            raise PreflightCheckError(
                f"insufficient Docker version, required >={self.min_version}, "
                f"have {version.api_version or 'unknown'}"
            )
