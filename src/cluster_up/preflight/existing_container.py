"""Detection of containers left over by a previous cluster."""

from __future__ import annotations

from ..container import EngineClient
from ..defaults import CONTAINER_NAME_ORIGIN
from ..errors import ContainerNotFoundError, EngineCallError, PreflightCheckError
from ..shared.logging import Logger
from .base import EngineValidator

# Containers that must not exist (or must not be running) before cluster up
CONTAINERS_TO_CHECK = (CONTAINER_NAME_ORIGIN,)


class ExistingContainer(EngineValidator):
    """Fails if a previous cluster container is still running.

    Stopped leftovers are force-removed so the next start can reuse the name.
    """

    def __init__(
        self,
        client: EngineClient,
        logger: Logger | None = None,
        names: tuple[str, ...] = CONTAINERS_TO_CHECK,
    ):
        super().__init__(client, logger)
        self.names = names

    def message(self) -> str:
        return "Checking for existing OpenShift containers"

    async def validate(self) -> None:
        for name in self.names:
            await self._validate_container(name)

    async def _validate_container(self, name: str) -> None:
        try:
            state = await self.client.container_inspect(name)
        except ContainerNotFoundError:
            return
        except EngineCallError as e:
            raise self.logger.error("container inspect result", e)

        if state.running:
            raise PreflightCheckError(f"found existing running container {name!r}")

        self.logger.debug(
            f"Found {state.id!r} container in {state.status!r} state, attempting to remove"
        )
        try:
            await self.client.container_remove(state.id, force=True)
        except EngineCallError as e:
            self.logger.error(f"removing {name!r} container failed", e)
