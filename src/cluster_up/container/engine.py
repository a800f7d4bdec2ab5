"""Container engine capability.

The runner, the network probe and the pre-flight checks only talk to the
engine through :class:`EngineClient`. Every method is a coroutine bound to
its own request timeout.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

# Per-request timeout for engine calls, in seconds
DEFAULT_TIMEOUT = 10.0

# Security option the daemon reports when user namespaces are enabled
USERNS_SECURITY_OPTION = "name=userns"

# Output chunk read from an attached container: (stdout, stderr)
StreamChunk = tuple[bytes | None, bytes | None]


@dataclass
class EngineInfo:
    """Subset of the daemon info the core needs."""

    kernel_version: str = ""
    security_options: list[str] = field(default_factory=list)
    insecure_registry_cidrs: list[str] = field(default_factory=list)

    @property
    def userns_enabled(self) -> bool:
        """Whether the daemon runs with user namespaces."""
        return any(
            opt == USERNS_SECURITY_OPTION or opt.startswith(USERNS_SECURITY_OPTION + ",")
            for opt in self.security_options
        )


@dataclass
class ServerVersion:
    """Daemon version information."""

    version: str = ""
    api_version: str = ""


@dataclass
class CreateResult:
    """Result of a container create call."""

    id: str
    warnings: list[str] = field(default_factory=list)


@dataclass
class ContainerState:
    """Inspected container state."""

    id: str
    running: bool = False
    status: str = ""


@dataclass(frozen=True)
class RunnerConfig:
    """Immutable container configuration produced by ContainerRunner.build()."""

    image: str
    name: str | None = None
    entrypoint: tuple[str, ...] = ()
    command: tuple[str, ...] = ()
    binds: tuple[str, ...] = ()
    privileged: bool = False
    userns_mode: str | None = None
    host_network: bool = False
    host_pid: bool = False
    auto_remove: bool = False
    background: bool = False


class AttachStream(Protocol):
    """Combined output stream of an attached container."""

    def __aiter__(self) -> AsyncIterator[StreamChunk]: ...

    async def close(self) -> None: ...


class EngineClient(Protocol):
    """Container lifecycle primitives used by cluster-up."""

    async def info(self) -> EngineInfo: ...

    async def server_version(self) -> ServerVersion: ...

    async def container_create(self, config: RunnerConfig) -> CreateResult: ...

    async def container_attach(self, container_id: str) -> AttachStream: ...

    async def container_start(self, container_id: str) -> None: ...

    async def container_wait(
        self, container_id: str, condition: str = "not-running", timeout: float | None = None
    ) -> int: ...

    async def container_kill(self, container_id: str, signal: str = "KILL") -> None: ...

    async def container_remove(self, container_id: str, force: bool = False) -> None: ...

    async def container_inspect(self, container_id: str) -> ContainerState: ...

    async def close(self) -> None: ...


async def user_namespace_enabled(client: EngineClient) -> bool:
    """Return True if the daemon reports user namespace support."""
    info = await client.info()
    return info.userns_enabled
