"""Docker implementation of the engine capability."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import docker
import requests
from docker.utils import version_lt

from ..errors import ContainerNotFoundError, EngineCallError
from .engine import (
    DEFAULT_TIMEOUT,
    ContainerState,
    CreateResult,
    EngineInfo,
    RunnerConfig,
    ServerVersion,
    StreamChunk,
)

_EOF = object()

# Headroom added to the HTTP read timeout of a wait call
WAIT_TIMEOUT_SLACK = 5.0

# Oldest daemon API versions supporting wait conditions and auto-remove
WAIT_CONDITION_MIN_API = "1.30"
AUTO_REMOVE_MIN_API = "1.25"

ENGINE_ERRORS = (docker.errors.DockerException, requests.exceptions.RequestException, OSError)


def _translate(operation: str, exc: BaseException) -> EngineCallError:
    if isinstance(exc, docker.errors.NotFound):
        return ContainerNotFoundError(str(exc), operation=operation)
    return EngineCallError(str(exc), operation=operation)


class DockerAttachStream:
    """Async iterator over a blocking, demultiplexed docker attach stream."""

    def __init__(self, stream: Any, run):
        self._stream = stream
        self._iter = iter(stream)
        self._run = run

    def __aiter__(self) -> DockerAttachStream:
        return self

    async def __anext__(self) -> StreamChunk:
        chunk = await self._run("attach stream", next, self._iter, _EOF)
        if chunk is _EOF:
            raise StopAsyncIteration
        return chunk

    async def close(self) -> None:
        close = getattr(self._stream, "close", None)
        if close is None:
            return
        try:
            close()
        except ENGINE_ERRORS:
            pass  # Stream already torn down


class DockerEngineClient:
    """
    Async wrapper around the blocking docker-py low-level client.
    Each call runs in a thread pool and is bounded by the client timeout.
    """

    def __init__(self, api: Any | None = None, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout
        if api is None:
            try:
                api = docker.from_env(version="auto", timeout=int(timeout)).api
            except ENGINE_ERRORS as e:
                raise _translate("docker client", e) from e
        self._api = api
        # capture and wait each hold a worker for a container's lifetime
        self._executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="docker")

    async def _run(self, operation: str, func, *args, **kwargs):
        """Run blocking function in thread pool, translating engine errors."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, lambda: func(*args, **kwargs))
        except ENGINE_ERRORS as e:
            raise _translate(operation, e) from e

    async def info(self) -> EngineInfo:
        data = await self._run("docker info", self._api.info)
        registry = data.get("RegistryConfig") or {}
        return EngineInfo(
            kernel_version=data.get("KernelVersion") or "",
            security_options=list(data.get("SecurityOptions") or []),
            insecure_registry_cidrs=[str(c) for c in registry.get("InsecureRegistryCIDRs") or []],
        )

    async def server_version(self) -> ServerVersion:
        data = await self._run("server version", self._api.version)
        return ServerVersion(
            version=data.get("Version") or "",
            api_version=data.get("ApiVersion") or "",
        )

    def _api_older_than(self, version: str) -> bool:
        return version_lt(self._api.api_version, version)

    def _host_config(self, config: RunnerConfig) -> dict[str, Any]:
        # Older daemons leave removal to the runner's force-remove exit hook
        auto_remove = config.auto_remove and not self._api_older_than(AUTO_REMOVE_MIN_API)
        return self._api.create_host_config(
            binds=list(config.binds) or None,
            privileged=config.privileged,
            userns_mode=config.userns_mode,
            network_mode="host" if config.host_network else None,
            pid_mode="host" if config.host_pid else None,
            auto_remove=auto_remove,
        )

    async def container_create(self, config: RunnerConfig) -> CreateResult:
        def _create():
            return self._api.create_container(
                image=config.image,
                name=config.name,
                entrypoint=list(config.entrypoint) or None,
                command=list(config.command) or None,
                host_config=self._host_config(config),
            )

        data = await self._run("container create", _create)
        return CreateResult(id=data["Id"], warnings=list(data.get("Warnings") or []))

    async def container_attach(self, container_id: str) -> DockerAttachStream:
        stream = await self._run(
            "container attach",
            self._api.attach,
            container_id,
            stdout=True,
            stderr=True,
            stream=True,
            logs=False,
            demux=True,
        )
        return DockerAttachStream(stream, self._run)

    async def container_start(self, container_id: str) -> None:
        await self._run("container start", self._api.start, container_id)

    async def container_wait(
        self, container_id: str, condition: str = "not-running", timeout: float | None = None
    ) -> int:
        read_timeout = None if timeout is None else timeout + WAIT_TIMEOUT_SLACK
        kwargs: dict[str, Any] = {"timeout": read_timeout}
        if not self._api_older_than(WAIT_CONDITION_MIN_API):
            kwargs["condition"] = condition
        data = await self._run("container wait", self._api.wait, container_id, **kwargs)
        error = data.get("Error") or {}
        if error.get("Message"):
            raise EngineCallError(error["Message"], operation="container wait")
        return int(data.get("StatusCode", -1))

    async def container_kill(self, container_id: str, signal: str = "KILL") -> None:
        await self._run("container kill", self._api.kill, container_id, signal=signal)

    async def container_remove(self, container_id: str, force: bool = False) -> None:
        try:
            await self._run(
                "container remove", self._api.remove_container, container_id, force=force
            )
        except EngineCallError as e:
            # 409: removal of the container is already in progress
            cause = e.__cause__
            if isinstance(cause, docker.errors.APIError) and cause.status_code == 409:
                return
            raise

    async def container_inspect(self, container_id: str) -> ContainerState:
        data = await self._run("container inspect", self._api.inspect_container, container_id)
        state = data.get("State") or {}
        return ContainerState(
            id=data.get("Id", container_id),
            running=bool(state.get("Running")),
            status=state.get("Status") or "",
        )

    async def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._api.close()
