"""Container lifecycle runner.

A ContainerRunner accumulates configuration through chained builder calls,
then ``run()`` drives the container through create, attach, start, on-start
hooks, wait and on-exit hooks::

    result = await (
        ContainerRunner(client, logger=logger)
        .discard()
        .host_network()
        .entrypoint("hostname")
        .command("-I")
        .run(image, "test-additional-ips")
    )

Engine failures, non-zero exit codes and hook failures never raise out of
``run()``; the first one is recorded on the result. On-exit hooks run on
every path once the container exists.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import (
    ConfigurationError,
    ContainerNotFoundError,
    EngineCallError,
    ExitStatusError,
    WaitTimeoutError,
)
from ..shared.logging import Logger, get_logger
from ..shared.paths import get_container_log_files
from .engine import AttachStream, EngineClient, RunnerConfig, user_namespace_enabled

# Hooks receive the container id and raise to signal failure
Hook = Callable[[str], Awaitable[None]]

# Maximum time to wait for a foreground container to exit
DEFAULT_WAIT_TIMEOUT = 60.0

# Maximum time to let output capture finish once the container is gone
OUTPUT_DRAIN_TIMEOUT = 5.0

ROOT_FS_BIND = "/:/rootfs:ro"


@dataclass
class RunnerResult:
    """Outcome of a ContainerRunner.run() call."""

    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)
    error: BaseException | None = None
    container_id: str | None = None
    exit_code: int | None = None


class ContainerRunner:
    """Builder and lifecycle driver for a single container."""

    def __init__(
        self,
        client: EngineClient,
        base_dir: str | Path | None = None,
        logger: Logger | None = None,
        wait_timeout: float = DEFAULT_WAIT_TIMEOUT,
    ):
        """Initialize runner.

        Args:
            client: Container engine client.
            base_dir: Host base directory. When set, captured output is
                written to ``<base_dir>/logs`` once the container exits.
            logger: Logging capability.
            wait_timeout: Seconds to wait for a foreground container to exit.
        """
        self.client = client
        self.base_dir = Path(base_dir) if base_dir else None
        self.logger = logger or get_logger(__name__)
        self.wait_timeout = wait_timeout

        self._image: str | None = None
        self._name: str | None = None
        self._entrypoint: tuple[str, ...] = ()
        self._command: tuple[str, ...] = ()
        self._binds: list[str] = []
        self._privileged = False
        self._host_network = False
        self._host_pid = False
        self._discard = False
        self._background = False
        self._on_start: list[Hook] = []
        self._on_exit: list[Hook] = []

        self._result = RunnerResult()
        self._ran = False
        self._config: RunnerConfig | None = None
        self._stream: AttachStream | None = None
        self._capture_task: asyncio.Task | None = None

    # -- builder -----------------------------------------------------------

    def _configurable(self) -> bool:
        if self._result.container_id is not None:
            raise ConfigurationError(
                "container configuration cannot change once the container was created"
            )
        return self._result.error is None

    def image(self, image: str) -> ContainerRunner:
        if self._configurable():
            self._image = image
        return self

    def name(self, name: str) -> ContainerRunner:
        if self._configurable():
            self._name = name
        return self

    def discard(self) -> ContainerRunner:
        """Remove the container once it exits."""
        if self._configurable():
            self._discard = True
        return self

    def privileged(self) -> ContainerRunner:
        """Run privileged; shares the host user namespace if the daemon uses userns."""
        if self._configurable():
            self._privileged = True
        return self

    def host_pid(self) -> ContainerRunner:
        if self._configurable():
            self._host_pid = True
        return self

    def host_network(self) -> ContainerRunner:
        if self._configurable():
            self._host_network = True
        return self

    def bind(self, *binds: str) -> ContainerRunner:
        """Add ``host:container[:mode]`` bind mounts."""
        if self._configurable():
            for b in binds:
                if b not in self._binds:
                    self._binds.append(b)
        return self

    def mount_root_fs(self) -> ContainerRunner:
        """Mount the host root filesystem read-only at /rootfs."""
        return self.bind(ROOT_FS_BIND)

    def entrypoint(self, *cmd: str) -> ContainerRunner:
        if self._configurable():
            self._entrypoint = tuple(cmd)
        return self

    def command(self, *args: str) -> ContainerRunner:
        if self._configurable():
            self._command = tuple(args)
        return self

    def background(self) -> ContainerRunner:
        """Return as soon as the container started; nothing is captured or awaited."""
        if self._on_exit:
            raise ConfigurationError("on-exit hooks cannot be used with a background container")
        if self._configurable():
            self._background = True
        return self

    def on_start(self, hook: Hook) -> ContainerRunner:
        """Run ``hook`` right after the container started."""
        if self._configurable():
            self._on_start.append(hook)
        return self

    def on_exit(self, hook: Hook) -> ContainerRunner:
        """Run ``hook`` once the container finished or the run aborted."""
        if self._background:
            raise ConfigurationError("on-exit hooks cannot be used with a background container")
        if self._configurable():
            self._on_exit.append(hook)
        return self

    async def build(self) -> RunnerConfig:
        """Validate the accumulated configuration.

        Returns:
            Immutable RunnerConfig.

        Raises:
            ConfigurationError: No image was set.
            EngineCallError: User namespace support could not be checked.
        """
        if not self._image:
            raise ConfigurationError("container image is required")
        userns_mode = None
        if self._privileged:
            try:
                if await user_namespace_enabled(self.client):
                    userns_mode = "host"
            except EngineCallError as e:
                raise self.logger.error("unable to check user namespace support", e)
        return RunnerConfig(
            image=self._image,
            name=self._name,
            entrypoint=self._entrypoint,
            command=self._command,
            binds=tuple(self._binds),
            privileged=self._privileged,
            userns_mode=userns_mode,
            host_network=self._host_network,
            host_pid=self._host_pid,
            auto_remove=self._discard,
            background=self._background,
        )

    # -- lifecycle ---------------------------------------------------------

    async def run(self, image: str, name: str | None = None) -> RunnerResult:
        """Create and run the container.

        Calling run() again returns the first result without touching the
        engine.
        """
        if self._ran:
            return self._result
        self._ran = True

        self.image(image)
        if name:
            self.name(name)
        try:
            config = await self.build()
        except EngineCallError as e:
            self._record(e)
            return self._result
        self._config = config
        label = self._label()

        try:
            created = await self.client.container_create(config)
        except EngineCallError as e:
            self._record(
                self.logger.error(f"container {label!r} ({config.image!r}) failed to run", e)
            )
            return self._result
        for warning in created.warnings:
            self.logger.info(f"Container {label!r} produced warning: {warning}")
        self._result.container_id = created.id

        try:
            await self._run_container(config, created.id)
        finally:
            await self._run_hooks(self._exit_hooks(config), "on-exit", created.id)
        return self._result

    async def _run_container(self, config: RunnerConfig, container_id: str) -> None:
        label = self._label()
        waiter: asyncio.Task | None = None
        try:
            if not config.background:
                try:
                    self._stream = await self.client.container_attach(container_id)
                except EngineCallError as e:
                    self._record(self.logger.error(f"failed to attach to container {label!r}", e))
                    return
                self._capture_task = asyncio.create_task(self._capture(self._stream))
                # Issue the wait before starting. The request may still reach the
                # daemon after a fast auto-removed container is gone, see _wait.
                condition = "removed" if config.auto_remove else "next-exit"
                waiter = asyncio.create_task(
                    self.client.container_wait(container_id, condition, self.wait_timeout)
                )
                await asyncio.sleep(0)

            self.logger.debug(
                "Starting container",
                name=label,
                image=config.image,
                entrypoint=" ".join(config.entrypoint),
                command=" ".join(config.command),
            )
            started = time.monotonic()
            try:
                await self.client.container_start(container_id)
            except EngineCallError as e:
                self._record(self.logger.error(f"failed to start container {label!r}", e))
                return

            if not await self._run_hooks(self._on_start, "on-start", container_id):
                if not config.background:
                    await self._terminate(container_id)
                return
            if config.background or waiter is None:
                return
            await self._wait(config, container_id, waiter, started)
        finally:
            if waiter is not None and not waiter.done():
                waiter.cancel()
            await self._drain_output()

    async def _wait(
        self,
        config: RunnerConfig,
        container_id: str,
        waiter: asyncio.Task,
        started: float,
    ) -> None:
        label = self._label()
        try:
            exit_code = await asyncio.wait_for(waiter, timeout=self.wait_timeout)
        except asyncio.TimeoutError:
            self._record(WaitTimeoutError(name=label, timeout=self.wait_timeout))
            await self._terminate(container_id)
            return
        except EngineCallError as e:
            if isinstance(e, ContainerNotFoundError) and config.auto_remove:
                # Exited and removed before the wait reached the daemon
                self.logger.debug("Container already removed, exit code unknown", name=label)
                return
            self._record(
                self.logger.error(f"container {label!r} ({config.image!r}) failed to finish", e)
            )
            return

        self._result.exit_code = exit_code
        self.logger.debug(
            "Container finished",
            name=label,
            image=config.image,
            took=f"{time.monotonic() - started:.2f}s",
            exit_code=exit_code,
        )
        if exit_code != 0:
            await self._drain_output()
            self._record(
                ExitStatusError(
                    name=label,
                    exit_code=exit_code,
                    output=self.combined_output().decode("utf-8", errors="replace"),
                )
            )

    async def _terminate(self, container_id: str) -> None:
        """Kill and remove a container we stopped waiting for."""
        try:
            await self.client.container_kill(container_id, "KILL")
        except EngineCallError as e:
            self.logger.error(f"failed to kill container {self._label()!r}", e)
        try:
            await self.client.container_remove(container_id, force=True)
        except ContainerNotFoundError:
            pass
        except EngineCallError as e:
            self.logger.error(f"failed to remove container {self._label()!r}", e)

    async def _capture(self, stream: AttachStream) -> None:
        try:
            async for stdout, stderr in stream:
                if stdout:
                    self._result.stdout.extend(stdout)
                if stderr:
                    self._result.stderr.extend(stderr)
        except EngineCallError as e:
            self.logger.error("failed to read container logs", e)

    async def _drain_output(self) -> None:
        task, self._capture_task = self._capture_task, None
        if task is None:
            return
        try:
            await asyncio.wait_for(task, timeout=OUTPUT_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            self.logger.debug("Output capture did not finish, closing stream", name=self._label())
        finally:
            if self._stream is not None:
                await self._stream.close()

    async def _run_hooks(self, hooks: list[Hook], kind: str, container_id: str) -> bool:
        """Run hooks in order, stopping at the first failure."""
        for hook in hooks:
            try:
                await hook(container_id)
            except Exception as e:
                self._record(self.logger.error(f"{kind} hook failed", e))
                return False
        return True

    def _exit_hooks(self, config: RunnerConfig) -> list[Hook]:
        if config.background:
            return []
        hooks: list[Hook] = []
        if config.auto_remove:
            hooks.append(self._remove_container)
        if self.base_dir is not None:
            hooks.append(self._store_logs)
        return hooks + self._on_exit

    async def _remove_container(self, container_id: str) -> None:
        try:
            await self.client.container_remove(container_id, force=True)
        except ContainerNotFoundError:
            pass  # Already removed by the engine

    async def _store_logs(self, container_id: str) -> None:
        if self.base_dir is None:
            return
        stdout_file, stderr_file = get_container_log_files(
            self.base_dir, self._name or container_id[:12]
        )
        for path, data in ((stdout_file, self._result.stdout), (stderr_file, self._result.stderr)):
            if not data:
                continue
            self.logger.debug("Writing container log", path=str(path))
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(bytes(data))
            except OSError as e:
                self.logger.error(f"unable to write container log {str(path)!r}", e)
                return

    def _record(self, err: BaseException) -> None:
        """Keep the first terminal error."""
        if self._result.error is None:
            self._result.error = err
        elif err is not self._result.error:
            self.logger.debug("Ignoring subsequent error", error=str(err))

    def _label(self) -> str:
        return self._name or self._image or ""

    # -- results -----------------------------------------------------------

    @property
    def result(self) -> RunnerResult:
        return self._result

    @property
    def container_id(self) -> str | None:
        return self._result.container_id

    def error(self) -> BaseException | None:
        """First terminal error recorded by run(), if any."""
        return self._result.error

    def output(self) -> bytes:
        """Captured stdout, stripped of surrounding whitespace."""
        if self._background:
            self.logger.debug("Output requested for a background container", name=self._label())
            return b""
        return bytes(self._result.stdout).strip()

    def error_output(self) -> bytes:
        """Captured stderr, stripped of surrounding whitespace."""
        if self._background:
            self.logger.debug("Output requested for a background container", name=self._label())
            return b""
        return bytes(self._result.stderr).strip()

    def combined_output(self) -> bytes:
        return b"\n".join(o for o in (self.output(), self.error_output()) if o)
