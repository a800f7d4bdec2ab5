"""Shared test fixtures for cluster-up tests.

This module provides:
- FakeEngine: In-memory container engine implementing EngineClient
- RecordingLogger: Logger capturing every event it emits
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any

import pytest

from cluster_up.container import (
    ContainerState,
    CreateResult,
    EngineInfo,
    RunnerConfig,
    ServerVersion,
)
from cluster_up.errors import ContainerNotFoundError
from cluster_up.shared.logging import Logger

# =============================================================================
# Recording logger
# =============================================================================


class RecordingBackend:
    """structlog-like backend that keeps (level, message, values) tuples."""

    def __init__(self):
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def bind(self, **values: Any) -> RecordingBackend:
        return self

    def info(self, message: str, **values: Any) -> None:
        self.events.append(("info", message, values))

    def debug(self, message: str, **values: Any) -> None:
        self.events.append(("debug", message, values))

    def error(self, message: str, **values: Any) -> None:
        self.events.append(("error", message, values))


class RecordingLogger(Logger):
    """Logger that records instead of printing. Logs everything by default."""

    def __init__(self, verbosity: int = 5):
        super().__init__("test", verbosity, RecordingBackend())

    @property
    def events(self) -> list[tuple[str, str, dict[str, Any]]]:
        return self._backend.events

    def messages(self, level: str | None = None) -> list[str]:
        return [msg for lvl, msg, _ in self.events if level is None or lvl == level]


# =============================================================================
# Fake container engine
# =============================================================================


@dataclass
class ContainerScript:
    """Scripted behavior for a container, keyed by container name."""

    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int = 0
    # Keep running until killed
    block: bool = False
    wait_delay: float = 0.0
    warnings: list[str] = field(default_factory=list)


@dataclass
class FakeContainer:
    id: str
    config: RunnerConfig
    script: ContainerScript
    started: asyncio.Event = field(default_factory=asyncio.Event)
    killed: asyncio.Event = field(default_factory=asyncio.Event)
    removed: bool = False


class FakeAttachStream:
    """Attach stream replaying the scripted output."""

    def __init__(self, chunks: list[tuple[bytes | None, bytes | None]]):
        self._chunks = chunks
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            await asyncio.sleep(0)
            yield chunk

    async def close(self) -> None:
        self.closed = True


class FakeEngine:
    """In-memory EngineClient.

    Every call is recorded in ``calls`` as ``(method, *args)``. Failures are
    injected per method (optionally only for one container name) with
    ``fail()``, and container behavior is scripted with ``script()``.
    """

    def __init__(self):
        self.calls: list[tuple[Any, ...]] = []
        self.engine_info = EngineInfo(
            kernel_version="6.1.0",
            insecure_registry_cidrs=["172.30.0.0/16", "127.0.0.0/8"],
        )
        self.version = ServerVersion(version="24.0.7", api_version="1.43")
        # Containers that exist before the test starts, by name
        self.existing: dict[str, ContainerState] = {}
        self.containers: dict[str, FakeContainer] = {}
        self.streams: list[FakeAttachStream] = []
        self.closed = False
        self._scripts: dict[str | None, ContainerScript] = {}
        self._failures: dict[str, list[tuple[str | None, BaseException]]] = {}
        self._ids = itertools.count(1)

    # -- test helpers ------------------------------------------------------

    def script(self, name: str | None, **kwargs: Any) -> ContainerScript:
        self._scripts[name] = ContainerScript(**kwargs)
        return self._scripts[name]

    def fail(self, method: str, err: BaseException, name: str | None = None) -> None:
        self._failures.setdefault(method, []).append((name, err))

    def called(self, method: str) -> list[tuple[Any, ...]]:
        return [c[1:] for c in self.calls if c[0] == method]

    def methods(self) -> list[str]:
        return [c[0] for c in self.calls]

    def created(self) -> list[RunnerConfig]:
        return [c.config for c in self.containers.values()]

    def _maybe_fail(self, method: str, name: str | None) -> None:
        for wanted, err in self._failures.get(method, []):
            if wanted is None or wanted == name:
                raise err

    def _find(self, ref: str, operation: str) -> FakeContainer:
        for container in self.containers.values():
            if container.removed:
                continue
            if ref in (container.id, container.config.name):
                return container
        raise ContainerNotFoundError(f"No such container: {ref}", operation=operation)

    # -- EngineClient ------------------------------------------------------

    async def info(self) -> EngineInfo:
        self.calls.append(("info",))
        self._maybe_fail("info", None)
        return self.engine_info

    async def server_version(self) -> ServerVersion:
        self.calls.append(("server_version",))
        self._maybe_fail("server_version", None)
        return self.version

    async def container_create(self, config: RunnerConfig) -> CreateResult:
        self.calls.append(("container_create", config))
        self._maybe_fail("container_create", config.name)
        container_id = f"{config.name or 'container'}-{next(self._ids)}"
        script = self._scripts.get(config.name) or ContainerScript()
        self.containers[container_id] = FakeContainer(container_id, config, script)
        return CreateResult(id=container_id, warnings=list(script.warnings))

    async def container_attach(self, container_id: str) -> FakeAttachStream:
        self.calls.append(("container_attach", container_id))
        container = self._find(container_id, "container attach")
        self._maybe_fail("container_attach", container.config.name)
        chunks = []
        if container.script.stdout:
            chunks.append((container.script.stdout, None))
        if container.script.stderr:
            chunks.append((None, container.script.stderr))
        stream = FakeAttachStream(chunks)
        self.streams.append(stream)
        return stream

    async def container_start(self, container_id: str) -> None:
        self.calls.append(("container_start", container_id))
        container = self._find(container_id, "container start")
        self._maybe_fail("container_start", container.config.name)
        container.started.set()

    async def container_wait(
        self, container_id: str, condition: str = "not-running", timeout: float | None = None
    ) -> int:
        self.calls.append(("container_wait", container_id, condition))
        container = self._find(container_id, "container wait")
        self._maybe_fail("container_wait", container.config.name)
        await container.started.wait()
        if container.script.block:
            await container.killed.wait()
        elif container.script.wait_delay:
            await asyncio.sleep(container.script.wait_delay)
        return container.script.exit_code

    async def container_kill(self, container_id: str, signal: str = "KILL") -> None:
        self.calls.append(("container_kill", container_id, signal))
        container = self._find(container_id, "container kill")
        self._maybe_fail("container_kill", container.config.name)
        container.killed.set()

    async def container_remove(self, container_id: str, force: bool = False) -> None:
        self.calls.append(("container_remove", container_id, force))
        self._maybe_fail("container_remove", container_id)
        if container_id in self.existing:
            del self.existing[container_id]
            return
        for name, state in list(self.existing.items()):
            if state.id == container_id:
                del self.existing[name]
                return
        self._find(container_id, "container remove").removed = True

    async def container_inspect(self, container_id: str) -> ContainerState:
        self.calls.append(("container_inspect", container_id))
        self._maybe_fail("container_inspect", container_id)
        if container_id in self.existing:
            return self.existing[container_id]
        container = self._find(container_id, "container inspect")
        return ContainerState(
            id=container.id,
            running=container.started.is_set() and not container.killed.is_set(),
            status="running" if container.started.is_set() else "created",
        )

    async def close(self) -> None:
        self.calls.append(("close",))
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def engine() -> FakeEngine:
    """Fresh in-memory container engine."""
    return FakeEngine()


@pytest.fixture
def logger() -> RecordingLogger:
    """Logger recording every event, including wrapped errors."""
    return RecordingLogger()
