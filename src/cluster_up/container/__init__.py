"""Container engine access and the container lifecycle runner."""

from .engine import (
    AttachStream,
    ContainerState,
    CreateResult,
    EngineClient,
    EngineInfo,
    RunnerConfig,
    ServerVersion,
    user_namespace_enabled,
)
from .runner import DEFAULT_WAIT_TIMEOUT, ContainerRunner, Hook, RunnerResult

__all__ = [
    # Engine capability
    "AttachStream",
    "ContainerState",
    "CreateResult",
    "EngineClient",
    "EngineInfo",
    "RunnerConfig",
    "ServerVersion",
    "user_namespace_enabled",
    # Runner
    "DEFAULT_WAIT_TIMEOUT",
    "ContainerRunner",
    "Hook",
    "RunnerResult",
]
