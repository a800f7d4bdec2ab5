"""Error types for cluster-up.

Configuration errors are raised straight away. Engine, exit-status and
timeout errors are recorded by the container runner and returned to the
caller. Validation failures are collected by the pre-flight chain and
reported together.
"""

from dataclasses import dataclass, field


@dataclass
class ClusterUpError(Exception):
    """Base error class for cluster-up errors."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ConfigurationError(ClusterUpError):
    """Invalid use of the API, e.g. exit hooks on a background runner."""


@dataclass
class EngineCallError(ClusterUpError):
    """A container engine call failed."""

    operation: str = ""

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


@dataclass
class ContainerNotFoundError(EngineCallError):
    """The engine reported that a container does not exist."""


@dataclass
class ValidationFailure(ClusterUpError):
    """One or more pre-flight validators failed."""

    message: str = ""
    messages: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"validation failed with {self.count} errors:\n" + "\n".join(
                self.messages
            )

    @property
    def count(self) -> int:
        """Number of failed validators."""
        return len(self.messages)


@dataclass
class PreflightCheckError(ClusterUpError):
    """A single pre-flight check failed."""


@dataclass
class ProbeTimeoutError(ClusterUpError):
    """The host IP probe did not finish in time."""

    message: str = "failed to determine the host IP address"


@dataclass
class DialError(ClusterUpError):
    """A TCP dial did not succeed within the allowed retries."""

    address: str = ""


@dataclass
class ExitStatusError(ClusterUpError):
    """A foreground container exited with a non-zero status."""

    message: str = ""
    name: str = ""
    exit_code: int = 0
    output: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"{self.output}\ncontainer {self.name!r} exited with {self.exit_code}"


@dataclass
class WaitTimeoutError(ClusterUpError):
    """A foreground container did not exit within the wait budget."""

    message: str = ""
    name: str = ""
    timeout: float = 0.0

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f"container {self.name!r} did not finish within {self.timeout:g}s"
