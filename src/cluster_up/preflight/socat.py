"""Local socat binary check, needed for port forwarding."""

from __future__ import annotations

import asyncio
import shutil
import subprocess

from ..errors import PreflightCheckError
from ..shared.logging import Logger, get_logger
from .base import Validator


class Socat(Validator):
    """Fails when socat is missing from PATH or does not run."""

    def __init__(self, logger: Logger | None = None, binary: str = "socat", timeout: float = 10):
        self.logger = logger or get_logger(__name__)
        self.binary = binary
        self.timeout = timeout

    def message(self) -> str:
        return f"Checking if '{self.binary}' binary is available"

    async def validate(self) -> None:
        await asyncio.to_thread(self._check)

    def _check(self) -> None:
        path = shutil.which(self.binary)
        if not path:
            raise self.logger.error(
                f"{self.binary} path lookup",
                PreflightCheckError(f"{self.binary!r} executable not found in $PATH"),
            )

        try:
            result = subprocess.run(
                [path, "-V"],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise PreflightCheckError(f"error executing {self.binary!r} binary: timeout")
        except OSError as e:
            raise PreflightCheckError(f"error executing {self.binary!r} binary: {e}")

        if result.returncode != 0:
            output = (result.stdout + result.stderr).strip()
            raise PreflightCheckError(
                f"error executing {self.binary!r} binary: {output} (exit status {result.returncode})"
            )
