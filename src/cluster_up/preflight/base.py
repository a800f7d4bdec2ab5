"""Pre-flight validator chain.

Each validator checks one thing about the environment. The chain runs
every validator, even after a failure, and reports all failures at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..container import EngineClient
from ..errors import ValidationFailure
from ..shared.logging import Logger, get_logger


class Validator(ABC):
    """A single pre-flight check."""

    @abstractmethod
    def message(self) -> str:
        """Human-readable description, logged before the check runs."""

    @abstractmethod
    async def validate(self) -> None:
        """Run the check. Raises on failure."""


class EngineValidator(Validator):
    """Validator that talks to the container engine."""

    def __init__(self, client: EngineClient, logger: Logger | None = None):
        self.client = client
        self.logger = logger or get_logger(__name__)


class ValidatorChain(Validator):
    """Runs validators in order and aggregates their failures."""

    def __init__(self, logger: Logger | None = None):
        self.logger = logger or get_logger(__name__)
        self.validators: list[Validator] = []

    def add(self, validator: Validator) -> ValidatorChain:
        self.validators.append(validator)
        return self

    def message(self) -> str:
        return "Performing pre-flight checks"

    async def validate(self) -> None:
        """Run every validator.

        Raises:
            ValidationFailure: One or more validators failed; carries every
                failure message in validator order.
        """
        messages: list[str] = []
        for validator in self.validators:
            self.logger.info(f"--> {validator.message()}")
            try:
                await validator.validate()
            except Exception as e:
                messages.append(str(e))
        if messages:
            raise ValidationFailure(messages=messages)
