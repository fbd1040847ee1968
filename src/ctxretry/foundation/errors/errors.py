"""Fault types for misuse of the retry driver.

Operation failures travel as data inside Result and are never raised by the
driver. The types here cover the other kind: programmer faults detected at
configuration time or inside the driver's own state machine. They are fatal,
never retried, and always raised at the call that detects them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field


class FaultCode(StrEnum):
    """Machine-readable classification of driver faults."""
    SLEEPER_AFTER_CONTEXT = "SLEEPER_AFTER_CONTEXT"
    SESSION_STARTED = "SESSION_STARTED"
    CONTEXT_MISSING = "CONTEXT_MISSING"
    ALREADY_AWAITED = "ALREADY_AWAITED"


_CONFIGURATION_CODES: frozenset[FaultCode] = frozenset({
    FaultCode.SLEEPER_AFTER_CONTEXT,
    FaultCode.SESSION_STARTED,
})


class RetryFault(BaseModel):
    """Structured description of a driver fault.

    Attributes:
        code: Machine-readable fault code
        message: Human-readable description
        operation: Qualified name of the retried operation, when known
    """

    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        validate_default=True,
        json_schema_extra={
            "title": "Retry Fault",
            "description": "Programmer fault raised by the retry driver",
            "examples": [{
                "code": "SLEEPER_AFTER_CONTEXT",
                "message": "sleep must be set before context",
            }],
        },
    )

    code: FaultCode
    message: Annotated[str, Field(min_length=1)]
    operation: str | None = Field(default=None, description="Retried operation, if known")

    @computed_field
    @property
    def fatal(self) -> bool:
        """Driver faults are never retried."""
        return True

    @computed_field
    @property
    def is_configuration(self) -> bool:
        """Whether the fault was detected while configuring the driver."""
        return self.code in _CONFIGURATION_CODES

    def render(self) -> str:
        where = f" ({self.operation})" if self.operation else ""
        return f"[{self.code}]{where} {self.message}"

    __str__ = render


class RetryFaultError(RuntimeError):
    """Exception wrapping a RetryFault for raising."""

    __slots__ = ("fault",)

    def __init__(self, fault: RetryFault) -> None:
        self.fault = fault
        super().__init__(fault.render())

    @property
    def code(self) -> FaultCode:
        return self.fault.code

    @classmethod
    def create(cls, code: FaultCode, message: str, *, operation: str | None = None) -> Self:
        return cls(RetryFault(code=code, message=message, operation=operation))


class ConfigurationError(RetryFaultError):
    """A configuration call violated one of the driver's preconditions."""


class InvariantError(RetryFaultError):
    """The driver found its own state inconsistent while running."""
