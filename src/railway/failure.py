"""
Failure description: what travels on the failure track of a Result.

An ErrorCode says which kind of failure happened, a FailureDescription
carries the code together with a human message, the originating exception
(if any) and when it was recorded.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """
    Error codes used by the exporter.

    The cycle orchestration only distinguishes cycle-fatal codes
    (configuration, enumeration) from trust-store-local ones, so the set
    is intentionally small.
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input data the exporter refuses to characterize."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Decoding failures and unexpected exceptions."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Client configuration could not be resolved."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """Remote API or HTTP call failed."""

    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    """The cycle time budget ran out."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor.

    >>> desc = FailureDescription(ErrorCode.TIMEOUT_ERROR, "cycle budget exhausted")
    >>> desc.code
    <ErrorCode.TIMEOUT_ERROR: 'TIMEOUT_ERROR'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if there is one."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"

    def __str__(self) -> str:
        if self.exception is None:
            return f"{self.code.value}: {self.message}"
        return f"{self.code.value}: {self.message} ({self.exception})"
