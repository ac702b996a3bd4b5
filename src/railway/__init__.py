"""
Railway-Oriented Programming (ROP) helpers.

Explicit, composable error handling for adapter boundaries:

    from railway import Result, ErrorCode

    def locate(arn: str) -> Result[str]:
        if not arn:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "ARN is required")
        return Result.success(f"s3://bundles/{arn}")
"""

from railway.assertions import ResultAssertions
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
    NoOpExecutionContext,
)
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]
