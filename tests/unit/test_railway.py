"""
Unit tests for the railway Result helpers used at every adapter boundary.
"""

from __future__ import annotations

import pytest
from railway import (
    ErrorCode,
    Failure,
    FailureDescription,
    LoggingExecutionContext,
    Result,
    ResultAssertions,
    Success,
)


def _parse_port(text: str) -> Result[int]:
    if not text.isdigit():
        return Result.failure(ErrorCode.VALIDATION_ERROR, f"not a port: {text}")
    return Result.success(int(text))


class TestResult:
    """Track switching and composition."""

    def test_map_and_flat_map_on_success(self) -> None:
        result = Result.success("9180").flat_map(_parse_port).map(lambda port: port + 1)

        assert result == Success(9181)

    def test_failure_short_circuits(self) -> None:
        """
        GIVEN a failure early in the chain
        WHEN later stages are chained
        THEN none of them runs and the first failure is kept.
        """
        later: list[int] = []

        result = (
            Result.success("http")
            .flat_map(_parse_port)
            .map(lambda port: later.append(port))
        )

        ResultAssertions.assert_failure(result, ErrorCode.VALIDATION_ERROR)
        assert later == []

    def test_from_computation_captures_exception(self) -> None:
        result = Result.from_computation(lambda: 1 / 0, ErrorCode.TECHNICAL_ERROR, "division")

        error = ResultAssertions.assert_failure(result, ErrorCode.TECHNICAL_ERROR)
        assert isinstance(error.exception, ZeroDivisionError)
        assert "ZeroDivisionError" in error.full_stack_trace()

    def test_map_failure_rewrites_error(self) -> None:
        result = Result.failure(ErrorCode.TECHNICAL_ERROR, "x").map_failure(
            lambda error: FailureDescription(ErrorCode.TIMEOUT_ERROR, error.message)
        )

        assert result == Result.failure(ErrorCode.TIMEOUT_ERROR, "x")

    def test_peek_and_get_or_else(self) -> None:
        seen: list[str] = []

        value = Result.failure(ErrorCode.TIMEOUT_ERROR, "late").peek_failure(
            lambda error: seen.append(error.message)
        ).get_or_else(0)

        assert value == 0
        assert seen == ["late"]

    def test_success_rejects_none(self) -> None:
        with pytest.raises(TypeError):
            Success(None)

    def test_failure_str(self) -> None:
        failure = Failure(FailureDescription(ErrorCode.EXTERNAL_SERVICE_ERROR, "403", ValueError("denied")))

        assert str(failure.error()) == "EXTERNAL_SERVICE_ERROR: 403 (denied)"
        assert not failure


class TestErrorCode:
    def test_codes_are_the_ones_the_exporter_raises(self) -> None:
        """
        GIVEN the error taxonomy
        WHEN its members are listed
        THEN only codes some adapter or the cycle actually produces are present.
        """
        assert {code.name for code in ErrorCode} == {
            "VALIDATION_ERROR",
            "TECHNICAL_ERROR",
            "CONFIGURATION_ERROR",
            "EXTERNAL_SERVICE_ERROR",
            "TIMEOUT_ERROR",
        }


class TestLoggingExecutionContext:
    def test_passes_result_through(self) -> None:
        ctx = LoggingExecutionContext(operation="test")

        assert ctx.execute(lambda: Result.success(3)) == Success(3)

    def test_exception_becomes_technical_error(self) -> None:
        """
        GIVEN a computation that raises instead of returning a Result
        WHEN it is executed in a LoggingExecutionContext
        THEN a TECHNICAL_ERROR failure is returned.
        """

        def explode() -> Result[int]:
            raise RuntimeError("kaboom")

        result = LoggingExecutionContext(operation="test").execute(explode)

        ResultAssertions.assert_failure_message_contains(result, "kaboom")
        assert result.error().code == ErrorCode.TECHNICAL_ERROR
