"""
HTTP adapter: CA bundle download via httpx.

Adapter layer: implements the BundleFetcher port using httpx for sync
HTTP calls. The bundle location handed out by the load balancer API is a
short-lived pre-signed URL, so the request is a plain GET without
credentials.

The timeout handed to fetch() bounds the whole download, retry included:
httpx's own timeouts only bound each connect or read, so the body is
streamed and the clock is checked after every chunk.

One retry via tenacity on transient errors (network, timeout) while time
is left; HTTP status errors are not retried. All errors are captured into
Result failures: no exceptions leak to the orchestration.
"""

from __future__ import annotations

import time

import httpx
import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()


class DownloadTimeoutError(Exception):
    """The bundle was not complete when the download's time ran out."""

    def __init__(self, location: str, timeout: float) -> None:
        super().__init__(f"Bundle download did not finish within {timeout:.2f}s")
        self.location = location
        self.timeout = timeout


def _time_left(expires_at: float, location: str, timeout: float) -> float:
    remaining = expires_at - time.monotonic()
    if remaining <= 0:
        raise DownloadTimeoutError(location, timeout)
    return remaining


def _classify_failure(failure: FailureDescription) -> FailureDescription:
    if isinstance(failure.exception, DownloadTimeoutError):
        return FailureDescription(ErrorCode.TIMEOUT_ERROR, str(failure.exception), failure.exception)
    return failure


class HttpBundleFetcher:
    """
    Download trust store CA bundles via HTTP GET.

    Implements the BundleFetcher port. The caller passes the timeout per
    request so it can be capped by what is left of the cycle budget.
    """

    def fetch(self, location: str, timeout: float) -> Result[bytes]:
        """
        Download the bundle at `location` within `timeout` seconds overall.

        Returns Result[bytes] with the raw bundle on success,
        Result.failure(TIMEOUT_ERROR, ...) when time runs out mid-download,
        or Result.failure(EXTERNAL_SERVICE_ERROR, ...) on any other failure.
        """
        expires_at = time.monotonic() + timeout
        return Result.from_computation(
            lambda: self._do_fetch(location, expires_at, timeout),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "Bundle download failed",
        ).map_failure(_classify_failure)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.2, min=0.1, max=1),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    def _do_fetch(self, location: str, expires_at: float, timeout: float) -> bytes:
        """Streamed HTTP GET with retry: exceptions caught by from_computation."""
        chunks: list[bytes] = []
        with httpx.Client(timeout=_time_left(expires_at, location, timeout)) as client:
            with client.stream("GET", location) as response:
                response.raise_for_status()
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    _time_left(expires_at, location, timeout)
        _time_left(expires_at, location, timeout)

        data = b"".join(chunks)
        log.debug("bundle.downloaded", size_bytes=len(data))
        return data
