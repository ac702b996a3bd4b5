"""
Pipeline: one scrape cycle, from API configuration to a finished Snapshot.

Domain layer: no I/O of its own. All I/O is injected via ports.

Cycle-level stages are chained with flat_map; a failure there ends the
cycle early:

  connector.connect(remaining budget)
    → api.list_trust_stores(arns)
      → for each trust store (independently):
          deadline check
            → api.get_bundle_location(arn)
              → fetcher.fetch(location)
                → deadline check
                  → extractor.extract(bundle)
                    → deadline check
                      → trust store + certificate samples

Connect, enumeration and each trust store run through Deadline.run(), so
the cycle returns once its budget is spent even if a call hangs; work
that had not finished by then counts as failed.

A failing trust store is logged and contributes no samples; it flips the
cycle's success flag to 0 but never stops the remaining trust stores.
The four exporter samples are appended whatever happened before.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from elb_trust_store_exporter.domain.metrics import (
    CERTIFICATE_EXPIRY,
    CERTIFICATE_INFO,
    CERTIFICATE_NOT_BEFORE,
    COLLECTOR_SUCCESS,
    EXPORTER_LAST_SCRAPE_TIMESTAMP,
    EXPORTER_SCRAPE_DURATION_SECONDS,
    EXPORTER_SCRAPE_INTERVAL,
    TRUST_STORE_CERTIFICATES,
    TRUST_STORE_INFO,
    TRUST_STORE_REVOKED_ENTRIES,
)
from elb_trust_store_exporter.domain.models import (
    CertificateFact,
    MetricSample,
    Snapshot,
    TrustStoreRecord,
)
from elb_trust_store_exporter.domain.ports import (
    BundleFetcher,
    CertificateExtractor,
    TrustStoreApi,
    TrustStoreApiConnector,
)

log = structlog.get_logger()

DEFAULT_CYCLE_TIMEOUT_SECONDS = 60.0
DEFAULT_BUNDLE_TIMEOUT_SECONDS = 3.0


class Deadline:
    """
    Monotonic time budget shared by every call made during one cycle.

    Remote stages go through run(), which waits for them no longer than
    the budget left. A stage still running at expiry is abandoned: its
    worker thread is left to finish on its own (its own timeouts are
    capped by the same budget) and whatever it returns later is dropped.
    """

    def __init__(self, budget_seconds: float) -> None:
        self._expires_at = time.monotonic() + budget_seconds
        self._executor: ThreadPoolExecutor | None = None

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def cap(self, timeout: float) -> float:
        """The smaller of `timeout` and the budget left."""
        return min(timeout, self.remaining())

    def ensure[T](self, value: T, stage: str) -> Result[T]:
        """Pass `value` on, or fail with TIMEOUT_ERROR once the budget is spent."""
        if self.expired():
            return Result.failure(ErrorCode.TIMEOUT_ERROR, f"Cycle time budget exhausted before {stage}")
        return Result.success(value)

    def run[T](self, stage: str, call: Callable[[], Result[T]]) -> Result[T]:
        """
        Run `call` on the cycle's worker thread, bounded by the budget left.

        Returns the call's own Result when it finishes in time, and
        Result.failure(TIMEOUT_ERROR, ...) when the budget is spent before
        it starts or while it runs.
        """
        if self.expired():
            return Result.failure(ErrorCode.TIMEOUT_ERROR, f"Cycle time budget exhausted before {stage}")
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cycle")
        future = self._executor.submit(call)
        try:
            return future.result(timeout=self.remaining())
        except TimeoutError:
            future.cancel()
            log.warning("cycle.stage_abandoned", stage=stage)
            return Result.failure(ErrorCode.TIMEOUT_ERROR, f"Cycle time budget exhausted during {stage}")

    def close(self) -> None:
        """Release the worker thread without waiting for an abandoned stage."""
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None


@dataclass(frozen=True, slots=True)
class TrustStoreCollection:
    """Samples gathered from the enumerated trust stores, plus whether all of them worked."""

    samples: tuple[MetricSample, ...] = field(default_factory=tuple)
    success: bool = True


# ─────────────────────── Sample assembly ───────────────────────


def trust_store_samples(store: TrustStoreRecord, region: str) -> list[MetricSample]:
    return [
        MetricSample(TRUST_STORE_INFO, (store.arn, store.name, region), 1),
        MetricSample(TRUST_STORE_CERTIFICATES, (store.arn,), store.certificate_count),
        MetricSample(TRUST_STORE_REVOKED_ENTRIES, (store.arn,), store.revoked_entries),
    ]


def certificate_samples(trust_store_arn: str, fact: CertificateFact) -> list[MetricSample]:
    info_labels = (
        trust_store_arn,
        fact.serial_number,
        fact.issuer,
        fact.subject,
        fact.signature_algorithm,
        str(fact.key_length),
    )
    validity_labels = (trust_store_arn, fact.serial_number, fact.subject)
    return [
        MetricSample(CERTIFICATE_INFO, info_labels, 1),
        MetricSample(CERTIFICATE_NOT_BEFORE, validity_labels, fact.not_before),
        MetricSample(CERTIFICATE_EXPIRY, validity_labels, fact.not_after),
    ]


def exporter_samples(
    started_at: float,
    duration_seconds: float,
    interval_seconds: float,
    success: bool,
) -> list[MetricSample]:
    return [
        MetricSample(EXPORTER_LAST_SCRAPE_TIMESTAMP, (), float(int(started_at))),
        MetricSample(EXPORTER_SCRAPE_DURATION_SECONDS, (), duration_seconds),
        MetricSample(EXPORTER_SCRAPE_INTERVAL, (), interval_seconds),
        MetricSample(COLLECTOR_SUCCESS, (), 1 if success else 0),
    ]


# ─────────────────────── Per trust store ───────────────────────


def _scrape_trust_store(
    api: TrustStoreApi,
    store: TrustStoreRecord,
    fetcher: BundleFetcher,
    extractor: CertificateExtractor,
    deadline: Deadline,
    bundle_timeout_seconds: float,
) -> Result[list[MetricSample]]:
    """Everything for one trust store, or a Failure and nothing."""
    return (
        deadline.ensure(store.arn, "bundle lookup")
        .flat_map(api.get_bundle_location)
        .flat_map(lambda location: deadline.ensure(location, "bundle download"))
        .flat_map(lambda location: fetcher.fetch(location, deadline.cap(bundle_timeout_seconds)))
        .flat_map(lambda bundle: deadline.ensure(bundle, "certificate extraction"))
        .flat_map(extractor.extract)
        .flat_map(lambda facts: deadline.ensure(facts, "sample assembly"))
        .map(
            lambda facts: trust_store_samples(store, api.region)
            + [sample for fact in facts for sample in certificate_samples(store.arn, fact)]
        )
    )


def _log_trust_store_failure(store: TrustStoreRecord, failure: FailureDescription) -> None:
    log.error(
        "trust_store.failed",
        trust_store_arn=store.arn,
        error_code=failure.code.value,
        error=str(failure),
    )


def collect_trust_stores(
    api: TrustStoreApi,
    stores: Sequence[TrustStoreRecord],
    fetcher: BundleFetcher,
    extractor: CertificateExtractor,
    deadline: Deadline,
    bundle_timeout_seconds: float = DEFAULT_BUNDLE_TIMEOUT_SECONDS,
) -> TrustStoreCollection:
    """
    Scrape every trust store independently.

    Accumulates the success flag and the sample list side by side; a
    failing trust store only clears the flag.
    """
    samples: list[MetricSample] = []
    success = True
    for store in stores:
        result = deadline.run(
            f"trust store {store.arn}",
            lambda store=store: _scrape_trust_store(
                api, store, fetcher, extractor, deadline, bundle_timeout_seconds
            ),
        ).peek_failure(lambda failure, store=store: _log_trust_store_failure(store, failure))
        if result.is_success():
            samples.extend(result.value())
        else:
            success = False
    return TrustStoreCollection(samples=tuple(samples), success=success)


# ─────────────────────── Cycle ───────────────────────


def run_cycle(
    connector: TrustStoreApiConnector,
    fetcher: BundleFetcher,
    extractor: CertificateExtractor,
    *,
    trust_store_arns: Sequence[str] = (),
    interval_seconds: float,
    cycle_timeout_seconds: float = DEFAULT_CYCLE_TIMEOUT_SECONDS,
    bundle_timeout_seconds: float = DEFAULT_BUNDLE_TIMEOUT_SECONDS,
) -> Snapshot:
    """
    Execute one full scrape cycle and return its Snapshot.

    Flow:
      1. Record the start time and open the cycle deadline
      2. Resolve API client configuration (cycle-fatal on failure)
      3. Enumerate trust stores, optionally filtered (cycle-fatal on failure)
      4. Scrape each trust store independently
      5. Append exporter samples (timestamp, duration, interval, success)

    Never raises for upstream problems; they end up as collector_success 0.
    """
    started_at = time.time()
    started = time.monotonic()
    deadline = Deadline(cycle_timeout_seconds)
    log.info("cycle.started", trust_store_filter=len(trust_store_arns))

    try:
        collection = (
            deadline.run("client configuration", lambda: connector.connect(deadline.remaining()))
            .flat_map(
                lambda api: deadline.run(
                    "trust store enumeration", lambda: api.list_trust_stores(trust_store_arns)
                ).map(
                    lambda stores: collect_trust_stores(
                        api, stores, fetcher, extractor, deadline, bundle_timeout_seconds
                    )
                )
            )
            .peek_failure(
                lambda failure: log.error(
                    "cycle.aborted", error_code=failure.code.value, error=str(failure)
                )
            )
            .get_or_else(TrustStoreCollection(success=False))
        )
    finally:
        deadline.close()

    duration = time.monotonic() - started
    snapshot = Snapshot(
        samples=collection.samples
        + tuple(exporter_samples(started_at, duration, interval_seconds, collection.success))
    )
    log.info(
        "cycle.finished",
        success=collection.success,
        samples=len(snapshot),
        duration_seconds=round(duration, 3),
    )
    return snapshot
