"""
Snapshot publisher: the one piece of state shared between the scrape
cycle and metric readers.

The cycle thread calls publish() once per cycle; request handlers call
current() as often as they like. The lock guards only the reference swap
and the reference read, never any I/O, so a reader waits at most for a
pointer assignment and always gets one complete Snapshot.

SnapshotCollector exposes the current Snapshot through a prometheus_client
registry, rendering each metric as a GaugeMetricFamily.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from prometheus_client import CollectorRegistry, Gauge
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from elb_trust_store_exporter.domain.metrics import ALL_METRICS, BUILD_INFO_NAME, MetricSpec
from elb_trust_store_exporter.domain.models import MetricSample, Snapshot


class SnapshotPublisher:
    """Holds the current Snapshot and replaces it atomically."""

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = initial if initial is not None else Snapshot()
        self._published = 0

    def publish(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._published += 1

    def current(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    @property
    def published_count(self) -> int:
        with self._lock:
            return self._published

    def current_with_count(self) -> tuple[Snapshot, int]:
        """The current Snapshot and how many have been published, read together."""
        with self._lock:
            return self._snapshot, self._published


def _family(spec: MetricSpec, samples: Iterable[MetricSample]) -> GaugeMetricFamily:
    family = GaugeMetricFamily(spec.name, spec.documentation, labels=list(spec.labels))
    for sample in samples:
        family.add_metric(list(sample.label_values), sample.value)
    return family


class SnapshotCollector(Collector):
    """
    prometheus_client collector backed by a SnapshotPublisher.

    Reads the Snapshot once per scrape, so one exposition never mixes two
    cycles. Metrics without samples in the Snapshot are left out.
    """

    def __init__(self, publisher: SnapshotPublisher) -> None:
        self._publisher = publisher

    def describe(self) -> Iterable[Metric]:
        for spec in ALL_METRICS:
            yield GaugeMetricFamily(spec.name, spec.documentation, labels=list(spec.labels))

    def collect(self) -> Iterable[Metric]:
        snapshot = self._publisher.current()
        by_spec: dict[str, list[MetricSample]] = {}
        for sample in snapshot.samples:
            by_spec.setdefault(sample.name, []).append(sample)

        for spec in ALL_METRICS:
            samples = by_spec.get(spec.name)
            if samples:
                yield _family(spec, samples)


def build_registry(
    publisher: SnapshotPublisher,
    version: str,
    commit: str = "none",
    date: str = "unknown",
    built_by: str = "unknown",
) -> CollectorRegistry:
    """A dedicated registry holding the snapshot collector and the build info gauge."""
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(publisher))

    build_info = Gauge(
        BUILD_INFO_NAME,
        "A metric with a constant '1' value labeled with version, commit, date and builtBy "
        "from which the exporter was built.",
        ["version", "commit", "date", "builtBy"],
        registry=registry,
    )
    build_info.labels(version=version, commit=commit, date=date, builtBy=built_by).set(1)
    return registry
