"""
Unit tests for the snapshot publisher and its prometheus_client collector.
"""

from __future__ import annotations

import threading

from prometheus_client import generate_latest

from elb_trust_store_exporter.domain.metrics import (
    ALL_METRICS,
    BUILD_INFO_NAME,
    COLLECTOR_SUCCESS,
    TRUST_STORE_CERTIFICATES,
    TRUST_STORE_INFO,
)
from elb_trust_store_exporter.domain.models import MetricSample, Snapshot
from elb_trust_store_exporter.publisher import (
    SnapshotCollector,
    SnapshotPublisher,
    build_registry,
)
from tests.conftest import ARN_A, ARN_B, REGION


def _snapshot(cycle: int, stores: int = 50) -> Snapshot:
    """A Snapshot whose every value is the cycle number."""
    return Snapshot(
        samples=tuple(
            MetricSample(TRUST_STORE_CERTIFICATES, (f"arn-{i}",), cycle) for i in range(stores)
        )
        + (MetricSample(COLLECTOR_SUCCESS, (), 1),)
    )


class TestSnapshotPublisher:
    """Tests for publish/current."""

    def test_starts_empty(self) -> None:
        publisher = SnapshotPublisher()

        assert len(publisher.current()) == 0
        assert publisher.published_count == 0

    def test_publish_replaces_snapshot(self) -> None:
        """
        GIVEN a publisher holding snapshot 1
        WHEN snapshot 2 is published
        THEN current() returns snapshot 2 only.
        """
        publisher = SnapshotPublisher(initial=_snapshot(1))
        second = _snapshot(2)

        publisher.publish(second)

        assert publisher.current() is second
        assert publisher.published_count == 1

    def test_snapshot_and_count_come_from_the_same_publish(self) -> None:
        publisher = SnapshotPublisher()
        assert publisher.current_with_count() == (publisher.current(), 0)

        second = _snapshot(2)
        publisher.publish(second)

        snapshot, published = publisher.current_with_count()
        assert snapshot is second
        assert published == 1

    def test_readers_never_see_a_mixed_snapshot(self) -> None:
        """
        GIVEN a writer publishing alternating snapshots as fast as it can
        WHEN readers collect concurrently
        THEN every collection carries values from exactly one cycle.
        """
        publisher = SnapshotPublisher(initial=_snapshot(0))
        collector = SnapshotCollector(publisher)
        stop = threading.Event()
        torn: list[set[float]] = []

        def writer() -> None:
            cycle = 0
            while not stop.is_set():
                cycle += 1
                publisher.publish(_snapshot(cycle))

        def reader() -> None:
            for _ in range(300):
                for family in collector.collect():
                    if family.name == TRUST_STORE_CERTIFICATES.name:
                        values = {sample.value for sample in family.samples}
                        if len(values) != 1:
                            torn.append(values)

        writer_thread = threading.Thread(target=writer)
        readers = [threading.Thread(target=reader) for _ in range(4)]
        writer_thread.start()
        for thread in readers:
            thread.start()
        for thread in readers:
            thread.join()
        stop.set()
        writer_thread.join()

        assert torn == []
        assert publisher.published_count > 0


class TestSnapshotCollector:
    """Tests for the GaugeMetricFamily rendering."""

    def test_describe_lists_every_metric(self) -> None:
        collector = SnapshotCollector(SnapshotPublisher())

        assert [family.name for family in collector.describe()] == [
            spec.name for spec in ALL_METRICS
        ]

    def test_empty_snapshot_collects_nothing(self) -> None:
        assert list(SnapshotCollector(SnapshotPublisher()).collect()) == []

    def test_groups_samples_by_metric_in_fixed_order(self) -> None:
        """
        GIVEN samples for two trust stores, interleaved
        WHEN collect is called
        THEN one family per metric is returned, each with both samples.
        """
        snapshot = Snapshot(
            samples=(
                MetricSample(TRUST_STORE_INFO, (ARN_A, "store-a", REGION), 1),
                MetricSample(TRUST_STORE_CERTIFICATES, (ARN_A,), 2),
                MetricSample(TRUST_STORE_INFO, (ARN_B, "store-b", REGION), 1),
                MetricSample(TRUST_STORE_CERTIFICATES, (ARN_B,), 7),
            )
        )

        families = list(SnapshotCollector(SnapshotPublisher(initial=snapshot)).collect())

        assert [f.name for f in families] == [TRUST_STORE_INFO.name, TRUST_STORE_CERTIFICATES.name]
        assert [s.value for s in families[1].samples] == [2, 7]
        assert families[0].samples[1].labels == {
            "trust_store_arn": ARN_B,
            "name": "store-b",
            "region": REGION,
        }


class TestBuildRegistry:
    """Tests for the exposition registry."""

    def test_exposition_contains_snapshot_and_build_info(self) -> None:
        """
        GIVEN a published snapshot
        WHEN the registry is rendered
        THEN the text exposition holds the gauges and the build info line.
        """
        publisher = SnapshotPublisher(
            initial=Snapshot(samples=(MetricSample(COLLECTOR_SUCCESS, (), 1),))
        )
        registry = build_registry(publisher, version="1.2.3", commit="abc123")

        text = generate_latest(registry).decode()

        assert "# TYPE elb_trust_store_collector_success gauge" in text
        assert "elb_trust_store_collector_success 1.0" in text
        (build_line,) = [line for line in text.splitlines() if line.startswith(BUILD_INFO_NAME + "{")]
        assert 'version="1.2.3"' in build_line
        assert 'commit="abc123"' in build_line
        assert 'builtBy="unknown"' in build_line
        assert build_line.endswith(" 1.0")

    def test_exposition_follows_new_publication(self) -> None:
        publisher = SnapshotPublisher()
        registry = build_registry(publisher, version="1.2.3")

        assert "elb_trust_store_collector_success" not in generate_latest(registry).decode()

        publisher.publish(Snapshot(samples=(MetricSample(COLLECTOR_SUCCESS, (), 0),)))

        assert "elb_trust_store_collector_success 0.0" in generate_latest(registry).decode()
