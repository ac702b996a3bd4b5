"""
Metric catalogue: names, help texts and label schemas of every gauge.

The names and label sets are what dashboards and alerts are written
against; they must stay stable.
"""

from __future__ import annotations

from dataclasses import dataclass

NAMESPACE = "elb_trust_store"


@dataclass(frozen=True, slots=True)
class MetricSpec:
    """Fully qualified gauge name, its help text and its label names."""

    name: str
    documentation: str
    labels: tuple[str, ...] = ()


def _fq_name(subsystem: str, name: str) -> str:
    return "_".join(part for part in (NAMESPACE, subsystem, name) if part)


COLLECTOR_SUCCESS = MetricSpec(
    _fq_name("", "collector_success"),
    "Was the last scrape of the collector successful.",
)
CERTIFICATE_INFO = MetricSpec(
    _fq_name("certificate", "info"),
    "Information about a certificate in a trust store.",
    ("trust_store_arn", "serial_number", "issuer", "subject", "signature_algo", "key_length"),
)
CERTIFICATE_NOT_BEFORE = MetricSpec(
    _fq_name("certificate", "not_before"),
    "The timestamp of the start of the certificate's validity (in seconds since epoch).",
    ("trust_store_arn", "serial_number", "subject"),
)
CERTIFICATE_EXPIRY = MetricSpec(
    _fq_name("certificate", "expiry"),
    "The timestamp of the certificate's expiry (in seconds since epoch).",
    ("trust_store_arn", "serial_number", "subject"),
)
TRUST_STORE_INFO = MetricSpec(
    _fq_name("", "info"),
    "Information about the trust store.",
    ("trust_store_arn", "name", "region"),
)
TRUST_STORE_CERTIFICATES = MetricSpec(
    _fq_name("", "certificates"),
    "The number of CA certificates in the trust store.",
    ("trust_store_arn",),
)
TRUST_STORE_REVOKED_ENTRIES = MetricSpec(
    _fq_name("", "revoked_entries"),
    "The number of revoked entries in the trust store.",
    ("trust_store_arn",),
)
EXPORTER_LAST_SCRAPE_TIMESTAMP = MetricSpec(
    _fq_name("exporter", "last_scrape_timestamp"),
    "The timestamp of the last successful scrape of the AWS API.",
)
EXPORTER_SCRAPE_DURATION_SECONDS = MetricSpec(
    _fq_name("exporter", "scrape_duration_seconds"),
    "The duration of the last scrape of the AWS API.",
)
EXPORTER_SCRAPE_INTERVAL = MetricSpec(
    _fq_name("exporter", "scrape_interval"),
    "The interval between scraping the AWS API.",
)

# Exposition order.
ALL_METRICS: tuple[MetricSpec, ...] = (
    COLLECTOR_SUCCESS,
    CERTIFICATE_INFO,
    CERTIFICATE_NOT_BEFORE,
    CERTIFICATE_EXPIRY,
    TRUST_STORE_INFO,
    TRUST_STORE_CERTIFICATES,
    TRUST_STORE_REVOKED_ENTRIES,
    EXPORTER_LAST_SCRAPE_TIMESTAMP,
    EXPORTER_SCRAPE_DURATION_SECONDS,
    EXPORTER_SCRAPE_INTERVAL,
)

EXPORTER_METRICS: tuple[MetricSpec, ...] = (
    EXPORTER_LAST_SCRAPE_TIMESTAMP,
    EXPORTER_SCRAPE_DURATION_SECONDS,
    EXPORTER_SCRAPE_INTERVAL,
    COLLECTOR_SUCCESS,
)

BUILD_INFO_NAME = _fq_name("exporter", "build_info")
