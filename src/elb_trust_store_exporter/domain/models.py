"""
Domain models: immutable values produced and consumed by one scrape cycle.

Nothing here outlives a cycle except the Snapshot that the publisher holds
until the next one replaces it. All models are frozen dataclasses.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from elb_trust_store_exporter.domain.metrics import COLLECTOR_SUCCESS, MetricSpec


@dataclass(frozen=True, slots=True)
class TrustStoreRecord:
    """
    One ELB trust store as described by the management API.

    The counts are the API's numbers, independent of what the extractor
    manages to decode from the bundle.
    """

    arn: str
    name: str
    certificate_count: int = 0
    revoked_entries: int = 0


class KeyKind(Enum):
    """Public key kinds the exporter can measure. Anything else is an error."""

    RSA = "RSA"
    ECDSA = "ECDSA"


class UnsupportedKeyTypeError(Exception):
    """A certificate carries a public key the exporter cannot characterize."""

    def __init__(self, key_type: str, subject: str | None = None) -> None:
        self.key_type = key_type
        self.subject = subject
        where = f" (subject {subject})" if subject else ""
        super().__init__(f"Unsupported public key type {key_type}{where}")


@dataclass(frozen=True, slots=True)
class CertificateFact:
    """Facts derived from one decoded certificate."""

    serial_number: str
    issuer: str
    subject: str
    signature_algorithm: str
    key_kind: KeyKind
    key_length: int
    not_before: int
    not_after: int


@dataclass(frozen=True, slots=True)
class MetricSample:
    """
    A single gauge value for one metric.

    Label values are positional against the metric's label schema, so a
    sample can never gain or lose a label.
    """

    spec: MetricSpec
    label_values: tuple[str, ...]
    value: float

    def __post_init__(self) -> None:
        if len(self.label_values) != len(self.spec.labels):
            raise ValueError(
                f"{self.spec.name} expects labels {self.spec.labels}, "
                f"got {len(self.label_values)} values"
            )

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def labels(self) -> Mapping[str, str]:
        return MappingProxyType(dict(zip(self.spec.labels, self.label_values)))


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    The complete, ordered sample set produced by one cycle.

    Built once by the orchestrator, then only ever read.
    """

    samples: tuple[MetricSample, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.samples)

    def samples_for(self, spec: MetricSpec) -> tuple[MetricSample, ...]:
        return tuple(s for s in self.samples if s.spec == spec)

    @property
    def success(self) -> bool | None:
        """The cycle's success flag, or None for the empty pre-startup snapshot."""
        flags = self.samples_for(COLLECTOR_SUCCESS)
        if not flags:
            return None
        return flags[0].value == 1
