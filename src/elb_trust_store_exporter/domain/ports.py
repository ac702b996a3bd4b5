"""
Ports: Protocol-based interfaces for infrastructure adapters.

These define WHAT a scrape cycle needs without saying HOW it is done:

  Domain ← Ports (protocols) ← Adapters (implementations)

Every port returns a Result, so the orchestration never needs try/except
to keep one failing trust store from taking the others down.

Per cycle:
  1. TrustStoreApiConnector → resolve client configuration (region, credentials)
  2. TrustStoreApi          → enumerate trust stores, resolve bundle locations
  3. BundleFetcher          → download a bundle from its location
  4. CertificateExtractor   → PEM bundle → certificate facts
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from railway.result import Result

from elb_trust_store_exporter.domain.models import CertificateFact, TrustStoreRecord


@runtime_checkable
class TrustStoreApi(Protocol):
    """
    Port: the load balancer management API, bound to one region.

    No retries happen behind this port; a failed call fails its caller's
    step and the next scheduled cycle tries again.
    """

    @property
    def region(self) -> str: ...

    def list_trust_stores(self, arns: Sequence[str] = ()) -> Result[list[TrustStoreRecord]]:
        """All trust stores, or only those named in `arns` when it is non-empty."""
        ...

    def get_bundle_location(self, arn: str) -> Result[str]:
        """URI the trust store's CA certificate bundle can be downloaded from."""
        ...


@runtime_checkable
class TrustStoreApiConnector(Protocol):
    """
    Port: resolve API client configuration for the current cycle.

    Failure here is cycle-fatal: no trust store can be looked at.
    """

    def connect(self, timeout: float | None = None) -> Result[TrustStoreApi]:
        """Client bound to the resolved region; `timeout` caps every call it makes."""
        ...


@runtime_checkable
class BundleFetcher(Protocol):
    """Port: download a bundle with a bounded timeout."""

    def fetch(self, location: str, timeout: float) -> Result[bytes]: ...


@runtime_checkable
class CertificateExtractor(Protocol):
    """
    Port: decode a PEM bundle into certificate facts.

    Individually malformed certificates are skipped inside the adapter;
    a failure means the whole bundle must be discarded.
    """

    def extract(self, pem_bundle: bytes) -> Result[tuple[CertificateFact, ...]]: ...
