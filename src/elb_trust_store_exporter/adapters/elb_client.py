"""
Load balancer API adapter: trust store enumeration via boto3 (elbv2).

Adapter layer: implements the TrustStoreApiConnector and TrustStoreApi
ports.

  Boto3ElbConnector.connect()
    → boto3 Session (explicit region, or discovered from env / AWS config)
    → credentials present?
    → elbv2 client bound to that region → ElbTrustStoreApi

  ElbTrustStoreApi
    .list_trust_stores()     → DescribeTrustStores (all pages)
    .get_bundle_location()   → GetTrustStoreCaCertificatesBundle → Location

botocore's own retries are switched off: a failing call fails the current
step and the next scheduled cycle is the retry.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import NoCredentialsError, NoRegionError
from railway import ErrorCode
from railway.result import Result

from elb_trust_store_exporter.domain.models import TrustStoreRecord

log = structlog.get_logger()

SessionFactory = Callable[..., boto3.session.Session]


def _to_record(item: dict[str, Any]) -> TrustStoreRecord:
    return TrustStoreRecord(
        arn=item["TrustStoreArn"],
        name=item.get("Name", ""),
        certificate_count=int(item.get("NumberOfCaCertificates", 0)),
        revoked_entries=int(item.get("TotalRevokedEntries", 0)),
    )


class ElbTrustStoreApi:
    """
    Trust store calls against one elbv2 client.

    Implements the TrustStoreApi port.
    """

    def __init__(self, client: Any, region: str) -> None:
        self._client = client
        self._region = region

    @property
    def region(self) -> str:
        return self._region

    def list_trust_stores(self, arns: Sequence[str] = ()) -> Result[list[TrustStoreRecord]]:
        """
        Describe all trust stores, or only the given ARNs.

        Returns Result.failure(EXTERNAL_SERVICE_ERROR, ...) if any page fails.
        """
        return Result.from_computation(
            lambda: self._do_describe(arns),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "DescribeTrustStores failed",
        )

    def _do_describe(self, arns: Sequence[str]) -> list[TrustStoreRecord]:
        params: dict[str, Any] = {}
        if arns:
            params["TrustStoreArns"] = list(arns)

        records: list[TrustStoreRecord] = []
        while True:
            response = self._client.describe_trust_stores(**params)
            records.extend(_to_record(item) for item in response.get("TrustStores", []))
            marker = response.get("NextMarker")
            if not marker:
                break
            params["Marker"] = marker

        log.info("trust_stores.described", region=self._region, count=len(records))
        return records

    def get_bundle_location(self, arn: str) -> Result[str]:
        """
        Resolve the download location of a trust store's CA bundle.

        Returns Result.failure(EXTERNAL_SERVICE_ERROR, ...) on API errors or
        when the response carries no location.
        """
        return Result.from_computation(
            lambda: self._do_get_location(arn),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            f"GetTrustStoreCaCertificatesBundle failed for {arn}",
        )

    def _do_get_location(self, arn: str) -> str:
        response = self._client.get_trust_store_ca_certificates_bundle(TrustStoreArn=arn)
        location: str | None = response.get("Location")
        if not location:
            raise ValueError(f"No bundle location returned for {arn}")
        return location


class Boto3ElbConnector:
    """
    Resolve AWS configuration and build an elbv2 client for one cycle.

    Implements the TrustStoreApiConnector port. A new session per cycle
    picks up rotated credentials and config changes without a restart.
    """

    def __init__(
        self,
        region: str | None = None,
        timeout: float = 60.0,
        session_factory: SessionFactory = boto3.session.Session,
    ) -> None:
        self._region = region
        self._timeout = timeout
        self._session_factory = session_factory

    def connect(self, timeout: float | None = None) -> Result[ElbTrustStoreApi]:
        """
        Returns Result[ElbTrustStoreApi] bound to the resolved region,
        or Result.failure(CONFIGURATION_ERROR, ...) when no region or no
        credentials can be found.

        `timeout`, when given, lowers the client's connect and read
        timeouts to what is left of the cycle.
        """
        call_timeout = self._timeout if timeout is None else min(self._timeout, timeout)
        return Result.from_computation(
            lambda: self._do_connect(call_timeout),
            ErrorCode.CONFIGURATION_ERROR,
            "AWS client configuration failed",
        )

    def _do_connect(self, timeout: float) -> ElbTrustStoreApi:
        session = self._session_factory(region_name=self._region)
        region = session.region_name
        if not region:
            raise NoRegionError()
        if session.get_credentials() is None:
            raise NoCredentialsError()

        client = session.client(
            "elbv2",
            config=Config(
                connect_timeout=timeout,
                read_timeout=timeout,
                retries={"total_max_attempts": 1},
            ),
        )
        log.debug("aws.client_ready", region=region, explicit_region=self._region is not None)
        return ElbTrustStoreApi(client, region)
