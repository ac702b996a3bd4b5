"""
PEM bundle extractor: PEM framing + X.509 fact extraction.

Adapter layer: implements the CertificateExtractor port using:
  - asn1crypto: PEM unarmoring (BEGIN/END framing, headers, base64 body)
  - cryptography (PyCA): X.509 parsing and public key inspection

Pipeline:
  bundle bytes
    → decode_pem_blocks(): (label, DER) per framed block
    → skip everything that is not a CERTIFICATE block
    → cryptography: x509.load_der_x509_certificate()
    → CertificateFact per certificate

Failure policy:
  - bytes outside a block, an unterminated block, undecodable base64
    → ignored (logged where a block was recognized); scanning resumes
    at the next BEGIN line
  - a certificate that fails to parse → logged and skipped
  - a public key that is neither RSA nor EC → UnsupportedKeyTypeError,
    the bundle as a whole is rejected
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

import structlog
from asn1crypto import pem
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import SignatureAlgorithmOID
from railway import ErrorCode, FailureDescription
from railway.result import Result

from elb_trust_store_exporter.domain.models import (
    CertificateFact,
    KeyKind,
    UnsupportedKeyTypeError,
)

log = structlog.get_logger()

CERTIFICATE_BLOCK = "CERTIFICATE"

# ─────────────────────── PEM framing ───────────────────────

_BEGIN_LINE = re.compile(rb"^-----BEGIN ", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class PemBlock:
    """One framed PEM block: its type label and decoded payload."""

    label: str
    der: bytes


def _segments(data: bytes) -> Iterator[tuple[int, bytes]]:
    """Slices of `data` that each start at a BEGIN line and run up to the next one."""
    starts = [match.start() for match in _BEGIN_LINE.finditer(data)]
    for start, end in zip(starts, starts[1:] + [len(data)]):
        yield start, data[start:end]


def decode_pem_blocks(data: bytes) -> Iterator[PemBlock]:
    """
    Yield every PEM block found in `data`, in order.

    Each BEGIN line is unarmored on its own, so a block that is
    unterminated or not valid base64 is logged and skipped without
    swallowing the block after it. Bytes before, between and after
    blocks are not PEM and are ignored.
    """
    if not pem.detect(data):
        return
    for offset, segment in _segments(data):
        try:
            label, _headers, der = pem.unarmor(segment)
        except ValueError as e:
            log.warning("pem.block_undecodable", offset=offset, error=str(e))
            continue
        if isinstance(label, bytes):
            label = label.decode("ascii", errors="ignore")
        yield PemBlock(label=label, der=der)




# ─────────────────────── X.509 fact extraction ───────────────────────

_SIGNATURE_ALGORITHM_NAMES: dict[x509.ObjectIdentifier, str] = {
    SignatureAlgorithmOID.RSA_WITH_MD5: "MD5-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA1: "SHA1-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA224: "SHA224-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "SHA256-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "SHA384-RSA",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "SHA512-RSA",
    SignatureAlgorithmOID.DSA_WITH_SHA1: "DSA-SHA1",
    SignatureAlgorithmOID.DSA_WITH_SHA224: "DSA-SHA224",
    SignatureAlgorithmOID.DSA_WITH_SHA256: "DSA-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "ECDSA-SHA1",
    SignatureAlgorithmOID.ECDSA_WITH_SHA224: "ECDSA-SHA224",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "ECDSA-SHA256",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "ECDSA-SHA384",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "ECDSA-SHA512",
    SignatureAlgorithmOID.ED25519: "Ed25519",
    SignatureAlgorithmOID.ED448: "Ed448",
}


def signature_algorithm_name(cert: x509.Certificate) -> str:
    """
    Short signature algorithm name, e.g. SHA256-RSA or ECDSA-SHA384.

    RSASSA-PSS shares one OID across hashes, so the hash is read from the
    certificate. Unknown algorithms are reported by dotted OID.
    """
    oid = cert.signature_algorithm_oid
    if oid == SignatureAlgorithmOID.RSASSA_PSS:
        try:
            digest = cert.signature_hash_algorithm
        except UnsupportedAlgorithm:
            digest = None
        if digest is not None:
            return f"{digest.name.upper()}-RSAPSS"
        return "RSAPSS"
    return _SIGNATURE_ALGORITHM_NAMES.get(oid, oid.dotted_string)


def measure_public_key(public_key: object, subject: str | None = None) -> tuple[KeyKind, int]:
    """
    Classify a public key and return its size in bits.

    RSA → modulus bit length, EC → the curve's key size. Every other key
    type raises UnsupportedKeyTypeError.
    """
    if isinstance(public_key, rsa.RSAPublicKey):
        return KeyKind.RSA, public_key.key_size
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        return KeyKind.ECDSA, public_key.curve.key_size
    raise UnsupportedKeyTypeError(type(public_key).__name__, subject)


def _to_fact(cert: x509.Certificate) -> CertificateFact:
    """
    Derive a CertificateFact from a parsed certificate.

    Raises ValueError when an identity field cannot be decoded and
    UnsupportedKeyTypeError when the key cannot be measured.
    """
    subject = cert.subject.rfc4514_string()
    try:
        public_key = cert.public_key()
    except UnsupportedAlgorithm as e:
        raise UnsupportedKeyTypeError(cert.public_key_algorithm_oid.dotted_string, subject) from e
    key_kind, key_length = measure_public_key(public_key, subject)

    return CertificateFact(
        serial_number=str(cert.serial_number),
        issuer=cert.issuer.rfc4514_string(),
        subject=subject,
        signature_algorithm=signature_algorithm_name(cert),
        key_kind=key_kind,
        key_length=key_length,
        not_before=int(cert.not_valid_before_utc.timestamp()),
        not_after=int(cert.not_valid_after_utc.timestamp()),
    )


def extract_certificate_facts(pem_bundle: bytes) -> Iterator[CertificateFact]:
    """
    Yield one CertificateFact per usable certificate in the bundle, in order.

    Malformed certificates are logged and skipped. UnsupportedKeyTypeError
    propagates and ends the iteration.
    """
    for index, block in enumerate(decode_pem_blocks(pem_bundle)):
        if block.label != CERTIFICATE_BLOCK:
            log.debug("pem.block_ignored", label=block.label, index=index)
            continue
        try:
            cert = x509.load_der_x509_certificate(block.der)
            fact = _to_fact(cert)
        except ValueError as e:
            log.warning("certificate.parse_failed", index=index, error=str(e))
            continue
        yield fact


# ─────────────────────── Public Extractor Class ───────────────────────


def _classify_failure(failure: FailureDescription) -> FailureDescription:
    if isinstance(failure.exception, UnsupportedKeyTypeError):
        return FailureDescription(
            ErrorCode.VALIDATION_ERROR, str(failure.exception), failure.exception
        )
    return failure


class PemCertificateExtractor:
    """
    Decode a PEM CA bundle into CertificateFacts.

    Implements the CertificateExtractor port. The generator is drained
    before the Result is built, so a bundle rejected halfway contributes
    no facts at all.
    """

    def extract(self, pem_bundle: bytes) -> Result[tuple[CertificateFact, ...]]:
        """
        Returns Result[tuple[CertificateFact, ...]] on success (possibly empty).
        Returns Result.failure(VALIDATION_ERROR, ...) for an unsupported key type,
        Result.failure(TECHNICAL_ERROR, ...) for anything else unexpected.
        """
        return (
            Result.from_computation(
                lambda: tuple(extract_certificate_facts(pem_bundle)),
                ErrorCode.TECHNICAL_ERROR,
                "Failed to extract certificates from PEM bundle",
            )
            .map_failure(_classify_failure)
            .peek(lambda facts: log.debug("extractor.complete", certificates=len(facts)))
        )
