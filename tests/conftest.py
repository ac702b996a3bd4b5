"""
Shared test fixtures and helpers for the elb-trust-store-exporter test suite.

Certificates are generated on the fly with cryptography, so every test
knows the exact serial, subject, key size and validity it should see.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import NameOID

from elb_trust_store_exporter.domain.models import CertificateFact, KeyKind

NOT_BEFORE = datetime(2024, 1, 1, tzinfo=UTC)
NOT_AFTER = datetime(2034, 1, 1, tzinfo=UTC)

REGION = "eu-west-1"
ARN_A = "arn:aws:elasticloadbalancing:eu-west-1:123456789012:truststore/store-a/0123456789abcdef"
ARN_B = "arn:aws:elasticloadbalancing:eu-west-1:123456789012:truststore/store-b/fedcba9876543210"


def subject_name(common_name: str) -> x509.Name:
    return x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Corp"),
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ]
    )


def build_certificate(
    private_key: object,
    common_name: str,
    serial_number: int = 1000,
    not_before: datetime = NOT_BEFORE,
    not_after: datetime = NOT_AFTER,
    hash_algorithm: hashes.HashAlgorithm | None = None,
) -> x509.Certificate:
    """
    Build a self-signed CA certificate for `private_key`.

    Ed25519 keys sign without a separate digest; everything else defaults
    to SHA-256.
    """
    name = subject_name(common_name)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())  # type: ignore[attr-defined]
        .serial_number(serial_number)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
    )
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return builder.sign(private_key, None)
    return builder.sign(private_key, hash_algorithm or hashes.SHA256())  # type: ignore[arg-type]


def to_pem(certificate: x509.Certificate) -> bytes:
    return certificate.public_bytes(serialization.Encoding.PEM)


def private_key_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def sample_fact(serial_number: str = "1000", common_name: str = "RSA Root") -> CertificateFact:
    """A ready-made CertificateFact for tests that never touch X.509."""
    dn = f"CN={common_name},O=Example Corp,C=US"
    return CertificateFact(
        serial_number=serial_number,
        issuer=dn,
        subject=dn,
        signature_algorithm="SHA256-RSA",
        key_kind=KeyKind.RSA,
        key_length=2048,
        not_before=int(NOT_BEFORE.timestamp()),
        not_after=int(NOT_AFTER.timestamp()),
    )


# ─────────────────────── Keys (generated once per session) ───────────────────────


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec384_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP384R1())


@pytest.fixture(scope="session")
def ed25519_key() -> ed25519.Ed25519PrivateKey:
    return ed25519.Ed25519PrivateKey.generate()


# ─────────────────────── PEM certificates ───────────────────────


@pytest.fixture(scope="session")
def rsa_cert_pem(rsa_key: rsa.RSAPrivateKey) -> bytes:
    """Self-signed RSA 2048 CA, serial 1000, CN=RSA Root."""
    return to_pem(build_certificate(rsa_key, "RSA Root", serial_number=1000))


@pytest.fixture(scope="session")
def ec_cert_pem(ec_key: ec.EllipticCurvePrivateKey) -> bytes:
    """Self-signed ECDSA P-256 CA, serial 2000, CN=EC Root."""
    return to_pem(build_certificate(ec_key, "EC Root", serial_number=2000))


@pytest.fixture(scope="session")
def ed25519_cert_pem(ed25519_key: ed25519.Ed25519PrivateKey) -> bytes:
    """Self-signed Ed25519 CA, serial 3000, CN=Ed25519 Root."""
    return to_pem(build_certificate(ed25519_key, "Ed25519 Root", serial_number=3000))
