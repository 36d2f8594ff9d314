"""PEM encoding for certificate chains."""

from __future__ import annotations

from typing import Iterable

from cryptography import x509
from cryptography.hazmat.primitives import serialization


def encode_certificates_pem(certificates: Iterable[x509.Certificate]) -> bytes:
    """Concatenate ``-----BEGIN CERTIFICATE-----`` blocks in the given order."""

    return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in certificates)
