"""In-memory key backend for development and tests.

Keeps every generated key in process memory: an EC P-256 private key, a
self-signed certificate whose common name is the key name, and an HMAC key
used to mint and verify secrets.

Secret format::

    <keyname>.<nonce hex>.<hmac-sha256(hmac_key, nonce) hex>

A secret is valid while its key exists and is not blacklisted. Rotation
returns a JSON document ``{"keyname": ..., "secret": ...}`` minted under the
active key; rotating accepts either a bare secret or such a document.

Nothing is persisted: restarting the process discards all keys.
"""

from __future__ import annotations

import datetime
import hashlib
import hmac
import json
import logging
import secrets
import threading
from collections import OrderedDict
from dataclasses import dataclass, field

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from keygate.adapters.keystore.base import KeyBackend
from keygate.core.errors import BackendAppError, KeyNotFoundAppError, ValidationAppError

logger = logging.getLogger(__name__)

NONCE_BYTES = 16
HMAC_KEY_BYTES = 32


@dataclass
class KeyMaterial:
    """Everything the backend holds for one key."""

    name: str
    private_key: ec.EllipticCurvePrivateKey
    certificate: x509.Certificate
    hmac_key: bytes = field(repr=False)
    created_at: datetime.datetime
    blacklisted: bool = False


def _self_signed_certificate(
    name: str,
    private_key: ec.EllipticCurvePrivateKey,
    *,
    now: datetime.datetime,
    validity_days: int,
) -> x509.Certificate:
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, name)])
    return (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=validity_days))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(private_key, hashes.SHA256())
    )


def _sign(hmac_key: bytes, nonce: bytes) -> str:
    return hmac.new(hmac_key, nonce, hashlib.sha256).hexdigest()


class InMemoryKeyBackend(KeyBackend):
    """Thread-safe in-memory implementation of every backend capability.

    Args:
        key_prefix: Prefix for generated key names.
        cert_validity_days: Validity of generated certificates.
        generate_initial_key: Create and activate a key on construction.
    """

    def __init__(
        self,
        *,
        key_prefix: str = "key",
        cert_validity_days: int = 90,
        generate_initial_key: bool = True,
    ) -> None:
        if not key_prefix:
            raise ValueError("key_prefix must be a non-empty string")
        if cert_validity_days < 1:
            raise ValueError("cert_validity_days must be >= 1")

        self._key_prefix = key_prefix
        self._cert_validity_days = cert_validity_days
        self._keys: OrderedDict[str, KeyMaterial] = OrderedDict()
        self._active: str | None = None
        self._lock = threading.RLock()

        if generate_initial_key:
            self.generate_key()

    def generate_key(self) -> str:
        """Generate a new key, make it active and return its name."""

        now = datetime.datetime.now(datetime.timezone.utc)
        name = f"{self._key_prefix}-{secrets.token_hex(6)}"
        private_key = ec.generate_private_key(ec.SECP256R1())
        material = KeyMaterial(
            name=name,
            private_key=private_key,
            certificate=_self_signed_certificate(
                name, private_key, now=now, validity_days=self._cert_validity_days
            ),
            hmac_key=secrets.token_bytes(HMAC_KEY_BYTES),
            created_at=now,
        )

        with self._lock:
            self._keys[name] = material
            self._active = name

        logger.info("keystore.key_generated", extra={"keyname": name})
        return name

    def key_names(self) -> list[str]:
        with self._lock:
            return list(self._keys)

    def is_blacklisted(self, keyname: str) -> bool:
        return self._get(keyname).blacklisted

    def mint_secret(self, keyname: str | None = None) -> bytes:
        """Mint a secret under ``keyname`` (default: the active key)."""

        with self._lock:
            material = self._get(keyname or self.active_key_name())
            nonce = secrets.token_bytes(NONCE_BYTES)
            token = f"{material.name}.{nonce.hex()}.{_sign(material.hmac_key, nonce)}"
        return token.encode("ascii")

    # CertificateProvider

    def lookup_certificates(self, keyname: str) -> list[x509.Certificate]:
        return [self._get(keyname).certificate]

    # KeyNameProvider

    def active_key_name(self) -> str:
        with self._lock:
            if self._active is None:
                raise BackendAppError(
                    code="no_active_key",
                    message="no key has been generated yet",
                )
            return self._active

    # SecretChecker

    def check_secret(self, payload: bytes) -> bool:
        token = _extract_token(payload)
        if token is None:
            return False

        keyname, nonce_hex, signature = token
        with self._lock:
            material = self._keys.get(keyname)
            if material is None or material.blacklisted:
                return False
            try:
                nonce = bytes.fromhex(nonce_hex)
            except ValueError:
                return False
            return hmac.compare_digest(_sign(material.hmac_key, nonce), signature)

    # SecretRotator

    def rotate_secret(self, payload: bytes) -> bytes:
        if not self.check_secret(payload):
            raise ValidationAppError(
                code="invalid_secret",
                message="secret is not valid and cannot be rotated",
            )

        with self._lock:
            keyname = self.active_key_name()
            new_secret = self.mint_secret(keyname)

        return json.dumps(
            {"keyname": keyname, "secret": new_secret.decode("ascii")},
            separators=(",", ":"),
        ).encode("utf-8")

    # BlacklistReporter

    def report_blacklist(self, keyname: str) -> bool:
        with self._lock:
            material = self._get(keyname)
            already = material.blacklisted
            material.blacklisted = True
            regenerate = keyname == self._active

        logger.warning(
            "keystore.key_blacklisted",
            extra={"keyname": keyname, "already_blacklisted": already, "active": regenerate},
        )

        if regenerate:
            self.generate_key()
        return regenerate

    # GenerationTrigger

    def trigger_generation(self) -> None:
        self.generate_key()

    def _get(self, keyname: str) -> KeyMaterial:
        with self._lock:
            material = self._keys.get(keyname)
        if material is None:
            raise KeyNotFoundAppError(
                code="key_not_found",
                message=f"unknown key name: {keyname!r}",
                details={"keyname": keyname},
            )
        return material


def _extract_token(payload: bytes) -> tuple[str, str, str] | None:
    """Split a secret (bare or wrapped in a rotation document) into its parts."""

    try:
        text = payload.decode("ascii").strip()
    except UnicodeDecodeError:
        return None

    if text.startswith("{"):
        try:
            document = json.loads(text)
        except json.JSONDecodeError:
            return None
        text = document.get("secret", "") if isinstance(document, dict) else ""
        if not isinstance(text, str):
            return None

    parts = text.rsplit(".", 2)
    if len(parts) != 3 or not all(parts):
        return None
    return parts[0], parts[1], parts[2]
