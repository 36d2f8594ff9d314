"""Capability interfaces of the key backend.

The serving layer never implements key management itself. It reaches the
backend through one interface per role, which keeps test doubles small and
lets a deployment back each role with a different system.

Failures are reported by raising; implementations should raise
``BackendAppError`` (or a subclass) for expected failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from cryptography import x509


class CertificateProvider(ABC):
    @abstractmethod
    def lookup_certificates(self, keyname: str) -> list[x509.Certificate]:
        """Return the certificate chain for ``keyname``, leaf first by convention."""
        ...


class KeyNameProvider(ABC):
    @abstractmethod
    def active_key_name(self) -> str:
        """Return the name of the currently active key."""
        ...


class SecretChecker(ABC):
    @abstractmethod
    def check_secret(self, payload: bytes) -> bool:
        """Return whether ``payload`` is a currently valid secret."""
        ...


class SecretRotator(ABC):
    @abstractmethod
    def rotate_secret(self, payload: bytes) -> bytes:
        """Exchange ``payload`` for a new secret.

        The returned bytes are sent to the client unmodified with a JSON
        content type.
        """
        ...


class BlacklistReporter(ABC):
    @abstractmethod
    def report_blacklist(self, keyname: str) -> bool:
        """Blacklist ``keyname``.

        Returns:
            bool: True if the report caused a new key to be generated.
        """
        ...


class GenerationTrigger(ABC):
    @abstractmethod
    def trigger_generation(self) -> None:
        """Request generation of a new key. No outcome is reported."""
        ...


class PublicBackend(CertificateProvider, KeyNameProvider, SecretChecker, SecretRotator, ABC):
    """Capabilities consumed by the public listener."""


class AdminBackend(BlacklistReporter, GenerationTrigger, ABC):
    """Capabilities consumed by the admin listener."""


class KeyBackend(PublicBackend, AdminBackend, ABC):
    """A backend implementing every capability."""
