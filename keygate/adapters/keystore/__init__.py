"""Key backend adapter layer - the collaborator behind both listeners."""

from keygate.adapters.keystore.base import (
    AdminBackend,
    BlacklistReporter,
    CertificateProvider,
    GenerationTrigger,
    KeyBackend,
    KeyNameProvider,
    PublicBackend,
    SecretChecker,
    SecretRotator,
)
from keygate.adapters.keystore.factory import create_key_backend
from keygate.adapters.keystore.memory import InMemoryKeyBackend

__all__ = [
    "AdminBackend",
    "BlacklistReporter",
    "CertificateProvider",
    "GenerationTrigger",
    "InMemoryKeyBackend",
    "KeyBackend",
    "KeyNameProvider",
    "PublicBackend",
    "SecretChecker",
    "SecretRotator",
    "create_key_backend",
]
