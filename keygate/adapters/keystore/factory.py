"""Factory for the key backend selected in configuration."""

from keygate.adapters.keystore.base import KeyBackend
from keygate.adapters.keystore.memory import InMemoryKeyBackend
from keygate.core.config import BackendSettings, settings
from keygate.core.errors import ValidationAppError


def create_key_backend(backend_settings: BackendSettings | None = None) -> KeyBackend:
    """Instantiate the key backend for the configured provider.

    Args:
        backend_settings: Optional settings; defaults to the global settings.

    Returns:
        KeyBackend: Backend implementing every capability.

    Raises:
        ValidationAppError: If the provider is unknown.
    """
    cfg = backend_settings or settings.backend
    provider = cfg.provider.lower()

    if provider == "memory":
        return InMemoryKeyBackend(
            key_prefix=cfg.key_prefix,
            cert_validity_days=cfg.cert_validity_days,
        )

    raise ValidationAppError(
        code="backend_unknown_provider",
        message=f"Unknown key backend provider: '{provider}'. Supported providers: memory",
    )
