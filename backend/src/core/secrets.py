"""Secret lookup for signing keys."""
from typing import Protocol

from core.config import Settings


class SecretProvider(Protocol):
    """Source of server-held secrets (environment, secret manager, ...)."""

    async def get_secret(self, name: str) -> str | None:
        """Return the secret value, or None if it is not configured."""
        ...


class SettingsSecretProvider:
    """Secret provider backed by application settings (environment / .env)."""

    _FIELDS = {
        "JWT_SECRET": "jwt_secret",
        "CSRF_SECRET": "csrf_secret",
    }

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def get_secret(self, name: str) -> str | None:
        """Look up a secret by its environment variable name."""
        field = self._FIELDS.get(name)
        if field is None:
            return None
        return getattr(self._settings, field) or None
