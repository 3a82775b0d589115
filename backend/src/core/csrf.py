"""HMAC-signed CSRF tokens."""
import hashlib
import hmac
import secrets

from core.secrets import SecretProvider
from services.exceptions import InternalError

CSRF_COOKIE_NAME = "csrf-token"
CSRF_SECRET_NAME = "CSRF_SECRET"
CSRF_TOKEN_MAX_AGE = 60 * 60  # 1 hour


class CsrfTokens:
    """
    Issues CSRF tokens of the form `<random hex>.<hmac-sha256 hex>`.

    Tokens are stateless: the signature over the random part is computed with
    the server secret, so a token can be checked without storing it.
    """

    def __init__(self, secret_provider: SecretProvider) -> None:
        self._secret_provider = secret_provider
        self._secret: bytes | None = None

    async def _get_secret(self) -> bytes:
        if self._secret is None:
            secret = await self._secret_provider.get_secret(CSRF_SECRET_NAME)
            if not secret:
                raise InternalError(f"{CSRF_SECRET_NAME} is not configured")
            self._secret = secret.encode("utf-8")
        return self._secret

    async def generate(self) -> str:
        """Create a new signed token."""
        secret = await self._get_secret()
        value = secrets.token_hex(32)
        signature = hmac.new(secret, value.encode("utf-8"), hashlib.sha256).hexdigest()
        return f"{value}.{signature}"
