"""Session token verification, password hashing and request authentication."""
import logging
import time
from uuid import UUID

import bcrypt
import jwt
from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.auth_cache import AuthCache
from core.request_context import ROLE_LEVELS
from core.secrets import SecretProvider
from models.customer import Customer
from schemas.cached_user import CachedUser
from services.exceptions import AuthenticationError, InternalError, InvalidTokenError

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = "auth-token"
JWT_SECRET_NAME = "JWT_SECRET"
JWT_ALGORITHM = "HS256"


class TokenVerifier:
    """
    Signs and verifies HS256 session tokens.

    The signing secret is fetched from the SecretProvider on first use and kept
    for the life of the verifier.
    """

    def __init__(
        self,
        secret_provider: SecretProvider,
        issuer: str,
        max_age_seconds: int = 7 * 24 * 60 * 60,
    ) -> None:
        self._secret_provider = secret_provider
        self._issuer = issuer
        self._max_age_seconds = max_age_seconds
        self._secret: str | None = None

    async def _get_secret(self) -> str:
        if self._secret is None:
            secret = await self._secret_provider.get_secret(JWT_SECRET_NAME)
            if not secret:
                raise InternalError(f"{JWT_SECRET_NAME} is not configured")
            self._secret = secret
        return self._secret

    async def verify(self, token: str) -> str:
        """
        Validate a session token and return its subject (customer id).

        Raises:
            InvalidTokenError: Bad signature, wrong issuer, expired, or no usable subject.
        """
        secret = await self._get_secret()
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                issuer=self._issuer,
                options={"require": ["exp", "iss", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token has expired")
        except jwt.InvalidIssuerError:
            raise InvalidTokenError("Invalid issuer")
        except jwt.PyJWTError as e:
            logger.debug("token_verification_failed: %s", e)
            raise InvalidTokenError("Invalid token")

        subject = payload.get("sub")
        try:
            UUID(str(subject))
        except ValueError:
            raise InvalidTokenError("Invalid token subject")
        return str(subject)

    async def issue(self, customer: Customer | CachedUser) -> str:
        """Sign a session token for a customer, valid for the configured lifetime."""
        secret = await self._get_secret()
        now = int(time.time())
        payload = {
            "sub": str(customer.id),
            "email": customer.email,
            "name": customer.name,
            "role": customer.role,
            "iss": self._issuer,
            "iat": now,
            "exp": now + self._max_age_seconds,
        }
        return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a bcrypt hash. Accounts without a hash never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        logger.warning("password_hash_invalid")
        return False


async def authenticate_token(
    token: str,
    cache: AuthCache,
    verifier: TokenVerifier,
    session_factory: async_sessionmaker[AsyncSession],
) -> CachedUser:
    """
    Resolve a session token to a user, using the cache where possible.

    Order: user cache -> token cache (or verify once and cache the result) ->
    customer lookup -> cache the user. A user cache hit does no verification
    and no database access.

    Raises:
        InvalidTokenError: Token failed verification.
        AuthenticationError: Token subject no longer exists or has an unknown role.
    """
    cached_user = cache.get_cached_user(token)
    if cached_user is not None:
        return cached_user

    cached_token = cache.get_cached_token(token)
    if cached_token is not None:
        subject_id = cached_token.subject_id
    else:
        subject_id = await verifier.verify(token)
        cache.cache_token(token, subject_id)

    async with session_factory() as session:
        result = await session.execute(
            select(Customer).where(Customer.id == UUID(subject_id)),
        )
        customer = result.scalar_one_or_none()

    if customer is None:
        raise AuthenticationError("User not found")
    if customer.role not in ROLE_LEVELS:
        logger.warning("auth_invalid_role", extra={"user_id": subject_id})
        raise AuthenticationError("Invalid user role")

    return cache.cache_user(token, customer)


async def authenticate_request(request: Request) -> CachedUser:
    """
    Authenticate a request from its session cookie.

    Raises:
        AuthenticationError: No cookie, or the token does not resolve to a user.
    """
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise AuthenticationError("No token provided")

    state = request.app.state
    return await authenticate_token(
        token,
        state.auth_cache,
        state.token_verifier,
        state.session_factory,
    )
