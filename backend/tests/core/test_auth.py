"""Tests for token verification, password hashing and token authentication."""
import time
from uuid import uuid4

import jwt
import pytest
from fastapi import FastAPI

from core.auth import (
    JWT_ALGORITHM,
    TokenVerifier,
    authenticate_token,
    hash_password,
    verify_password,
)
from core.auth_cache import AuthCache
from models import Customer
from services.exceptions import AuthenticationError, InternalError, InvalidTokenError
from tests.factories import TEST_JWT_SECRET, create_customer

ISSUER = "storefront"


class StaticSecrets:
    """Secret provider returning fixed values and counting lookups."""

    def __init__(self, secrets: dict[str, str]) -> None:
        self.secrets = secrets
        self.calls = 0

    async def get_secret(self, name: str) -> str | None:
        self.calls += 1
        return self.secrets.get(name)


class CountingVerifier(TokenVerifier):
    """TokenVerifier that counts verify() calls."""

    def __init__(self) -> None:
        super().__init__(StaticSecrets({"JWT_SECRET": TEST_JWT_SECRET}), issuer=ISSUER)
        self.verify_calls = 0

    async def verify(self, token: str) -> str:
        self.verify_calls += 1
        return await super().verify(token)


def sign(payload: dict, secret: str = TEST_JWT_SECRET) -> str:
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def valid_payload(**overrides: object) -> dict:
    now = int(time.time())
    payload = {"sub": str(uuid4()), "iss": ISSUER, "iat": now, "exp": now + 3600}
    payload.update(overrides)
    return payload


@pytest.fixture
def verifier() -> TokenVerifier:
    return TokenVerifier(StaticSecrets({"JWT_SECRET": TEST_JWT_SECRET}), issuer=ISSUER)


class TestTokenVerifier:
    """Tests for TokenVerifier."""

    async def test__verify__returns_subject(self, verifier: TokenVerifier) -> None:
        """A valid token yields its subject."""
        payload = valid_payload()
        assert await verifier.verify(sign(payload)) == payload["sub"]

    async def test__verify__rejects_bad_signature(self, verifier: TokenVerifier) -> None:
        """A token signed with another secret is rejected."""
        token = sign(valid_payload(), secret="another-secret-that-is-also-long-enough-xx")
        with pytest.raises(InvalidTokenError):
            await verifier.verify(token)

    async def test__verify__rejects_expired(self, verifier: TokenVerifier) -> None:
        """An expired token is rejected."""
        token = sign(valid_payload(exp=int(time.time()) - 10))
        with pytest.raises(InvalidTokenError, match="expired"):
            await verifier.verify(token)

    async def test__verify__rejects_wrong_issuer(self, verifier: TokenVerifier) -> None:
        """A token from another issuer is rejected."""
        with pytest.raises(InvalidTokenError, match="issuer"):
            await verifier.verify(sign(valid_payload(iss="someone-else")))

    async def test__verify__rejects_non_uuid_subject(self, verifier: TokenVerifier) -> None:
        """The subject must be a customer id."""
        with pytest.raises(InvalidTokenError):
            await verifier.verify(sign(valid_payload(sub="not-a-uuid")))

    async def test__verify__rejects_garbage(self, verifier: TokenVerifier) -> None:
        """A malformed token is rejected."""
        with pytest.raises(InvalidTokenError):
            await verifier.verify("not.a.token")

    async def test__verify__missing_secret_is_internal_error(self) -> None:
        """An unconfigured secret is a server error, not an auth failure."""
        verifier = TokenVerifier(StaticSecrets({}), issuer=ISSUER)
        with pytest.raises(InternalError):
            await verifier.verify(sign(valid_payload()))

    async def test__secret__fetched_once(self) -> None:
        """The secret provider is consulted only on first use."""
        secrets = StaticSecrets({"JWT_SECRET": TEST_JWT_SECRET})
        verifier = TokenVerifier(secrets, issuer=ISSUER)

        await verifier.verify(sign(valid_payload()))
        await verifier.verify(sign(valid_payload()))

        assert secrets.calls == 1

    async def test__issue__round_trips_through_verify(self, verifier: TokenVerifier) -> None:
        """An issued token verifies to the customer's id."""
        customer = Customer(id=uuid4(), email="a@example.com", name="A", role="user")
        token = await verifier.issue(customer)
        assert await verifier.verify(token) == str(customer.id)


class TestPasswords:
    """Tests for bcrypt password helpers."""

    def test__verify_password__accepts_correct_password(self) -> None:
        """The original password matches its hash."""
        hashed = hash_password("s3cret-password")
        assert verify_password("s3cret-password", hashed) is True

    def test__verify_password__rejects_wrong_password(self) -> None:
        """Another password does not match."""
        hashed = hash_password("s3cret-password")
        assert verify_password("wrong-password", hashed) is False

    def test__verify_password__no_hash_never_matches(self) -> None:
        """Accounts without a password hash cannot sign in with a password."""
        assert verify_password("anything", None) is False

    def test__verify_password__malformed_hash_is_false(self) -> None:
        """A corrupt stored hash is treated as a mismatch."""
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestAuthenticateToken:
    """Tests for the cache-first token authentication flow."""

    async def test__authenticate_token__verifies_once_then_uses_cache(self, app: FastAPI) -> None:
        """The first call verifies and loads; later calls are served from the user cache."""
        async with app.state.session_factory() as session:
            customer = await create_customer(session)
        verifier = CountingVerifier()
        token = await verifier.issue(customer)
        cache = AuthCache()

        first = await authenticate_token(token, cache, verifier, app.state.session_factory)
        second = await authenticate_token(token, cache, verifier, app.state.session_factory)

        assert first.id == customer.id
        assert second.id == customer.id
        assert verifier.verify_calls == 1

    async def test__authenticate_token__token_cache_skips_verification(self, app: FastAPI) -> None:
        """With only a token entry cached, the customer is loaded without verifying."""
        async with app.state.session_factory() as session:
            customer = await create_customer(session)
        verifier = CountingVerifier()
        token = await verifier.issue(customer)
        cache = AuthCache()
        cache.cache_token(token, str(customer.id))

        user = await authenticate_token(token, cache, verifier, app.state.session_factory)

        assert user.email == customer.email
        assert verifier.verify_calls == 0

    async def test__authenticate_token__unknown_subject(self, app: FastAPI) -> None:
        """A valid token for a deleted customer fails authentication."""
        verifier = CountingVerifier()
        token = sign(valid_payload())

        with pytest.raises(AuthenticationError, match="User not found"):
            await authenticate_token(token, AuthCache(), verifier, app.state.session_factory)

    async def test__authenticate_token__invalid_token_not_cached(self, app: FastAPI) -> None:
        """A failed verification leaves no cache entries behind."""
        cache = AuthCache()
        with pytest.raises(InvalidTokenError):
            await authenticate_token("garbage", cache, CountingVerifier(), app.state.session_factory)
        assert cache.stats() == {"user_cache_size": 0, "token_cache_size": 0}
