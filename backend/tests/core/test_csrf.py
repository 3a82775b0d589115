"""Tests for CSRF token signing."""
import hashlib
import hmac

import pytest

from core.csrf import CsrfTokens
from services.exceptions import InternalError
from tests.factories import TEST_CSRF_SECRET


class StaticSecrets:
    def __init__(self, secrets: dict[str, str]) -> None:
        self.secrets = secrets

    async def get_secret(self, name: str) -> str | None:
        return self.secrets.get(name)


def expected_signature(secret: str, value: str) -> str:
    return hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).hexdigest()


@pytest.fixture
def tokens() -> CsrfTokens:
    return CsrfTokens(StaticSecrets({"CSRF_SECRET": TEST_CSRF_SECRET}))


async def test__generate__signs_random_part_with_secret(tokens: CsrfTokens) -> None:
    """A token is a random hex part and its HMAC-SHA256 under the server secret."""
    token = await tokens.generate()

    value, _, signature = token.partition(".")
    assert len(value) == 64
    assert signature == expected_signature(TEST_CSRF_SECRET, value)


async def test__generate__tokens_are_unique(tokens: CsrfTokens) -> None:
    """Each token has a fresh random part."""
    assert await tokens.generate() != await tokens.generate()


async def test__generate__depends_on_secret() -> None:
    """A different secret gives a signature that does not match ours."""
    other = CsrfTokens(StaticSecrets({"CSRF_SECRET": "another-csrf-secret-that-is-long-enough"}))

    value, _, signature = (await other.generate()).partition(".")

    assert signature != expected_signature(TEST_CSRF_SECRET, value)


async def test__generate__missing_secret_is_internal_error() -> None:
    """An unconfigured secret is a server error."""
    with pytest.raises(InternalError):
        await CsrfTokens(StaticSecrets({})).generate()
