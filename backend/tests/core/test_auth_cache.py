"""Tests for the auth caching module."""
from uuid import uuid4

import pytest

from core.auth_cache import AuthCache
from schemas.cached_user import CachedUser


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_user(role: str = "user") -> CachedUser:
    return CachedUser(id=uuid4(), email="cached@example.com", name="Cached", role=role)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> AuthCache:
    return AuthCache(clock=clock)


class TestUserCache:
    """Tests for the user entries (5 minute TTL)."""

    def test__get_cached_user__returns_none_on_miss(self, cache: AuthCache) -> None:
        """Cache miss returns None."""
        assert cache.get_cached_user("unknown-token") is None

    def test__get_cached_user__returns_entry_before_ttl(
        self, cache: AuthCache, clock: FakeClock,
    ) -> None:
        """An entry is served while younger than the TTL."""
        user = make_user()
        cache.cache_user("token-a", user)

        clock.advance(AuthCache.USER_CACHE_TTL - 0.001)
        cached = cache.get_cached_user("token-a")

        assert cached is not None
        assert cached.id == user.id
        assert cached.email == user.email
        assert cached.role == "user"

    def test__get_cached_user__expires_exactly_at_ttl(
        self, cache: AuthCache, clock: FakeClock,
    ) -> None:
        """An entry exactly TTL old is stale and is removed on read."""
        cache.cache_user("token-a", make_user())

        clock.advance(AuthCache.USER_CACHE_TTL)

        assert cache.get_cached_user("token-a") is None
        assert cache.stats()["user_cache_size"] == 0

    def test__cache_user__overwrites_and_restamps(
        self, cache: AuthCache, clock: FakeClock,
    ) -> None:
        """Caching again replaces the entry and restarts its TTL."""
        first = make_user()
        cache.cache_user("token-a", first)
        clock.advance(200)
        second = make_user(role="admin")
        cache.cache_user("token-a", second)
        clock.advance(200)

        cached = cache.get_cached_user("token-a")

        assert cached is not None
        assert cached.id == second.id
        assert cached.role == "admin"

    def test__invalidate_user_cache__removes_immediately(self, cache: AuthCache) -> None:
        """Invalidation removes the entry without waiting for the TTL."""
        cache.cache_user("token-a", make_user())

        cache.invalidate_user_cache("token-a")

        assert cache.get_cached_user("token-a") is None

    def test__invalidate_user_cache__missing_token_is_noop(self, cache: AuthCache) -> None:
        """Invalidating an unknown token does not raise."""
        cache.invalidate_user_cache("never-cached")

    def test__invalidate_user__removes_all_tokens_of_user(self, cache: AuthCache) -> None:
        """All entries of one user are removed; other users are kept."""
        target = make_user()
        other = make_user()
        cache.cache_user("token-1", target)
        cache.cache_user("token-2", target)
        cache.cache_user("token-3", other)

        removed = cache.invalidate_user(target.id)

        assert removed == 2
        assert cache.get_cached_user("token-1") is None
        assert cache.get_cached_user("token-2") is None
        assert cache.get_cached_user("token-3") is not None


class TestTokenCache:
    """Tests for the token entries (1 minute TTL)."""

    def test__get_cached_token__returns_entry_before_ttl(
        self, cache: AuthCache, clock: FakeClock,
    ) -> None:
        """A verification result is served while younger than the TTL."""
        subject = str(uuid4())
        cache.cache_token("token-a", subject)

        clock.advance(AuthCache.TOKEN_CACHE_TTL - 0.001)
        cached = cache.get_cached_token("token-a")

        assert cached is not None
        assert cached.subject_id == subject

    def test__get_cached_token__expires_at_ttl(
        self, cache: AuthCache, clock: FakeClock,
    ) -> None:
        """Token entries expire after 60 seconds, well before user entries."""
        cache.cache_token("token-a", str(uuid4()))
        cache.cache_user("token-a", make_user())

        clock.advance(AuthCache.TOKEN_CACHE_TTL)

        assert cache.get_cached_token("token-a") is None
        assert cache.get_cached_user("token-a") is not None

    def test__logout__clears_both_entries(self, cache: AuthCache) -> None:
        """After both invalidations nothing is served for the token."""
        cache.cache_user("token-a", make_user())
        cache.cache_token("token-a", str(uuid4()))

        cache.invalidate_user_cache("token-a")
        cache.invalidate_token_cache("token-a")

        assert cache.get_cached_user("token-a") is None
        assert cache.get_cached_token("token-a") is None

    def test__clear__drops_everything(self, cache: AuthCache) -> None:
        """clear() empties both maps."""
        cache.cache_user("token-a", make_user())
        cache.cache_token("token-b", str(uuid4()))

        cache.clear()

        assert cache.stats() == {"user_cache_size": 0, "token_cache_size": 0}


def test__ttls__match_documented_values() -> None:
    """User entries live 5 minutes, token entries 1 minute."""
    assert AuthCache.USER_CACHE_TTL == 300
    assert AuthCache.TOKEN_CACHE_TTL == 60
