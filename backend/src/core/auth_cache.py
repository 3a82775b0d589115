"""Authentication caching for reduced token verification and database load."""
import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from schemas.cached_user import CachedToken, CachedUser

if TYPE_CHECKING:
    from uuid import UUID

    from models.customer import Customer

logger = logging.getLogger(__name__)


class AuthCache:
    """
    Process-local cache of verified session tokens.

    Two maps keyed by the raw session token:
    - user entries: the customer record resolved for the token (5 minutes)
    - token entries: the verified token's subject id (1 minute - token validity
      changes faster than profile data, so a verification failure is caught sooner)

    Expiry is lazy: a stale entry is deleted by the read that discovers it, there
    is no background sweep. There is also no size bound, which is acceptable for a
    single long-lived instance with a bounded number of live sessions.

    None of the methods await, so each check-then-set runs atomically on the
    event loop. A multi-threaded runtime would need a lock per map.
    """

    USER_CACHE_TTL = 300  # 5 minutes
    TOKEN_CACHE_TTL = 60  # 1 minute

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize empty caches; `clock` returns seconds and is replaceable in tests."""
        self._clock = clock
        self._users: dict[str, CachedUser] = {}
        self._tokens: dict[str, CachedToken] = {}

    def cache_user(self, token: str, user: "Customer | CachedUser") -> CachedUser:
        """
        Cache user data for a token, overwriting any existing entry.

        Args:
            token: The raw session token.
            user: Customer ORM object (or an existing CachedUser) to cache.

        Returns:
            The cached entry, stamped with the current time.
        """
        cached = CachedUser(
            id=user.id,
            email=user.email,
            name=user.name or "",
            role=user.role,
            cached_at=self._clock(),
        )
        self._users[token] = cached
        logger.debug("auth_cache_set user_id=%s", cached.id)
        return cached

    def get_cached_user(self, token: str) -> CachedUser | None:
        """
        Get the cached user for a token.

        Returns:
            CachedUser if present and younger than USER_CACHE_TTL, None otherwise.
            A stale entry is removed.
        """
        cached = self._users.get(token)
        if cached is None:
            logger.debug("auth_cache_miss kind=user")
            return None
        if self._clock() - cached.cached_at < self.USER_CACHE_TTL:
            logger.debug("auth_cache_hit kind=user user_id=%s", cached.id)
            return cached
        del self._users[token]
        logger.debug("auth_cache_expired kind=user user_id=%s", cached.id)
        return None

    def cache_token(self, token: str, subject_id: str) -> CachedToken:
        """Cache a token verification result, overwriting any existing entry."""
        cached = CachedToken(subject_id=subject_id, cached_at=self._clock())
        self._tokens[token] = cached
        return cached

    def get_cached_token(self, token: str) -> CachedToken | None:
        """
        Get the cached verification result for a token.

        Returns:
            CachedToken if present and younger than TOKEN_CACHE_TTL, None otherwise.
            A stale entry is removed.
        """
        cached = self._tokens.get(token)
        if cached is None:
            logger.debug("auth_cache_miss kind=token")
            return None
        if self._clock() - cached.cached_at < self.TOKEN_CACHE_TTL:
            logger.debug("auth_cache_hit kind=token")
            return cached
        del self._tokens[token]
        logger.debug("auth_cache_expired kind=token")
        return None

    def invalidate_user_cache(self, token: str) -> None:
        """Remove the user entry for a token (logout, profile change)."""
        self._users.pop(token, None)

    def invalidate_token_cache(self, token: str) -> None:
        """Remove the token entry for a token (logout)."""
        self._tokens.pop(token, None)

    def invalidate_user(self, user_id: "UUID") -> int:
        """
        Remove every user entry belonging to a user.

        Used when the profile changes through someone else's request (e.g., an
        admin changing a role), where the user's tokens are not known.

        Returns:
            Number of entries removed.
        """
        stale = [token for token, cached in self._users.items() if cached.id == user_id]
        for token in stale:
            del self._users[token]
        logger.debug("auth_cache_invalidate user_id=%s entries=%s", user_id, len(stale))
        return len(stale)

    def clear(self) -> None:
        """Drop all entries."""
        self._users.clear()
        self._tokens.clear()

    def stats(self) -> dict[str, int]:
        """Entry counts for monitoring (may include not-yet-read stale entries)."""
        return {
            "user_cache_size": len(self._users),
            "token_cache_size": len(self._tokens),
        }
