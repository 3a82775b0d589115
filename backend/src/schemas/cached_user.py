"""Cached user and token representations for auth caching."""
from dataclasses import dataclass
from uuid import UUID


@dataclass
class CachedUser:
    """
    Lightweight user representation for auth caching.

    Avoids ORM reconstruction - just the fields needed for auth checks, role
    gating and audit logging. This is also the object handed to route handlers
    as the authenticated user.

    WARNING: Do NOT access ORM relationships (carts, orders) on CachedUser.
    Those only exist on Customer ORM objects.
    """

    id: UUID
    email: str
    name: str
    role: str
    cached_at: float = 0.0


@dataclass
class CachedToken:
    """Result of a successful token verification: the token's subject."""

    subject_id: str
    cached_at: float
