"""Role levels and endpoint classifications used by the request wrapper."""
from enum import StrEnum


class Role(StrEnum):
    """Customer role. Roles are hierarchical: root > admin > user."""

    USER = "user"
    ADMIN = "admin"
    ROOT = "root"


ROLE_LEVELS: dict[str, int] = {
    Role.USER: 1,
    Role.ADMIN: 2,
    Role.ROOT: 3,
}


class EndpointType(StrEnum):
    """Endpoint classification, used only for grouping audit records."""

    PUBLIC = "public"
    AUTH = "auth"
    API = "api"
    ADMIN = "admin"
    CHECKOUT = "checkout"


def has_role(user_role: str, required_role: str) -> bool:
    """
    Check whether a role satisfies a required role level.

    Unknown roles have level 0 and never satisfy anything.
    """
    return ROLE_LEVELS.get(user_role, 0) >= ROLE_LEVELS.get(required_role, 0) > 0
