"""FastAPI dependencies for injection."""
from fastapi import Request, Response

from core.auth import AUTH_COOKIE_NAME
from core.config import Settings
from db.session import get_async_session
from schemas.cached_user import CachedUser
from services.exceptions import AuthenticationError

CART_COOKIE_NAME = "cart_id"
CART_COOKIE_MAX_AGE = 30 * 24 * 60 * 60  # 30 days


def get_settings(request: Request) -> Settings:
    """Settings the running app was created with."""
    return request.app.state.settings


def get_optional_user(request: Request) -> CachedUser | None:
    """User resolved by the request wrapper, or None for anonymous requests."""
    return getattr(request.state, "user", None)


def get_request_user(request: Request) -> CachedUser:
    """
    User resolved by the request wrapper.

    Raises:
        AuthenticationError: The request is anonymous.
    """
    user = get_optional_user(request)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    """Set the session cookie."""
    response.set_cookie(
        AUTH_COOKIE_NAME,
        token,
        max_age=settings.auth_token_max_age,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    """Expire the session cookie."""
    response.set_cookie(
        AUTH_COOKIE_NAME,
        "",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="strict",
    )


def set_cart_cookie(response: Response, cart_id: str, settings: Settings) -> None:
    """Remember the visitor's cart."""
    response.set_cookie(
        CART_COOKIE_NAME,
        cart_id,
        max_age=CART_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_cart_cookie(response: Response, settings: Settings) -> None:
    """Forget the visitor's cart."""
    response.set_cookie(
        CART_COOKIE_NAME,
        "",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


__all__ = [
    "CART_COOKIE_NAME",
    "clear_auth_cookie",
    "clear_cart_cookie",
    "get_async_session",
    "get_optional_user",
    "get_request_user",
    "get_settings",
    "set_auth_cookie",
    "set_cart_cookie",
]
