"""Account endpoints: register, login, logout, current user, password reset."""
import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    clear_auth_cookie,
    get_async_session,
    get_request_user,
    get_settings,
    set_auth_cookie,
)
from core.auth import AUTH_COOKIE_NAME
from core.config import Settings
from core.request_wrapper import AuthorizedRoute, auth_request
from schemas.auth import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
)
from schemas.cached_user import CachedUser
from services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"], route_class=AuthorizedRoute)

PASSWORD_RESET_MESSAGE = "If an account exists for this email, a reset link has been sent"


@router.post("/register", response_model=AuthResponse, status_code=201)
@auth_request("auth_register")
async def register(
    data: RegisterRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Create an account and sign it in."""
    customer = await user_service.register_customer(db, data)
    token = await request.app.state.token_verifier.issue(customer)
    set_auth_cookie(response, token, settings)
    return AuthResponse(user=UserResponse.model_validate(customer))


@router.post("/login", response_model=AuthResponse)
@auth_request("auth_login")
async def login(
    data: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    """Sign in with email and password."""
    customer = await user_service.authenticate_credentials(db, data.email, data.password)
    token = await request.app.state.token_verifier.issue(customer)
    set_auth_cookie(response, token, settings)
    logger.info("customer_logged_in", extra={"user_id": str(customer.id)})
    return AuthResponse(user=UserResponse.model_validate(customer))


@router.post("/logout", response_model=MessageResponse)
@auth_request("auth_logout")
async def logout(
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Sign out: forget the session token in both caches and clear the cookie."""
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if token:
        auth_cache = request.app.state.auth_cache
        auth_cache.invalidate_user_cache(token)
        auth_cache.invalidate_token_cache(token)
    clear_auth_cookie(response, settings)
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=AuthResponse)
@auth_request("auth_me")
async def me(
    current_user: CachedUser = Depends(get_request_user),
) -> AuthResponse:
    """The signed-in user."""
    return AuthResponse(user=UserResponse(
        id=current_user.id,
        email=current_user.email,
        name=current_user.name,
        role=current_user.role,
    ))


@router.post("/forgot-password", response_model=MessageResponse)
@auth_request("auth_forgot_password")
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """
    Request a password reset email.

    Responds the same whether or not an account exists for the email.
    """
    await user_service.request_password_reset(db, data.email)
    return MessageResponse(message=PASSWORD_RESET_MESSAGE)
