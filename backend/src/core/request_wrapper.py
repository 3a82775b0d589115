"""
Request authorization and audit wrapper.

Route handlers declare their policy with one of the presets below:

    @router.post("/items", status_code=201)
    @authenticated_request("cart_add_item")
    async def add_item(...): ...

and are served by AuthorizedRoute (set as the router's `route_class`), which
wraps FastAPI's own handler - request parsing, dependency resolution and the
endpoint - so that every request goes through, in this order:

1. rate limit check (when the preset selects a bucket)
2. authentication, attempted even when not required
3. role check, when a user was resolved
4. the handler

A failure in 1-3 short-circuits with 429/401/403 and the handler never runs.
Client errors from the taxonomy in services.exceptions (and FastAPI's HTTPException /
request validation errors) become their JSON error response. Anything else
becomes a 500, is logged with its traceback, and is re-raised so the server's
error reporting sees it; the app-level exception handler sends the response
prepared here.

Exactly one audit record is written per request, from a finally block, and a
failing audit pipeline never changes the response.
"""
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.audit_logger import HttpError
from core.auth import authenticate_request
from core.rate_limit_config import RateLimitType
from core.rate_limiter import get_client_ip
from core.request_context import EndpointType, Role, has_role
from schemas.cached_user import CachedUser
from services.exceptions import (
    ApiError,
    AuthenticationError,
    AuthorizationError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

REQUEST_OPTIONS_ATTR = "__request_options__"
SESSION_ID_HEADER = "x-session-id"

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class RequestOptions:
    """Cross-cutting policy for a route handler."""

    endpoint_type: EndpointType
    action: str
    require_auth: bool = False
    required_role: Role | None = None
    rate_limit_type: RateLimitType | None = None
    # Builds the response for unexpected errors instead of the default 500 body
    on_error: Callable[[Exception], Response] | None = None


def with_request(options: RequestOptions) -> Callable[[F], F]:
    """Attach request options to an endpoint function."""
    def decorator(func: F) -> F:
        setattr(func, REQUEST_OPTIONS_ATTR, options)
        return func
    return decorator


def public_request(action: str) -> Callable[[F], F]:
    """No authentication required, no rate limit."""
    return with_request(RequestOptions(endpoint_type=EndpointType.PUBLIC, action=action))


def authenticated_request(action: str) -> Callable[[F], F]:
    """Authentication required, API rate limit."""
    return with_request(RequestOptions(
        endpoint_type=EndpointType.API,
        action=action,
        require_auth=True,
        rate_limit_type=RateLimitType.API,
    ))


def admin_request(action: str) -> Callable[[F], F]:
    """Authentication and admin role required, API rate limit."""
    return with_request(RequestOptions(
        endpoint_type=EndpointType.ADMIN,
        action=action,
        require_auth=True,
        required_role=Role.ADMIN,
        rate_limit_type=RateLimitType.API,
    ))


def auth_request(action: str) -> Callable[[F], F]:
    """Credential endpoints: optional authentication, strict AUTH rate limit."""
    return with_request(RequestOptions(
        endpoint_type=EndpointType.AUTH,
        action=action,
        rate_limit_type=RateLimitType.AUTH,
    ))


def checkout_request(action: str) -> Callable[[F], F]:
    """Checkout: optional authentication (guest checkout), CHECKOUT rate limit."""
    return with_request(RequestOptions(
        endpoint_type=EndpointType.CHECKOUT,
        action=action,
        rate_limit_type=RateLimitType.CHECKOUT,
    ))


def get_request_options(endpoint: Callable[..., Any]) -> RequestOptions | None:
    """Options attached to an endpoint, if any."""
    return getattr(endpoint, REQUEST_OPTIONS_ATTR, None)


def error_response(exc: Exception) -> JSONResponse:
    """Map a handled error to its JSON response."""
    if isinstance(exc, ApiError) and exc.status_code < 500:
        content: dict[str, Any] = {
            "success": False,
            "error": exc.message,
            "type": exc.error_type,
            "code": exc.code,
        }
        if exc.details:
            content["details"] = jsonable_encoder(exc.details)
        headers = None
        if isinstance(exc, RateLimitError):
            headers = {
                "Retry-After": str(exc.retry_after),
                "X-RateLimit-Limit": str(exc.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(exc.reset),
            }
        return JSONResponse(status_code=exc.status_code, content=content, headers=headers)

    if isinstance(exc, RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "Validation failed",
                "type": "VALIDATION_ERROR",
                "code": "VALIDATION_FAILED",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    if isinstance(exc, StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail, "type": "HTTP_ERROR"},
            headers=getattr(exc, "headers", None),
        )

    return internal_error_response(exc)


def internal_error_response(exc: Exception) -> JSONResponse:
    """Generic 500 body. Carries the message only, never the traceback."""
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "details": str(exc)},
    )


HANDLED_ERRORS = (ApiError, RequestValidationError, StarletteHTTPException)


def is_handled_error(exc: Exception) -> bool:
    """
    True for client-facing errors that map straight to their JSON response.

    Server-side taxonomy errors (InternalError, any status >= 500) are faults
    and take the unexpected-error path: logged, generic body, re-raised.
    """
    if isinstance(exc, ApiError):
        return exc.status_code < 500
    return isinstance(exc, HANDLED_ERRORS)


async def run_with_policy(
    request: Request,
    call_handler: Callable[[Request], Awaitable[Response]],
    options: RequestOptions,
) -> Response:
    """Run `call_handler` under the policy in `options`, auditing the outcome."""
    start_time = time.perf_counter()
    request.state.user = None
    request.state.rollback_only = False
    response: Response | None = None
    error: BaseException | None = None

    try:
        response = await _authorize_and_call(request, call_handler, options)
        return response
    except Exception as exc:
        error = exc
        request.state.rollback_only = True
        if is_handled_error(exc):
            response = error_response(exc)
            return response
        logger.exception(
            "unhandled_request_error",
            extra={"path": request.url.path, "action": options.action},
        )
        response = options.on_error(exc) if options.on_error else internal_error_response(exc)
        request.state.error_response = response
        raise
    finally:
        await _audit(request, response, options, start_time, error)


async def _authorize_and_call(
    request: Request,
    call_handler: Callable[[Request], Awaitable[Response]],
    options: RequestOptions,
) -> Response:
    # 1. Rate limit
    if options.rate_limit_type is not None:
        result = await request.app.state.rate_limiter.check(
            options.rate_limit_type, get_client_ip(request),
        )
        if not result.allowed:
            raise RateLimitError(
                "Too many requests. Please try again later.",
                limit=result.limit,
                reset=result.reset,
                retry_after=result.retry_after,
            )
        request.state.rate_limit_info = {
            "limit": result.limit,
            "remaining": result.remaining,
            "reset": result.reset,
        }

    # 2. Authentication - always attempted so optional-auth handlers can personalize
    user: CachedUser | None = None
    try:
        user = await authenticate_request(request)
    except AuthenticationError:
        if options.require_auth:
            raise
    request.state.user = user

    # 3. Role
    if (
        user is not None
        and options.required_role is not None
        and not has_role(user.role, options.required_role)
    ):
        raise AuthorizationError("Insufficient permissions")

    # 4. Handler
    return await call_handler(request)


async def _audit(
    request: Request,
    response: Response | None,
    options: RequestOptions,
    start_time: float,
    error: BaseException | None,
) -> None:
    if error is None and response is not None and response.status_code >= 400:
        error = HttpError(f"HTTP {response.status_code}")
    try:
        await request.app.state.audit_logger.log_api_call(
            request=request,
            response=response,
            user=getattr(request.state, "user", None),
            session_id=request.headers.get(SESSION_ID_HEADER),
            endpoint_type=str(options.endpoint_type),
            action=options.action,
            start_time=start_time,
            error=error,
        )
    except Exception:
        # Audit outages never affect the response
        logger.warning("audit_log_failed", extra={"action": options.action}, exc_info=True)


class AuthorizedRoute(APIRoute):
    """APIRoute that applies the endpoint's RequestOptions around the whole handler."""

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        """Wrap FastAPI's handler when the endpoint declares request options."""
        original_handler = super().get_route_handler()
        options = get_request_options(self.endpoint)
        if options is None:
            return original_handler

        async def authorized_handler(request: Request) -> Response:
            return await run_with_policy(request, original_handler, options)

        return authorized_handler
