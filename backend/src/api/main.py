"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import admin, auth, cart, categories, checkout, csrf, health, orders, products
from core.audit_logger import AuditLogger
from core.auth import TokenVerifier
from core.auth_cache import AuthCache
from core.config import Settings, get_settings
from core.csrf import CsrfTokens
from core.rate_limiter import MemoryRateLimitStore, RateLimiter, RedisRateLimitStore
from core.redis import RedisClient
from core.request_wrapper import error_response, internal_error_response
from core.secrets import SettingsSecretProvider
from db.session import create_engine, create_session_factory
from services.exceptions import ApiError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    # Startup: Connect to Redis (no-op when disabled)
    await app.state.redis_client.connect()

    yield

    # Shutdown: finish audit writes before the engine goes away
    await app.state.audit_logger.drain()
    await app.state.redis_client.close()
    await app.state.engine.dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking - API shouldn't be framed
        response.headers["X-Frame-Options"] = "DENY"
        return response


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """Add rate limit headers to responses of rate-limited endpoints."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add rate limit headers to response."""
        response = await call_next(request)

        # Set by the request wrapper when the request passed its limit check.
        # 429 responses carry their own headers.
        info = getattr(request.state, "rate_limit_info", None)
        if info and "X-RateLimit-Limit" not in response.headers:
            response.headers["X-RateLimit-Limit"] = str(info["limit"])
            response.headers["X-RateLimit-Remaining"] = str(info["remaining"])
            response.headers["X-RateLimit-Reset"] = str(info["reset"])

        return response


def _init_state(app: FastAPI, settings: Settings) -> None:
    """Create the shared services the request wrapper and handlers use."""
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    secret_provider = SettingsSecretProvider(settings)

    redis_client = RedisClient(
        url=settings.redis_url,
        enabled=settings.redis_enabled,
        pool_size=settings.redis_pool_size,
    )
    store = RedisRateLimitStore(redis_client) if settings.redis_enabled else MemoryRateLimitStore()

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.redis_client = redis_client
    app.state.rate_limiter = RateLimiter(store, enabled=settings.rate_limit_enabled)
    app.state.auth_cache = AuthCache()
    app.state.token_verifier = TokenVerifier(
        secret_provider,
        issuer=settings.jwt_issuer,
        max_age_seconds=settings.auth_token_max_age,
    )
    app.state.csrf = CsrfTokens(secret_provider)
    app.state.audit_logger = AuditLogger(session_factory)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; defaults to the environment (get_settings()).
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Storefront API",
        description="Catalog, cart, checkout and order management for an online store.",
        version="0.1.0",
        lifespan=lifespan,
    )
    _init_state(app, settings)

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> Response:
        """
        Taxonomy errors that reach the app.

        Server-side errors (status >= 500) re-raised by the request wrapper
        carry their prepared response; others come from unwrapped routes.
        """
        if exc.status_code >= 500:
            prepared = getattr(request.state, "error_response", None)
            if prepared is not None:
                return prepared
            logger.error("unhandled_error", extra={"path": request.url.path}, exc_info=exc)
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Validation errors on unwrapped routes use the same 400 shape."""
        return error_response(exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Unknown routes (404) and wrong methods (405) as JSON errors."""
        return error_response(exc)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
        """
        Send the 500 response for an unexpected error.

        The request wrapper has already logged the error and prepared the
        response; errors from outside the wrapper get the generic body.
        """
        prepared = getattr(request.state, "error_response", None)
        if prepared is not None:
            return prepared
        logger.exception("unhandled_error", extra={"path": request.url.path})
        return internal_error_response(exc)

    # Rate limit headers middleware (runs first, adds headers to successful responses)
    app.add_middleware(RateLimitHeadersMiddleware)

    # Security headers middleware (runs after CORS, adds headers to responses)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(csrf.router)
    app.include_router(auth.router)
    app.include_router(products.router)
    app.include_router(categories.router)
    app.include_router(cart.router)
    app.include_router(checkout.router)
    app.include_router(orders.router)
    app.include_router(admin.router)

    return app
