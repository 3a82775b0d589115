"""
API audit logging.

Every request handled by the request wrapper produces one ApiAuditLog row. The
record is built while the request is still in hand, then written by a detached
task using its own session, so a slow or failing audit store never delays or
breaks the response.
"""
import asyncio
import json
import logging
import time
from typing import Any

from fastapi import Request, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.rate_limiter import get_client_ip
from models.audit_log import ApiAuditLog
from schemas.cached_user import CachedUser

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

# Request body keys whose values never reach the audit store (matched at any depth)
SENSITIVE_FIELDS = frozenset({
    "password",
    "confirmPassword",
    "oldPassword",
    "newPassword",
    "cvv",
    "cardNumber",
    "expiryDate",
    "cardToken",
    "paymentIntentId",
    "clientSecret",
    "secret",
    "token",
    "apiKey",
    # snake_case spellings used by this API
    "confirm_password",
    "old_password",
    "new_password",
    "card_number",
    "expiry_date",
    "card_token",
    "payment_intent_id",
    "client_secret",
    "api_key",
})

# Headers copied into the record's metadata
METADATA_HEADERS = ("accept", "content-type")


class HttpError(Exception):
    """Stand-in error for responses with status >= 400 that raised nothing."""


def sanitize_body(body: Any) -> Any:
    """Return a copy of a decoded JSON body with sensitive values redacted."""
    if isinstance(body, dict):
        return {
            key: REDACTED if key in SENSITIVE_FIELDS else sanitize_body(value)
            for key, value in body.items()
        }
    if isinstance(body, list):
        return [sanitize_body(item) for item in body]
    return body


def _decode_body(raw: bytes) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


class AuditLogger:
    """Builds audit records and writes them in the background."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._pending: set[asyncio.Task[None]] = set()
        self.failure_count = 0

    async def log_api_call(
        self,
        request: Request,
        response: Response | None,
        user: CachedUser | None,
        session_id: str | None,
        endpoint_type: str,
        action: str,
        start_time: float,
        error: BaseException | None = None,
    ) -> None:
        """
        Record one API call. Never raises.

        Args:
            request: The incoming request (its body may already have been consumed).
            response: The response sent, or None if none was produced.
            user: Authenticated user, if any.
            session_id: Client session identifier (x-session-id header).
            endpoint_type: Endpoint classification for grouping.
            action: Short action name, e.g. "cart_add_item".
            start_time: time.perf_counter() value taken when the request started.
            error: The error behind a failed outcome; None for a clean success.
        """
        try:
            record = await self._build_record(
                request, response, user, session_id, endpoint_type, action, start_time, error,
            )
        except Exception:
            self.failure_count += 1
            logger.warning("audit_log_build_failed", exc_info=True)
            return

        task = asyncio.create_task(self._write(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _build_record(
        self,
        request: Request,
        response: Response | None,
        user: CachedUser | None,
        session_id: str | None,
        endpoint_type: str,
        action: str,
        start_time: float,
        error: BaseException | None,
    ) -> dict[str, Any]:
        try:
            raw_body = await request.body()
        except RuntimeError:
            # Body was streamed (form parsing) and is no longer available
            raw_body = b""
        body = sanitize_body(_decode_body(raw_body))

        content_length = request.headers.get("content-length")
        request_size = int(content_length) if content_length and content_length.isdigit() else None
        if request_size is None and raw_body:
            request_size = len(raw_body)

        response_body = getattr(response, "body", None) if response is not None else None
        status_code = response.status_code if response is not None else 500

        metadata = {
            header: request.headers[header]
            for header in METADATA_HEADERS
            if header in request.headers
        }

        return {
            "user_id": user.id if user else None,
            "user_email": user.email if user else None,
            "user_role": user.role if user else None,
            "session_id": session_id,
            "method": request.method,
            "path": request.url.path,
            "query": dict(request.query_params) or None,
            "body": body,
            "request_size": request_size,
            "status_code": status_code,
            "response_time_ms": int((time.perf_counter() - start_time) * 1000),
            "response_size": len(response_body) if response_body is not None else None,
            "ip_address": get_client_ip(request),
            "user_agent": request.headers.get("user-agent"),
            "referer": request.headers.get("referer"),
            "endpoint_type": endpoint_type,
            "action": action,
            "error_type": type(error).__name__ if error is not None else None,
            "error_message": str(error) if error is not None else None,
            "extra_metadata": metadata or None,
        }

    async def _write(self, record: dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                session.add(ApiAuditLog(**record))
                await session.commit()
        except Exception:
            self.failure_count += 1
            logger.warning(
                "audit_log_write_failed",
                extra={"path": record.get("path"), "action": record.get("action")},
                exc_info=True,
            )

    @property
    def pending_count(self) -> int:
        """Number of writes still in flight."""
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight writes (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

