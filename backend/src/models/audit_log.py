"""API audit log model. Append-only: one row per handled request."""
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONVariant, UUIDv7Mixin, utc_now


class ApiAuditLog(Base, UUIDv7Mixin):
    """
    Record of a single API call.

    User fields are denormalized so records survive account deletion and can be
    filtered without joins.
    """

    __tablename__ = "api_audit_logs"
    __table_args__ = (
        Index("ix_api_audit_logs_created_at", "created_at"),
        Index("ix_api_audit_logs_user_id_created_at", "user_id", "created_at"),
        Index("ix_api_audit_logs_endpoint_type_created_at", "endpoint_type", "created_at"),
    )

    # Who
    user_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    user_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    user_role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Request
    method: Mapped[str] = mapped_column(String(10))
    path: Mapped[str] = mapped_column(String(500))
    query: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    body: Mapped[Any | None] = mapped_column(JSONVariant, nullable=True, comment="Sanitized")
    request_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Response
    status_code: Mapped[int] = mapped_column(Integer, index=True)
    response_time_ms: Mapped[int] = mapped_column(Integer)
    response_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Client
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    referer: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Classification
    endpoint_type: Mapped[str] = mapped_column(String(20))
    action: Mapped[str] = mapped_column(String(100))

    error_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # `metadata` is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONVariant, nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False,
    )
