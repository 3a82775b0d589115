"""Pydantic schemas for audit log and analytics endpoints."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    """A single audit record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID | None
    user_email: str | None
    user_role: str | None
    session_id: str | None
    method: str
    path: str
    query: dict[str, Any] | None
    body: Any | None
    request_size: int | None
    status_code: int
    response_time_ms: int
    response_size: int | None
    ip_address: str | None
    user_agent: str | None
    referer: str | None
    endpoint_type: str
    action: str
    error_type: str | None
    error_message: str | None
    metadata: dict[str, Any] | None = Field(validation_alias="extra_metadata")
    created_at: datetime


class AuditLogStats(BaseModel):
    """Aggregates over the filtered records."""

    total_requests: int
    average_response_time_ms: float
    error_count: int


class AuditLogListResponse(BaseModel):
    """Paginated audit records, newest first."""

    items: list[AuditLogResponse]
    total: int
    offset: int
    limit: int
    stats: AuditLogStats


AnalyticsPeriod = Literal["7d", "30d", "6m", "1y", "all"]


class MetricChange(BaseModel):
    """A metric for the period and its change against the previous period."""

    current: Decimal
    previous: Decimal
    change_percent: float


class DailyPoint(BaseModel):
    """Per-day revenue and order count."""

    day: date
    revenue: Decimal
    orders: int


class TopProduct(BaseModel):
    """Best-selling product by quantity."""

    product_id: UUID | None
    title: str
    quantity: int
    revenue: Decimal


class AnalyticsResponse(BaseModel):
    """Sales analytics for a period, compared with the preceding period of equal length."""

    period: str
    start: datetime | None = Field(description="None for the all-time period")
    end: datetime
    orders: MetricChange
    revenue: MetricChange
    units_sold: MetricChange
    new_customers: MetricChange
    daily: list[DailyPoint]
    top_products: list[TopProduct]
