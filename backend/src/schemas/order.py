"""Pydantic schemas for checkout and order endpoints."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.auth import Email


class CheckoutIssue(BaseModel):
    """A reason a cart line cannot be checked out as-is."""

    item_id: UUID
    product_id: UUID
    code: str = Field(description="product_unavailable, price_unavailable, option_sold_out, insufficient_stock")
    message: str


class CheckoutTotals(BaseModel):
    """Server-side priced totals."""

    currency: str
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class CheckoutValidateResponse(BaseModel):
    """Result of validating the cart for checkout."""

    valid: bool
    issues: list[CheckoutIssue]
    totals: CheckoutTotals
    total_items: int


class CheckoutSubmitRequest(BaseModel):
    """Schema for placing an order. Guests must give an email."""

    email: Email | None = None


class OrderItemResponse(BaseModel):
    """An order line."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID | None
    quantity: int
    unit_amount: Decimal
    selected_options: dict[str, Any] | None
    descriptive_title: str


class OrderResponse(BaseModel):
    """A placed order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    status: str
    is_guest_order: bool
    currency: str
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    tracking_number: str | None = None
    shipping_provider: str | None = None
    shipped_at: datetime | None = None
    created_at: datetime
    items: list[OrderItemResponse]


class CheckoutSubmitResponse(BaseModel):
    """Response after an order is placed."""

    success: bool = True
    order_number: str
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Paginated order history."""

    items: list[OrderResponse]
    total: int
    offset: int
    limit: int


class OrderLookupRequest(BaseModel):
    """Schema for a guest looking up an order."""

    order_number: str = Field(..., min_length=1, max_length=32)
    email: str = Field(..., max_length=255)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        """Emails are compared lower-cased."""
        return value.strip().lower()


OrderStatus = Literal["received", "paid", "shipped", "completed", "cancelled", "refunded"]


class OrderCustomer(BaseModel):
    """Who placed an order. Guests have no id."""

    id: UUID | None
    email: str | None
    name: str | None
    is_guest: bool


class AdminOrderResponse(OrderResponse):
    """An order as seen in the back office."""

    customer: OrderCustomer
    tracking_url: str | None = None
    updated_at: datetime


class AdminOrderListResponse(BaseModel):
    """Paginated orders with per-status counts across all orders."""

    items: list[AdminOrderResponse]
    total: int
    offset: int
    limit: int
    status_counts: dict[str, int]


class OrderStatusUpdate(BaseModel):
    """Schema for an admin moving an order to a new status."""

    status: OrderStatus
    tracking_number: str | None = Field(default=None, max_length=64)
