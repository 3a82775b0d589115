"""Pydantic schemas for catalog endpoints."""
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from schemas.auth import Email


class OptionValueResponse(BaseModel):
    """A selectable option value."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    price_adjustment: Decimal
    is_default: bool
    is_sold_out: bool


class OptionResponse(BaseModel):
    """A product option with its values."""

    model_config = ConfigDict(from_attributes=True)

    name: str
    display_name: str
    values: list[OptionValueResponse]


class ProductResponse(BaseModel):
    """Storefront view of a product."""

    id: UUID
    slug: str
    title: str
    description: str | None
    image: str | None
    currency: str
    price: Decimal | None = Field(description="None when the product has no price")
    compare_at_price: Decimal | None = None
    options: list[OptionResponse] = Field(default_factory=list)
    quantity_available: int
    in_stock: bool


class ProductListResponse(BaseModel):
    """Paginated product list."""

    items: list[ProductResponse]
    total: int
    offset: int
    limit: int


class StockNotificationRequest(BaseModel):
    """Schema for subscribing to a back-in-stock notification."""

    email: Email


class StockNotificationStatus(BaseModel):
    """Subscription status for an email and product."""

    subscribed: bool
    is_notified: bool = False


class StockUpdate(BaseModel):
    """Schema for an admin setting a product's stock level."""

    quantity_available: int = Field(..., ge=0)


class StockUpdateResponse(BaseModel):
    """Result of a stock update."""

    product_id: UUID
    quantity_available: int
    notifications_marked: int
