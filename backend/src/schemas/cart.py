"""Pydantic schemas for cart endpoints."""
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

MAX_LINE_QUANTITY = 999


class CartItemAdd(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: UUID
    quantity: int = Field(default=1, ge=1, le=MAX_LINE_QUANTITY)
    selected_options: dict[str, str] | None = Field(
        default=None,
        description="Option name -> chosen value name",
    )


class CartItemUpdate(BaseModel):
    """
    Schema for changing a cart line's quantity.

    Exactly one of `quantity` (absolute) or `delta` (relative) must be given.
    A result of zero or less removes the line.
    """

    quantity: int | None = Field(default=None, le=MAX_LINE_QUANTITY)
    delta: int | None = Field(default=None, ge=-MAX_LINE_QUANTITY, le=MAX_LINE_QUANTITY)

    @model_validator(mode="after")
    def exactly_one(self) -> "CartItemUpdate":
        """Require exactly one of quantity or delta."""
        if (self.quantity is None) == (self.delta is None):
            raise ValueError("Provide exactly one of quantity or delta")
        return self


class CartItemResponse(BaseModel):
    """A cart line with its product fields."""

    id: UUID
    product_id: UUID
    quantity: int
    selected_options: dict[str, str] | None
    descriptive_title: str
    unit_price: Decimal | None = Field(description="None when the product has no resolvable price")
    line_total: Decimal | None
    product_title: str | None
    product_slug: str | None
    product_image: str | None


class CartResponse(BaseModel):
    """Cart contents and totals."""

    id: UUID
    currency: str
    items: list[CartItemResponse]
    total_items: int
    total_price: Decimal


class CartSyncRequest(BaseModel):
    """Items held client-side, merged into the signed-in customer's cart."""

    items: list[CartItemAdd] = Field(default_factory=list, max_length=100)
