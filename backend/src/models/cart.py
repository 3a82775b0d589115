"""Cart and cart item models."""
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, JSONVariant, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.customer import Customer
    from models.product import Product


class Cart(Base, UUIDv7Mixin, TimestampMixin):
    """
    Shopping cart. Anonymous carts are identified by the `cart_id` cookie;
    `customer_id` is set once the cart is synced to a signed-in customer.
    """

    __tablename__ = "carts"

    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", server_default="USD")

    customer: Mapped["Customer | None"] = relationship(back_populates="carts")
    items: Mapped[list["CartItem"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at",
    )


class CartItem(Base, UUIDv7Mixin, TimestampMixin):
    """
    A product line in a cart.

    At most one row exists per (product, selected options); adding the same
    combination again increases `quantity`.
    """

    __tablename__ = "cart_items"

    cart_id: Mapped[UUID] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"),
        index=True,
    )
    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    selected_options: Mapped[dict[str, Any] | None] = mapped_column(
        JSONVariant,
        nullable=True,
        comment="Option name -> chosen value name",
    )
    unit_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Unit price including option adjustments at the time of adding",
    )
    descriptive_title: Mapped[str | None] = mapped_column(String(500), nullable=True)

    cart: Mapped["Cart"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()
