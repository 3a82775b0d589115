"""Order and order item models."""
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, JSONVariant, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.customer import Customer
    from models.product import Product


ORDER_STATUSES = ("received", "paid", "shipped", "completed", "cancelled", "refunded")

# Statuses that count as revenue in analytics
REVENUE_STATUSES = ("paid", "shipped", "completed")


class Order(Base, UUIDv7Mixin, TimestampMixin):
    """Placed order. Guest orders carry `guest_email` instead of a customer."""

    __tablename__ = "orders"
    __table_args__ = (Index("ix_orders_created_at", "created_at"),)

    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    guest_email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    is_guest_order: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    order_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default="received",
        server_default="received",
        index=True,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", server_default="USD")
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    shipping: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    tracking_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    shipping_provider: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="usps, ups, fedex or other",
    )
    shipped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    customer: Mapped["Customer | None"] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
    )


class OrderItem(Base, UUIDv7Mixin):
    """A line of an order, priced at checkout time."""

    __tablename__ = "order_items"

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
    )
    product_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer)
    unit_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    selected_options: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, nullable=True)
    descriptive_title: Mapped[str] = mapped_column(String(500))

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped["Product | None"] = relationship()
