"""Catalog models: products, their options, prices and inventory."""
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.category import Category


class Product(Base, UUIDv7Mixin, TimestampMixin):
    """Sellable product. Only `active` products are visible in the storefront."""

    __tablename__ = "products"

    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image: Mapped[str | None] = mapped_column(String(500), nullable=True)
    base_price: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Fallback unit price when no Price row exists for the currency",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default="active",
        server_default="active",
        index=True,
        comment="active, inactive or draft",
    )

    options: Mapped[list["ProductOption"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductOption.sort_order",
    )
    prices: Mapped[list["Price"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
    )
    inventory: Mapped["Inventory | None"] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        uselist=False,
    )
    categories: Mapped[list["Category"]] = relationship(
        secondary="product_categories",
        back_populates="products",
    )


class ProductOption(Base, UUIDv7Mixin):
    """A configurable dimension of a product, e.g. "size"."""

    __tablename__ = "product_options"
    __table_args__ = (UniqueConstraint("product_id", "name", name="uq_product_options_product_name"),)

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100))
    display_name: Mapped[str] = mapped_column(String(100))
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    product: Mapped["Product"] = relationship(back_populates="options")
    values: Mapped[list["ProductOptionValue"]] = relationship(
        back_populates="option",
        cascade="all, delete-orphan",
        order_by="ProductOptionValue.sort_order",
    )


class ProductOptionValue(Base, UUIDv7Mixin):
    """A selectable value of an option, with its price adjustment."""

    __tablename__ = "product_option_values"
    __table_args__ = (UniqueConstraint("option_id", "name", name="uq_option_values_option_name"),)

    option_id: Mapped[UUID] = mapped_column(
        ForeignKey("product_options.id", ondelete="CASCADE"),
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100))
    price_adjustment: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        default=Decimal("0.00"),
        server_default="0",
    )
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    is_sold_out: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    option: Mapped["ProductOption"] = relationship(back_populates="values")


class Price(Base, UUIDv7Mixin, TimestampMixin):
    """Product price in a currency."""

    __tablename__ = "prices"
    __table_args__ = (UniqueConstraint("product_id", "currency", name="uq_prices_product_currency"),)

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    currency: Mapped[str] = mapped_column(String(3), default="USD", server_default="USD")
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    compare_at_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    product: Mapped["Product"] = relationship(back_populates="prices")


class Inventory(Base, TimestampMixin):
    """Stock level for a product."""

    __tablename__ = "inventory"

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        primary_key=True,
    )
    quantity_available: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    quantity_reserved: Mapped[int] = mapped_column(Integer, default=0, server_default="0")

    product: Mapped["Product"] = relationship(back_populates="inventory")
