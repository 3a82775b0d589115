"""Customer model for storefront accounts."""
from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.cart import Cart
    from models.order import Order


class Customer(Base, UUIDv7Mixin, TimestampMixin):
    """Customer account. Guests who check out without an account have no row here."""

    __tablename__ = "customers"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="bcrypt hash",
    )
    role: Mapped[str] = mapped_column(
        String(20),
        default="user",
        server_default="user",
        comment="user, admin or root",
    )

    carts: Mapped[list["Cart"]] = relationship(back_populates="customer")
    orders: Mapped[list["Order"]] = relationship(back_populates="customer")
