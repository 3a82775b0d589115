"""Back-in-stock subscription model."""
from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.product import Product


class StockNotification(Base, UUIDv7Mixin, TimestampMixin):
    """An email address waiting for a product to come back in stock."""

    __tablename__ = "stock_notifications"
    __table_args__ = (
        UniqueConstraint("product_id", "email", name="uq_stock_notifications_product_email"),
    )

    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), comment="Lower-cased, trimmed")
    is_notified: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    product: Mapped["Product"] = relationship()
