"""Service layer for back-in-stock subscriptions."""
import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.stock_notification import StockNotification

logger = logging.getLogger(__name__)


async def get_subscription(db: AsyncSession, product_id: UUID, email: str) -> StockNotification | None:
    """The subscription for a product and (normalized) email, if any."""
    result = await db.execute(
        select(StockNotification).where(
            StockNotification.product_id == product_id,
            StockNotification.email == email,
        ),
    )
    return result.scalar_one_or_none()


async def subscribe(db: AsyncSession, product_id: UUID, email: str) -> bool:
    """
    Subscribe an email to a product's back-in-stock notification.

    Subscribing again while a notification is pending is a no-op. A subscription
    that was already notified is re-armed.

    Returns:
        True if a new (or re-armed) subscription was recorded, False if one was
        already pending.
    """
    existing = await get_subscription(db, product_id, email)
    if existing is not None:
        if not existing.is_notified:
            return False
        existing.is_notified = False
        existing.notified_at = None
        await db.flush()
        return True

    db.add(StockNotification(product_id=product_id, email=email))
    await db.flush()
    return True


async def mark_pending_notified(db: AsyncSession, product_id: UUID) -> int:
    """
    Mark every pending subscription for a product as notified.

    Email delivery is handled outside this service; this records that the
    subscribers are due their notification.

    Returns:
        Number of subscriptions marked.
    """
    result = await db.execute(
        update(StockNotification)
        .where(
            StockNotification.product_id == product_id,
            StockNotification.is_notified.is_(False),
        )
        .values(is_notified=True, notified_at=utc_now())
        .execution_options(synchronize_session=False),
    )
    count = result.rowcount or 0
    if count:
        logger.info(
            "stock_notifications_due",
            extra={"product_id": str(product_id), "count": count},
        )
    return count
