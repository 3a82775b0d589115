"""Service layer for order history, lookup and back-office order management."""
import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.base import utc_now
from models.customer import Customer
from models.order import ORDER_STATUSES, Order
from schemas.cached_user import CachedUser
from schemas.order import AdminOrderResponse, OrderCustomer, OrderResponse
from services import shipping
from services.exceptions import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": Order.id,
    "status": Order.status,
    "created_at": Order.created_at,
    "updated_at": Order.updated_at,
    "total": Order.total,
    "subtotal": Order.subtotal,
}


async def get_order(db: AsyncSession, order_id: UUID) -> Order:
    """
    Get an order with its items.

    Raises:
        NotFoundError: No such order.
    """
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.id == order_id)
        .execution_options(populate_existing=True),
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def list_customer_orders(
    db: AsyncSession,
    customer_id: UUID,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[Order], int]:
    """
    A customer's orders, newest first.

    Returns:
        Tuple of (orders, total count).
    """
    total = await db.scalar(
        select(func.count()).select_from(Order).where(Order.customer_id == customer_id),
    )
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.customer_id == customer_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit),
    )
    return list(result.scalars().all()), total or 0


async def lookup_order(db: AsyncSession, order_number: str, email: str) -> Order:
    """
    Find an order by number for the email it was placed with.

    Guest orders match on the guest email, account orders on the customer's
    email. A wrong email is reported exactly like an unknown order number.

    Raises:
        NotFoundError: No order with this number and email.
    """
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .outerjoin(Customer, Customer.id == Order.customer_id)
        .where(
            Order.order_number == order_number.strip(),
            or_(
                func.lower(Order.guest_email) == email,
                func.lower(Customer.email) == email,
            ),
        ),
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_customer_order(db: AsyncSession, order_id: UUID, customer_id: UUID) -> Order:
    """
    Get one of a customer's orders.

    Orders belonging to someone else are reported as not found.

    Raises:
        NotFoundError: No such order for this customer.
    """
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.id == order_id, Order.customer_id == customer_id),
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def get_confirmation(
    db: AsyncSession,
    order_number: str,
    email: str | None,
    user: CachedUser | None,
) -> Order:
    """
    Get an order for its confirmation page.

    Guest orders need the email they were placed with. Account orders are only
    shown to the signed-in owner.

    Raises:
        NotFoundError: Unknown order number.
        ValidationError: Guest order requested without an email.
        AuthorizationError: Email does not match, or caller does not own the order.
    """
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items))
        .where(Order.order_number == order_number.strip()),
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")

    if order.is_guest_order:
        if not email or not email.strip():
            raise ValidationError("Email is required for guest orders")
        if (order.guest_email or "").lower() != email.strip().lower():
            raise AuthorizationError("Email does not match order")
    elif user is None or user.id != order.customer_id:
        raise AuthorizationError("Unauthorized access to order")
    return order


@dataclass
class AdminOrderFilters:
    """Back-office order list filters."""

    status: str | None = None
    search: str | None = None
    sort_by: str = "created_at"
    sort_order: str = "desc"


async def list_admin_orders(
    db: AsyncSession,
    filters: AdminOrderFilters,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Order], int, dict[str, int]]:
    """
    Orders with their customers for the back office.

    `search` matches customer email, guest email or order number. Unknown sort
    fields fall back to created_at.

    Returns:
        Tuple of (orders, total matching count, order count per status over all orders).
    """
    conditions = []
    if filters.status:
        conditions.append(Order.status == filters.status)
    if filters.search:
        search = filters.search.strip()
        conditions.append(
            or_(
                Customer.email.icontains(search, autoescape=True),
                Order.guest_email.icontains(search, autoescape=True),
                Order.order_number.icontains(search, autoescape=True),
            ),
        )

    sort_column = SORTABLE_FIELDS.get(filters.sort_by, Order.created_at)
    ordering = sort_column.asc() if filters.sort_order == "asc" else sort_column.desc()

    total = await db.scalar(
        select(func.count(Order.id))
        .outerjoin(Customer, Customer.id == Order.customer_id)
        .where(*conditions),
    )
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.customer))
        .outerjoin(Customer, Customer.id == Order.customer_id)
        .where(*conditions)
        .order_by(ordering, Order.id.desc())
        .offset(offset)
        .limit(limit),
    )

    counts = dict.fromkeys(ORDER_STATUSES, 0)
    for status, count in await db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status)):
        counts[status] = count
    return list(result.scalars().all()), total or 0, counts


async def get_admin_order(db: AsyncSession, order_id: UUID) -> Order:
    """
    Get any order with its items and customer.

    Raises:
        NotFoundError: No such order.
    """
    result = await db.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.customer))
        .where(Order.id == order_id)
        .execution_options(populate_existing=True),
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def update_order_status(
    db: AsyncSession,
    order_id: UUID,
    status: str,
    tracking_number: str | None = None,
) -> Order:
    """
    Move an order to a new status.

    Marking an order shipped requires a tracking number; its carrier is
    detected from the number's format and the ship time is recorded. A tracking
    number given with any other status is validated but not stored.

    Raises:
        NotFoundError: No such order.
        ValidationError: Unknown status, or missing or malformed tracking number.
    """
    if status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")
    if status == "shipped" and not (tracking_number and tracking_number.strip()):
        raise ValidationError("Tracking number is required when marking order as shipped")
    tracking = shipping.parse_tracking_number(tracking_number) if tracking_number else None

    order = await get_admin_order(db, order_id)
    previous = order.status
    order.status = status
    if status == "shipped" and tracking is not None:
        order.tracking_number = tracking.tracking_number
        order.shipping_provider = tracking.provider
        order.shipped_at = utc_now()
    await db.flush()
    logger.info(
        "order_status_changed",
        extra={
            "order_id": str(order.id),
            "from_status": previous,
            "to_status": status,
            "shipping_provider": order.shipping_provider,
        },
    )
    return order


def to_admin_response(order: Order) -> AdminOrderResponse:
    """Back-office view of an order with items and customer loaded."""
    customer = order.customer
    if customer is None:
        placed_by = OrderCustomer(id=None, email=order.guest_email, name=None, is_guest=True)
    else:
        placed_by = OrderCustomer(id=customer.id, email=customer.email, name=customer.name, is_guest=False)
    url = None
    if order.tracking_number:
        url = shipping.tracking_url(order.tracking_number, order.shipping_provider or "other")
    return AdminOrderResponse(
        **OrderResponse.model_validate(order).model_dump(),
        customer=placed_by,
        tracking_url=url,
        updated_at=order.updated_at,
    )
