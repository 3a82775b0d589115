"""Service layer for customer accounts."""
import logging
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import hash_password, verify_password
from core.request_context import Role
from models.customer import Customer
from schemas.auth import RegisterRequest
from services.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ASSIGNABLE_ROLES = (Role.USER, Role.ADMIN)


async def get_customer_by_email(db: AsyncSession, email: str) -> Customer | None:
    """Find a customer by email (case-insensitive)."""
    result = await db.execute(
        select(Customer).where(func.lower(Customer.email) == email.strip().lower()),
    )
    return result.scalar_one_or_none()


async def get_customer(db: AsyncSession, customer_id: UUID) -> Customer:
    """
    Get a customer by id.

    Raises:
        NotFoundError: No such customer.
    """
    customer = await db.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("User not found")
    return customer


async def register_customer(db: AsyncSession, data: RegisterRequest) -> Customer:
    """
    Create a customer account with the `user` role.

    Raises:
        ValidationError: Email already registered.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    if await get_customer_by_email(db, data.email) is not None:
        raise ValidationError("An account with this email already exists")

    customer = Customer(
        email=data.email,
        name=data.name.strip(),
        password_hash=hash_password(data.password),
        role=Role.USER.value,
    )
    db.add(customer)
    try:
        await db.flush()
    except IntegrityError:
        # Concurrent registration with the same email
        raise ValidationError("An account with this email already exists")
    logger.info("customer_registered", extra={"user_id": str(customer.id)})
    return customer


async def authenticate_credentials(db: AsyncSession, email: str, password: str) -> Customer:
    """
    Check an email/password pair.

    Raises:
        AuthenticationError: Unknown email or wrong password (same message for both).
    """
    customer = await get_customer_by_email(db, email)
    if customer is None or not verify_password(password, customer.password_hash):
        raise AuthenticationError("Invalid email or password")
    return customer


async def request_password_reset(db: AsyncSession, email: str) -> None:
    """
    Start a password reset.

    Email delivery is out of scope; the request is only logged. Callers respond
    identically whether or not the account exists.
    """
    customer = await get_customer_by_email(db, email)
    if customer is None:
        logger.info("password_reset_unknown_email")
        return
    logger.info("password_reset_requested", extra={"user_id": str(customer.id)})


async def update_role(db: AsyncSession, customer_id: UUID, role: Role) -> Customer:
    """
    Change a customer's role between `user` and `admin`.

    Root accounts are managed outside the API: they cannot be modified and the
    root role cannot be granted.

    Raises:
        NotFoundError: No such customer.
        ValidationError: Requested role is not assignable.
        AuthorizationError: Target is a root account.
    """
    if role not in ASSIGNABLE_ROLES:
        raise ValidationError("Invalid role. Must be 'admin' or 'user'")
    customer = await get_customer(db, customer_id)
    if customer.role == Role.ROOT:
        raise AuthorizationError("Cannot modify root users")
    customer.role = role.value
    await db.flush()
    return customer


async def list_customers(
    db: AsyncSession,
    search: str | None = None,
    role: str | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[Customer], int]:
    """
    Customer accounts, newest first.

    Args:
        search: Case-insensitive match on email or name.
        role: Only accounts with this role.

    Returns:
        Tuple of (customers, total matching count).
    """
    conditions = []
    if search:
        conditions.append(
            or_(
                Customer.email.icontains(search.strip(), autoescape=True),
                Customer.name.icontains(search.strip(), autoescape=True),
            ),
        )
    if role:
        conditions.append(Customer.role == role)

    total = await db.scalar(select(func.count(Customer.id)).where(*conditions))
    result = await db.execute(
        select(Customer)
        .where(*conditions)
        .order_by(Customer.created_at.desc(), Customer.id.desc())
        .offset(offset)
        .limit(limit),
    )
    return list(result.scalars().all()), total or 0
