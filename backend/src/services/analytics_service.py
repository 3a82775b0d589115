"""
Service layer for admin sales analytics.

Each metric is reported for the requested period and for the previous period of
the same length, ending where the requested one starts. The all-time period has
no previous period.
"""
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.customer import Customer
from models.order import REVENUE_STATUSES, Order, OrderItem
from schemas.audit_log import AnalyticsResponse, DailyPoint, MetricChange, TopProduct
from services.cart_pricing import quantize_money

PERIOD_DAYS = {"7d": 7, "30d": 30, "6m": 180, "1y": 365}
TOP_PRODUCTS_LIMIT = 5


@dataclass
class DateRange:
    """Half-open range [start, end). A None start means unbounded."""

    start: datetime | None
    end: datetime


@dataclass
class PeriodTotals:
    orders: int = 0
    revenue: Decimal = Decimal("0.00")
    units_sold: int = 0
    new_customers: int = 0


def date_range(period: str, now: datetime) -> DateRange:
    """The range covered by a period, ending at now."""
    if period == "all":
        return DateRange(start=None, end=now)
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown analytics period: {period}")
    return DateRange(start=now - timedelta(days=PERIOD_DAYS[period]), end=now)


def previous_range(current: DateRange) -> DateRange | None:
    """The range of equal length immediately before the current one."""
    if current.start is None:
        return None
    return DateRange(start=current.start - (current.end - current.start), end=current.start)


def percent_change(current: Decimal | int, previous: Decimal | int) -> float:
    """Percent change from previous to current; 100 when growing from zero."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round(float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100), 2)


def _metric(current: Decimal | int, previous: Decimal | int) -> MetricChange:
    return MetricChange(
        current=Decimal(current),
        previous=Decimal(previous),
        change_percent=percent_change(current, previous),
    )


def _within(column: ColumnElement, window: DateRange) -> list[ColumnElement[bool]]:
    conditions = [column < window.end]
    if window.start is not None:
        conditions.append(column >= window.start)
    return conditions


async def period_totals(db: AsyncSession, window: DateRange) -> PeriodTotals:
    """Order count (all statuses), revenue and units sold (paid statuses), new customers."""
    orders = await db.scalar(
        select(func.count(Order.id)).where(*_within(Order.created_at, window)),
    )
    revenue = await db.scalar(
        select(func.coalesce(func.sum(Order.total), 0)).where(
            Order.status.in_(REVENUE_STATUSES),
            *_within(Order.created_at, window),
        ),
    )
    units_sold = await db.scalar(
        select(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.status.in_(REVENUE_STATUSES),
            *_within(Order.created_at, window),
        ),
    )
    new_customers = await db.scalar(
        select(func.count(Customer.id)).where(
            Customer.role == "user",
            *_within(Customer.created_at, window),
        ),
    )
    return PeriodTotals(
        orders=orders or 0,
        revenue=quantize_money(Decimal(str(revenue or 0))),
        units_sold=int(units_sold or 0),
        new_customers=new_customers or 0,
    )


async def daily_breakdown(db: AsyncSession, window: DateRange) -> list[DailyPoint]:
    """
    Revenue and order count per UTC day, oldest first.

    Bucketing happens in Python so the query is the same on every database.
    Days without orders are omitted.
    """
    result = await db.execute(
        select(Order.created_at, Order.status, Order.total).where(*_within(Order.created_at, window)),
    )
    revenue: dict[date, Decimal] = defaultdict(lambda: Decimal("0.00"))
    orders: dict[date, int] = defaultdict(int)
    for created_at, status, total in result.all():
        if created_at.tzinfo is not None:
            created_at = created_at.astimezone(UTC)
        day = created_at.date()
        orders[day] += 1
        if status in REVENUE_STATUSES:
            revenue[day] += total
    return [
        DailyPoint(day=day, revenue=quantize_money(revenue[day]), orders=orders[day])
        for day in sorted(orders)
    ]


async def top_products(db: AsyncSession, window: DateRange, limit: int = TOP_PRODUCTS_LIMIT) -> list[TopProduct]:
    """Best sellers by units sold in paid orders."""
    quantity = func.sum(OrderItem.quantity).label("quantity")
    revenue = func.sum(OrderItem.unit_amount * OrderItem.quantity).label("revenue")
    result = await db.execute(
        select(OrderItem.product_id, func.min(OrderItem.descriptive_title), quantity, revenue)
        .join(Order, Order.id == OrderItem.order_id)
        .where(
            Order.status.in_(REVENUE_STATUSES),
            *_within(Order.created_at, window),
        )
        .group_by(OrderItem.product_id)
        .order_by(quantity.desc())
        .limit(limit),
    )
    return [
        TopProduct(
            product_id=product_id,
            title=title,
            quantity=int(units),
            revenue=quantize_money(Decimal(str(amount or 0))),
        )
        for product_id, title, units, amount in result.all()
    ]


async def get_analytics(db: AsyncSession, period: str, now: datetime | None = None) -> AnalyticsResponse:
    """Metrics for a period with their change against the previous period."""
    now = now or utc_now()
    current_window = date_range(period, now)
    previous_window = previous_range(current_window)

    current = await period_totals(db, current_window)
    previous = await period_totals(db, previous_window) if previous_window else PeriodTotals()

    return AnalyticsResponse(
        period=period,
        start=current_window.start,
        end=current_window.end,
        orders=_metric(current.orders, previous.orders),
        revenue=_metric(current.revenue, previous.revenue),
        units_sold=_metric(current.units_sold, previous.units_sold),
        new_customers=_metric(current.new_customers, previous.new_customers),
        daily=await daily_breakdown(db, current_window),
        top_products=await top_products(db, current_window),
    )
