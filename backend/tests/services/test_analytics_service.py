"""Tests for admin sales analytics."""
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from models import Customer, Order, OrderItem, Product
from models.base import utc_now
from services.analytics_service import (
    DateRange,
    date_range,
    get_analytics,
    percent_change,
    previous_range,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


async def create_order(
    db_session: AsyncSession,
    product: Product,
    created_at: datetime,
    total: str,
    status: str = "paid",
    quantity: int = 1,
    number: str = "ORD-00000001-AAAAAA",
) -> Order:
    amount = Decimal(total)
    order = Order(
        order_number=number,
        status=status,
        is_guest_order=True,
        guest_email="guest@example.com",
        currency="USD",
        subtotal=amount,
        tax=Decimal("0.00"),
        shipping=Decimal("0.00"),
        total=amount,
        created_at=created_at,
        items=[
            OrderItem(
                product_id=product.id,
                quantity=quantity,
                unit_amount=(amount / quantity).quantize(Decimal("0.01")),
                descriptive_title=product.title,
            ),
        ],
    )
    db_session.add(order)
    await db_session.commit()
    return order


class TestPercentChange:
    """Tests for percent_change."""

    def test__percent_change__growth_and_decline(self) -> None:
        """Change is relative to the previous value."""
        assert percent_change(150, 100) == 50.0
        assert percent_change(Decimal("75.00"), Decimal("100.00")) == -25.0

    def test__percent_change__from_zero(self) -> None:
        """Growth from zero is 100; zero to zero is 0."""
        assert percent_change(5, 0) == 100.0
        assert percent_change(0, 0) == 0.0

    def test__percent_change__rounded(self) -> None:
        """Results are rounded to two places."""
        assert percent_change(1, 3) == -66.67


class TestDateRange:
    """Tests for date_range and previous_range."""

    @pytest.mark.parametrize(("period", "days"), [("7d", 7), ("30d", 30), ("6m", 180), ("1y", 365)])
    def test__date_range__period_lengths(self, period: str, days: int) -> None:
        """Each period ends now and spans its length."""
        window = date_range(period, NOW)
        assert window.end == NOW
        assert window.start == NOW - timedelta(days=days)

    def test__date_range__all_is_unbounded(self) -> None:
        """The all-time period has no start and no previous period."""
        window = date_range("all", NOW)
        assert window.start is None
        assert previous_range(window) is None

    def test__date_range__unknown_period(self) -> None:
        """Unknown periods are rejected."""
        with pytest.raises(ValueError, match="Unknown analytics period"):
            date_range("2w", NOW)

    def test__previous_range__adjacent_and_equal_length(self) -> None:
        """The previous range ends where the current one starts."""
        current = DateRange(start=NOW - timedelta(days=7), end=NOW)
        previous = previous_range(current)
        assert previous == DateRange(start=NOW - timedelta(days=14), end=NOW - timedelta(days=7))


class TestGetAnalytics:
    """Tests for get_analytics against seeded orders."""

    async def test__get_analytics__current_vs_previous(
        self, db_session: AsyncSession, product: Product, customer: Customer,
    ) -> None:
        """Metrics compare the period to the one before it; unpaid orders add no revenue."""
        now = utc_now()
        await create_order(db_session, product, now - timedelta(days=1), "50.00", quantity=2,
                           number="ORD-00000001-AAAAA1")
        await create_order(db_session, product, now - timedelta(days=2), "20.00", status="received",
                           number="ORD-00000002-AAAAA2")
        await create_order(db_session, product, now - timedelta(days=10), "25.00",
                           number="ORD-00000003-AAAAA3")

        analytics = await get_analytics(db_session, "7d", now=now)

        assert analytics.period == "7d"
        assert analytics.orders.current == 2
        assert analytics.orders.previous == 1
        assert analytics.orders.change_percent == 100.0
        assert analytics.revenue.current == Decimal("50.00")
        assert analytics.revenue.previous == Decimal("25.00")
        assert analytics.revenue.change_percent == 100.0
        assert analytics.units_sold.current == 2
        assert analytics.units_sold.previous == 1
        # The customer fixture registered just now
        assert analytics.new_customers.current == 1
        assert analytics.new_customers.previous == 0

    async def test__get_analytics__daily_and_top_products(
        self, db_session: AsyncSession, product: Product,
    ) -> None:
        """Days with orders are listed oldest first; best sellers count paid orders only."""
        now = utc_now()
        await create_order(db_session, product, now - timedelta(days=1), "50.00", quantity=2,
                           number="ORD-00000001-AAAAA1")
        await create_order(db_session, product, now - timedelta(days=3), "20.00", status="received",
                           number="ORD-00000002-AAAAA2")

        analytics = await get_analytics(db_session, "30d", now=now)

        assert [point.orders for point in analytics.daily] == [1, 1]
        assert [point.revenue for point in analytics.daily] == [Decimal("0.00"), Decimal("50.00")]
        assert analytics.daily[0].day < analytics.daily[1].day
        assert len(analytics.top_products) == 1
        top = analytics.top_products[0]
        assert top.product_id == product.id
        assert top.title == product.title
        assert top.quantity == 2
        assert top.revenue == Decimal("50.00")

    async def test__get_analytics__all_time_has_no_previous(
        self, db_session: AsyncSession, product: Product,
    ) -> None:
        """All-time analytics report zero previous values."""
        now = utc_now()
        await create_order(db_session, product, now - timedelta(days=400), "30.00",
                           number="ORD-00000001-AAAAA1")

        analytics = await get_analytics(db_session, "all", now=now)

        assert analytics.start is None
        assert analytics.orders.current == 1
        assert analytics.orders.previous == 0
        assert analytics.revenue.current == Decimal("30.00")
