"""Tests for catalog and back-in-stock endpoints."""
from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Product, StockNotification
from tests.factories import create_product


class TestCatalog:
    """Tests for product listing and detail."""

    async def test__get_product__storefront_view(self, client: AsyncClient, product: Product) -> None:
        """A product is served with its price, options and stock."""
        response = await client.get(f"/api/products/{product.slug}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == str(product.id)
        assert body["title"] == "Classic Tee"
        assert Decimal(body["price"]) == Decimal("10.00")
        assert body["currency"] == "USD"
        assert body["quantity_available"] == 10
        assert body["in_stock"] is True
        assert [option["name"] for option in body["options"]] == ["size"]
        values = {value["name"]: value for value in body["options"][0]["values"]}
        assert Decimal(values["L"]["price_adjustment"]) == Decimal("2.50")
        assert values["XL"]["is_sold_out"] is True

    async def test__get_product__unknown_slug(self, client: AsyncClient) -> None:
        """An unknown slug is 404."""
        response = await client.get("/api/products/no-such-thing")

        assert response.status_code == 404
        assert response.json()["type"] == "NOT_FOUND_ERROR"

    async def test__get_product__inactive_hidden(self, client: AsyncClient, db_session: AsyncSession) -> None:
        """Draft products are not served."""
        await create_product(db_session, slug="draft-hat", title="Draft Hat", status="draft")

        response = await client.get("/api/products/draft-hat")

        assert response.status_code == 404

    async def test__list_products__active_only_with_search(
        self, client: AsyncClient, db_session: AsyncSession, product: Product,
    ) -> None:
        """Listing returns active products and filters by title."""
        await create_product(db_session, slug="wool-hat", title="Wool Hat")
        await create_product(db_session, slug="draft-hat", title="Draft Hat", status="draft")

        everything = await client.get("/api/products")
        hats = await client.get("/api/products", params={"q": "hat"})

        assert everything.status_code == 200
        assert everything.json()["total"] == 2
        assert {item["slug"] for item in everything.json()["items"]} == {"classic-tee", "wool-hat"}
        assert [item["slug"] for item in hats.json()["items"]] == ["wool-hat"]

    async def test__list_products__pagination_bounds(self, client: AsyncClient) -> None:
        """Limits above the maximum are rejected."""
        response = await client.get("/api/products", params={"limit": 101})

        assert response.status_code == 400

    async def test__get_product__out_of_stock(self, client: AsyncClient, db_session: AsyncSession) -> None:
        """Zero stock is reported as out of stock."""
        await create_product(db_session, slug="sold-out-mug", title="Mug", stock=0)

        body = (await client.get("/api/products/sold-out-mug")).json()

        assert body["quantity_available"] == 0
        assert body["in_stock"] is False


class TestStockNotifications:
    """Tests for back-in-stock subscriptions."""

    async def test__subscribe__normalizes_email(
        self, client: AsyncClient, db_session: AsyncSession, product: Product,
    ) -> None:
        """Subscribing stores the trimmed, lower-cased email."""
        response = await client.post(
            f"/api/products/{product.slug}/stock-notification",
            json={"email": "  Fan@Example.COM "},
        )

        assert response.status_code == 200
        assert response.json() == {"subscribed": True, "is_notified": False}
        rows = (await db_session.execute(select(StockNotification))).scalars().all()
        assert [row.email for row in rows] == ["fan@example.com"]

    async def test__subscribe__twice_keeps_one_row(
        self, client: AsyncClient, db_session: AsyncSession, product: Product,
    ) -> None:
        """A repeated subscription does not duplicate."""
        for email in ("fan@example.com", "FAN@example.com"):
            await client.post(f"/api/products/{product.slug}/stock-notification", json={"email": email})

        rows = (await db_session.execute(select(StockNotification))).scalars().all()
        assert len(rows) == 1

    async def test__status__reports_subscription(self, client: AsyncClient, product: Product) -> None:
        """The status endpoint reflects subscriptions case-insensitively."""
        url = f"/api/products/{product.slug}/stock-notification"
        before = await client.get(url, params={"email": "fan@example.com"})
        await client.post(url, json={"email": "fan@example.com"})
        after = await client.get(url, params={"email": "Fan@Example.com"})

        assert before.json() == {"subscribed": False, "is_notified": False}
        assert after.json() == {"subscribed": True, "is_notified": False}

    async def test__status__invalid_email(self, client: AsyncClient, product: Product) -> None:
        """Malformed emails are rejected."""
        response = await client.get(
            f"/api/products/{product.slug}/stock-notification",
            params={"email": "not-an-email"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email address"

    async def test__subscribe__unknown_product(self, client: AsyncClient) -> None:
        """Subscribing to an unknown product is 404."""
        response = await client.post(
            "/api/products/no-such-thing/stock-notification",
            json={"email": "fan@example.com"},
        )

        assert response.status_code == 404
