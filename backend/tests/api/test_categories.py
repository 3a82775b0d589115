"""Tests for category browsing."""
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.factories import create_category, create_product


class TestListCategories:
    """Tests for GET /api/categories."""

    async def test__list_categories__ordered_by_name(
        self, client: AsyncClient, db_session: AsyncSession,
    ) -> None:
        """Categories come back alphabetically."""
        await create_category(db_session, slug="mugs", name="Mugs")
        await create_category(db_session, slug="apparel", name="Apparel")

        response = await client.get("/api/categories")

        assert response.status_code == 200
        assert [item["slug"] for item in response.json()["items"]] == ["apparel", "mugs"]

    async def test__list_categories__empty(self, client: AsyncClient) -> None:
        """No categories is an empty list."""
        response = await client.get("/api/categories")

        assert response.status_code == 200
        assert response.json() == {"items": []}


class TestCategoryProducts:
    """Tests for GET /api/categories/{slug}/products."""

    async def test__category_products__only_linked_active_products(
        self, client: AsyncClient, db_session: AsyncSession,
    ) -> None:
        """Only active products linked to the category are listed."""
        tee = await create_product(db_session, slug="tee", title="Tee")
        hoodie = await create_product(db_session, slug="hoodie", title="Hoodie", status="draft")
        await create_product(db_session, slug="mug", title="Mug")
        await create_category(db_session, products=[tee, hoodie])

        response = await client.get("/api/categories/apparel/products")

        assert response.status_code == 200
        body = response.json()
        assert body["category"]["slug"] == "apparel"
        assert [item["slug"] for item in body["items"]] == ["tee"]
        assert body["total"] == 1
        assert body["has_more"] is False

    async def test__category_products__in_stock_only(
        self, client: AsyncClient, db_session: AsyncSession,
    ) -> None:
        """Sold-out and fully reserved products are dropped when asked for in-stock only."""
        tee = await create_product(db_session, slug="tee", title="Tee", stock=5)
        cap = await create_product(db_session, slug="cap", title="Cap", stock=0)
        sock = await create_product(db_session, slug="sock", title="Sock", stock=2)
        sock.inventory.quantity_reserved = 2
        await db_session.commit()
        await create_category(db_session, products=[tee, cap, sock])

        everything = await client.get("/api/categories/apparel/products")
        in_stock = await client.get("/api/categories/apparel/products", params={"in_stock_only": "true"})

        assert everything.json()["total"] == 3
        assert [item["slug"] for item in in_stock.json()["items"]] == ["tee"]

    async def test__category_products__search_title_and_description(
        self, client: AsyncClient, db_session: AsyncSession,
    ) -> None:
        """The search matches titles and descriptions, case-insensitively."""
        tee = await create_product(db_session, slug="tee", title="Organic Tee")
        cap = await create_product(db_session, slug="cap", title="Cap")
        cap.description = "Made from ORGANIC cotton"
        sock = await create_product(db_session, slug="sock", title="Sock")
        await db_session.commit()
        await create_category(db_session, products=[tee, cap, sock])

        response = await client.get("/api/categories/apparel/products", params={"q": "organic"})

        assert sorted(item["slug"] for item in response.json()["items"]) == ["cap", "tee"]

    async def test__category_products__paginated(
        self, client: AsyncClient, db_session: AsyncSession,
    ) -> None:
        """has_more reports whether another page exists."""
        products = [
            await create_product(db_session, slug=f"tee-{index}", title=f"Tee {index}")
            for index in range(3)
        ]
        await create_category(db_session, products=products)

        first = await client.get("/api/categories/apparel/products", params={"limit": 2})
        last = await client.get("/api/categories/apparel/products", params={"limit": 2, "offset": 2})

        assert len(first.json()["items"]) == 2
        assert first.json()["has_more"] is True
        assert len(last.json()["items"]) == 1
        assert last.json()["has_more"] is False

    async def test__category_products__unknown_category(self, client: AsyncClient) -> None:
        """Unknown category slugs are 404."""
        response = await client.get("/api/categories/nope/products")

        assert response.status_code == 404
        assert response.json()["error"] == "Category not found"
