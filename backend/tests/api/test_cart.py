"""Tests for cart endpoints."""
from decimal import Decimal
from uuid import uuid4

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from models import Customer, Product
from tests.factories import create_product, login


async def add(client: AsyncClient, product: Product, quantity: int = 1, **options: str) -> dict:
    response = await client.post(
        "/api/cart/items",
        json={
            "product_id": str(product.id),
            "quantity": quantity,
            "selected_options": options or None,
        },
    )
    assert response.status_code == 200, response.text
    return response.json()


class TestProvisioning:
    """Tests for getting and creating carts."""

    async def test__add_item__without_cookie_creates_cart(self, client: AsyncClient, product: Product) -> None:
        """Adding with no cookie creates a cart, sets the cookie and returns it."""
        response = await client.post(
            "/api/cart/items",
            json={"product_id": str(product.id), "quantity": 2},
        )

        assert response.status_code == 200
        cart_id = response.cookies.get("cart_id")
        assert cart_id == response.json()["id"]
        set_cookie = response.headers["set-cookie"].lower()
        assert "samesite=lax" in set_cookie
        assert "httponly" in set_cookie

        cart = (await client.get("/api/cart")).json()
        assert cart["id"] == cart_id
        assert len(cart["items"]) == 1
        item = cart["items"][0]
        assert item["quantity"] == 2
        assert item["product_title"] == "Classic Tee"
        assert item["product_slug"] == "classic-tee"
        assert Decimal(item["unit_price"]) == Decimal("10.00")
        assert Decimal(item["line_total"]) == Decimal("20.00")
        assert cart["total_items"] == 2
        assert Decimal(cart["total_price"]) == Decimal("20.00")

    async def test__get_cart__first_visit_creates_empty_cart(self, client: AsyncClient) -> None:
        """The first GET provisions an empty cart and sets the cookie once."""
        first = await client.get("/api/cart")
        second = await client.get("/api/cart")

        assert first.status_code == 200
        assert first.json()["items"] == []
        assert first.json()["total_items"] == 0
        assert first.cookies.get("cart_id") == first.json()["id"]
        assert second.json()["id"] == first.json()["id"]
        assert "set-cookie" not in second.headers

    async def test__ensure_cart__idempotent(self, client: AsyncClient) -> None:
        """POST /api/cart returns the existing cart once one is provisioned."""
        first = await client.post("/api/cart")
        second = await client.post("/api/cart")

        assert first.status_code == second.status_code == 200
        assert first.json()["id"] == second.json()["id"]

    async def test__get_cart__stale_cookie_replaced(self, client: AsyncClient) -> None:
        """A cookie naming a missing cart gets a fresh cart."""
        client.cookies.set("cart_id", str(uuid4()))

        response = await client.get("/api/cart")

        assert response.status_code == 200
        assert response.cookies.get("cart_id") == response.json()["id"]

    async def test__delete_cart__clears(self, client: AsyncClient, product: Product) -> None:
        """Deleting the cart removes it and its cookie."""
        created = await add(client, product)

        response = await client.delete("/api/cart")

        assert response.json() == {"success": True, "message": "Cart cleared"}
        assert "cart_id" not in client.cookies
        assert (await client.get("/api/cart")).json()["id"] != created["id"]

    async def test__delete_cart__without_cart(self, client: AsyncClient) -> None:
        """Deleting with no cart is 404."""
        response = await client.delete("/api/cart")

        assert response.status_code == 404


class TestItems:
    """Tests for adding, updating and removing lines."""

    async def test__add_item__prices_options(self, client: AsyncClient, product: Product) -> None:
        """Option adjustments are included in the unit price and title."""
        cart = await add(client, product, size="L")

        item = cart["items"][0]
        assert Decimal(item["unit_price"]) == Decimal("12.50")
        assert item["descriptive_title"] == "Classic Tee - L"
        assert item["selected_options"] == {"size": "L"}

    async def test__add_item__merges_same_selection(self, client: AsyncClient, product: Product) -> None:
        """The same product and selections merge into one line."""
        await add(client, product, 1, size="L")
        cart = await add(client, product, 2, size="L")

        assert len(cart["items"]) == 1
        assert cart["items"][0]["quantity"] == 3
        assert Decimal(cart["total_price"]) == Decimal("37.50")

    async def test__add_item__different_selection_new_line(self, client: AsyncClient, product: Product) -> None:
        """Different selections are separate lines; no selections count as one line."""
        await add(client, product, 1, size="L")
        await add(client, product, 1, size="M")
        await add(client, product, 1)
        cart = await add(client, product, 1)

        assert len(cart["items"]) == 3
        assert cart["total_items"] == 4

    async def test__add_item__unknown_product(self, client: AsyncClient) -> None:
        """Adding an unknown product is 404."""
        response = await client.post("/api/cart/items", json={"product_id": str(uuid4())})

        assert response.status_code == 404

    async def test__add_item__inactive_product(self, client: AsyncClient, db_session: AsyncSession) -> None:
        """Inactive products cannot be added."""
        draft = await create_product(db_session, slug="draft-hat", status="draft")

        response = await client.post("/api/cart/items", json={"product_id": str(draft.id)})

        assert response.status_code == 404

    async def test__add_item__invalid_quantity(self, client: AsyncClient, product: Product) -> None:
        """Quantities must be at least one."""
        response = await client.post(
            "/api/cart/items",
            json={"product_id": str(product.id), "quantity": 0},
        )

        assert response.status_code == 400

    async def test__update_item__absolute_quantity(self, client: AsyncClient, product: Product) -> None:
        """PATCH with quantity sets the line's quantity."""
        item_id = (await add(client, product))["items"][0]["id"]

        response = await client.patch(f"/api/cart/items/{item_id}", json={"quantity": 4})

        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 4

    async def test__update_item__delta(self, client: AsyncClient, product: Product) -> None:
        """PATCH with delta changes the quantity relatively."""
        item_id = (await add(client, product, 3))["items"][0]["id"]

        response = await client.patch(f"/api/cart/items/{item_id}", json={"delta": -1})

        assert response.json()["items"][0]["quantity"] == 2

    async def test__update_item__delta_to_zero_removes(self, client: AsyncClient, product: Product) -> None:
        """A change that reaches zero removes the line."""
        item_id = (await add(client, product, 2))["items"][0]["id"]

        response = await client.patch(f"/api/cart/items/{item_id}", json={"delta": -2})

        assert response.status_code == 200
        assert response.json()["items"] == []
        assert response.json()["total_items"] == 0

    async def test__update_item__requires_exactly_one_field(self, client: AsyncClient, product: Product) -> None:
        """Both or neither of quantity and delta is a validation error."""
        item_id = (await add(client, product))["items"][0]["id"]

        neither = await client.patch(f"/api/cart/items/{item_id}", json={})
        both = await client.patch(f"/api/cart/items/{item_id}", json={"quantity": 1, "delta": 1})

        assert neither.status_code == 400
        assert both.status_code == 400

    async def test__update_item__not_in_cart(self, client: AsyncClient, product: Product) -> None:
        """An item id outside this cart is 404."""
        await add(client, product)

        response = await client.patch(f"/api/cart/items/{uuid4()}", json={"quantity": 1})

        assert response.status_code == 404
        assert response.json()["error"] == "Cart item not found"

    async def test__update_item__other_visitors_cart(self, client: AsyncClient, product: Product) -> None:
        """A line in someone else's cart is not reachable through this cart."""
        item_id = (await add(client, product))["items"][0]["id"]
        client.cookies.clear()
        await client.get("/api/cart")

        response = await client.patch(f"/api/cart/items/{item_id}", json={"quantity": 5})

        assert response.status_code == 404

    async def test__remove_item(self, client: AsyncClient, product: Product) -> None:
        """DELETE removes the line."""
        cart = await add(client, product, 1, size="L")
        await add(client, product, 1, size="M")

        response = await client.delete(f"/api/cart/items/{cart['items'][0]['id']}")

        assert response.status_code == 200
        assert [item["selected_options"] for item in response.json()["items"]] == [{"size": "M"}]

    async def test__totals__follow_current_catalog_price(
        self, client: AsyncClient, db_session: AsyncSession, product: Product,
    ) -> None:
        """Cart prices are recomputed from the catalog on every read."""
        await add(client, product, 2)
        product.prices[0].amount = Decimal("15.00")
        await db_session.commit()

        cart = (await client.get("/api/cart")).json()

        assert Decimal(cart["items"][0]["unit_price"]) == Decimal("15.00")
        assert Decimal(cart["total_price"]) == Decimal("30.00")


class TestSync:
    """Tests for POST /api/cart/sync."""

    async def test__sync__requires_auth(self, client: AsyncClient, product: Product) -> None:
        """Anonymous callers cannot sync."""
        response = await client.post("/api/cart/sync", json={"items": []})

        assert response.status_code == 401

    async def test__sync__replaces_contents(
        self, client: AsyncClient, db_session: AsyncSession, product: Product, customer: Customer,
    ) -> None:
        """Sync replaces the cart with the given items, merging repeats and skipping unknown products."""
        await login(client, customer.email)
        await add(client, product, 5)
        hat = await create_product(db_session, slug="wool-hat", title="Wool Hat", price="20.00")

        response = await client.post(
            "/api/cart/sync",
            json={"items": [
                {"product_id": str(hat.id), "quantity": 1},
                {"product_id": str(hat.id), "quantity": 2},
                {"product_id": str(product.id), "quantity": 1, "selected_options": {"size": "L"}},
                {"product_id": str(uuid4()), "quantity": 1},
            ]},
        )

        assert response.status_code == 200
        body = response.json()
        lines = {item["product_slug"]: item for item in body["items"]}
        assert set(lines) == {"wool-hat", "classic-tee"}
        assert lines["wool-hat"]["quantity"] == 3
        assert lines["classic-tee"]["selected_options"] == {"size": "L"}
        assert Decimal(body["total_price"]) == Decimal("72.50")

    async def test__sync__signed_in_customer_finds_cart_again(
        self, client: AsyncClient, product: Product, customer: Customer,
    ) -> None:
        """A customer's synced cart is found again without the cart cookie."""
        await login(client, customer.email)
        synced = await client.post(
            "/api/cart/sync",
            json={"items": [{"product_id": str(product.id), "quantity": 2}]},
        )
        client.cookies.delete("cart_id")

        cart = (await client.get("/api/cart")).json()

        assert cart["id"] == synced.json()["id"]
        assert cart["total_items"] == 2
