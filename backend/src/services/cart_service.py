"""Service layer for carts."""
import logging
from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.cart import Cart, CartItem
from models.product import Product
from schemas.cart import MAX_LINE_QUANTITY, CartItemAdd, CartItemResponse, CartResponse
from services import product_service
from services.cart_pricing import (
    PricedLine,
    apply_quantity_change,
    build_option_definitions,
    compute_cart_totals,
    compute_unit_price,
    descriptive_title,
    merge_key,
    quantize_money,
)
from services.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


async def get_cart(db: AsyncSession, cart_id: UUID) -> Cart | None:
    """Load a cart with its items and their products' catalog details."""
    result = await db.execute(
        select(Cart)
        .options(
            selectinload(Cart.items)
            .selectinload(CartItem.product)
            .options(*product_service.CATALOG_DETAILS),
        )
        .where(Cart.id == cart_id)
        .execution_options(populate_existing=True),
    )
    return result.scalar_one_or_none()


async def get_customer_cart(db: AsyncSession, customer_id: UUID) -> Cart | None:
    """The customer's most recently created cart, if any."""
    result = await db.execute(
        select(Cart.id)
        .where(Cart.customer_id == customer_id)
        .order_by(Cart.created_at.desc(), Cart.id.desc())
        .limit(1),
    )
    cart_id = result.scalar_one_or_none()
    if cart_id is None:
        return None
    return await get_cart(db, cart_id)


async def create_cart(db: AsyncSession, currency: str, customer_id: UUID | None = None) -> Cart:
    """Create an empty cart."""
    cart = Cart(currency=currency, customer_id=customer_id)
    db.add(cart)
    await db.flush()
    # Reload so `items` is populated without a lazy load
    return await get_cart(db, cart.id)


async def resolve_cart(
    db: AsyncSession,
    cookie_cart_id: str | None,
    currency: str,
    customer_id: UUID | None = None,
) -> tuple[Cart, bool]:
    """
    Find the cart for a request, creating one when needed.

    The `cart_id` cookie wins. Without a usable cookie a signed-in customer gets
    their latest cart. Otherwise a new cart is created.

    Returns:
        Tuple of (cart, created). `created` means the caller must set the cookie.
    """
    cart_id = _parse_uuid(cookie_cart_id)
    if cart_id is not None:
        cart = await get_cart(db, cart_id)
        if cart is not None:
            return cart, False
    if customer_id is not None:
        cart = await get_customer_cart(db, customer_id)
        if cart is not None:
            return cart, True
    return await create_cart(db, currency, customer_id), True


async def find_cart(db: AsyncSession, cookie_cart_id: str | None) -> Cart:
    """
    Get the cart named by the cookie.

    Raises:
        NotFoundError: No cookie or no such cart.
    """
    cart_id = _parse_uuid(cookie_cart_id)
    cart = await get_cart(db, cart_id) if cart_id is not None else None
    if cart is None:
        raise NotFoundError("Cart not found")
    return cart


def _parse_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(value)
    except ValueError:
        return None


def current_unit_price(item: CartItem, currency: str) -> Decimal | None:
    """
    Unit price of a line at current catalog prices.

    None when the product is gone or has no price in the cart's currency.
    """
    product = item.product
    if product is None:
        return None
    base = product_service.resolve_base_amount(product, currency)
    if base is None:
        return None
    return compute_unit_price(base, item.selected_options, build_option_definitions(product.options))


async def _load_active_product(db: AsyncSession, product_id: UUID) -> Product:
    products = await product_service.get_products_by_ids(db, {product_id})
    product = products.get(product_id)
    if product is None or product.status != product_service.ACTIVE:
        raise NotFoundError("Product not found")
    return product


def _find_line(cart: Cart, product_id: UUID, selected_options: dict[str, str] | None) -> CartItem | None:
    key = merge_key(product_id, selected_options)
    for item in cart.items:
        if merge_key(item.product_id, item.selected_options) == key:
            return item
    return None


async def add_item(db: AsyncSession, cart: Cart, data: CartItemAdd) -> CartItem:
    """
    Add a product to the cart, merging with an existing line for the same
    product and selections.

    Raises:
        NotFoundError: Product does not exist or is not active.
        ValidationError: Resulting quantity exceeds the per-line maximum.
    """
    product = await _load_active_product(db, data.product_id)
    selected = data.selected_options or None

    existing = _find_line(cart, product.id, selected)
    if existing is not None:
        new_quantity = existing.quantity + data.quantity
        if new_quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")
        existing.quantity = new_quantity
        await db.flush()
        logger.debug("cart_item_merged", extra={"cart_id": str(cart.id), "item_id": str(existing.id)})
        return existing

    base = product_service.resolve_base_amount(product, cart.currency)
    unit_amount = (
        compute_unit_price(base, selected, build_option_definitions(product.options))
        if base is not None
        else None
    )
    item = CartItem(
        cart_id=cart.id,
        product_id=product.id,
        quantity=data.quantity,
        selected_options=selected,
        unit_amount=unit_amount,
        descriptive_title=descriptive_title(product.title, selected),
    )
    item.product = product
    cart.items.append(item)
    await db.flush()
    return item


def _get_line(cart: Cart, item_id: UUID) -> CartItem:
    for item in cart.items:
        if item.id == item_id:
            return item
    raise NotFoundError("Cart item not found")


async def update_item_quantity(
    db: AsyncSession,
    cart: Cart,
    item_id: UUID,
    *,
    quantity: int | None = None,
    delta: int | None = None,
) -> CartItem | None:
    """
    Set (`quantity`) or change (`delta`) a line's quantity.

    Returns:
        The updated line, or None when the change took it to zero or below and
        it was removed.

    Raises:
        NotFoundError: Line is not in this cart.
        ValidationError: Resulting quantity exceeds the per-line maximum.
    """
    item = _get_line(cart, item_id)
    new_quantity = apply_quantity_change(item.quantity, quantity=quantity, delta=delta)
    if new_quantity is None:
        await _remove(db, cart, item)
        return None
    if new_quantity > MAX_LINE_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")
    item.quantity = new_quantity
    await db.flush()
    return item


async def remove_item(db: AsyncSession, cart: Cart, item_id: UUID) -> None:
    """
    Remove a line from the cart.

    Raises:
        NotFoundError: Line is not in this cart.
    """
    await _remove(db, cart, _get_line(cart, item_id))


async def _remove(db: AsyncSession, cart: Cart, item: CartItem) -> None:
    cart.items.remove(item)
    await db.flush()


async def clear_items(db: AsyncSession, cart: Cart) -> None:
    """Remove every line, keeping the cart."""
    cart.items.clear()
    await db.flush()


async def delete_cart(db: AsyncSession, cart: Cart) -> None:
    """Delete the cart and its lines."""
    await db.delete(cart)
    await db.flush()


async def sync_cart(
    db: AsyncSession,
    cart: Cart,
    customer_id: UUID,
    items: Iterable[CartItemAdd],
) -> Cart:
    """
    Replace the cart's contents with client-held items and attach it to a customer.

    Repeated product/selection combinations are merged into one line. Items
    whose product no longer exists or is inactive are skipped.
    """
    cart.customer_id = customer_id
    await clear_items(db, cart)
    for data in items:
        try:
            await add_item(db, cart, data)
        except NotFoundError:
            logger.warning("cart_sync_product_skipped", extra={"product_id": str(data.product_id)})
        except ValidationError:
            logger.warning("cart_sync_quantity_capped", extra={"product_id": str(data.product_id)})
    return cart


def to_response(cart: Cart) -> CartResponse:
    """Build the cart view with current prices and totals."""
    lines: list[CartItemResponse] = []
    priced: list[PricedLine] = []
    for item in cart.items:
        unit_price = current_unit_price(item, cart.currency)
        priced.append(PricedLine(quantity=item.quantity, unit_price=unit_price))
        product = item.product
        lines.append(CartItemResponse(
            id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            selected_options=item.selected_options,
            descriptive_title=item.descriptive_title or (product.title if product else ""),
            unit_price=unit_price,
            line_total=quantize_money(unit_price * item.quantity) if unit_price is not None else None,
            product_title=product.title if product else None,
            product_slug=product.slug if product else None,
            product_image=product.image if product else None,
        ))
    totals = compute_cart_totals(priced)
    return CartResponse(
        id=cart.id,
        currency=cart.currency,
        items=lines,
        total_items=totals.total_items,
        total_price=totals.total_price,
    )
