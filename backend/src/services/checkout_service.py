"""
Service layer for checkout.

Checkout never trusts prices stored on cart lines: every line is re-priced from
the current catalog, and product availability, sold-out option values and stock
are re-checked before an order is created.
"""
import logging
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings
from models.cart import Cart, CartItem
from models.order import Order, OrderItem
from models.product import Inventory
from schemas.order import CheckoutIssue, CheckoutTotals
from services import cart_service, order_service, product_service
from services.cart_pricing import build_option_definitions, quantize_money, sold_out_selections
from services.exceptions import ConflictError, ValidationError

logger = logging.getLogger(__name__)

INSUFFICIENT_STOCK = "insufficient_stock"


@dataclass
class PricedCartLine:
    """A cart line with its checkout-time unit price."""

    item: CartItem
    unit_price: Decimal


@dataclass
class CheckoutQuote:
    """Validation outcome and server-side totals for a cart."""

    lines: list[PricedCartLine]
    issues: list[CheckoutIssue]
    totals: CheckoutTotals
    total_items: int

    @property
    def valid(self) -> bool:
        """True when the cart is non-empty and has no issues."""
        return bool(self.lines) and not self.issues


def compute_totals(subtotal: Decimal, settings: Settings) -> CheckoutTotals:
    """Tax at the configured rate; free shipping above the threshold, else the flat fee."""
    subtotal = quantize_money(subtotal)
    tax = quantize_money(subtotal * settings.tax_rate)
    if subtotal == 0 or subtotal > settings.free_shipping_threshold:
        shipping = Decimal("0.00")
    else:
        shipping = quantize_money(settings.shipping_flat_fee)
    return CheckoutTotals(
        currency=settings.currency,
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=quantize_money(subtotal + tax + shipping),
    )


def _issue(item: CartItem, code: str, message: str) -> CheckoutIssue:
    return CheckoutIssue(item_id=item.id, product_id=item.product_id, code=code, message=message)


def quote_cart(cart: Cart, settings: Settings) -> CheckoutQuote:
    """
    Re-price and re-check every line of a cart (with catalog details loaded).

    Stock is checked per product against the combined quantity of all lines
    for that product.
    """
    lines: list[PricedCartLine] = []
    issues: list[CheckoutIssue] = []
    requested: dict[UUID, int] = {}
    for item in cart.items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    for item in cart.items:
        product = item.product
        if product is None or product.status != product_service.ACTIVE:
            issues.append(_issue(item, "product_unavailable", "Product is no longer available"))
            continue

        unit_price = cart_service.current_unit_price(item, cart.currency)
        if unit_price is None:
            issues.append(_issue(item, "price_unavailable", f"{product.title} has no price"))
            continue

        sold_out = sold_out_selections(item.selected_options, build_option_definitions(product.options))
        if sold_out:
            issues.append(_issue(
                item,
                "option_sold_out",
                f"{product.title}: selected {', '.join(sold_out)} is sold out",
            ))

        available = product_service.quantity_available(product)
        if requested[item.product_id] > available:
            issues.append(_issue(
                item,
                INSUFFICIENT_STOCK,
                f"Only {available} of {product.title} available",
            ))

        lines.append(PricedCartLine(item=item, unit_price=unit_price))

    subtotal = sum((line.unit_price * line.item.quantity for line in lines), Decimal("0"))
    return CheckoutQuote(
        lines=lines,
        issues=issues,
        totals=compute_totals(subtotal, settings),
        total_items=sum(item.quantity for item in cart.items),
    )


def generate_order_number() -> str:
    """Human-readable order number, e.g. ORD-12345678-A1B2C3."""
    millis = str(int(time.time() * 1000))[-8:]
    return f"ORD-{millis}-{secrets.token_hex(3).upper()}"


async def _reserve_stock(db: AsyncSession, product_id: UUID, quantity: int) -> bool:
    """Atomically decrement stock if enough is available. False when it is not."""
    result = await db.execute(
        update(Inventory)
        .where(
            Inventory.product_id == product_id,
            Inventory.quantity_available - Inventory.quantity_reserved >= quantity,
        )
        .values(quantity_available=Inventory.quantity_available - quantity)
        .execution_options(synchronize_session=False),
    )
    return result.rowcount == 1


async def submit_order(
    db: AsyncSession,
    cart: Cart,
    settings: Settings,
    customer_id: UUID | None,
    guest_email: str | None,
) -> Order:
    """
    Turn the cart into an order.

    Runs inside the request's transaction: stock decrements, order rows and
    cart clearing commit or roll back together.

    Raises:
        ValidationError: Empty cart, missing guest email, or unavailable/sold-out items.
        ConflictError: Not enough stock for at least one product.
    """
    if not cart.items:
        raise ValidationError("Cart is empty")
    if customer_id is None and not guest_email:
        raise ValidationError("Email is required for guest checkout")

    quote = quote_cart(cart, settings)
    if quote.issues:
        details = {"issues": [issue.model_dump(mode="json") for issue in quote.issues]}
        if all(issue.code == INSUFFICIENT_STOCK for issue in quote.issues):
            raise ConflictError("Insufficient inventory", details=details)
        raise ValidationError("Cart cannot be checked out", details=details)

    for line in quote.lines:
        if not await _reserve_stock(db, line.item.product_id, line.item.quantity):
            raise ConflictError(
                "Insufficient inventory",
                details={"product_id": str(line.item.product_id)},
            )

    order = Order(
        customer_id=customer_id,
        guest_email=None if customer_id is not None else guest_email,
        is_guest_order=customer_id is None,
        order_number=generate_order_number(),
        status="received",
        currency=quote.totals.currency,
        subtotal=quote.totals.subtotal,
        tax=quote.totals.tax,
        shipping=quote.totals.shipping,
        total=quote.totals.total,
        items=[
            OrderItem(
                product_id=line.item.product_id,
                quantity=line.item.quantity,
                unit_amount=line.unit_price,
                selected_options=line.item.selected_options,
                descriptive_title=line.item.descriptive_title or line.item.product.title,
            )
            for line in quote.lines
        ],
    )
    db.add(order)
    await db.flush()

    await cart_service.clear_items(db, cart)
    logger.info(
        "order_placed",
        extra={
            "order_number": order.order_number,
            "is_guest_order": order.is_guest_order,
            "total": str(order.total),
        },
    )
    return await order_service.get_order(db, order.id)
