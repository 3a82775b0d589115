"""Checkout endpoints."""
from fastapi import APIRouter, Cookie, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import CART_COOKIE_NAME, get_async_session, get_optional_user, get_settings
from core.config import Settings
from core.request_wrapper import AuthorizedRoute, checkout_request, public_request
from schemas.cached_user import CachedUser
from schemas.order import (
    CheckoutSubmitRequest,
    CheckoutSubmitResponse,
    CheckoutValidateResponse,
    OrderResponse,
)
from services import cart_service, checkout_service

router = APIRouter(prefix="/api/checkout", tags=["checkout"], route_class=AuthorizedRoute)


@router.post("/validate", response_model=CheckoutValidateResponse)
@public_request("checkout_validate")
async def validate_checkout(
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CheckoutValidateResponse:
    """
    Re-price the cart from the catalog and report anything that would block checkout.

    Checks that each product still exists and is active, has a price, that no
    selected option value is sold out, and that enough stock is available.
    """
    cart = await cart_service.find_cart(db, cart_id)
    quote = checkout_service.quote_cart(cart, settings)
    return CheckoutValidateResponse(
        valid=quote.valid,
        issues=quote.issues,
        totals=quote.totals,
        total_items=quote.total_items,
    )


@router.post("/submit", response_model=CheckoutSubmitResponse, status_code=201)
@checkout_request("checkout_submit")
async def submit_checkout(
    data: CheckoutSubmitRequest,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    current_user: CachedUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CheckoutSubmitResponse:
    """
    Place an order for the cart's contents.

    Signed-in customers order against their account; guests must give an
    email. Prices are computed server-side and stock is decremented in the
    same transaction as the order is written.
    """
    cart = await cart_service.find_cart(db, cart_id)
    order = await checkout_service.submit_order(
        db,
        cart,
        settings,
        customer_id=current_user.id if current_user else None,
        guest_email=data.email,
    )
    return CheckoutSubmitResponse(
        order_number=order.order_number,
        order=OrderResponse.model_validate(order),
    )
