"""Cart endpoints. The cart is identified by the `cart_id` cookie."""
from uuid import UUID

from fastapi import APIRouter, Cookie, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    CART_COOKIE_NAME,
    clear_cart_cookie,
    get_async_session,
    get_optional_user,
    get_request_user,
    get_settings,
    set_cart_cookie,
)
from core.config import Settings
from core.request_wrapper import AuthorizedRoute, authenticated_request, public_request
from schemas.auth import MessageResponse
from schemas.cached_user import CachedUser
from schemas.cart import CartItemAdd, CartItemUpdate, CartResponse, CartSyncRequest
from services import cart_service

router = APIRouter(prefix="/api/cart", tags=["cart"], route_class=AuthorizedRoute)


async def _provisioned_cart(
    response: Response,
    cart_id: str | None,
    current_user: CachedUser | None,
    db: AsyncSession,
    settings: Settings,
) -> CartResponse:
    cart, created = await cart_service.resolve_cart(
        db, cart_id, settings.currency, current_user.id if current_user else None,
    )
    if created:
        set_cart_cookie(response, str(cart.id), settings)
    return cart_service.to_response(cart)


@router.get("", response_model=CartResponse)
@public_request("cart_get")
async def get_cart(
    response: Response,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    current_user: CachedUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CartResponse:
    """Get the current cart, creating an empty one on first visit."""
    return await _provisioned_cart(response, cart_id, current_user, db, settings)


@router.post("", response_model=CartResponse)
@public_request("cart_create")
async def ensure_cart(
    response: Response,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    current_user: CachedUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CartResponse:
    """Provision a cart for this visitor (idempotent: an existing cart is returned)."""
    return await _provisioned_cart(response, cart_id, current_user, db, settings)


@router.delete("", response_model=MessageResponse)
@public_request("cart_delete")
async def delete_cart(
    response: Response,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Delete the current cart and forget the cookie."""
    cart = await cart_service.find_cart(db, cart_id)
    await cart_service.delete_cart(db, cart)
    clear_cart_cookie(response, settings)
    return MessageResponse(message="Cart cleared")


@router.post("/items", response_model=CartResponse)
@public_request("cart_add_item")
async def add_item(
    data: CartItemAdd,
    response: Response,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    current_user: CachedUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CartResponse:
    """
    Add a product to the cart.

    A line with the same product and option selections is merged by adding
    quantities.
    """
    cart, created = await cart_service.resolve_cart(
        db, cart_id, settings.currency, current_user.id if current_user else None,
    )
    await cart_service.add_item(db, cart, data)
    if created:
        set_cart_cookie(response, str(cart.id), settings)
    return cart_service.to_response(cart)


@router.patch("/items/{item_id}", response_model=CartResponse)
@public_request("cart_update_item")
async def update_item(
    item_id: UUID,
    data: CartItemUpdate,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    db: AsyncSession = Depends(get_async_session),
) -> CartResponse:
    """Set or change a line's quantity. A result of zero or less removes the line."""
    cart = await cart_service.find_cart(db, cart_id)
    await cart_service.update_item_quantity(
        db, cart, item_id, quantity=data.quantity, delta=data.delta,
    )
    return cart_service.to_response(cart)


@router.delete("/items/{item_id}", response_model=CartResponse)
@public_request("cart_remove_item")
async def remove_item(
    item_id: UUID,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    db: AsyncSession = Depends(get_async_session),
) -> CartResponse:
    """Remove a line from the cart."""
    cart = await cart_service.find_cart(db, cart_id)
    await cart_service.remove_item(db, cart, item_id)
    return cart_service.to_response(cart)


@router.post("/sync", response_model=CartResponse)
@authenticated_request("cart_sync")
async def sync_cart(
    data: CartSyncRequest,
    response: Response,
    cart_id: str | None = Cookie(default=None, alias=CART_COOKIE_NAME),
    current_user: CachedUser = Depends(get_request_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CartResponse:
    """Replace the signed-in customer's cart with items held client-side."""
    cart, created = await cart_service.resolve_cart(db, cart_id, settings.currency, current_user.id)
    await cart_service.sync_cart(db, cart, current_user.id, data.items)
    if created:
        set_cart_cookie(response, str(cart.id), settings)
    return cart_service.to_response(cart)
