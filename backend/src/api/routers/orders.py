"""Order history, detail, confirmation and lookup endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_optional_user, get_request_user
from core.request_wrapper import AuthorizedRoute, auth_request, authenticated_request
from schemas.cached_user import CachedUser
from schemas.order import OrderListResponse, OrderLookupRequest, OrderResponse
from services import order_service

router = APIRouter(prefix="/api/orders", tags=["orders"], route_class=AuthorizedRoute)


@router.get("", response_model=OrderListResponse)
@authenticated_request("orders_list")
async def list_orders(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: CachedUser = Depends(get_request_user),
    db: AsyncSession = Depends(get_async_session),
) -> OrderListResponse:
    """The signed-in customer's orders, newest first."""
    orders, total = await order_service.list_customer_orders(
        db, current_user.id, offset=offset, limit=limit,
    )
    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.post("/lookup", response_model=OrderResponse)
@auth_request("orders_lookup")
async def lookup_order(
    data: OrderLookupRequest,
    db: AsyncSession = Depends(get_async_session),
) -> OrderResponse:
    """Find an order by its number and the email it was placed with."""
    order = await order_service.lookup_order(db, data.order_number, data.email)
    return OrderResponse.model_validate(order)


@router.get("/confirmation", response_model=OrderResponse)
@auth_request("orders_confirmation")
async def get_order_confirmation(
    order_number: str = Query(..., min_length=1, max_length=32),
    email: str | None = Query(default=None, max_length=255),
    current_user: CachedUser | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
) -> OrderResponse:
    """
    An order for its confirmation page.

    Guest orders need the email they were placed with; account orders are
    only shown to their signed-in owner.
    """
    order = await order_service.get_confirmation(db, order_number, email, current_user)
    return OrderResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse)
@authenticated_request("orders_get")
async def get_order(
    order_id: UUID,
    current_user: CachedUser = Depends(get_request_user),
    db: AsyncSession = Depends(get_async_session),
) -> OrderResponse:
    """One of the signed-in customer's orders."""
    order = await order_service.get_customer_order(db, order_id, current_user.id)
    return OrderResponse.model_validate(order)
