"""Catalog endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_settings
from core.config import Settings
from core.request_wrapper import AuthorizedRoute, public_request
from schemas.auth import normalize_email
from schemas.product import (
    ProductListResponse,
    ProductResponse,
    StockNotificationRequest,
    StockNotificationStatus,
)
from services import product_service, stock_notification_service
from services.exceptions import ValidationError

router = APIRouter(prefix="/api/products", tags=["products"], route_class=AuthorizedRoute)


@router.get("", response_model=ProductListResponse)
@public_request("products_list")
async def list_products(
    q: str | None = Query(default=None, max_length=200, description="Title or description search"),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> ProductListResponse:
    """List active products with price, options and stock."""
    products, total = await product_service.list_products(db, offset=offset, limit=limit, query=q)
    return ProductListResponse(
        items=[product_service.to_response(product, settings.currency) for product in products],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.get("/{slug}", response_model=ProductResponse)
@public_request("products_get")
async def get_product(
    slug: str,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> ProductResponse:
    """Get an active product by slug."""
    product = await product_service.get_product_by_slug(db, slug)
    return product_service.to_response(product, settings.currency)


@router.get("/{slug}/stock-notification", response_model=StockNotificationStatus)
@public_request("stock_notification_status")
async def get_stock_notification(
    slug: str,
    email: str = Query(..., max_length=255),
    db: AsyncSession = Depends(get_async_session),
) -> StockNotificationStatus:
    """Whether an email is subscribed to this product's back-in-stock notification."""
    try:
        normalized = normalize_email(email)
    except ValueError as e:
        raise ValidationError(str(e))
    product = await product_service.get_product_by_slug(db, slug)
    subscription = await stock_notification_service.get_subscription(db, product.id, normalized)
    if subscription is None:
        return StockNotificationStatus(subscribed=False)
    return StockNotificationStatus(subscribed=True, is_notified=subscription.is_notified)


@router.post("/{slug}/stock-notification", response_model=StockNotificationStatus)
@public_request("stock_notification_subscribe")
async def subscribe_stock_notification(
    slug: str,
    data: StockNotificationRequest,
    db: AsyncSession = Depends(get_async_session),
) -> StockNotificationStatus:
    """Subscribe an email to be told when this product is back in stock."""
    product = await product_service.get_product_by_slug(db, slug)
    await stock_notification_service.subscribe(db, product.id, data.email)
    return StockNotificationStatus(subscribed=True, is_notified=False)
