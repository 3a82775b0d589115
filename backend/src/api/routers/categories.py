"""Category browsing endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_settings
from core.config import Settings
from core.request_wrapper import AuthorizedRoute, public_request
from schemas.category import CategoryListResponse, CategoryProductsResponse, CategoryResponse
from services import category_service, product_service

router = APIRouter(prefix="/api/categories", tags=["categories"], route_class=AuthorizedRoute)


@router.get("", response_model=CategoryListResponse)
@public_request("categories_list")
async def list_categories(
    db: AsyncSession = Depends(get_async_session),
) -> CategoryListResponse:
    """List all categories by name."""
    categories = await category_service.list_categories(db)
    return CategoryListResponse(
        items=[CategoryResponse.model_validate(category) for category in categories],
    )


@router.get("/{slug}/products", response_model=CategoryProductsResponse)
@public_request("categories_products")
async def list_category_products(
    slug: str,
    q: str | None = Query(default=None, max_length=200, description="Title or description search"),
    in_stock_only: bool = Query(default=False),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> CategoryProductsResponse:
    """Active products in a category, newest first."""
    category = await category_service.get_category_by_slug(db, slug)
    products, total = await product_service.list_products(
        db,
        offset=offset,
        limit=limit,
        query=q,
        category_id=category.id,
        in_stock_only=in_stock_only,
    )
    return CategoryProductsResponse(
        category=CategoryResponse.model_validate(category),
        items=[product_service.to_response(product, settings.currency) for product in products],
        total=total,
        offset=offset,
        limit=limit,
        has_more=offset + len(products) < total,
    )
