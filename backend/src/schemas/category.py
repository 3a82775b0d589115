"""Pydantic schemas for category endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from schemas.product import ProductResponse


class CategoryResponse(BaseModel):
    """A browsable category."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    description: str | None
    thumbnail: str | None
    parent_id: UUID | None
    created_at: datetime
    updated_at: datetime


class CategoryListResponse(BaseModel):
    """All categories, by name."""

    items: list[CategoryResponse]


class CategoryProductsResponse(BaseModel):
    """A category with a page of its active products."""

    category: CategoryResponse
    items: list[ProductResponse]
    total: int
    offset: int
    limit: int
    has_more: bool
