"""Service layer for product categories."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.category import Category
from services.exceptions import NotFoundError


async def list_categories(db: AsyncSession) -> list[Category]:
    """All categories ordered by name."""
    result = await db.execute(select(Category).order_by(Category.name, Category.id))
    return list(result.scalars().all())


async def get_category_by_slug(db: AsyncSession, slug: str) -> Category:
    """
    Get a category by slug.

    Raises:
        NotFoundError: No category with this slug.
    """
    result = await db.execute(select(Category).where(Category.slug == slug))
    category = result.scalar_one_or_none()
    if category is None:
        raise NotFoundError("Category not found")
    return category
