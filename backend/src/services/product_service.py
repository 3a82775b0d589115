"""Service layer for the product catalog."""
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.category import product_categories
from models.product import Inventory, Price, Product, ProductOption
from schemas.product import OptionResponse, ProductResponse
from services.exceptions import NotFoundError

ACTIVE = "active"


# Loader options for everything the storefront view needs
CATALOG_DETAILS = (
    selectinload(Product.options).selectinload(ProductOption.values),
    selectinload(Product.prices),
    selectinload(Product.inventory),
)


def resolve_price(product: Product, currency: str) -> Price | None:
    """The product's price row for a currency, if any."""
    for price in product.prices:
        if price.currency == currency:
            return price
    return None


def resolve_base_amount(product: Product, currency: str) -> Decimal | None:
    """
    Base unit price before option adjustments.

    The currency's Price row wins; otherwise the product's base price. None
    when the product has neither.
    """
    price = resolve_price(product, currency)
    if price is not None:
        return Decimal(price.amount)
    if product.base_price is not None:
        return Decimal(product.base_price)
    return None


def quantity_available(product: Product) -> int:
    """Units available to sell (0 when no inventory row exists)."""
    if product.inventory is None:
        return 0
    return max(0, product.inventory.quantity_available - product.inventory.quantity_reserved)


def to_response(product: Product, currency: str) -> ProductResponse:
    """Build the storefront view of a product with details loaded."""
    price = resolve_price(product, currency)
    available = quantity_available(product)
    return ProductResponse(
        id=product.id,
        slug=product.slug,
        title=product.title,
        description=product.description,
        image=product.image,
        currency=currency,
        price=resolve_base_amount(product, currency),
        compare_at_price=price.compare_at_amount if price is not None else None,
        options=[OptionResponse.model_validate(option) for option in product.options],
        quantity_available=available,
        in_stock=available > 0,
    )


async def list_products(
    db: AsyncSession,
    offset: int = 0,
    limit: int = 50,
    query: str | None = None,
    category_id: UUID | None = None,
    in_stock_only: bool = False,
) -> tuple[list[Product], int]:
    """
    List active products, newest first.

    Args:
        query: Case-insensitive match on title or description.
        category_id: Only products linked to this category.
        in_stock_only: Only products with unreserved stock.

    Returns:
        Tuple of (products, total matching count).
    """
    filters = [Product.status == ACTIVE]
    if query:
        pattern = f"%{query}%"
        filters.append(or_(Product.title.ilike(pattern), Product.description.ilike(pattern)))
    if category_id is not None:
        filters.append(
            Product.id.in_(
                select(product_categories.c.product_id)
                .where(product_categories.c.category_id == category_id),
            ),
        )
    if in_stock_only:
        filters.append(
            Product.id.in_(
                select(Inventory.product_id)
                .where(Inventory.quantity_available - Inventory.quantity_reserved > 0),
            ),
        )

    total = await db.scalar(select(func.count()).select_from(Product).where(*filters))
    result = await db.execute(
        select(Product)
        .options(*CATALOG_DETAILS)
        .where(*filters)
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset(offset)
        .limit(limit),
    )
    return list(result.scalars().all()), total or 0


async def get_product_by_slug(db: AsyncSession, slug: str) -> Product:
    """
    Get an active product by slug, with options, prices and inventory loaded.

    Raises:
        NotFoundError: No active product with this slug.
    """
    result = await db.execute(
        select(Product)
        .options(*CATALOG_DETAILS)
        .where(Product.slug == slug, Product.status == ACTIVE),
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def get_products_by_ids(db: AsyncSession, product_ids: set[UUID]) -> dict[UUID, Product]:
    """Load products (any status) with details, keyed by id."""
    if not product_ids:
        return {}
    result = await db.execute(
        select(Product)
        .options(*CATALOG_DETAILS)
        .where(Product.id.in_(product_ids)),
    )
    return {product.id: product for product in result.scalars().all()}


async def set_stock(db: AsyncSession, product_id: UUID, quantity: int) -> tuple[Inventory, int]:
    """
    Set a product's available quantity, creating the inventory row if needed.

    Returns:
        Tuple of (inventory, units that were available to sell before the change).

    Raises:
        NotFoundError: No such product.
    """
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    inventory = await db.get(Inventory, product_id)
    if inventory is None:
        previous = 0
        inventory = Inventory(product_id=product_id, quantity_available=quantity, quantity_reserved=0)
        db.add(inventory)
    else:
        previous = max(0, inventory.quantity_available - inventory.quantity_reserved)
        inventory.quantity_available = quantity
    await db.flush()
    return inventory, previous
