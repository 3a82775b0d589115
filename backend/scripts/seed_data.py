"""Seed script to populate a local dev database with a small catalog and accounts.

Usage:
    PYTHONPATH=backend/src python backend/scripts/seed_data.py populate
    PYTHONPATH=backend/src python backend/scripts/seed_data.py populate --force
    PYTHONPATH=backend/src python backend/scripts/seed_data.py clear
    PYTHONPATH=backend/src python backend/scripts/seed_data.py create-root --email you@example.com
"""

import argparse
import asyncio
import getpass
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import hash_password
from core.config import get_settings
from core.request_context import Role
from db.session import create_engine, create_session_factory
from models import (
    Cart,
    Category,
    Customer,
    Inventory,
    Order,
    Price,
    Product,
    ProductOption,
    ProductOptionValue,
    StockNotification,
)

DEV_CUSTOMER_EMAIL = 'shopper@example.com'
DEV_CUSTOMER_PASSWORD = 'password123'

# ---------------------------------------------------------------------------
# Catalog data
# ---------------------------------------------------------------------------

PRODUCTS = [
    {
        'slug': 'classic-tee',
        'title': 'Classic Tee',
        'description': 'Heavyweight cotton t-shirt with a relaxed fit.',
        'price': '10.00',
        'compare_at': '14.00',
        'stock': 120,
        'options': [
            {
                'name': 'size',
                'display_name': 'Size',
                'values': [
                    ('S', '0.00', False),
                    ('M', '0.00', False),
                    ('L', '2.50', False),
                    ('XL', '2.50', True),
                ],
            },
            {
                'name': 'color',
                'display_name': 'Color',
                'values': [
                    ('black', '0.00', False),
                    ('white', '0.00', False),
                    ('forest', '1.00', False),
                ],
            },
        ],
    },
    {
        'slug': 'canvas-tote',
        'title': 'Canvas Tote',
        'description': 'Sturdy canvas tote with an inside pocket.',
        'price': '18.00',
        'compare_at': None,
        'stock': 40,
        'options': [],
    },
    {
        'slug': 'enamel-mug',
        'title': 'Enamel Mug',
        'description': 'Camp-style enamel mug, 350ml.',
        'price': '12.00',
        'compare_at': None,
        'stock': 0,
        'options': [
            {
                'name': 'color',
                'display_name': 'Color',
                'values': [
                    ('cream', '0.00', False),
                    ('navy', '0.00', False),
                ],
            },
        ],
    },
    {
        'slug': 'wool-blanket',
        'title': 'Wool Blanket',
        'description': 'Woven merino blanket, 150 x 200cm.',
        'price': '120.00',
        'compare_at': '150.00',
        'stock': 8,
        'options': [
            {
                'name': 'pattern',
                'display_name': 'Pattern',
                'values': [
                    ('plain', '0.00', False),
                    ('herringbone', '15.00', False),
                ],
            },
        ],
    },
]

CATEGORIES = [
    {
        'slug': 'apparel',
        'name': 'Apparel',
        'description': 'Tees and other things to wear.',
        'products': ['classic-tee'],
    },
    {
        'slug': 'home',
        'name': 'Home',
        'description': 'Mugs, blankets and bags for everyday use.',
        'products': ['canvas-tote', 'enamel-mug', 'wool-blanket'],
    },
]


def build_product(data: dict, currency: str) -> Product:
    """Build a product with its options, price and inventory rows."""
    product = Product(
        slug=data['slug'],
        title=data['title'],
        description=data['description'],
        base_price=Decimal(data['price']),
        status='active',
    )
    product.prices = [
        Price(
            currency=currency,
            amount=Decimal(data['price']),
            compare_at_amount=Decimal(data['compare_at']) if data['compare_at'] else None,
        ),
    ]
    product.inventory = Inventory(quantity_available=data['stock'], quantity_reserved=0)
    product.options = [
        ProductOption(
            name=option['name'],
            display_name=option['display_name'],
            sort_order=index,
            values=[
                ProductOptionValue(
                    name=name,
                    price_adjustment=Decimal(adjustment),
                    is_sold_out=sold_out,
                    is_default=value_index == 0,
                    sort_order=value_index,
                )
                for value_index, (name, adjustment, sold_out) in enumerate(option['values'])
            ],
        )
        for index, option in enumerate(data['options'])
    ]
    return product


async def get_or_create_dev_customer(session: AsyncSession) -> Customer:
    """Get or create the dev shopper account."""
    result = await session.execute(select(Customer).where(Customer.email == DEV_CUSTOMER_EMAIL))
    customer = result.scalar_one_or_none()
    if customer is None:
        customer = Customer(
            email=DEV_CUSTOMER_EMAIL,
            name='Dev Shopper',
            password_hash=hash_password(DEV_CUSTOMER_PASSWORD),
            role=Role.USER.value,
        )
        session.add(customer)
        await session.flush()
    return customer


async def clear_data(session: AsyncSession) -> None:
    """Delete catalog, carts, orders and subscriptions. Accounts are kept."""
    for model in (StockNotification, Order, Cart, Category, Product):
        await session.execute(delete(model))
    print('Catalog, categories, carts and orders cleared.')


async def populate(force: bool = False) -> None:
    """Populate the database with seed data."""
    settings = get_settings()
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        try:
            product_count = (await session.execute(
                select(func.count()).select_from(Product),
            )).scalar()

            if product_count and product_count > 0:
                if force:
                    print('Existing data found, clearing first (--force)...')
                    await clear_data(session)
                    await session.flush()
                else:
                    print(
                        f'Data already exists ({product_count} products). '
                        f'Use --force to clear and re-seed.'
                    )
                    return

            print('Populating seed data...')
            await get_or_create_dev_customer(session)
            products = {data['slug']: build_product(data, settings.currency) for data in PRODUCTS}
            session.add_all(products.values())
            for data in CATEGORIES:
                session.add(Category(
                    slug=data['slug'],
                    name=data['name'],
                    description=data['description'],
                    products=[products[slug] for slug in data['products']],
                ))
            await session.commit()
            print(
                f'Seed data created: {len(PRODUCTS)} products in {len(CATEGORIES)} categories, '
                f'login {DEV_CUSTOMER_EMAIL}.',
            )
        except Exception:
            await session.rollback()
            raise
        finally:
            await engine.dispose()


async def clear() -> None:
    """Remove seeded catalog data."""
    settings = get_settings()
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        try:
            await clear_data(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await engine.dispose()


async def create_root(email: str, password: str) -> None:
    """Create a root account, or promote an existing account to root."""
    settings = get_settings()
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        try:
            email = email.strip().lower()
            result = await session.execute(select(Customer).where(Customer.email == email))
            customer = result.scalar_one_or_none()
            if customer is None:
                customer = Customer(
                    email=email,
                    name='Root',
                    password_hash=hash_password(password),
                    role=Role.ROOT.value,
                )
                session.add(customer)
                print(f'Root account created for {email}.')
            else:
                customer.role = Role.ROOT.value
                print(f'{email} promoted to root.')
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await engine.dispose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description='Seed the dev database with test data.')
    subparsers = parser.add_subparsers(dest='command', required=True)

    populate_parser = subparsers.add_parser('populate', help='Populate database with test data')
    populate_parser.add_argument(
        '--force', action='store_true',
        help='Clear existing data before populating',
    )

    subparsers.add_parser('clear', help='Remove catalog, carts and orders')

    root_parser = subparsers.add_parser('create-root', help='Create or promote a root account')
    root_parser.add_argument('--email', required=True)

    args = parser.parse_args()

    if args.command == 'populate':
        asyncio.run(populate(force=args.force))
    elif args.command == 'clear':
        asyncio.run(clear())
    elif args.command == 'create-root':
        password = getpass.getpass('Password: ')
        if len(password) < 8:
            print('ERROR: password must be at least 8 characters.')
            raise SystemExit(1)
        asyncio.run(create_root(args.email, password))


if __name__ == '__main__':
    main()
