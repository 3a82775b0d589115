"""SQLAlchemy models."""
from models.audit_log import ApiAuditLog
from models.base import Base, TimestampMixin, UUIDv7Mixin
from models.cart import Cart, CartItem
from models.category import Category, product_categories
from models.customer import Customer
from models.order import Order, OrderItem
from models.product import Inventory, Price, Product, ProductOption, ProductOptionValue
from models.stock_notification import StockNotification

__all__ = [
    "ApiAuditLog",
    "Base",
    "Cart",
    "CartItem",
    "Category",
    "Customer",
    "Inventory",
    "Order",
    "OrderItem",
    "Price",
    "Product",
    "ProductOption",
    "ProductOptionValue",
    "StockNotification",
    "TimestampMixin",
    "UUIDv7Mixin",
    "product_categories",
]
