from marketplace.models.category import Category
from marketplace.models.store import Store
from marketplace.models.product import Product
from marketplace.models.variant import VariantOption, VariantCombination
from marketplace.models.cart import CartItem
from marketplace.models.order import Order, OrderItem
from marketplace.models.audit_log import AuditLog

__all__ = [
    "Category",
    "Store",
    "Product",
    "VariantOption",
    "VariantCombination",
    "CartItem",
    "Order",
    "OrderItem",
    "AuditLog",
]
