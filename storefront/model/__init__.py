# ------ storefront/model/__init__.py ------

from .product import Product
from .cart import Cart, CartItem
from .promotion import Promotion, promotion_product, PROMOTION_TYPES
from .coupon import Coupon, PERCENTAGE, FIXED_AMOUNT, DISCOUNT_TYPES
from .order import Order, OrderItem

__all__ = [
    "Product",
    "Cart",
    "CartItem",
    "Promotion",
    "promotion_product",
    "PROMOTION_TYPES",
    "Coupon",
    "PERCENTAGE",
    "FIXED_AMOUNT",
    "DISCOUNT_TYPES",
    "Order",
    "OrderItem",
]
