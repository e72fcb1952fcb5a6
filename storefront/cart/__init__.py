"""
Module 'cart' (feature-first): état du panier, stockage local, miroir distant.
"""
from .models import CartItem, CartState, LineKey, Product
from .state import cart_total, format_price, item_count, MEMBER_DISCOUNT_FACTOR
from .store import CartStore
from .sessions import CartSessions

__all__ = [
    "CartItem",
    "CartState",
    "LineKey",
    "Product",
    "cart_total",
    "format_price",
    "item_count",
    "MEMBER_DISCOUNT_FACTOR",
    "CartStore",
    "CartSessions",
]
