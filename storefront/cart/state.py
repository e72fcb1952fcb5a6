"""
Logique panier pure: réducteurs (state, action) -> state, sans I/O.
Les effets (persistance locale, miroir distant) sont appliqués par CartStore.
"""
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .models import CartItem, CartState, LineKey, Product

# Remise membre: 15% sur le sous-total (pas par ligne)
MEMBER_DISCOUNT_FACTOR = Decimal("0.85")
CENT = Decimal("0.01")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def add_item(state: CartState, item: CartItem) -> CartState:
    """
    Fusionne par identité composite: additionne les quantités si la ligne existe,
    sinon ajoute la ligne en fin de panier.
    """
    items = list(state.items)
    for idx, existing in enumerate(items):
        if existing.key == item.key:
            items[idx] = existing.with_quantity(existing.quantity + item.quantity)
            break
    else:
        items.append(item)
    return replace(state, items=tuple(items), updated_at=_now())


def remove_item(state: CartState, key: LineKey) -> CartState:
    """Retire la ligne correspondante; retourne le même état si absente (no-op)."""
    items = tuple(i for i in state.items if i.key != key)
    if len(items) == len(state.items):
        return state
    return replace(state, items=items, updated_at=_now())


def update_quantity(state: CartState, key: LineKey, quantity: int) -> CartState:
    """
    Fixe la quantité de la ligne correspondante.
    Une quantité < 1 vaut suppression de la ligne.
    """
    if quantity < 1:
        return remove_item(state, key)
    if not any(i.key == key for i in state.items):
        return state
    items = tuple(i.with_quantity(quantity) if i.key == key else i for i in state.items)
    return replace(state, items=items, updated_at=_now())


def clear(state: CartState) -> CartState:
    return replace(state, items=(), updated_at=_now())


def replace_items(state: CartState, items: Iterable[CartItem]) -> CartState:
    return replace(state, items=tuple(items), updated_at=_now())


def toggle_wishlist(state: CartState, product: Product) -> CartState:
    if any(p.id == product.id for p in state.wishlist):
        wishlist = tuple(p for p in state.wishlist if p.id != product.id)
    else:
        wishlist = state.wishlist + (product,)
    return replace(state, wishlist=wishlist, updated_at=_now())


def cart_total(state: CartState, apply_discount: bool = False) -> Decimal:
    """
    Somme exacte de price × quantity; multipliée par 0.85 si remise membre.
    L'arrondi est à la charge de l'affichage (format_price).
    """
    subtotal = sum((i.line_total for i in state.items), Decimal("0"))
    return subtotal * MEMBER_DISCOUNT_FACTOR if apply_discount else subtotal


def item_count(state: CartState) -> int:
    return sum(i.quantity for i in state.items)


def format_price(amount: Decimal) -> str:
    """Affichage: 2 décimales + symbole euro (ex: 20.00€)."""
    return f"{Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)}€"
