# module storefront.cart.views
"""
API panier et liste de souhaits (JSON).
- /api/v1/cart: lecture, ajout, quantité, retrait, vidage, réconciliation avec le panier distant
- /api/v1/wishlist: lecture et bascule d'un produit
Les mutations s'appliquent immédiatement au panier local; le miroir distant (utilisateur connecté) est asynchrone.
"""
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from storefront.utils.security import require_user
from .dependencies import CartContext, get_cart_context
from .models import CartItem, Product
from .state import cart_total, format_price, item_count

router = APIRouter(prefix="/api/v1/cart", tags=["Cart API"])
wishlist_router = APIRouter(prefix="/api/v1/wishlist", tags=["Wishlist API"])


class CartItemIn(BaseModel):
    id: str = Field(min_length=1)
    name: str
    image: str = ""
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, ge=1)
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None

    def to_item(self) -> CartItem:
        return CartItem(
            id=self.id,
            name=self.name,
            image=self.image,
            price=self.price,
            quantity=self.quantity,
            selected_size=self.selected_size,
            selected_color=self.selected_color,
        )


class QuantityIn(BaseModel):
    quantity: int
    selected_size: Optional[str] = None
    selected_color: Optional[str] = None


class ProductIn(BaseModel):
    id: str = Field(min_length=1)
    name: str
    image: str = ""
    price: Decimal = Field(ge=0)


def cart_payload(ctx: CartContext) -> Dict[str, Any]:
    state = ctx.store.state
    total = cart_total(state, apply_discount=ctx.is_member)
    return {
        "items": [i.to_dict() for i in state.items],
        "count": item_count(state),
        "subtotal": float(cart_total(state)),
        "total": float(total),
        "total_display": format_price(total),
        "member_discount": ctx.is_member,
        "updatedAt": state.updated_at,
    }


@router.get("")
def get_cart(ctx: CartContext = Depends(get_cart_context)):
    return cart_payload(ctx)


@router.post("/items", status_code=201)
def add_cart_item(body: CartItemIn, ctx: CartContext = Depends(get_cart_context)):
    """Ajoute une ligne; même produit + même variante => quantités additionnées."""
    ctx.store.add_item(body.to_item(), user_id=ctx.user_id)
    return cart_payload(ctx)


@router.patch("/items/{product_id}")
def update_cart_item(product_id: str, body: QuantityIn, ctx: CartContext = Depends(get_cart_context)):
    """Quantité < 1 => la ligne est retirée."""
    ctx.store.update_quantity(
        product_id,
        body.quantity,
        user_id=ctx.user_id,
        selected_size=body.selected_size,
        selected_color=body.selected_color,
    )
    return cart_payload(ctx)


@router.delete("/items/{product_id}")
def remove_cart_item(
    product_id: str,
    selected_size: Optional[str] = None,
    selected_color: Optional[str] = None,
    ctx: CartContext = Depends(get_cart_context),
):
    ctx.store.remove_item(product_id, user_id=ctx.user_id, selected_size=selected_size, selected_color=selected_color)
    return cart_payload(ctx)


@router.delete("")
def clear_cart(ctx: CartContext = Depends(get_cart_context)):
    ctx.store.clear(user_id=ctx.user_id)
    return cart_payload(ctx)


@router.post("/sync")
def reconcile_cart(ctx: CartContext = Depends(get_cart_context), user: Dict[str, Any] = Depends(require_user)):
    """Fusionne les lignes locales absentes du panier distant, après vidage des miroirs en cours."""
    ctx.store.reconcile_with_remote(user["id"])
    return cart_payload(ctx)


@wishlist_router.get("")
def get_wishlist(ctx: CartContext = Depends(get_cart_context)):
    return {"items": [p.to_dict() for p in ctx.store.wishlist]}


@wishlist_router.post("/toggle")
def toggle_wishlist(body: ProductIn, ctx: CartContext = Depends(get_cart_context)):
    product = Product(id=body.id, name=body.name, image=body.image, price=body.price)
    ctx.store.toggle_wishlist(product)
    in_list = any(p.id == product.id for p in ctx.store.wishlist)
    return {"items": [p.to_dict() for p in ctx.store.wishlist], "in_wishlist": in_list}
