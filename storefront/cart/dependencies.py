"""
Résolution du panier de la requête courante.
- La session panier est identifiée par un id opaque stocké dans la session cookie (SessionMiddleware)
- Première requête authentifiée d'une session: le panier distant écrase le panier local (sync_from_remote)
"""
import secrets
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Request

from storefront.utils.security import get_optional_user
from .store import CartStore

CART_SESSION_KEY = "cart_session"
SYNCED_USER_KEY = "cart_synced_user"


@dataclass
class CartContext:
    session_id: str
    store: CartStore
    user: Optional[Dict[str, Any]] = None

    @property
    def user_id(self) -> Optional[str]:
        return (self.user or {}).get("id")

    @property
    def is_member(self) -> bool:
        return self.user_id is not None


def cart_session_id(request: Request) -> str:
    sid = request.session.get(CART_SESSION_KEY)
    if not sid:
        sid = secrets.token_urlsafe(16)
        request.session[CART_SESSION_KEY] = sid
    return sid


def get_cart_context(request: Request, user: Optional[Dict[str, Any]] = Depends(get_optional_user)) -> CartContext:
    sid = cart_session_id(request)
    store = request.app.state.cart_sessions.get(sid)
    ctx = CartContext(session_id=sid, store=store, user=user)
    if ctx.user_id and request.session.get(SYNCED_USER_KEY) != ctx.user_id:
        store.sync_from_remote(ctx.user_id)
        request.session[SYNCED_USER_KEY] = ctx.user_id
    return ctx
