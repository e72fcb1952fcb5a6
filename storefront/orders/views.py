# module storefront.orders.views
"""
API commandes de l'utilisateur authentifié (lecture seule).
- GET /api/v1/orders: historique, plus récentes d'abord
- GET /api/v1/orders/{reference}: détail, limité aux commandes de l'utilisateur
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException

from storefront.utils.security import require_user
from . import repository as orders_repository

router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("")
def list_orders(user: Dict[str, Any] = Depends(require_user)):
    orders = orders_repository.get_by_user(user["id"])
    return {"orders": [o.to_record() for o in orders]}


@router.get("/{reference}")
def get_order(reference: str, user: Dict[str, Any] = Depends(require_user)):
    order = orders_repository.get_by_reference(reference)
    # Une commande d'un autre utilisateur est indiscernable d'une commande inexistante
    if order is None or order.user_id != user.get("id"):
        raise HTTPException(status_code=404, detail="Commande introuvable")
    return order.to_record()
