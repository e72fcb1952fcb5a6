"""
Accès aux données pour la feature 'cart': document panier par utilisateur (table 'carts').
Document: {user_id, items: [CartItem...], updated_at: ISO-8601}.
Lecture-modification-écriture non atomique: deux écrivains concurrents peuvent perdre une mise à jour
(le dernier qui écrit le tableau complet gagne).
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

import storefront.infra.supabase_client as supabase_client
from storefront.errors import RepositoryError
from .models import CartItem, LineKey

logger = logging.getLogger(__name__)

TABLE = "carts"

# module storefront.cart.repository
def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _load_document(user_id: str) -> Optional[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def _write_items(user_id: str, items: List[Dict[str, Any]]) -> None:
    (
        supabase_client.get_service_supabase()
        .table(TABLE)
        .upsert({"user_id": user_id, "items": items, "updated_at": _now()})
        .execute()
    )

def _entry_key(entry: Dict[str, Any]) -> LineKey:
    return LineKey.of(entry.get("id"), entry.get("selectedSize"), entry.get("selectedColor"))

def _load_items(user_id: str) -> List[Dict[str, Any]]:
    doc = _load_document(user_id)
    return list((doc or {}).get("items") or [])

def fetch(user_id: str) -> List[CartItem]:
    """
    Retourne les lignes du panier distant de l'utilisateur.
    - Crée paresseusement un document vide s'il n'existe pas.
    """
    try:
        doc = _load_document(user_id)
        if doc is None:
            _write_items(user_id, [])
            return []
        return [CartItem.from_dict(d) for d in doc.get("items") or []]
    except Exception as e:
        logger.exception("cart.repository.fetch failed user_id=%s", user_id)
        raise RepositoryError(f"Lecture du panier impossible: {e}") from e

def upsert_item(user_id: str, item: CartItem) -> None:
    """
    Ajoute une ligne ou incrémente sa quantité (identité composite), puis réécrit le tableau complet.
    """
    try:
        items = _load_items(user_id)
        for entry in items:
            if _entry_key(entry) == item.key:
                entry["quantity"] = int(entry.get("quantity") or 0) + item.quantity
                break
        else:
            items.append(item.to_dict())
        _write_items(user_id, items)
    except Exception as e:
        logger.exception("cart.repository.upsert_item failed user_id=%s item=%s", user_id, item.id)
        raise RepositoryError(f"Ajout au panier impossible: {e}") from e

def set_quantity(user_id: str, key: LineKey, quantity: int) -> None:
    try:
        items = _load_items(user_id)
        for entry in items:
            if _entry_key(entry) == key:
                entry["quantity"] = quantity
        _write_items(user_id, items)
    except Exception as e:
        logger.exception("cart.repository.set_quantity failed user_id=%s key=%s", user_id, key)
        raise RepositoryError(f"Mise à jour de quantité impossible: {e}") from e

def delete_item(user_id: str, key: LineKey) -> None:
    try:
        items = [entry for entry in _load_items(user_id) if _entry_key(entry) != key]
        _write_items(user_id, items)
    except Exception as e:
        logger.exception("cart.repository.delete_item failed user_id=%s key=%s", user_id, key)
        raise RepositoryError(f"Suppression impossible: {e}") from e

def replace_all(user_id: str, items: List[CartItem]) -> None:
    """Réécrit le panier distant complet (réconciliation)."""
    try:
        _write_items(user_id, [i.to_dict() for i in items])
    except Exception as e:
        logger.exception("cart.repository.replace_all failed user_id=%s", user_id)
        raise RepositoryError(f"Réécriture du panier impossible: {e}") from e

def clear(user_id: str) -> None:
    try:
        _write_items(user_id, [])
    except Exception as e:
        logger.exception("cart.repository.clear failed user_id=%s", user_id)
        raise RepositoryError(f"Vidage du panier impossible: {e}") from e
