"""
Accès aux données pour la feature 'orders' (table 'orders', clé = reference).
- Les échecs Supabase sur create/update_status sont fatals pour l'opération (RepositoryError).
- Les notifications webhook associées sont best-effort et toujours avalées.
"""
from datetime import datetime, timezone
from typing import List, Optional
import logging

import storefront.infra.supabase_client as supabase_client
from storefront.errors import OrderTransitionError, RepositoryError
from storefront.notifications import webhook
from .models import Order, OrderStatus

logger = logging.getLogger(__name__)

TABLE = "orders"

# module storefront.orders.repository
def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def create(order: Order) -> str:
    """
    Écrit la commande sous sa reference (créer ou remplacer: pas de contrôle d'unicité ici)
    en posant created_at/updated_at, puis notifie ORDER_CREATED.
    Retour: la reference.
    """
    now = _now()
    order.created_at = now
    order.updated_at = now
    record = order.to_record()
    try:
        (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .upsert(record)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.create failed reference=%s", order.reference)
        raise RepositoryError(f"Création de la commande impossible: {e}") from e
    logger.info("Commande créée reference=%s total=%s", order.reference, order.total)
    webhook.notify_event(webhook.ORDER_CREATED, order=record)
    return order.reference

def get_by_reference(reference: str) -> Optional[Order]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("reference", reference)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.get_by_reference failed reference=%s", reference)
        raise RepositoryError(f"Lecture de la commande impossible: {e}") from e
    rows = res.data or []
    return Order.from_record(rows[0]) if rows else None

def get_by_user(user_id: str) -> List[Order]:
    if not user_id:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.get_by_user failed user_id=%s", user_id)
        raise RepositoryError(f"Lecture des commandes impossible: {e}") from e
    return [Order.from_record(r) for r in res.data or []]

def update_status(reference: str, status: OrderStatus, current: Optional[OrderStatus] = None) -> None:
    """
    Mise à jour partielle status + updated_at, puis notifie ORDER_STATUS_UPDATED.
    Si le statut courant est connu, refuse les transitions hors cycle de vie.
    """
    if current is not None and current != status and not current.can_transition_to(status):
        raise OrderTransitionError(f"Transition interdite {current.value} -> {status.value}")
    try:
        (
            supabase_client.get_service_supabase()
            .table(TABLE)
            .update({"status": status.value, "updated_at": _now()})
            .eq("reference", reference)
            .execute()
        )
    except Exception as e:
        logger.exception("orders.repository.update_status failed reference=%s status=%s", reference, status.value)
        raise RepositoryError(f"Mise à jour du statut impossible: {e}") from e
    logger.info("Statut commande reference=%s -> %s", reference, status.value)
    webhook.notify_event(webhook.ORDER_STATUS_UPDATED, reference=reference, status=status.value)
