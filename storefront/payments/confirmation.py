"""
Confirmation de paiement.
- confirm_payment: traitement du retour navigateur (/payment-success), exécuté une fois par chargement
- apply_gateway_notification: notification serveur-à-serveur, relit la transaction côté passerelle
Le statut de la commande est mis à jour en best-effort: un échec n'invalide jamais la confirmation.
"""
import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from storefront.cart.store import CartStore
from storefront.errors import StorefrontError, VerificationError
from storefront.notifications import webhook
from storefront.orders import repository as orders_repository
from storefront.orders.models import OrderStatus
from . import makecommerce_client
from .metadata import PaymentDetails, extract_payment_details, extract_transaction_id

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Paiement confirmé"
MISSING_TRANSACTION = "Identifiant de transaction manquant"
VERIFICATION_FAILED = "Impossible de vérifier le paiement. Contactez le support si vous avez été débité."

# Statuts passerelle -> statut commande
GATEWAY_STATUS_MAP = {
    "completed": OrderStatus.COMPLETED,
    "cancelled": OrderStatus.CANCELLED,
    "expired": OrderStatus.CANCELLED,
    "created": OrderStatus.PENDING,
    "pending": OrderStatus.PENDING,
    "approved": OrderStatus.PENDING,
}


class ConfirmationStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


@dataclass
class ConfirmationResult:
    status: ConfirmationStatus
    transaction_id: Optional[str] = None
    details: Optional[PaymentDetails] = None
    error: Optional[str] = None


def _advance_order(orders: Any, reference: str, target: OrderStatus) -> Optional[OrderStatus]:
    """Avance la commande vers target si la transition est permise. Retourne le statut final connu."""
    if not reference:
        return None
    try:
        order = orders.get_by_reference(reference)
        if order is None:
            logger.warning("Commande introuvable pour reference=%s", reference)
            return None
        if order.status == target:
            return target
        if not order.status.can_transition_to(target):
            logger.info("Transition ignorée reference=%s %s -> %s", reference, order.status.value, target.value)
            return order.status
        orders.update_status(reference, target, current=order.status)
        return target
    except StorefrontError:
        logger.exception("Mise à jour du statut commande échouée reference=%s", reference)
        return None


def _bind_to_transaction(details: PaymentDetails, transaction: Mapping[str, Any], transaction_id: str) -> PaymentDetails:
    """
    Les paramètres d'URL sont modifiables par le navigateur: la référence et le montant
    de la transaction relue côté passerelle font foi.
    """
    reference = str(transaction.get("reference") or "")
    amount = transaction.get("amount")
    if reference and reference != details.reference:
        logger.warning(
            "Référence de retour incohérente transaction=%s url=%s passerelle=%s",
            transaction_id, details.reference, reference,
        )
    return replace(
        details,
        reference=reference,
        amount=makecommerce_client.money(amount) if amount is not None else details.amount,
    )


def confirm_payment(
    params: Mapping[str, str],
    store: CartStore,
    user_id: Optional[str] = None,
    gateway: Any = makecommerce_client,
    orders: Any = orders_repository,
) -> ConfirmationResult:
    """
    Une seule lecture de la transaction: elle décide du statut et désigne la commande à compléter.
    Sans référence côté passerelle, aucune commande n'est avancée.
    """
    transaction_id = extract_transaction_id(params)
    if not transaction_id:
        return ConfirmationResult(status=ConfirmationStatus.ERROR, error=MISSING_TRANSACTION)

    try:
        transaction = gateway.get_transaction(transaction_id) or {}
    except Exception:
        logger.exception("Vérification du paiement échouée transaction=%s", transaction_id)
        return ConfirmationResult(status=ConfirmationStatus.ERROR, transaction_id=transaction_id, error=VERIFICATION_FAILED)

    if not makecommerce_client.is_completed(transaction):
        logger.info("Paiement non complété transaction=%s", transaction_id)
        return ConfirmationResult(status=ConfirmationStatus.FAILED, transaction_id=transaction_id)

    store.clear(user_id=user_id)
    details = _bind_to_transaction(extract_payment_details(params), transaction, transaction_id)
    webhook.notify({
        "type": webhook.PAYMENT_COMPLETED,
        "transactionId": transaction_id,
        "status": "COMPLETED",
        **details.to_dict(),
        "message": SUCCESS_MESSAGE,
    })
    if details.reference:
        _advance_order(orders, details.reference, OrderStatus.COMPLETED)
    else:
        logger.warning("Transaction sans référence de commande transaction=%s", transaction_id)
    logger.info("Paiement confirmé transaction=%s reference=%s", transaction_id, details.reference)
    return ConfirmationResult(status=ConfirmationStatus.SUCCESS, transaction_id=transaction_id, details=details)


def parse_notification(form: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Corps de notification passerelle: champ 'json' (document JSON) ou champs à plat.
    Soulève VerificationError si le document est illisible.
    """
    raw = form.get("json")
    if raw is None:
        return dict(form)
    if isinstance(raw, dict):
        return raw
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise VerificationError("Notification passerelle illisible") from e
    if not isinstance(data, dict):
        raise VerificationError("Notification passerelle illisible")
    return data


def apply_gateway_notification(
    form: Mapping[str, Any],
    gateway: Any = makecommerce_client,
    orders: Any = orders_repository,
) -> Optional[OrderStatus]:
    """
    Le contenu de la notification n'est pas cru tel quel: la transaction est relue côté passerelle,
    et son statut fait foi pour l'avancement de la commande.
    """
    data = parse_notification(form)
    transaction_id = str(data.get("transaction") or data.get("id") or "").strip()
    if not transaction_id:
        raise VerificationError(MISSING_TRANSACTION)
    transaction = gateway.get_transaction(transaction_id)
    status = str(transaction.get("status") or "").lower()
    reference = transaction.get("reference") or ""
    target = GATEWAY_STATUS_MAP.get(status)
    if target is None:
        logger.info("Notification ignorée: statut passerelle inconnu transaction=%s status=%s", transaction_id, status)
        return None
    return _advance_order(orders, str(reference), target)
