"""
Adaptateur passerelle MakeCommerce: centralise les appels HTTP et l'authentification.
- create_transaction: construit la transaction à partir d'une commande et retourne l'URL de paiement (redirect)
- get_transaction / verify_payment: lecture ponctuelle d'une transaction par son identifiant passerelle
Aucun retry: un échec à n'importe quelle étape fait échouer l'appel entier.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import requests
from requests.auth import HTTPBasicAuth

from storefront import config
from storefront.cart.models import to_decimal
from storefront.errors import ConfigurationError, PaymentError, VerificationError
from storefront.orders.models import DeliveryMethod, Order

logger = logging.getLogger(__name__)

CURRENCY = "EUR"
COUNTRY = "LT"
LOCALE = "LT"
NOT_PROVIDED = "Not provided"
REDIRECT_METHOD = "redirect"
APP_INFO = {"module": "Storefront", "platform": "FastAPI", "platform_version": "1.0"}

# module storefront.payments.makecommerce_client
def require_credentials() -> HTTPBasicAuth:
    """
    Prépare l'authentification Basic (store id + clé secrète), chargée une fois au démarrage.
    - Soulève ConfigurationError si l'un des deux est absent.
    """
    if not config.MAKECOMMERCE_STORE_ID or not config.MAKECOMMERCE_SECRET_KEY:
        raise ConfigurationError("MAKECOMMERCE_STORE_ID/MAKECOMMERCE_SECRET_KEY manquants")
    return HTTPBasicAuth(config.MAKECOMMERCE_STORE_ID, config.MAKECOMMERCE_SECRET_KEY)

def money(value: Any) -> str:
    """Montant au format passerelle: chaîne à exactement 2 décimales."""
    return str(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

def _transactions_url(transaction_id: Optional[str] = None) -> str:
    base = f"{config.MAKECOMMERCE_API_URL}/transactions"
    return f"{base}/{transaction_id}" if transaction_id else base

def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json() or {}
    except ValueError:
        data = {}
    return (data.get("message") if isinstance(data, dict) else None) or f"{resp.status_code} {resp.reason}"

def resolve_client_ip() -> str:
    """IP publique via le service d'écho (exigée par les contrôles anti-fraude)."""
    try:
        resp = requests.get(config.IP_LOOKUP_URL, timeout=config.HTTP_TIMEOUT)
        resp.raise_for_status()
        ip = (resp.json() or {}).get("ip")
    except (requests.RequestException, ValueError) as e:
        raise PaymentError(f"Résolution de l'IP impossible: {e}") from e
    if not ip:
        raise PaymentError("Résolution de l'IP impossible: réponse sans 'ip'")
    return str(ip)

def build_transaction_payload(
    *,
    amount: Any,
    reference: str,
    email: str,
    return_url: str,
    cancel_url: str,
    notification_url: str,
    order: Order,
    ip: str,
) -> Dict[str, Any]:
    """
    Construit le corps JSON de POST /transactions.
    - Montants en chaînes à 2 décimales, devise EUR, pays/locale LT
    - Bloc adresse seulement pour une livraison (placeholders 'Not provided' si champ vide)
    - Bloc order reprenant les lignes de la commande
    """
    shipping = order.shipping
    customer: Dict[str, Any] = {
        "email": email or "",
        "country": COUNTRY,
        "locale": LOCALE,
        "ip": ip,
        "name": shipping.name or "",
        "phone": shipping.phone or "",
    }
    if shipping.method is DeliveryMethod.SHIPPING:
        customer["address"] = {
            "street": shipping.address or NOT_PROVIDED,
            "city": shipping.city or NOT_PROVIDED,
            "postal_code": shipping.postal_code or NOT_PROVIDED,
            "country": COUNTRY,
        }
    return {
        "transaction": {
            "amount": money(amount),
            "currency": CURRENCY,
            "reference": reference,
            "merchant_data": f"Order ID: {reference}",
            "recurring_required": False,
            "transaction_url": {
                "return_url": {"url": return_url, "method": "GET"},
                "cancel_url": {"url": cancel_url, "method": "GET"},
                "notification_url": {"url": notification_url, "method": "POST"},
            },
        },
        "customer": customer,
        "order": {
            "reference": reference,
            "amount": money(amount),
            "currency": CURRENCY,
            "items": [
                {
                    "name": item.name or "Unknown Product",
                    "price": money(item.price),
                    "quantity": item.quantity or 1,
                }
                for item in order.items
            ],
        },
        "app_info": dict(APP_INFO),
    }

def extract_payment_url(data: Dict[str, Any]) -> str:
    """URL de la méthode 'redirect' dans payment_methods.other; PaymentError si absente."""
    methods = ((data or {}).get("payment_methods") or {}).get("other") or []
    for method in methods:
        if (method or {}).get("name") == REDIRECT_METHOD and method.get("url"):
            return method["url"]
    raise PaymentError("URL de paiement absente de la réponse passerelle")

def create_transaction(
    *,
    amount: Any,
    reference: str,
    email: str,
    return_url: str,
    cancel_url: str,
    notification_url: str,
    order: Order,
) -> str:
    """
    Crée une transaction passerelle et retourne l'URL de paiement (redirect).
    Étapes séquentielles: IP -> credentials -> payload -> POST -> extraction de l'URL.
    """
    ip = resolve_client_ip()
    auth = require_credentials()
    payload = build_transaction_payload(
        amount=amount,
        reference=reference,
        email=email,
        return_url=return_url,
        cancel_url=cancel_url,
        notification_url=notification_url,
        order=order,
        ip=ip,
    )
    logger.info("Transaction passerelle: envoi reference=%s amount=%s", reference, payload["transaction"]["amount"])
    try:
        resp = requests.post(_transactions_url(), json=payload, auth=auth, timeout=config.HTTP_TIMEOUT)
    except requests.RequestException as e:
        logger.exception("Transaction passerelle: requête échouée reference=%s", reference)
        raise PaymentError(f"Transaction de paiement échouée: {e}") from e
    if not resp.ok:
        message = _error_message(resp)
        logger.error("Transaction passerelle refusée reference=%s status=%s message=%s", reference, resp.status_code, message)
        raise PaymentError(f"Transaction de paiement échouée: {message}")
    try:
        data = resp.json()
    except ValueError as e:
        raise PaymentError("Réponse passerelle illisible") from e
    url = extract_payment_url(data)
    logger.info("Transaction passerelle créée reference=%s transaction=%s", reference, (data or {}).get("id"))
    return url

def get_transaction(transaction_id: str) -> Dict[str, Any]:
    """
    Lit une transaction par son identifiant passerelle (même authentification Basic).
    Soulève VerificationError si l'appel échoue ou si la réponse n'est pas 2xx.
    """
    auth = require_credentials()
    try:
        resp = requests.get(_transactions_url(transaction_id), auth=auth, timeout=config.HTTP_TIMEOUT)
    except requests.RequestException as e:
        logger.exception("Vérification passerelle: requête échouée transaction=%s", transaction_id)
        raise VerificationError(f"Vérification du paiement échouée: {e}") from e
    if not resp.ok:
        message = _error_message(resp)
        logger.error("Vérification passerelle refusée transaction=%s status=%s message=%s", transaction_id, resp.status_code, message)
        raise VerificationError(f"Vérification du paiement échouée: {message}")
    try:
        return resp.json() or {}
    except ValueError as e:
        raise VerificationError("Réponse passerelle illisible") from e

def is_completed(transaction: Dict[str, Any]) -> bool:
    return (transaction or {}).get("status") == "completed"

def verify_payment(transaction_id: str) -> bool:
    """Vérification ponctuelle (pas de polling): True si le statut vaut 'completed'."""
    return is_completed(get_transaction(transaction_id))
