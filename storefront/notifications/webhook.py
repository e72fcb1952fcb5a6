"""
Webhook d'automatisation (best-effort).
- POST JSON {type, ...payload} vers AUTOMATION_WEBHOOK_URL.
- Aucun contrat de réponse; toute erreur est journalisée puis ignorée, jamais propagée.
"""
import json
import logging
from typing import Any, Dict

import requests

from storefront import config

logger = logging.getLogger(__name__)

ORDER_CREATED = "ORDER_CREATED"
ORDER_STATUS_UPDATED = "ORDER_STATUS_UPDATED"
PAYMENT_COMPLETED = "PAYMENT_COMPLETED"


def notify(payload: Dict[str, Any]) -> bool:
    """
    Envoie l'enveloppe au webhook. Retourne True si l'appel a abouti (2xx), False sinon.
    Sans URL configurée, l'envoi est ignoré.
    """
    url = config.AUTOMATION_WEBHOOK_URL
    if not url:
        logger.debug("Webhook non configuré, notification ignorée type=%s", payload.get("type"))
        return False
    try:
        resp = requests.post(
            url,
            data=json.dumps(payload, default=str),
            headers={"Content-Type": "application/json"},
            timeout=config.HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        return True
    except Exception:
        logger.exception("Webhook d'automatisation échoué type=%s", payload.get("type"))
        return False


def notify_event(event_type: str, **payload: Any) -> bool:
    return notify({"type": event_type, **payload})
