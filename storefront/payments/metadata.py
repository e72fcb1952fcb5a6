"""
Contrat de redirection avec la passerelle: URLs de retour/annulation/notification et lecture des paramètres au retour.
Les métadonnées (reference, amount, email, name) voyagent en query string urlencodée, pas en structure.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

SUCCESS_PATH = "/payment-success"
FAILED_PATH = "/payment-failed"
NOTIFICATION_PATH = "/api/v1/payments/notification"

# Paramètres possibles portant l'identifiant de transaction passerelle au retour
TRANSACTION_PARAMS = ("payment_reference", "transaction")


@dataclass
class PaymentDetails:
    reference: str
    amount: str
    email: str
    name: str
    date: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_redirect_urls(base_url: str, *, reference: str, amount: str, email: str, name: str) -> Dict[str, str]:
    """
    Construit les trois URLs transmises à la passerelle.
    - return_url: /payment-success?reference=..&amount=..&email=..&name=..
    - cancel_url: /payment-failed?reference=..
    - notification_url: endpoint serveur-à-serveur
    """
    base = base_url.rstrip("/")
    query = urlencode({"reference": reference, "amount": amount, "email": email, "name": name})
    return {
        "return_url": f"{base}{SUCCESS_PATH}?{query}",
        "cancel_url": f"{base}{FAILED_PATH}?{urlencode({'reference': reference})}",
        "notification_url": f"{base}{NOTIFICATION_PATH}",
    }


def extract_transaction_id(params: Mapping[str, str]) -> Optional[str]:
    for name in TRANSACTION_PARAMS:
        value = (params.get(name) or "").strip()
        if value:
            return value
    return None


def extract_payment_details(params: Mapping[str, str]) -> PaymentDetails:
    """Résumé du paiement lu littéralement depuis la query string de retour."""
    return PaymentDetails(
        reference=params.get("reference") or "",
        amount=params.get("amount") or "",
        email=params.get("email") or "",
        name=params.get("name") or "",
        date=datetime.now(timezone.utc).isoformat(),
    )
