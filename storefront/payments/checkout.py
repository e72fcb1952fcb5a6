"""
Flux de checkout: editing -> submitting -> {redirecting | failed(error)}.
- Garde: panier vide => pas d'édition possible (EmptyCartError)
- Garde: une seule soumission en vol par session panier (CheckoutInProgressError)
- Soumission: reference unique, commande 'created', transaction passerelle, commande 'pending', URL de paiement
Création de commande et de transaction ne sont pas atomiques: un échec entre les deux laisse une commande
sans transaction (journalisé comme écart de réconciliation, pas de compensation automatique).
"""
import logging
import secrets
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, EmailStr, field_validator, model_validator

from storefront import config
from storefront.cart.store import CartStore
from storefront.errors import CheckoutInProgressError, EmptyCartError, StorefrontError
from storefront.orders import repository as orders_repository
from storefront.orders.models import ANONYMOUS_USER, DeliveryMethod, Order, OrderItem, OrderStatus, ShippingDetails
from . import makecommerce_client
from .metadata import build_redirect_urls

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Une erreur est survenue lors du traitement de la commande. Veuillez réessayer."


class CheckoutPhase(Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    REDIRECTING = "redirecting"
    FAILED = "failed"


class CheckoutForm(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    delivery_method: Literal["shipping", "pickup"] = "shipping"

    @field_validator("first_name", "last_name")
    def not_blank(cls, v: str) -> str:
        if not (v or "").strip():
            raise ValueError("Champ requis")
        return v.strip()

    @model_validator(mode="after")
    def address_required_for_shipping(self):
        if self.delivery_method == "shipping":
            missing = [n for n in ("address", "city", "postal_code") if not (getattr(self, n) or "").strip()]
            if missing:
                raise ValueError(f"Adresse incomplète: {', '.join(missing)}")
        return self

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def shipping_details(self) -> ShippingDetails:
        return ShippingDetails(
            method=DeliveryMethod(self.delivery_method),
            name=self.full_name,
            address=self.address,
            city=self.city,
            postal_code=self.postal_code,
            email=str(self.email),
            phone=self.phone,
        )


@dataclass
class CheckoutAttempt:
    phase: CheckoutPhase
    reference: Optional[str] = None
    payment_url: Optional[str] = None
    error: Optional[str] = None


def generate_reference() -> str:
    """Reference dérivée de l'horodatage + suffixe aléatoire: unique par tentative."""
    return f"ORD-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class CheckoutFlow:
    def __init__(self, gateway: Any = makecommerce_client, orders: Any = orders_repository, base_url: Optional[str] = None):
        self.gateway = gateway
        self.orders = orders
        self.base_url = base_url or config.BASE_URL
        self._in_flight = set()
        self._lock = threading.Lock()

    def begin(self, store: CartStore) -> CheckoutAttempt:
        if not store.items:
            raise EmptyCartError()
        return CheckoutAttempt(phase=CheckoutPhase.EDITING)

    def is_in_flight(self, session_key: str) -> bool:
        with self._lock:
            return session_key in self._in_flight

    def _acquire(self, session_key: str) -> None:
        with self._lock:
            if session_key in self._in_flight:
                raise CheckoutInProgressError()
            self._in_flight.add(session_key)

    def _release(self, session_key: str) -> None:
        with self._lock:
            self._in_flight.discard(session_key)

    def build_order(self, store: CartStore, form: CheckoutForm, user: Optional[Dict[str, Any]], reference: str) -> Order:
        return Order(
            reference=reference,
            user_id=(user or {}).get("id") or ANONYMOUS_USER,
            email=str(form.email),
            items=[OrderItem.from_cart_item(i) for i in store.items],
            total=store.get_total(apply_discount=user is not None),
            shipping=form.shipping_details(),
            status=OrderStatus.CREATED,
        )

    def submit(self, session_key: str, store: CartStore, form: CheckoutForm, user: Optional[Dict[str, Any]] = None) -> CheckoutAttempt:
        """
        Soumet le formulaire. Retourne REDIRECTING (avec payment_url) ou FAILED (message générique).
        Les gardes (panier vide, soumission déjà en vol) lèvent avant toute écriture.
        """
        self.begin(store)
        self._acquire(session_key)
        reference = generate_reference()
        order_created = False
        try:
            order = self.build_order(store, form, user, reference)
            self.orders.create(order)
            order_created = True

            amount = makecommerce_client.money(order.total)
            urls = build_redirect_urls(
                self.base_url,
                reference=reference,
                amount=amount,
                email=order.email,
                name=form.full_name,
            )
            payment_url = self.gateway.create_transaction(
                amount=order.total,
                reference=reference,
                email=order.email,
                order=order,
                **urls,
            )
            try:
                self.orders.update_status(reference, OrderStatus.PENDING, current=OrderStatus.CREATED)
            except StorefrontError:
                logger.warning("Écart de réconciliation: transaction créée mais commande restée 'created' reference=%s", reference)
            logger.info("Checkout redirection vers la passerelle reference=%s", reference)
            return CheckoutAttempt(phase=CheckoutPhase.REDIRECTING, reference=reference, payment_url=payment_url)
        except Exception:
            logger.exception("Checkout échoué reference=%s", reference)
            if order_created:
                logger.warning("Écart de réconciliation: commande créée sans transaction reference=%s", reference)
            return CheckoutAttempt(phase=CheckoutPhase.FAILED, reference=reference, error=GENERIC_ERROR)
        finally:
            self._release(session_key)
