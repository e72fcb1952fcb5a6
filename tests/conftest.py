import os

os.environ["DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS"] = "1"

import pytest
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient

from storefront import config
from storefront.app_setup.factory import create_app
from storefront.cart.models import CartItem
from storefront.errors import RepositoryError
from storefront.utils.security import get_optional_user

PAYMENT_URL = "https://pay.example.test/redirect/tx-1"


# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)
        elif "tests/functional/" in nodeid:
            item.add_marker(pytest.mark.functional)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Aucun appel réseau réel: webhook désactivé, identifiants passerelle factices."""
    monkeypatch.setattr(config, "AUTOMATION_WEBHOOK_URL", "", raising=True)
    monkeypatch.setattr(config, "MAKECOMMERCE_STORE_ID", "store-1", raising=True)
    monkeypatch.setattr(config, "MAKECOMMERCE_SECRET_KEY", "secret-1", raising=True)
    monkeypatch.setattr(config, "MAKECOMMERCE_API_URL", "https://api.example.test/v1", raising=True)
    monkeypatch.setattr(config, "BASE_URL", "http://testserver", raising=True)


@pytest.fixture(autouse=True)
def fake_supabase(monkeypatch) -> MagicMock:
    client = MagicMock()
    monkeypatch.setattr("storefront.infra.supabase_client.get_supabase", lambda: client)
    monkeypatch.setattr("storefront.infra.supabase_client.get_service_supabase", lambda: client)
    return client


def make_item(product_id: str = "p1", price: str = "10.00", quantity: int = 1, **kwargs) -> CartItem:
    return CartItem(
        id=product_id,
        name=kwargs.pop("name", f"Produit {product_id}"),
        image=kwargs.pop("image", f"/img/{product_id}.jpg"),
        price=Decimal(price),
        quantity=quantity,
        **kwargs,
    )


class FakeCartRepository:
    """Panier distant en mémoire, enregistre les appels dans l'ordre."""

    def __init__(self):
        self.items: Dict[str, List[CartItem]] = {}
        self.calls: List[tuple] = []
        self.fail = False

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail:
            raise RepositoryError(f"{name} indisponible")

    def fetch(self, user_id):
        self._record("fetch", user_id)
        return list(self.items.get(user_id, []))

    def upsert_item(self, user_id, item):
        self._record("upsert_item", user_id, item)
        lines = self.items.setdefault(user_id, [])
        for i, line in enumerate(lines):
            if line.key == item.key:
                lines[i] = line.with_quantity(line.quantity + item.quantity)
                return
        lines.append(item)

    def set_quantity(self, user_id, key, quantity):
        self._record("set_quantity", user_id, key, quantity)
        self.items[user_id] = [l.with_quantity(quantity) if l.key == key else l for l in self.items.get(user_id, [])]

    def delete_item(self, user_id, key):
        self._record("delete_item", user_id, key)
        self.items[user_id] = [l for l in self.items.get(user_id, []) if l.key != key]

    def replace_all(self, user_id, items):
        self._record("replace_all", user_id, list(items))
        self.items[user_id] = list(items)

    def clear(self, user_id):
        self._record("clear", user_id)
        self.items[user_id] = []


class FakeOrders:
    def __init__(self):
        self.orders: Dict[str, Any] = {}
        self.status_updates: List[tuple] = []
        self.fail_create = False
        self.fail_update = False

    def create(self, order):
        if self.fail_create:
            raise RepositoryError("orders indisponible")
        self.orders[order.reference] = order
        return order.reference

    def get_by_reference(self, reference):
        return self.orders.get(reference)

    def get_by_user(self, user_id):
        return [o for o in self.orders.values() if o.user_id == user_id]

    def update_status(self, reference, status, current=None):
        if self.fail_update:
            raise RepositoryError("orders indisponible")
        self.status_updates.append((reference, status))
        if reference in self.orders:
            self.orders[reference].status = status


class FakeGateway:
    """
    Passerelle simulée. Sans transaction enregistrée, get_transaction renvoie une transaction
    'completed' (ou 'pending' si verify_result=False) rattachée à transaction_reference.
    """

    def __init__(self):
        self.created: List[Dict[str, Any]] = []
        self.verified: List[str] = []
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.payment_url = PAYMENT_URL
        self.create_error: Optional[Exception] = None
        self.verify_result = True
        self.verify_error: Optional[Exception] = None
        self.transaction_reference = "ORD-1"

    def create_transaction(self, **kwargs):
        self.created.append(kwargs)
        if self.create_error:
            raise self.create_error
        return self.payment_url

    def get_transaction(self, transaction_id):
        self.verified.append(transaction_id)
        if self.verify_error:
            raise self.verify_error
        if transaction_id in self.transactions:
            return self.transactions[transaction_id]
        return {
            "id": transaction_id,
            "status": "completed" if self.verify_result else "pending",
            "reference": self.transaction_reference,
        }

    def verify_payment(self, transaction_id):
        return self.get_transaction(transaction_id).get("status") == "completed"


@pytest.fixture
def fake_cart_repository() -> FakeCartRepository:
    return FakeCartRepository()


@pytest.fixture
def fake_orders(monkeypatch) -> FakeOrders:
    fake = FakeOrders()
    for name in ("create", "get_by_reference", "get_by_user", "update_status"):
        monkeypatch.setattr(f"storefront.orders.repository.{name}", getattr(fake, name))
    return fake


@pytest.fixture
def fake_gateway(monkeypatch) -> FakeGateway:
    fake = FakeGateway()
    for name in ("create_transaction", "verify_payment", "get_transaction"):
        monkeypatch.setattr(f"storefront.payments.makecommerce_client.{name}", getattr(fake, name))
    return fake


@pytest.fixture
def app(fake_cart_repository, fake_orders, fake_gateway):
    from storefront.cart.sessions import CartSessions

    return create_app(cart_sessions=CartSessions(None, repository=fake_cart_repository))


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c


@pytest.fixture
def member(app) -> Dict[str, Any]:
    """Utilisateur authentifié (remise membre, miroir distant du panier)."""
    user = {"id": "user-1", "email": "member@example.com", "metadata": {}, "token": "fake-token"}
    app.dependency_overrides[get_optional_user] = lambda: user
    try:
        yield user
    finally:
        app.dependency_overrides.pop(get_optional_user, None)
