from typing import Any, Dict
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from storefront.app_setup.factory import create_app
from storefront.cart.sessions import CartSessions
from storefront.utils.security import get_optional_user
from conftest import PAYMENT_URL

MEMBER = {"id": "user-1", "email": "member@example.com", "metadata": {}, "token": "t"}
FORM = {
    "first_name": "Ana",
    "last_name": "Lee",
    "email": "ana@example.com",
    "address": "Gedimino pr. 1",
    "city": "Vilnius",
    "postal_code": "01103",
    "delivery_method": "shipping",
}


def _orders_table(fake_supabase) -> Dict[str, Dict[str, Any]]:
    """Table 'orders' en mémoire derrière le client Supabase simulé."""
    rows: Dict[str, Dict[str, Any]] = {}
    table = fake_supabase.table.return_value

    def _upsert(record):
        rows[record["reference"]] = dict(record)
        return MagicMock()

    def _update(values):
        query = MagicMock()

        def _eq(column, reference):
            rows[reference].update(values)
            return MagicMock()

        query.eq.side_effect = _eq
        return query

    def _select(*columns):
        query = MagicMock()

        def _eq(column, reference):
            found = MagicMock()
            data = [dict(rows[reference])] if reference in rows else []
            found.limit.return_value.execute.return_value = MagicMock(data=data)
            return found

        query.eq.side_effect = _eq
        return query

    table.upsert.side_effect = _upsert
    table.update.side_effect = _update
    table.select.side_effect = _select
    return rows


@pytest.fixture
def shop(fake_supabase, fake_cart_repository, fake_gateway, monkeypatch):
    rows = _orders_table(fake_supabase)
    events = []
    monkeypatch.setattr("storefront.notifications.webhook.notify", lambda payload: events.append(payload) or True)
    app = create_app(cart_sessions=CartSessions(None, repository=fake_cart_repository))
    app.dependency_overrides[get_optional_user] = lambda: MEMBER
    with TestClient(app) as client:
        yield app, client, rows, events


def test_member_purchase_end_to_end(shop, fake_gateway, fake_cart_repository):
    app, client, rows, events = shop

    client.post("/api/v1/cart/items", json={"id": "ring-1", "name": "Bague", "price": "10.00", "quantity": 2})
    client.post("/api/v1/cart/items", json={"id": "ear-1", "name": "Boucles", "price": "15.00", "selected_color": "or"})
    assert client.get("/api/v1/cart").json()["total_display"] == "29.75€"
    assert "29.75€" in client.get("/checkout").text

    r = client.post("/checkout", data=FORM, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == PAYMENT_URL

    sent = fake_gateway.created[0]
    reference = sent["reference"]
    assert rows[reference]["status"] == "pending"
    assert rows[reference]["user_id"] == "user-1"
    assert rows[reference]["total"] == 29.75
    assert rows[reference]["shipping"]["postalCode"] == "01103"

    fake_gateway.transactions["tx-1"] = {"status": "completed", "reference": reference, "amount": 29.75}
    # La passerelle renvoie le navigateur sur return_url en ajoutant son identifiant de transaction
    page = client.get(sent["return_url"] + "&payment_reference=tx-1")
    assert page.status_code == 200
    assert "Merci pour votre commande" in page.text
    assert reference in page.text

    assert client.get("/api/v1/cart").json()["items"] == []
    assert rows[reference]["status"] == "completed"
    assert [e["type"] for e in events] == [
        "ORDER_CREATED",
        "ORDER_STATUS_UPDATED",
        "PAYMENT_COMPLETED",
        "ORDER_STATUS_UPDATED",
    ]
    payment = events[2]
    assert (payment["reference"], payment["amount"], payment["name"]) == (reference, "29.75", "Ana Lee")

    # Notification tardive de la passerelle: commande déjà terminale, aucune nouvelle écriture
    r = client.post("/api/v1/payments/notification", json={"transaction": "tx-1"})
    assert r.json()["order_status"] == "completed"
    assert len(events) == 4

    app.state.cart_sessions.shutdown()
    assert fake_cart_repository.items["user-1"] == []


def test_cancelled_payment_keeps_cart_and_order(shop, fake_gateway):
    app, client, rows, events = shop
    client.post("/api/v1/cart/items", json={"id": "ring-1", "name": "Bague", "price": "10.00"})
    client.post("/checkout", data=FORM, follow_redirects=False)
    sent = fake_gateway.created[0]

    page = client.get(sent["cancel_url"])
    assert page.status_code == 200
    assert sent["reference"] in page.text
    assert client.get("/api/v1/cart").json()["count"] == 1
    assert rows[sent["reference"]]["status"] == "pending"

    fake_gateway.transactions["tx-2"] = {"status": "cancelled", "reference": sent["reference"]}
    client.post("/api/v1/payments/notification", data={"json": '{"transaction": "tx-2"}'})
    assert rows[sent["reference"]]["status"] == "cancelled"
