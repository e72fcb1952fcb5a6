from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from storefront.errors import OrderTransitionError, RepositoryError
from storefront.notifications import webhook
from storefront.orders import repository as orders_repo
from storefront.orders.models import DeliveryMethod, Order, OrderItem, OrderStatus, ShippingDetails


def _order(reference="ORD-1"):
    return Order(
        reference=reference,
        email="a@example.com",
        items=[OrderItem(id="p1", name="Bague", price=Decimal("10"), quantity=1)],
        total=Decimal("10"),
        shipping=ShippingDetails(method=DeliveryMethod.SHIPPING, name="Ana", address="1 rue", city="Paris", postal_code="75001"),
    )


@pytest.fixture
def events(monkeypatch):
    sent = []
    monkeypatch.setattr(webhook, "notify", lambda payload: sent.append(payload) or True)
    return sent


def test_create_writes_record_and_notifies(fake_supabase, events):
    order = _order()
    assert orders_repo.create(order) == "ORD-1"
    record = fake_supabase.table.return_value.upsert.call_args.args[0]
    fake_supabase.table.assert_called_with("orders")
    assert record["reference"] == "ORD-1"
    assert record["status"] == "created"
    assert record["created_at"] == record["updated_at"]
    assert events == [{"type": "ORDER_CREATED", "order": record}]


def test_create_failure_raises_and_does_not_notify(fake_supabase, events):
    fake_supabase.table.return_value.upsert.return_value.execute.side_effect = RuntimeError("down")
    with pytest.raises(RepositoryError):
        orders_repo.create(_order())
    assert events == []


def test_create_survives_webhook_failure(fake_supabase, monkeypatch):
    monkeypatch.setattr("storefront.config.AUTOMATION_WEBHOOK_URL", "https://hooks.example.test/x")

    def _boom(*a, **kw):
        raise ConnectionError("webhook unreachable")

    monkeypatch.setattr(webhook.requests, "post", _boom)
    assert orders_repo.create(_order()) == "ORD-1"


def test_get_by_reference(fake_supabase):
    res = MagicMock()
    res.data = [_order().to_record()]
    fake_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = res
    order = orders_repo.get_by_reference("ORD-1")
    assert order.reference == "ORD-1"
    assert order.status is OrderStatus.CREATED

    res.data = []
    assert orders_repo.get_by_reference("missing") is None


def test_get_by_user_orders_newest_first(fake_supabase):
    res = MagicMock()
    res.data = [_order("ORD-2").to_record(), _order("ORD-1").to_record()]
    chain = fake_supabase.table.return_value.select.return_value.eq.return_value
    chain.order.return_value.execute.return_value = res
    orders = orders_repo.get_by_user("u1")
    assert [o.reference for o in orders] == ["ORD-2", "ORD-1"]
    chain.order.assert_called_with("created_at", desc=True)
    assert orders_repo.get_by_user("") == []


def test_update_status_writes_and_notifies(fake_supabase, events):
    orders_repo.update_status("ORD-1", OrderStatus.PENDING, current=OrderStatus.CREATED)
    update = fake_supabase.table.return_value.update.call_args.args[0]
    assert update["status"] == "pending"
    assert update["updated_at"]
    assert events == [{"type": "ORDER_STATUS_UPDATED", "reference": "ORD-1", "status": "pending"}]


def test_update_status_rejects_transition_from_terminal(fake_supabase, events):
    with pytest.raises(OrderTransitionError):
        orders_repo.update_status("ORD-1", OrderStatus.PENDING, current=OrderStatus.COMPLETED)
    fake_supabase.table.return_value.update.assert_not_called()
    assert events == []


def test_update_status_failure_raises(fake_supabase, events):
    fake_supabase.table.return_value.update.return_value.eq.return_value.execute.side_effect = RuntimeError("down")
    with pytest.raises(RepositoryError):
        orders_repo.update_status("ORD-1", OrderStatus.COMPLETED)
    assert events == []
