from unittest.mock import MagicMock

import pytest

from storefront.cart import repository as cart_repo
from storefront.cart.models import LineKey
from storefront.errors import RepositoryError
from conftest import make_item


def _with_document(fake_supabase, items):
    res = MagicMock()
    res.data = [{"user_id": "u1", "items": items}] if items is not None else []
    fake_supabase.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.return_value = res
    return fake_supabase.table.return_value.upsert


def _written_items(upsert):
    return upsert.call_args.args[0]["items"]


def test_fetch_creates_empty_document_lazily(fake_supabase):
    upsert = _with_document(fake_supabase, None)
    assert cart_repo.fetch("u1") == []
    payload = upsert.call_args.args[0]
    assert payload["user_id"] == "u1"
    assert payload["items"] == []
    assert payload["updated_at"]
    fake_supabase.table.assert_called_with("carts")


def test_fetch_returns_items(fake_supabase):
    _with_document(fake_supabase, [{"id": "p1", "price": 10, "quantity": 2, "selectedSize": "M"}])
    items = cart_repo.fetch("u1")
    assert [(i.id, i.quantity, i.selected_size) for i in items] == [("p1", 2, "M")]


def test_upsert_item_increments_matching_line(fake_supabase):
    upsert = _with_document(fake_supabase, [{"id": "p1", "price": 10, "quantity": 2}])
    cart_repo.upsert_item("u1", make_item("p1", quantity=3))
    assert _written_items(upsert)[0]["quantity"] == 5


def test_upsert_item_appends_new_variant(fake_supabase):
    upsert = _with_document(fake_supabase, [{"id": "p1", "price": 10, "quantity": 1, "selectedSize": "M"}])
    cart_repo.upsert_item("u1", make_item("p1", selected_size="L"))
    assert [e.get("selectedSize") for e in _written_items(upsert)] == ["M", "L"]


def test_set_quantity_and_delete_item(fake_supabase):
    upsert = _with_document(fake_supabase, [
        {"id": "p1", "price": 10, "quantity": 1},
        {"id": "p2", "price": 5, "quantity": 1, "selectedColor": "red"},
    ])
    cart_repo.set_quantity("u1", LineKey.of("p1"), 4)
    assert [e["quantity"] for e in _written_items(upsert)] == [4, 1]

    upsert = _with_document(fake_supabase, [
        {"id": "p1", "price": 10, "quantity": 1},
        {"id": "p2", "price": 5, "quantity": 1, "selectedColor": "red"},
    ])
    cart_repo.delete_item("u1", LineKey.of("p2", None, "red"))
    assert [e["id"] for e in _written_items(upsert)] == ["p1"]


def test_clear_and_replace_all_write_full_array(fake_supabase):
    upsert = fake_supabase.table.return_value.upsert
    cart_repo.clear("u1")
    assert _written_items(upsert) == []
    cart_repo.replace_all("u1", [make_item("p1"), make_item("p2")])
    assert [e["id"] for e in _written_items(upsert)] == ["p1", "p2"]


def test_supabase_failure_raises_repository_error(fake_supabase):
    fake_supabase.table.side_effect = RuntimeError("network")
    with pytest.raises(RepositoryError):
        cart_repo.fetch("u1")
    with pytest.raises(RepositoryError):
        cart_repo.clear("u1")
