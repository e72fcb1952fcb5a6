import json

import pytest

from storefront.cart.sessions import CartSessions
from storefront.cart.storage import LocalStorage, STORE_KEY
from conftest import make_item


def test_local_storage_roundtrip(tmp_path):
    storage = LocalStorage(tmp_path / "carts" / "s1.json")
    assert storage.get() is None
    storage.set({"cart": [], "wishlist": [], "updatedAt": "t"})
    raw = json.loads((tmp_path / "carts" / "s1.json").read_text(encoding="utf-8"))
    assert raw == {STORE_KEY: {"cart": [], "wishlist": [], "updatedAt": "t"}}


def test_local_storage_unreadable_file_returns_nothing(tmp_path):
    path = tmp_path / "s1.json"
    path.write_text("{not json", encoding="utf-8")
    assert LocalStorage(path).get() is None


def test_sessions_are_isolated_and_reused(fake_cart_repository):
    sessions = CartSessions(None, repository=fake_cart_repository)
    a = sessions.get("session-a")
    b = sessions.get("session-b")
    a.add_item(make_item("p1"))
    assert sessions.get("session-a") is a
    assert b.items == ()
    assert len(sessions) == 2
    sessions.shutdown()
    assert len(sessions) == 0


def test_sessions_persist_to_disk(tmp_path, fake_cart_repository):
    sessions = CartSessions(tmp_path, repository=fake_cart_repository)
    sessions.get("abc").add_item(make_item("p1", quantity=2))
    sessions.shutdown()

    reopened = CartSessions(tmp_path, repository=fake_cart_repository)
    assert [(i.id, i.quantity) for i in reopened.get("abc").items] == [("p1", 2)]
    reopened.shutdown()


@pytest.mark.parametrize("bad", ["", "../etc/passwd", "a/b", "x" * 65])
def test_sessions_reject_unsafe_ids(bad, fake_cart_repository):
    with pytest.raises(ValueError):
        CartSessions(None, repository=fake_cart_repository).get(bad)


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_idle_sessions_are_evicted_and_closed(fake_cart_repository):
    clock = _Clock()
    sessions = CartSessions(None, repository=fake_cart_repository, idle_ttl=60, clock=clock)
    old = sessions.get("old")
    old.add_item(make_item("p1"), user_id="u1")
    clock.now = 30
    sessions.get("recent")
    clock.now = 61
    sessions.get("fresh")

    assert "old" not in sessions
    assert "recent" in sessions and "fresh" in sessions
    assert len(sessions) == 2
    # Le miroir déjà soumis par la session évincée aboutit quand même
    assert old.wait_for_mirrors(timeout=5)
    assert [c[0] for c in fake_cart_repository.calls] == ["upsert_item"]
    sessions.shutdown()


def test_session_cap_evicts_least_recently_used(fake_cart_repository):
    sessions = CartSessions(None, repository=fake_cart_repository, max_sessions=2, clock=_Clock())
    sessions.get("a")
    sessions.get("b")
    sessions.get("a")
    sessions.get("c")
    assert "b" not in sessions
    assert len(sessions) == 2
    sessions.shutdown()


def test_evicted_session_is_restored_from_disk(tmp_path, fake_cart_repository):
    clock = _Clock()
    sessions = CartSessions(tmp_path, repository=fake_cart_repository, idle_ttl=10, clock=clock)
    sessions.get("abc").add_item(make_item("p1", quantity=3))
    clock.now = 100
    sessions.get("other")
    assert "abc" not in sessions
    assert [(i.id, i.quantity) for i in sessions.get("abc").items] == [("p1", 3)]
    sessions.shutdown()
