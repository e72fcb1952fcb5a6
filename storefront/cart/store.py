"""
CartStore: état applicatif du panier et de la liste de souhaits pour une session.
- Chaque mutation met à jour l'état local de façon synchrone (réducteurs purs de state.py),
  le persiste dans le stockage local, puis met en file le miroir distant si un user_id est fourni.
- Le miroir distant est best-effort: un échec est journalisé et ne revient jamais sur l'état local
  (écart de cohérence à terme assumé entre local et distant).
"""
import logging
import threading
from decimal import Decimal
from typing import Any, Optional

from storefront.errors import RepositoryError
from . import repository as cart_repository
from . import state as cart_state
from .mirror import MirrorQueue
from .models import CartItem, CartState, LineKey, Product

logger = logging.getLogger(__name__)


class CartStore:
    def __init__(self, storage, repository: Any = cart_repository, mirror: Optional[MirrorQueue] = None, name: str = "cart"):
        self.storage = storage
        self.repository = repository
        self.mirror = mirror or MirrorQueue(f"mirror-{name}")
        self._lock = threading.RLock()
        self._state = self._restore()

    def _restore(self) -> CartState:
        try:
            return CartState.from_dict(self.storage.get() or {})
        except (TypeError, ValueError):
            logger.exception("CartStore: état local illisible, panier réinitialisé")
            return CartState()

    def _commit(self, new_state: CartState) -> CartState:
        if new_state is self._state:
            return new_state
        self._state = new_state
        try:
            self.storage.set(new_state.to_dict())
        except OSError:
            logger.exception("CartStore: persistance locale échouée")
        return new_state

    def _mirror(self, user_id: Optional[str], description: str, fn, *args) -> None:
        # Appelé sous _lock: la file distante suit l'ordre des commits locaux
        if not user_id:
            return
        self.mirror.submit(f"{description} user_id={user_id}", fn, user_id, *args)

    @property
    def state(self) -> CartState:
        return self._state

    @property
    def items(self):
        return self._state.items

    @property
    def wishlist(self):
        return self._state.wishlist

    def add_item(self, item: CartItem, user_id: Optional[str] = None) -> CartState:
        with self._lock:
            new_state = self._commit(cart_state.add_item(self._state, item))
            self._mirror(user_id, "upsert_item", self.repository.upsert_item, item)
        return new_state

    def remove_item(self, product_id: str, user_id: Optional[str] = None,
                    selected_size: Optional[str] = None, selected_color: Optional[str] = None) -> CartState:
        key = LineKey.of(product_id, selected_size, selected_color)
        with self._lock:
            new_state = self._commit(cart_state.remove_item(self._state, key))
            self._mirror(user_id, "delete_item", self.repository.delete_item, key)
        return new_state

    def update_quantity(self, product_id: str, quantity: int, user_id: Optional[str] = None,
                        selected_size: Optional[str] = None, selected_color: Optional[str] = None) -> CartState:
        """Quantité < 1: la ligne est retirée (local et distant)."""
        key = LineKey.of(product_id, selected_size, selected_color)
        with self._lock:
            new_state = self._commit(cart_state.update_quantity(self._state, key, quantity))
            if quantity < 1:
                self._mirror(user_id, "delete_item", self.repository.delete_item, key)
            else:
                self._mirror(user_id, "set_quantity", self.repository.set_quantity, key, quantity)
        return new_state

    def clear(self, user_id: Optional[str] = None) -> CartState:
        with self._lock:
            new_state = self._commit(cart_state.clear(self._state))
            self._mirror(user_id, "clear", self.repository.clear)
        return new_state

    def toggle_wishlist(self, product: Product) -> CartState:
        with self._lock:
            return self._commit(cart_state.toggle_wishlist(self._state, product))

    def get_total(self, apply_discount: bool = False) -> Decimal:
        return cart_state.cart_total(self._state, apply_discount)

    def sync_from_remote(self, user_id: str) -> CartState:
        """
        Début de session: le panier distant écrase entièrement l'état local (pas de fusion).
        Un échec de lecture est journalisé et laisse l'état local intact.
        """
        if not user_id:
            return self._state
        try:
            items = self.repository.fetch(user_id)
        except RepositoryError:
            logger.exception("CartStore.sync_from_remote failed user_id=%s", user_id)
            return self._state
        with self._lock:
            new_state = self._commit(cart_state.replace_items(self._state, items))
        logger.info("Panier synchronisé depuis le distant user_id=%s lignes=%s", user_id, len(items))
        return new_state

    def reconcile_with_remote(self, user_id: str) -> CartState:
        """
        Alternative à l'écrasement: conserve le panier distant et y ajoute les lignes locales absentes,
        puis réécrit le distant si nécessaire. Attend d'abord les miroirs en cours.
        """
        if not user_id:
            return self._state
        self.mirror.drain()
        try:
            remote = list(self.repository.fetch(user_id))
            remote_keys = {i.key for i in remote}
            local_only = [i for i in self._state.items if i.key not in remote_keys]
            merged = remote + local_only
            if local_only:
                self.repository.replace_all(user_id, merged)
        except RepositoryError:
            logger.exception("CartStore.reconcile_with_remote failed user_id=%s", user_id)
            return self._state
        with self._lock:
            new_state = self._commit(cart_state.replace_items(self._state, merged))
        logger.info("Panier réconcilié user_id=%s distant=%s ajout_local=%s", user_id, len(remote), len(local_only))
        return new_state

    def wait_for_mirrors(self, timeout: Optional[float] = None) -> bool:
        return self.mirror.drain(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        self.mirror.shutdown(timeout)
