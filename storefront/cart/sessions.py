"""
Registre des sessions panier, possédé par la racine de composition (create_app -> app.state).
Une session panier = un CartStore avec son stockage local et sa file de miroirs.
Les sessions inactives depuis idle_ttl, puis les plus anciennes au-delà de max_sessions, sont fermées
et retirées du registre. Avec un stockage sur disque, le panier est restauré au prochain accès.
"""
import logging
import re
import threading
import time
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from storefront import config
from . import repository as cart_repository
from .storage import LocalStorage, MemoryStorage
from .store import CartStore

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class CartSessions:
    def __init__(
        self,
        storage_dir: Optional[Path] = None,
        repository: Any = cart_repository,
        idle_ttl: Optional[float] = None,
        max_sessions: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage_dir = Path(storage_dir) if storage_dir else None
        self.repository = repository
        self.idle_ttl = config.CART_SESSION_IDLE_TTL if idle_ttl is None else idle_ttl
        self.max_sessions = max(1, config.CART_SESSIONS_MAX if max_sessions is None else max_sessions)
        self._clock = clock
        # Ordre d'accès: la session la moins récemment utilisée en tête
        self._stores: "OrderedDict[str, CartStore]" = OrderedDict()
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _storage_for(self, session_id: str):
        if self.storage_dir is None:
            return MemoryStorage()
        return LocalStorage(self.storage_dir / f"{session_id}.json")

    def get(self, session_id: str) -> CartStore:
        if not _SAFE_ID.match(session_id or ""):
            raise ValueError("Identifiant de session panier invalide")
        with self._lock:
            now = self._clock()
            store = self._stores.get(session_id)
            if store is None:
                store = CartStore(self._storage_for(session_id), repository=self.repository, name=session_id[:8])
                self._stores[session_id] = store
            self._stores.move_to_end(session_id)
            self._last_seen[session_id] = now
            evicted = self._pop_evictable(now)
        self._close_all(evicted)
        return store

    def _pop_evictable(self, now: float) -> List[Tuple[str, CartStore]]:
        evicted = []
        while self._stores:
            session_id = next(iter(self._stores))
            idle = self.idle_ttl > 0 and now - self._last_seen[session_id] >= self.idle_ttl
            if not idle and len(self._stores) <= self.max_sessions:
                break
            evicted.append((session_id, self._stores.pop(session_id)))
            del self._last_seen[session_id]
        return evicted

    def _close_all(self, evicted: List[Tuple[str, CartStore]]) -> None:
        # Les miroirs déjà en file vont à terme; seule l'attente est abandonnée
        for _, store in evicted:
            store.close(timeout=0)
        if evicted:
            logger.info("Sessions panier évincées: %s (actives: %s)", len(evicted), len(self._stores))

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._stores

    def __len__(self) -> int:
        return len(self._stores)

    def shutdown(self, timeout: Optional[float] = 5.0) -> None:
        """Attend les miroirs en cours de toutes les sessions puis libère les workers."""
        with self._lock:
            stores = list(self._stores.values())
            self._stores.clear()
            self._last_seen.clear()
        for store in stores:
            store.close(timeout)
        logger.info("Sessions panier fermées: %s", len(stores))
