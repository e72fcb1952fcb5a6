"""
File de miroirs distants (fire-and-forget) d'une session panier.
- Un seul worker: les écritures distantes d'une session sont appliquées dans l'ordre de soumission.
- Les échecs sont journalisés, jamais propagés à l'appelant.
- drain() permet d'attendre la fin des miroirs en cours (tests, arrêt de l'application).
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)


class MirrorQueue:
    def __init__(self, name: str = "cart-mirror"):
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._pending: List[Future] = []
        self._lock = threading.Lock()

    def submit(self, description: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        def _run():
            try:
                return fn(*args, **kwargs)
            except Exception:
                logger.exception("Miroir distant échoué (%s): %s", self.name, description)
                return None

        future = self._executor.submit(_run)
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)
        return future

    @property
    def pending(self) -> int:
        with self._lock:
            return sum(1 for f in self._pending if not f.done())

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Attend les miroirs en cours; True si tous sont terminés avant le timeout."""
        with self._lock:
            futures = list(self._pending)
        if not futures:
            return True
        _, not_done = wait(futures, timeout=timeout)
        return not not_done

    def shutdown(self, timeout: Optional[float] = None) -> None:
        self.drain(timeout)
        self._executor.shutdown(wait=False)
