"""
Stockage local du panier (équivalent du stockage navigateur).
Un fichier JSON par session panier, état rangé sous une clé fixe.
"""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STORE_KEY = "storefront-store"


class LocalStorage:
    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, ValueError):
            logger.exception("LocalStorage: lecture impossible path=%s", self.path)
            return {}

    def get(self, key: str = STORE_KEY) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, value: Dict[str, Any], key: str = STORE_KEY) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".tmp")
            tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)


class MemoryStorage:
    """Variante en mémoire (tests, sessions éphémères)."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str = STORE_KEY) -> Optional[Dict[str, Any]]:
        return self._data.get(key)

    def set(self, value: Dict[str, Any], key: str = STORE_KEY) -> None:
        self._data[key] = value
