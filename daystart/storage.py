"""Local persistent key/value stores for client-side settings.

Each store exposes ``get(key)``, ``set(key, value)`` and ``remove(key)`` on
plain strings. Writes are synchronous so a value written is visible to the
very next read.
"""
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class MemoryStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStore:
    """A JSON document on disk, rewritten atomically on every change."""

    def __init__(self, path):
        self._path = Path(path).expanduser()
        self._data: Dict[str, str] = {}
        self._load_from_disk()

    @property
    def path(self) -> Path:
        return self._path

    def _load_from_disk(self) -> None:
        if not self._path.exists():
            return
        try:
            raw = self._path.read_text(encoding="utf-8")
            loaded = json.loads(raw) if raw.strip() else {}
            if isinstance(loaded, dict):
                self._data = {k: v for k, v in loaded.items() if isinstance(k, str) and isinstance(v, str)}
        except (OSError, ValueError) as e:
            logger.warning("Failed to load local cache %s (%s). Starting empty.", self._path, str(e))

    def _save_to_disk(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        payload = json.dumps(self._data, ensure_ascii=False, separators=(",", ":"))
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self._path)

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._save_to_disk()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._save_to_disk()

    def keys(self) -> List[str]:
        return list(self._data)


class FallbackStore:
    """Chain of stores, tried in order.

    Reads return the first tier that holds the key. Writes go to every tier;
    a tier failing with ``OSError`` is logged and skipped. An in-memory tier is
    always appended last so a value written during the session is never lost.
    """

    def __init__(self, *stores):
        self._stores = list(stores)
        self._memory = MemoryStore()
        self._stores.append(self._memory)

    @property
    def stores(self) -> list:
        return list(self._stores)

    def get(self, key: str) -> Optional[str]:
        for store in self._stores:
            try:
                value = store.get(key)
            except OSError as e:
                logger.warning("Local store %s read failed for %s: %s", type(store).__name__, key, e)
                continue
            if value is not None:
                return value
        return None

    def set(self, key: str, value: str) -> None:
        saved_to = []
        for store in self._stores:
            try:
                store.set(key, value)
                saved_to.append(type(store).__name__)
            except OSError as e:
                logger.warning("Local store %s write failed for %s: %s", type(store).__name__, key, e)
        logger.debug("Saved %s to %s", key, ", ".join(saved_to))

    def remove(self, key: str) -> None:
        for store in self._stores:
            try:
                store.remove(key)
            except OSError as e:
                logger.warning("Local store %s remove failed for %s: %s", type(store).__name__, key, e)
