"""Server-side persistence of per-user settings, keyed by user id.

Every store exposes two coroutines: ``load(user_id)`` returning the saved
settings document (or None) and ``save(user_id, changes)`` merging
``changes`` into it and returning the result.
"""
import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

Settings = Dict[str, Any]


def _stamp(changes: Settings) -> Settings:
    return dict(changes, updated_at=datetime.now(timezone.utc).isoformat())


class MemorySettingsStore:
    def __init__(self):
        self._by_user: Dict[str, Settings] = {}

    async def load(self, user_id: str) -> Optional[Settings]:
        saved = self._by_user.get(user_id)
        return dict(saved) if saved is not None else None

    async def save(self, user_id: str, changes: Settings) -> Settings:
        merged = self._by_user.setdefault(user_id, {})
        merged.update(_stamp(changes))
        return dict(merged)


class JsonSettingsStore:
    """All users' settings in one JSON document, replaced atomically on save."""

    def __init__(self, path):
        self._path = Path(path)
        self._lock = asyncio.Lock()
        self._by_user: Dict[str, Settings] = self._read()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Settings]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            document = json.loads(text) if text.strip() else {}
        except (OSError, ValueError) as e:
            logger.warning("Settings file %s unreadable (%s). Starting empty.", self._path, str(e))
            return {}
        if not isinstance(document, dict):
            return {}
        return {uid: doc for uid, doc in document.items() if isinstance(doc, dict)}

    def _write(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        partial = self._path.with_name(self._path.name + ".partial")
        partial.write_text(json.dumps(self._by_user, ensure_ascii=False, indent=1), encoding="utf-8")
        os.replace(partial, self._path)

    async def load(self, user_id: str) -> Optional[Settings]:
        saved = self._by_user.get(user_id)
        return dict(saved) if saved is not None else None

    async def save(self, user_id: str, changes: Settings) -> Settings:
        async with self._lock:
            merged = self._by_user.setdefault(user_id, {})
            merged.update(_stamp(changes))
            self._write()
            return dict(merged)


class MongoSettingsStore:
    """One document per user in a motor collection."""

    def __init__(self, collection):
        self._collection = collection

    async def load(self, user_id: str) -> Optional[Settings]:
        return await self._collection.find_one({"user_id": user_id}, {"_id": 0, "user_id": 0})

    async def save(self, user_id: str, changes: Settings) -> Settings:
        await self._collection.update_one({"user_id": user_id}, {"$set": _stamp(changes)}, upsert=True)
        return await self.load(user_id) or {}
