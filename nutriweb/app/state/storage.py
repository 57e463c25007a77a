"""Per-browser key/value storage.

Values are JSON encoded. Access is synchronous and unlocked, so concurrent
tabs of the same browser follow last-writer-wins semantics.
"""
from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from nutriweb.app.models import ClientStorageEntry
from nutriweb.extensions import db

LOGGER = logging.getLogger(__name__)


class MemoryStorage:
    """Dictionary-backed storage used for scratch state and unit tests."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._items: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._items.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def get_raw(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: Any) -> None:
        self._items[key] = json.dumps(value)

    def set_raw(self, key: str, raw: str) -> None:
        self._items[key] = raw

    def remove(self, *keys: str) -> None:
        for key in keys:
            self._items.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self._items if key.startswith(prefix))


class ClientStorage:
    """SQL-backed storage scoped to a single browser identifier."""

    def __init__(self, client_id: str) -> None:
        if not client_id:
            raise ValueError("client_id is required")
        self.client_id = client_id

    def _entry(self, key: str) -> ClientStorageEntry | None:
        return ClientStorageEntry.query.filter_by(client_id=self.client_id, key=key).first()

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        return json.loads(raw)

    def get_raw(self, key: str) -> str | None:
        entry = self._entry(key)
        return entry.value if entry else None

    def set(self, key: str, value: Any) -> None:
        self.set_raw(key, json.dumps(value))

    def set_raw(self, key: str, raw: str) -> None:
        entry = self._entry(key)
        if entry is None:
            entry = ClientStorageEntry(client_id=self.client_id, key=key, value=raw)
        else:
            entry.value = raw
        db.session.add(entry)
        self._commit()

    def remove(self, *keys: str) -> None:
        if not keys:
            return
        ClientStorageEntry.query.filter(
            ClientStorageEntry.client_id == self.client_id,
            ClientStorageEntry.key.in_(keys),
        ).delete(synchronize_session=False)
        self._commit()

    def keys(self, prefix: str = "") -> list[str]:
        query = ClientStorageEntry.query.filter_by(client_id=self.client_id)
        if prefix:
            query = query.filter(ClientStorageEntry.key.startswith(prefix))
        return sorted(entry.key for entry in query.all())

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            LOGGER.exception("Failed to persist client storage for %s", self.client_id)
            raise
