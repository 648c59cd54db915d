from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, Mapping

from ledger_engine.core.errors import PersistenceError
from ledger_engine.core.operations import resolve_changes
from ledger_engine.persistence.base import DefaultFactory, Document, DocumentValidator, PersistenceGateway
from ledger_engine.persistence.defaults import default_user, validate_user


logger = logging.getLogger(__name__)


class InMemoryGateway(PersistenceGateway):
    def __init__(
        self, default_factory: DefaultFactory = default_user, validator: DocumentValidator = validate_user
    ) -> None:
        self._lock = threading.Lock()
        self._documents: Dict[str, Document] = {}
        self._default_factory = default_factory
        self._validator = validator

    async def fetch_or_default(self, user_id: str) -> Document:
        with self._lock:
            doc = self._documents.get(user_id)
            if doc is None:
                return self._default_factory(user_id)
            return copy.deepcopy(doc)

    async def upsert_merge(self, user_id: str, changes: Mapping[str, Any]) -> Document:
        with self._lock:
            current = self._documents.get(user_id)
            if current is None:
                current = self._default_factory(user_id)
            try:
                resolved = resolve_changes(current, changes)
            except TypeError as exc:
                raise PersistenceError(user_id, str(exc)) from exc
            if resolved.get("id") != user_id:
                raise PersistenceError(user_id, "document id cannot be changed")
            try:
                self._validator(resolved)
            except ValueError as exc:
                raise PersistenceError(user_id, f"invalid document: {exc}") from exc
            self._documents[user_id] = resolved
            logger.info("user upserted", extra={"user_id": user_id, "fields": ",".join(sorted(changes)) or "-"})
            return copy.deepcopy(resolved)

    def has(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._documents
