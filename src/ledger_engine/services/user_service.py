from __future__ import annotations

import logging

from ledger_engine.core.record import UserRecord
from ledger_engine.persistence.base import PersistenceGateway


logger = logging.getLogger(__name__)


class UserService:
    """Hands out user records backed by a persistence gateway."""

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway

    async def get(self, user_id: str) -> UserRecord:
        """Return the stored user, or a default one when none exists (nothing is written)."""
        document = await self._gateway.fetch_or_default(user_id)
        logger.debug("user fetched", extra={"user_id": user_id})
        return UserRecord.from_document(document, self._gateway)
