from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Protocol

Document = Dict[str, Any]
DefaultFactory = Callable[[str], Document]
DocumentValidator = Callable[[Document], None]


class PersistenceGateway(Protocol):
    async def fetch_or_default(self, user_id: str) -> Document: ...

    async def upsert_merge(self, user_id: str, changes: Mapping[str, Any]) -> Document: ...
