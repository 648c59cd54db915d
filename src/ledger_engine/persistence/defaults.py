from __future__ import annotations

from ledger_engine.core.record import UserData
from ledger_engine.persistence.base import Document


def default_user(user_id: str) -> Document:
    """Document stored for a user that has never been written before."""
    return UserData(id=user_id).model_dump()


def validate_user(document: Document) -> None:
    """Raise ``pydantic.ValidationError`` if ``document`` is not a loadable user."""
    UserData.model_validate(document)
