from __future__ import annotations

import math
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.core.changeset import ChangeSet
from ledger_engine.core.errors import InvalidNumericInput, MissingArgument
from ledger_engine.core.operations import AddOp, SetOp, SubtractClampedOp

if TYPE_CHECKING:
    from ledger_engine.persistence.base import PersistenceGateway


class Streak(BaseModel):
    time: int = Field(default=0, ge=0)
    streak: int = Field(default=0, ge=0)


class LastCommand(BaseModel):
    name: str = "nothing"
    time: int = Field(default=0, ge=0)


class UserData(BaseModel):
    """Field values of one stored user document. Timestamps are epoch milliseconds."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(min_length=1)
    commands: int = Field(default=0, ge=0)
    spam: int = Field(default=0, ge=0)
    pocket: int = Field(default=0, ge=0)
    bank: int = Field(default=0, ge=0)
    won: int = Field(default=0, ge=0)
    lost: int = Field(default=0, ge=0)
    shared: int = Field(default=0, ge=0)
    streak: Streak = Field(default_factory=Streak)
    last_command: LastCommand = Field(default_factory=LastCommand)
    upvoted: bool = False
    dbl_upvoted: bool = False


def now_ms() -> int:
    return int(time.time() * 1000)


def coerce_amount(amount: Any, name: str = "amount", required: bool = True) -> int:
    """Coerce ``amount`` to a non-negative int.

    Numeric strings are accepted. When ``required`` is set, falsy values and
    values that coerce to 0 raise ``MissingArgument``.
    """
    if required and not amount:
        raise MissingArgument(name)
    if isinstance(amount, bool):
        raise InvalidNumericInput(name, amount)

    if isinstance(amount, int):
        value = amount
    elif isinstance(amount, float):
        if not math.isfinite(amount) or not amount.is_integer():
            raise InvalidNumericInput(name, amount)
        value = int(amount)
    elif isinstance(amount, str):
        try:
            value = int(amount.strip())
        except ValueError:
            raise InvalidNumericInput(name, amount) from None
    else:
        raise InvalidNumericInput(name, amount)

    if value < 0:
        raise InvalidNumericInput(name, amount)
    if required and value == 0:
        raise MissingArgument(name)
    return value


class UserRecord:
    """In-memory mirror of a stored user document plus its pending changes.

    Every mutation method updates ``data`` right away and records a matching
    operation in the change set; nothing reaches the store until ``save()``.
    The record returned by ``save()`` is rebuilt from what the store wrote, so
    callers should reply with that one rather than with this instance.

    Calls can be chained, but two calls touching the same field (for example
    ``add_to_bank`` followed by ``remove_from_bank``) keep only the last
    operation for that field.
    """

    def __init__(self, data: UserData, gateway: PersistenceGateway) -> None:
        self.data = data
        self._gateway = gateway
        self._changes = ChangeSet()

    @classmethod
    def from_document(cls, document: Mapping[str, Any], gateway: PersistenceGateway) -> UserRecord:
        return cls(UserData.model_validate(document), gateway)

    @property
    def id(self) -> str:
        return self.data.id

    @property
    def changes(self) -> ChangeSet:
        return self._changes

    def update(self, patch: Mapping[str, Any]) -> UserRecord:
        """Queue raw changes; ``data`` is left untouched."""
        self._changes.update(patch)
        return self

    def add_to_pocket(self, amount: Any) -> UserRecord:
        amount = coerce_amount(amount)
        self.data.pocket += amount
        self.data.won += amount
        return self.update({"pocket": AddOp(amount=amount), "won": AddOp(amount=amount)})

    def remove_from_pocket(self, amount: Any) -> UserRecord:
        amount = coerce_amount(amount)
        self.data.pocket = max(self.data.pocket - amount, 0)
        self.data.lost += amount
        return self.update({"pocket": SubtractClampedOp(amount=amount), "lost": AddOp(amount=amount)})

    def add_to_bank(self, amount: Any, transfer: bool = True) -> UserRecord:
        """Add to the bank; with ``transfer`` the coins come out of the pocket."""
        amount = coerce_amount(amount)
        self.data.bank += amount
        changes: Dict[str, Any] = {"bank": AddOp(amount=amount)}
        if transfer:
            self.data.pocket = max(self.data.pocket - amount, 0)
            changes["pocket"] = SubtractClampedOp(amount=amount)
        return self.update(changes)

    def remove_from_bank(self, amount: Any, transfer: bool = True) -> UserRecord:
        """Remove from the bank; with ``transfer`` the coins go to the pocket."""
        amount = coerce_amount(amount)
        self.data.bank = max(self.data.bank - amount, 0)
        changes: Dict[str, Any] = {"bank": SubtractClampedOp(amount=amount)}
        if transfer:
            self.data.pocket += amount
            changes["pocket"] = AddOp(amount=amount)
        return self.update(changes)

    def update_streak(self, timestamp: Optional[int] = None, streak: Optional[int] = None) -> UserRecord:
        """Record a daily claim at ``timestamp`` (default now) with ``streak`` (default current + 1).

        The stored streak is set to the same literal value as the local one.
        """
        if timestamp is None:
            timestamp = now_ms()
        if streak is None:
            streak = self.data.streak.streak + 1
        timestamp = coerce_amount(timestamp, name="timestamp", required=False)
        streak = coerce_amount(streak, name="streak", required=False)

        self.data.streak = Streak(time=timestamp, streak=streak)
        return self.update({"streak": {"time": SetOp(value=timestamp), "streak": SetOp(value=streak)}})

    def reset_streak(self) -> UserRecord:
        self.data.streak.streak = 0
        return self.update({"streak": {"streak": SetOp(value=0)}})

    def increment_command_count(self, amount: Any = 1) -> UserRecord:
        amount = coerce_amount(amount, required=False)
        self.data.commands += amount
        return self.update({"commands": AddOp(amount=amount)})

    def increment_spam_count(self, amount: Any = 1) -> UserRecord:
        amount = coerce_amount(amount, required=False)
        self.data.spam += amount
        return self.update({"spam": AddOp(amount=amount)})

    def set_last_command(self, name: str = "nothing", timestamp: Optional[int] = None) -> UserRecord:
        if name is None:
            raise MissingArgument("name")
        name = str(name)
        if timestamp is None:
            timestamp = now_ms()
        timestamp = coerce_amount(timestamp, name="timestamp", required=False)

        self.data.last_command = LastCommand(name=name, time=timestamp)
        return self.update({"last_command": {"name": SetOp(value=name), "time": SetOp(value=timestamp)}})

    async def save(self) -> UserRecord:
        """Commit pending changes and return a record built from the stored result.

        Raises ``PersistenceError`` when the gateway fails; this record and its
        pending changes are left as they were, so the save can be retried.
        """
        document = await self._gateway.upsert_merge(self.id, self._changes.changes)
        return type(self).from_document(document, self._gateway)

    def to_json(self) -> str:
        return self.data.model_dump_json()

    def to_plain(self) -> Dict[str, Any]:
        return self.data.model_dump()

    def __repr__(self) -> str:
        return f"UserRecord(id={self.id!r}, pending={self._changes.fields!r})"
