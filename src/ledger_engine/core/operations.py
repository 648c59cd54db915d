"""Pending field operations and their store-side resolution.

A change tree maps field names either to an operation or to a nested change
tree. Operations are evaluated against the value *currently stored* at their
path when the change tree is committed, never against the caller's snapshot,
so two commits that both add to ``pocket`` both take effect.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field


class SetOp(BaseModel):
    """Replace the stored value with ``value``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["set"] = "set"
    value: Any

    def apply(self, current: Any) -> Any:
        return self.value


class AddOp(BaseModel):
    """Add ``amount`` to the stored number (missing counts as 0)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["add"] = "add"
    amount: int = Field(ge=0)

    def apply(self, current: Any) -> int:
        return _stored_number(current) + self.amount


class SubtractClampedOp(BaseModel):
    """Subtract ``amount`` from the stored number, never going below 0."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["sub_clamped"] = "sub_clamped"
    amount: int = Field(ge=0)

    def apply(self, current: Any) -> int:
        return max(_stored_number(current) - self.amount, 0)


OPERATION_TYPES = (SetOp, AddOp, SubtractClampedOp)


def _stored_number(current: Any) -> int:
    if current is None:
        return 0
    if isinstance(current, bool) or not isinstance(current, int):
        raise TypeError(f"cannot apply a relative operation to {current!r}")
    return current


def resolve_changes(document: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Evaluate ``changes`` against ``document`` and return the merged result.

    Nested change trees follow deep-merge rules: they merge into a stored
    mapping and replace any stored non-mapping value. Raises ``TypeError`` when
    a relative operation targets a non-integer stored value.
    """
    resolved: Dict[str, Any] = {}
    for key, value in document.items():
        resolved[key] = dict(value) if isinstance(value, Mapping) else value

    for key, change in changes.items():
        current = document.get(key)
        if isinstance(change, Mapping):
            base = current if isinstance(current, Mapping) else {}
            resolved[key] = resolve_changes(base, change)
        elif isinstance(change, OPERATION_TYPES):
            resolved[key] = change.apply(current)
        else:
            resolved[key] = change
    return resolved


def dump_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a JSON-friendly copy of a change tree."""
    out: Dict[str, Any] = {}
    for key, change in changes.items():
        if isinstance(change, Mapping):
            out[key] = dump_changes(change)
        elif isinstance(change, BaseModel):
            out[key] = change.model_dump()
        else:
            out[key] = change
    return out
