from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any, Dict, List

from ledger_engine.core.merge import deep_merge
from ledger_engine.core.operations import OPERATION_TYPES, SetOp, dump_changes


def _normalize(patch: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in patch.items():
        if isinstance(value, Mapping):
            out[key] = _normalize(value)
        elif isinstance(value, OPERATION_TYPES):
            out[key] = value
        else:
            out[key] = SetOp(value=value)
    return out


class ChangeSet:
    """Accumulates pending operations until the owning record is saved.

    Updates are deep-merged, so a second operation on the same field path
    replaces the first one instead of composing with it.
    """

    def __init__(self) -> None:
        self._changes: Dict[str, Any] = {}

    def update(self, patch: Mapping[str, Any]) -> ChangeSet:
        self._changes = deep_merge(self._changes, _normalize(patch))
        return self

    @property
    def changes(self) -> Dict[str, Any]:
        return copy.deepcopy(self._changes)

    @property
    def is_empty(self) -> bool:
        return not self._changes

    @property
    def fields(self) -> List[str]:
        return sorted(self._changes)

    def to_plain(self) -> Dict[str, Any]:
        return dump_changes(self._changes)

    def __repr__(self) -> str:
        return f"ChangeSet({self.to_plain()!r})"
