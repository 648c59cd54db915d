"""Document-store style deep merge.

The merge mirrors what a document store does for an ``update``/``merge`` call:

- keys only present on the target side are kept,
- a source value replaces the target value unless *both* sides hold a mapping
  at that key, in which case the two mappings are merged recursively.

A scalar on the source side therefore replaces a whole nested structure, and a
mapping on the source side replaces a scalar wholesale.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``source`` onto ``target`` without mutating either input.

    >>> deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"b": 9}})
    {'a': {'b': 9, 'c': 2}}
    >>> deep_merge({"a": {"b": 1}}, {"a": 5})
    {'a': 5}
    """
    merged: Dict[str, Any] = {}
    for key, value in target.items():
        merged[key] = dict(value) if isinstance(value, Mapping) else value

    for key, value in source.items():
        current = target.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged
