"""Pending call registry.

Maps an outstanding call identifier to the continuation waiting for its
response. Registries are treated as immutable values: both operations
return a new mapping and never touch the one passed in.

There is no eviction or capacity bound. An entry leaves the registry only
when its response is matched.

Every transition copies the mapping, so it costs O(pending). The engine
shell keeps a mutable dict behind its lock instead and only builds a
registry value when a snapshot is asked for.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

Continuation = Callable[[Any], Any]
Registry = Mapping[int, Continuation]

EMPTY_REGISTRY: Registry = MappingProxyType({})


def insert(envelope_id: int, continuation: Continuation, registry: Registry) -> Registry:
    """Return a registry with ``continuation`` stored under ``envelope_id``.

    The id is assumed to be fresh (the allocator never repeats one), so
    this does not check for an existing entry.
    """
    updated = dict(registry)
    updated[envelope_id] = continuation
    return MappingProxyType(updated)


def take_and_remove(envelope_id: int, registry: Registry) -> tuple[Continuation | None, Registry]:
    """Remove and return the continuation for ``envelope_id``.

    On a miss the same registry object is returned unchanged.
    """
    continuation = registry.get(envelope_id)
    if continuation is None:
        return None, registry
    updated = {k: v for k, v in registry.items() if k != envelope_id}
    return continuation, MappingProxyType(updated)
