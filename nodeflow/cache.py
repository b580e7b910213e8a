"""Bounded in-memory caches owned by resolver, status and routing components."""

from __future__ import annotations

import json
from collections import OrderedDict
from typing import Any, Dict, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")


class LRUCache(Generic[V]):
    """Least-recently-used mapping with hit/miss counters.

    Each component owns its own instance; pass a shared instance explicitly to
    share cached entries between components or runs.
    """

    def __init__(self, max_entries: int = 512, *, enabled: bool = True) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.enabled = enabled
        self._entries: "OrderedDict[Hashable, V]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[V]:
        if not self.enabled:
            return None
        try:
            value = self._entries[key]
        except KeyError:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def set(self, key: Hashable, value: V) -> None:
        if not self.enabled:
            return
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def discard(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        return {"size": len(self._entries), "hits": self.hits, "misses": self.misses, "maxEntries": self.max_entries}


def fingerprint(value: Any) -> str:
    """Stable text key for JSON-like values; callables and objects fall back to ``str``."""

    try:
        return json.dumps(value, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return repr(value)
