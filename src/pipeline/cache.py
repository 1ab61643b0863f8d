"""Bounded LRU cache of resolved filters.

Keys combine the entity, the ordered column list (schema signature) and the normalized query text,
so a changed dataset produces a miss instead of a stale hit.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from src.query.schema import FieldSchema

_WHITESPACE_RE = re.compile(r"\s+")

CacheKey = tuple[str, tuple[str, ...], str]
V = TypeVar("V")


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0


def normalize_query(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", (text or "").strip().lower())


def key_for(entity: str, schema: Iterable[FieldSchema], text: str) -> CacheKey:
    return str(entity), tuple(f.name for f in schema), normalize_query(text)


@dataclass
class FilterCache(Generic[V]):
    """LRU mapping `CacheKey -> V`; the least recently used entry is evicted at capacity."""

    max_entries: int = 256
    stats: CacheStats = field(default_factory=CacheStats)
    _entries: OrderedDict[CacheKey, V] = field(default_factory=OrderedDict, repr=False)

    def __post_init__(self) -> None:
        if self.max_entries <= 0:
            raise ValueError("max_entries must be a positive integer")

    def get(self, key: CacheKey) -> V | None:
        if key not in self._entries:
            self.stats.misses += 1
            return None
        self._entries.move_to_end(key)
        self.stats.hits += 1
        return self._entries[key]

    def put(self, key: CacheKey, value: V) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = value
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            self.stats.evictions += 1

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
