"""Search result cache.

Holds full, ranked, kind-filtered result lists so that paging through a query
never recomputes (or reorders) it while the entry is alive.  Entries expire
``ttl_s`` seconds after their last use; when full, the least recently used
entry is evicted.

The cache is owned by one server/session and only touched from its event
loop thread, so it carries no lock.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from symbol_atlas.schema import SearchKind, SymbolResult


def make_cache_key(query: str, kinds: Iterable[SearchKind], *, regex: bool = False) -> str:
    """``mode:lowercased-query|sorted,kinds``.

    Label-regex searches cache the unfiltered symbol list, so they share one
    ``regex:*`` slot per kind filter.  Plain queries always key under
    ``text:`` and can never land in that slot.
    """
    mode, query_part = ("regex", "*") if regex else ("text", query.lower())
    return f"{mode}:{query_part}|{','.join(sorted(kinds))}"


@dataclass
class CachedSearchEntry:
    results: tuple[SymbolResult, ...]
    expires_at: float


class SearchCache:
    """TTL + LRU cache of search result lists."""

    def __init__(
        self,
        ttl_s: float = 20.0,
        capacity: int = 50,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            msg = f"Cache capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self.ttl_s = ttl_s
        self.capacity = capacity
        self._clock = clock
        self._entries: OrderedDict[str, CachedSearchEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> tuple[SymbolResult, ...] | None:
        """Return cached results and refresh the entry, or ``None``."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Search cache miss: {}", key)
            return None
        now = self._clock()
        if entry.expires_at <= now:
            del self._entries[key]
            logger.debug("Search cache entry expired: {}", key)
            return None
        entry.expires_at = now + self.ttl_s
        self._entries.move_to_end(key)
        logger.debug("Search cache hit: {} ({} results)", key, len(entry.results))
        return entry.results

    def put(self, key: str, results: Sequence[SymbolResult]) -> tuple[SymbolResult, ...]:
        """Store *results* under *key*, evicting the oldest entries when full."""
        self._entries.pop(key, None)
        while len(self._entries) >= self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Search cache evicted: {}", evicted)
        frozen = tuple(results)
        self._entries[key] = CachedSearchEntry(results=frozen, expires_at=self._clock() + self.ttl_s)
        return frozen

    def clear(self) -> None:
        self._entries.clear()
