"""
In-memory, per-category TTL cache with an async interface.

Sits between the Quran API client and the proxy layer.  The store is split
into fixed categories, each with its own TTL and key space; clearing or
expiring one category never touches another.

Expiration is both lazy (an expired entry is removed when ``get()`` finds it)
and eager (``sweep()`` walks every category; the background
:class:`~quran_proxy.scheduler.CacheSweepScheduler` calls it on an interval).

Usage:
    from quran_proxy.cache import CacheCategory, CacheStore
    store = CacheStore.from_settings(settings)
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable, Mapping, Optional

from quran_proxy.config import Settings

logger = logging.getLogger(__name__)


class CacheCategory(str, Enum):
    """Named partitions of the store."""

    ALL_CHAPTERS = "allChapters"
    CHAPTER_DETAIL = "chapterDetail"
    JUZ_GROUPING = "juzGrouping"
    VERSE_SET = "verseSet"
    TRANSLATION_SET = "translationSet"


# Key used for categories that hold exactly one value.
SINGLETON_KEY: str = "all"


@dataclass(frozen=True)
class CacheEntry:
    """A cached payload, the time it was fetched, and how long it stays valid."""

    payload: Any
    fetched_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.fetched_at < self.ttl

    def age(self, now: float) -> float:
        return now - self.fetched_at


class CacheStore:
    """Async-compatible in-memory store partitioned by :class:`CacheCategory`.

    Storage layout:
        _store: dict[CacheCategory, dict[Hashable, CacheEntry]]

    ``CHAPTER_DETAIL`` keys are ``(chapter_id, variant)`` tuples.  Writing one
    variant of a chapter evicts every other variant of the same chapter so
    that mutually exclusive views are never served stale side by side.

    None of the methods await, so each one runs atomically on the event loop.
    """

    def __init__(
        self,
        ttls: Mapping[CacheCategory, float],
        clock: Callable[[], float] = time.time,
    ) -> None:
        missing = set(CacheCategory) - set(ttls)
        if missing:
            raise ValueError(
                "No TTL configured for: " + ", ".join(sorted(c.value for c in missing))
            )
        self._ttls: dict[CacheCategory, float] = dict(ttls)
        self._clock = clock
        self._store: dict[CacheCategory, dict[Hashable, CacheEntry]] = {
            category: {} for category in CacheCategory
        }

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheStore":
        return cls(
            {
                CacheCategory.ALL_CHAPTERS: settings.cache_ttl_all_chapters,
                CacheCategory.CHAPTER_DETAIL: settings.cache_ttl_chapter_detail,
                CacheCategory.JUZ_GROUPING: settings.cache_ttl_juz_grouping,
                CacheCategory.VERSE_SET: settings.cache_ttl_verse_set,
                CacheCategory.TRANSLATION_SET: settings.cache_ttl_translation_set,
            }
        )

    def ttl(self, category: CacheCategory) -> float:
        return self._ttls[category]

    async def get(self, category: CacheCategory, key: Hashable) -> Optional[CacheEntry]:
        """Return the entry for *key* in *category* if present and still valid.

        An expired entry is deleted before ``None`` is returned.
        """
        entries = self._store[category]
        entry = entries.get(key)
        if entry is None:
            logger.debug("Cache miss (not found): %s key=%r", category.value, key)
            return None

        if entry.is_valid(self._clock()):
            logger.debug("Cache hit: %s key=%r", category.value, key)
            return entry

        del entries[key]
        logger.debug("Cache miss (expired): %s key=%r", category.value, key)
        return None

    async def put(self, category: CacheCategory, key: Hashable, payload: Any) -> CacheEntry:
        """Store *payload* under *key*, replacing any existing entry.

        For ``CHAPTER_DETAIL`` every other variant of the same chapter is
        evicted first.
        """
        entries = self._store[category]
        if category is CacheCategory.CHAPTER_DETAIL:
            chapter_id = key[0]
            siblings = [k for k in entries if k[0] == chapter_id and k != key]
            for sibling in siblings:
                del entries[sibling]
                logger.debug("Cache evict (other variant): %s key=%r", category.value, sibling)

        entry = CacheEntry(payload=payload, fetched_at=self._clock(), ttl=self._ttls[category])
        entries[key] = entry
        logger.debug(
            "Cache set: %s key=%r ttl=%ds", category.value, key, int(entry.ttl)
        )
        return entry

    async def invalidate(self, category: CacheCategory, key: Hashable) -> None:
        """Remove *key* from *category*.  A no-op if the key does not exist."""
        removed = self._store[category].pop(key, None)
        if removed is not None:
            logger.debug("Cache delete: %s key=%r", category.value, key)

    async def invalidate_category(self, category: CacheCategory) -> int:
        """Remove every entry in *category* and return how many were dropped."""
        entries = self._store[category]
        count = len(entries)
        entries.clear()
        logger.info("Cache cleared: %s (%d entries)", category.value, count)
        return count

    async def invalidate_all(self) -> int:
        """Remove every entry in every category."""
        total = 0
        for category in CacheCategory:
            total += await self.invalidate_category(category)
        return total

    async def sweep(self) -> int:
        """Evict all expired entries across categories.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        removed = 0
        for category, entries in self._store.items():
            expired = [k for k, entry in entries.items() if not entry.is_valid(now)]
            for key in expired:
                del entries[key]
            removed += len(expired)
        if removed:
            logger.info("Cache sweep: removed %d expired entries", removed)
        return removed

    def size(self, category: Optional[CacheCategory] = None) -> int:
        """Return the number of stored entries, including expired ones not yet evicted."""
        if category is not None:
            return len(self._store[category])
        return sum(len(entries) for entries in self._store.values())

    def status(self) -> dict[str, dict[str, Any]]:
        """Describe each category without touching its entries.

        ``age`` and ``timestamp`` refer to the most recently fetched entry.
        ``ttl``, ``timestamp`` (epoch) and ``age`` are integer milliseconds.
        """
        now = self._clock()
        report: dict[str, dict[str, Any]] = {}
        for category, entries in self._store.items():
            newest = max((e.fetched_at for e in entries.values()), default=None)
            report[category.value] = {
                "populated": bool(entries),
                "count": len(entries),
                "ttl": _millis(self._ttls[category]),
                "timestamp": None if newest is None else _millis(newest),
                "age": None if newest is None else _millis(now - newest),
            }
        return report


def _millis(seconds: float) -> int:
    return int(round(seconds * 1000))
