"""
Request orchestration between the HTTP routes, the cache and the Quran API.

Every cached operation follows the same path: derive a key, look it up in the
:class:`CacheStore`, and on a miss fetch (and possibly assemble several
upstream responses), store, and return.  Concurrent misses on the same key
share a single upstream fetch.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional

from quran_proxy.aggregation import BoundedScan, ScanPage, first_success
from quran_proxy.cache import SINGLETON_KEY, CacheCategory, CacheStore
from quran_proxy.config import Settings
from quran_proxy.errors import QuranApiError
from quran_proxy.quran_client import QuranClient

logger = logging.getLogger(__name__)

TOTAL_CHAPTERS: int = 114

PRIMARY_SCRIPT: str = "uthmani"
SECONDARY_SCRIPT: str = "indopak"

# Cache-clear targets accepted by POST /api/cache/clear/{type}
CLEAR_TARGETS: Dict[str, tuple] = {
    "surahs": (CacheCategory.CHAPTER_DETAIL,),
    "juz": (CacheCategory.JUZ_GROUPING,),
    "verses": (CacheCategory.VERSE_SET,),
    "translations": (CacheCategory.TRANSLATION_SET,),
    "all": tuple(CacheCategory),
}


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------

def chapter_ids_from_verses(verses: List[Dict[str, Any]]) -> List[int]:
    """Extract chapter ids from ``verse_key`` values such as ``"2:255"``."""
    ids: List[int] = []
    for verse in verses:
        verse_key = verse.get("verse_key")
        if not verse_key:
            continue
        head = str(verse_key).split(":", 1)[0]
        try:
            ids.append(int(head))
        except ValueError:
            logger.debug("Ignoring malformed verse_key %r", verse_key)
    return ids


def find_juz_number(juzs_payload: Dict[str, Any], chapter_id: int) -> Optional[int]:
    """Return the first juz whose ``verse_mapping`` lists *chapter_id*.

    Chapters spanning several juz resolve to the first one in listing order.
    """
    for juz in juzs_payload.get("juzs") or []:
        mapping = juz.get("verse_mapping")
        if isinstance(mapping, dict) and str(chapter_id) in mapping:
            return juz.get("juz_number")
    return None


def merge_verses(
    primary: List[Dict[str, Any]], secondary: List[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Merge two script renderings of the same chapter index by index.

    The primary list drives the result; a missing secondary verse yields
    ``text_indopak = None``.
    """
    merged: List[Dict[str, Any]] = []
    for index, verse in enumerate(primary):
        other = secondary[index] if index < len(secondary) else None
        merged.append(
            {
                **verse,
                "text_uthmani": verse.get("text_uthmani") or verse.get("text"),
                "text_indopak": (
                    (other.get("text_indopak") or other.get("text") or None)
                    if other
                    else None
                ),
            }
        )
    return merged


def annotate_verse_keys(items: List[Dict[str, Any]], chapter_id: int) -> List[Dict[str, Any]]:
    """Attach ``verse_key``/``verse_number`` to translation items by position."""
    return [
        {**item, "verse_key": f"{chapter_id}:{n}", "verse_number": n}
        for n, item in enumerate(items, start=1)
    ]


def _has_translations(payload: Any) -> bool:
    return isinstance(payload, dict) and bool(payload.get("translations"))


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class QuranProxy:
    """
    Cache-fronted access to the Quran Foundation content API.

    Args:
        client: Upstream API client.
        cache: Category-partitioned TTL store.
        settings: Scan bounds and translation resource configuration.
        clock: Monotonic clock used for the juz scan time budget.
    """

    def __init__(
        self,
        client: QuranClient,
        cache: CacheStore,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.cache = cache
        self._settings = settings
        self._clock = clock
        self._inflight: Dict[tuple, "asyncio.Task[Any]"] = {}

    # ------------------------------------------------------------------
    # Cache plumbing
    # ------------------------------------------------------------------

    async def _cached(
        self,
        category: CacheCategory,
        key: Hashable,
        loader: Callable[[], Awaitable[Any]],
        should_cache: Callable[[Any], bool] = lambda payload: True,
    ) -> Any:
        entry = await self.cache.get(category, key)
        if entry is not None:
            return entry.payload

        flight_key = (category, key)
        task = self._inflight.get(flight_key)
        if task is None:
            task = asyncio.ensure_future(self._load(category, key, loader, should_cache))
            self._inflight[flight_key] = task

            def _forget(done: "asyncio.Task[Any]") -> None:
                if self._inflight.get(flight_key) is done:
                    del self._inflight[flight_key]
                # Mark a failure as retrieved even if every caller was cancelled.
                if not done.cancelled():
                    done.exception()

            task.add_done_callback(_forget)
        else:
            logger.debug("Joining in-flight fetch: %s key=%r", category.value, key)

        # A cancelled caller must not cancel the fetch other callers share.
        return await asyncio.shield(task)

    async def _load(
        self,
        category: CacheCategory,
        key: Hashable,
        loader: Callable[[], Awaitable[Any]],
        should_cache: Callable[[Any], bool],
    ) -> Any:
        payload = await loader()
        if should_cache(payload):
            await self.cache.put(category, key, payload)
        else:
            logger.debug("Not caching empty result: %s key=%r", category.value, key)
        return payload

    # ------------------------------------------------------------------
    # Chapters and juz
    # ------------------------------------------------------------------

    async def list_chapters(self) -> Dict[str, Any]:
        """All chapters, cached as one value."""
        return await self._cached(
            CacheCategory.ALL_CHAPTERS, SINGLETON_KEY, self.client.get_chapters
        )

    async def list_juzs(self) -> Dict[str, Any]:
        """Raw juz listing; not cached."""
        return await self.client.get_juzs()

    async def chapters_by_juz(self, juz_number: int) -> Dict[str, Any]:
        """Chapters that have at least one verse in *juz_number*, ascending by id."""
        return await self._cached(
            CacheCategory.JUZ_GROUPING,
            juz_number,
            lambda: self._collect_juz_chapters(juz_number),
            should_cache=lambda payload: bool(payload["surahs"]),
        )

    async def _collect_juz_chapters(self, juz_number: int) -> Dict[str, Any]:
        settings = self._settings
        scan = BoundedScan(
            max_pages=settings.juz_max_pages,
            max_stale_pages=settings.juz_max_stale_pages,
            time_budget=settings.juz_time_budget,
            target_size=TOTAL_CHAPTERS,
            clock=self._clock,
        )

        async def fetch_page(page: int) -> ScanPage:
            data = await self.client.get_verses_by_juz(juz_number, page, settings.juz_page_size)
            verses = data.get("verses") or []
            pagination = data.get("pagination") or {}
            return ScanPage(
                ids=chapter_ids_from_verses(verses),
                has_more=bool(pagination.get("next_page")),
                item_count=len(verses),
            )

        result = await scan.run(fetch_page)
        chapter_ids = sorted(result.ids)
        logger.info(
            "Juz %d scan stopped (%s) after %d pages in %.2fs: chapters=%s",
            juz_number,
            result.stop_reason.value if result.stop_reason else "unknown",
            result.pages_fetched,
            result.elapsed,
            chapter_ids,
        )

        chapters: List[Dict[str, Any]] = []
        for chapter_id in chapter_ids:
            try:
                data = await self.client.get_chapter(chapter_id)
            except QuranApiError as exc:
                logger.warning(
                    "Skipping chapter %d in juz %d: %s", chapter_id, juz_number, exc
                )
                continue
            chapter = data.get("chapter") if isinstance(data, dict) else None
            if not isinstance(chapter, dict) or not chapter:
                logger.warning(
                    "Skipping chapter %d in juz %d: unexpected response shape",
                    chapter_id,
                    juz_number,
                )
                continue
            chapters.append(chapter)

        return {"surahs": chapters}

    # ------------------------------------------------------------------
    # Chapter detail
    # ------------------------------------------------------------------

    async def chapter_detail(
        self,
        chapter_id: int,
        font: str = PRIMARY_SCRIPT,
        force_refresh: bool = False,
    ) -> Dict[str, Any]:
        """
        Chapter metadata with merged verses, translation, transliteration and juz.

        The record is keyed by ``(chapter_id, font)``.  ``force_refresh``
        evicts the entry before lookup so the chapter is re-assembled.
        """
        key = (chapter_id, font)
        if force_refresh:
            logger.info("Forced refresh for chapter %d (%s)", chapter_id, font)
            await self.cache.invalidate(CacheCategory.CHAPTER_DETAIL, key)

        return await self._cached(
            CacheCategory.CHAPTER_DETAIL,
            key,
            lambda: self._assemble_chapter(chapter_id),
        )

    async def _assemble_chapter(self, chapter_id: int) -> Dict[str, Any]:
        chapter_data = await self.client.get_chapter(chapter_id)
        juz_number = await self._lookup_juz(chapter_id)

        primary, secondary = await asyncio.gather(
            self.client.get_verses_by_script(PRIMARY_SCRIPT, chapter_id),
            self.client.get_verses_by_script(SECONDARY_SCRIPT, chapter_id),
        )
        verses = merge_verses(primary.get("verses") or [], secondary.get("verses") or [])

        translation = await self._probe_translation(chapter_id)
        transliteration = await self._fetch_transliteration(chapter_id)

        logger.info(
            "Assembled chapter %d: %d verses, %d translations, %d transliterations, juz=%s",
            chapter_id,
            len(verses),
            len(translation),
            len(transliteration),
            juz_number,
        )
        return {
            **(chapter_data.get("chapter") or {}),
            "verses": verses,
            "translation": translation,
            "transliteration": transliteration,
            "juz": {"juz_number": juz_number} if juz_number is not None else None,
        }

    async def _lookup_juz(self, chapter_id: int) -> Optional[int]:
        try:
            juzs = await self.client.get_juzs()
        except QuranApiError as exc:
            logger.warning("Could not determine juz for chapter %d: %s", chapter_id, exc)
            return None

        juz_number = find_juz_number(juzs, chapter_id)
        if juz_number is None:
            logger.warning("No juz lists chapter %d", chapter_id)
        return juz_number

    async def _probe_translation(self, chapter_id: int) -> List[Dict[str, Any]]:
        found = await first_success(
            self._settings.translation_resource_ids,
            lambda resource_id: self.client.get_translation_by_chapter(resource_id, chapter_id),
            _has_translations,
        )
        if found is None:
            logger.warning("No translation resource has chapter %d", chapter_id)
            return []

        resource_id, payload = found
        logger.debug("Chapter %d translation from resource %d", chapter_id, resource_id)
        return annotate_verse_keys(payload["translations"], chapter_id)

    async def _fetch_transliteration(self, chapter_id: int) -> List[Dict[str, Any]]:
        resource_id = self._settings.transliteration_resource_id
        try:
            payload = await self.client.get_translation_by_chapter(resource_id, chapter_id)
        except QuranApiError as exc:
            logger.warning("Transliteration unavailable for chapter %d: %s", chapter_id, exc)
            return []
        if not _has_translations(payload):
            return []
        return annotate_verse_keys(payload["translations"], chapter_id)

    # ------------------------------------------------------------------
    # Verses, translations, random verse
    # ------------------------------------------------------------------

    async def verses_by_script(self, chapter_id: int, font: str) -> Dict[str, Any]:
        """Verses of one chapter in one script."""
        return await self._cached(
            CacheCategory.VERSE_SET,
            (chapter_id, font),
            lambda: self.client.get_verses_by_script(font, chapter_id),
        )

    async def chapter_translation(self, chapter_id: int) -> Dict[str, Any]:
        """Translation of one chapter from the fixed default resource."""
        resource_id = self._settings.chapter_translation_resource_id
        return await self._cached(
            CacheCategory.TRANSLATION_SET,
            (chapter_id, resource_id),
            lambda: self.client.get_quran_translation(resource_id, chapter_id),
        )

    async def random_verse(self, translations: Optional[str] = None) -> Dict[str, Any]:
        """A random verse; never cached."""
        return await self.client.get_random_verse(
            translations or self._settings.random_verse_translations
        )

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def cache_status(self) -> Dict[str, Dict[str, Any]]:
        return self.cache.status()

    async def clear_cache(self, kind: str = "all") -> int:
        """
        Invalidate the categories named by *kind*.

        Raises:
            ValueError: If *kind* is not one of :data:`CLEAR_TARGETS`.
        """
        categories = CLEAR_TARGETS.get(kind)
        if categories is None:
            raise ValueError(
                "Invalid cache type. Use: surahs, juz, verses, translations, or all"
            )
        removed = 0
        for category in categories:
            removed += await self.cache.invalidate_category(category)
        logger.info("Cache clear '%s': removed %d entries", kind, removed)
        return removed
