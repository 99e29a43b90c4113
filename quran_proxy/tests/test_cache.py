"""
Tests for quran_proxy.cache.CacheStore.

Each test gets a fresh CacheStore driven by a FakeClock, so expiry is tested
by moving the clock instead of sleeping.

Run with:
    pytest quran_proxy/tests/test_cache.py -v
"""

import pytest

from quran_proxy.cache import CacheCategory, CacheEntry, CacheStore
from quran_proxy.tests.fakes import FakeClock, make_settings

DETAIL = CacheCategory.CHAPTER_DETAIL
JUZ = CacheCategory.JUZ_GROUPING


# ---------------------------------------------------------------------------
# 1. Basic put / get round-trip
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_put_and_get(store: CacheStore, clock: FakeClock) -> None:
    """A payload stored with put() is returned by get() with its fetch time."""
    await store.put(JUZ, 30, {"surahs": [{"id": 78}]})
    entry = await store.get(JUZ, 30)
    assert entry is not None
    assert entry.payload == {"surahs": [{"id": 78}]}
    assert entry.fetched_at == clock.now
    assert entry.ttl == 21600


# ---------------------------------------------------------------------------
# 2. Missing key returns None
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_get_missing_key(store: CacheStore) -> None:
    assert await store.get(JUZ, 1) is None


# ---------------------------------------------------------------------------
# 3. Validity boundary, for every category
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
@pytest.mark.parametrize("category", list(CacheCategory))
async def test_entry_expires_at_ttl(
    store: CacheStore, clock: FakeClock, category: CacheCategory
) -> None:
    """An entry is served until now - fetched_at reaches the category TTL."""
    key = (7, "uthmani") if category is DETAIL else "key"
    await store.put(category, key, "payload")

    clock.advance(store.ttl(category) - 1)
    assert await store.get(category, key) is not None

    clock.advance(1)
    assert await store.get(category, key) is None


# ---------------------------------------------------------------------------
# 4. Overwriting an existing key refreshes the fetch time
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_overwrite_existing_key(store: CacheStore, clock: FakeClock) -> None:
    await store.put(JUZ, 1, "v1")
    clock.advance(21000)
    await store.put(JUZ, 1, "v2")
    clock.advance(1000)

    entry = await store.get(JUZ, 1)
    assert entry is not None
    assert entry.payload == "v2"


# ---------------------------------------------------------------------------
# 5. invalidate removes a key; missing keys are a no-op
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_invalidate_key(store: CacheStore) -> None:
    await store.put(JUZ, 1, "x")
    await store.invalidate(JUZ, 1)
    assert await store.get(JUZ, 1) is None


@pytest.mark.asyncio
async def test_invalidate_nonexistent_key(store: CacheStore) -> None:
    await store.invalidate(JUZ, 99)
    await store.invalidate(JUZ, 99)
    assert store.size() == 0


# ---------------------------------------------------------------------------
# 6. Category independence
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_invalidate_category_leaves_others(store: CacheStore) -> None:
    await store.put(DETAIL, (1, "uthmani"), "detail")
    await store.put(JUZ, 1, "juz")
    await store.put(CacheCategory.ALL_CHAPTERS, "all", "chapters")

    removed = await store.invalidate_category(DETAIL)

    assert removed == 1
    assert await store.get(DETAIL, (1, "uthmani")) is None
    assert await store.get(JUZ, 1) is not None
    assert await store.get(CacheCategory.ALL_CHAPTERS, "all") is not None


@pytest.mark.asyncio
async def test_expiry_of_one_category_does_not_affect_another(
    store: CacheStore, clock: FakeClock
) -> None:
    await store.put(JUZ, 1, "juz")
    await store.put(CacheCategory.TRANSLATION_SET, (1, 131), "translation")

    clock.advance(21600)

    assert await store.get(JUZ, 1) is None
    assert await store.get(CacheCategory.TRANSLATION_SET, (1, 131)) is not None


# ---------------------------------------------------------------------------
# 7. invalidate_all empties every category
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_invalidate_all(store: CacheStore) -> None:
    keys = {
        CacheCategory.ALL_CHAPTERS: "all",
        DETAIL: (1, "uthmani"),
        JUZ: 1,
        CacheCategory.VERSE_SET: (1, "indopak"),
        CacheCategory.TRANSLATION_SET: (1, 131),
    }
    for category, key in keys.items():
        await store.put(category, key, "payload")

    assert await store.invalidate_all() == 5

    for category, key in keys.items():
        assert await store.get(category, key) is None, f"{category} survived invalidate_all"
    assert store.size() == 0


# ---------------------------------------------------------------------------
# 8. Cross-variant invalidation for chapter detail
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_chapter_detail_put_evicts_other_variant(store: CacheStore) -> None:
    """Writing uthmani for chapter X evicts indopak for X, and vice versa."""
    await store.put(DETAIL, (2, "indopak"), "indopak view")
    await store.put(DETAIL, (2, "uthmani"), "uthmani view")

    assert await store.get(DETAIL, (2, "indopak")) is None
    assert (await store.get(DETAIL, (2, "uthmani"))).payload == "uthmani view"

    await store.put(DETAIL, (2, "indopak"), "indopak again")

    assert await store.get(DETAIL, (2, "uthmani")) is None
    assert (await store.get(DETAIL, (2, "indopak"))).payload == "indopak again"


@pytest.mark.asyncio
async def test_chapter_detail_put_keeps_other_chapters(store: CacheStore) -> None:
    await store.put(DETAIL, (3, "indopak"), "three")
    await store.put(DETAIL, (36, "indopak"), "thirty-six")

    await store.put(DETAIL, (36, "uthmani"), "thirty-six uthmani")

    assert await store.get(DETAIL, (3, "indopak")) is not None
    assert await store.get(DETAIL, (36, "indopak")) is None


@pytest.mark.asyncio
async def test_other_categories_have_no_cross_variant_eviction(store: CacheStore) -> None:
    await store.put(CacheCategory.VERSE_SET, (1, "uthmani"), "u")
    await store.put(CacheCategory.VERSE_SET, (1, "indopak"), "i")

    assert await store.get(CacheCategory.VERSE_SET, (1, "uthmani")) is not None
    assert await store.get(CacheCategory.VERSE_SET, (1, "indopak")) is not None


# ---------------------------------------------------------------------------
# 9. Expired entry is cleaned from the internal dict on get()
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_expired_entry_is_cleaned_on_get(store: CacheStore, clock: FakeClock) -> None:
    await store.put(JUZ, 5, "value")
    assert store.size(JUZ) == 1

    clock.advance(21601)
    # size() still counts the expired entry until something evicts it.
    assert store.size(JUZ) == 1

    assert await store.get(JUZ, 5) is None
    assert store.size(JUZ) == 0


# ---------------------------------------------------------------------------
# 10. sweep() evicts only expired entries
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_sweep_removes_only_expired(store: CacheStore, clock: FakeClock) -> None:
    await store.put(JUZ, 1, "old juz")
    await store.put(CacheCategory.VERSE_SET, (1, "uthmani"), "old verses")
    clock.advance(20000)
    await store.put(JUZ, 2, "new juz")
    await store.put(CacheCategory.ALL_CHAPTERS, "all", "chapters")
    clock.advance(2000)

    removed = await store.sweep()

    assert removed == 2
    assert store.size(JUZ) == 1
    assert store.size(CacheCategory.VERSE_SET) == 0
    assert store.size(CacheCategory.ALL_CHAPTERS) == 1


@pytest.mark.asyncio
async def test_sweep_on_empty_store(store: CacheStore) -> None:
    assert await store.sweep() == 0


# ---------------------------------------------------------------------------
# 11. status() reports per-category population and age
# ---------------------------------------------------------------------------
@pytest.mark.asyncio
async def test_status(store: CacheStore, clock: FakeClock) -> None:
    await store.put(CacheCategory.ALL_CHAPTERS, "all", {"chapters": []})
    clock.advance(120)

    status = store.status()

    assert set(status) == {c.value for c in CacheCategory}
    assert status["allChapters"]["populated"] is True
    assert status["allChapters"]["count"] == 1
    assert status["allChapters"]["age"] == 120_000
    assert status["allChapters"]["timestamp"] == 1_000_000_000
    assert status["allChapters"]["ttl"] == 86_400_000
    assert status["chapterDetail"] == {
        "populated": False,
        "count": 0,
        "ttl": 43_200_000,
        "timestamp": None,
        "age": None,
    }


# ---------------------------------------------------------------------------
# 12. Construction
# ---------------------------------------------------------------------------
def test_missing_ttl_raises() -> None:
    with pytest.raises(ValueError, match="juzGrouping"):
        CacheStore({c: 60 for c in CacheCategory if c is not JUZ})


def test_from_settings_uses_configured_ttls() -> None:
    store = CacheStore.from_settings(make_settings(cache_ttl_juz_grouping=60))
    assert store.ttl(JUZ) == 60
    assert store.ttl(DETAIL) == 43200
    assert store.ttl(CacheCategory.ALL_CHAPTERS) == 86400


def test_cache_entry_validity() -> None:
    entry = CacheEntry(payload=None, fetched_at=100.0, ttl=10)
    assert entry.is_valid(109.9)
    assert not entry.is_valid(110.0)
    assert entry.age(105.0) == 5.0
