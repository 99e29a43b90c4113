"""Fixtures shared by the quran_proxy unit tests."""

import pytest

from quran_proxy.cache import CacheCategory, CacheStore
from quran_proxy.config import Settings
from quran_proxy.quran_client import QuranClient
from quran_proxy.tests.fakes import FakeClock, FakeQuranApi, make_settings
from quran_proxy.token_manager import TokenManager


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def fake_api() -> FakeQuranApi:
    return FakeQuranApi()


@pytest.fixture
def token_manager(settings: Settings, fake_api: FakeQuranApi, clock: FakeClock) -> TokenManager:
    return TokenManager(settings, transport=fake_api.transport(), clock=clock)


@pytest.fixture
def quran_client(
    settings: Settings, token_manager: TokenManager, fake_api: FakeQuranApi
) -> QuranClient:
    return QuranClient(settings, token_manager, transport=fake_api.transport())


@pytest.fixture
def store(clock: FakeClock) -> CacheStore:
    return CacheStore(
        {
            CacheCategory.ALL_CHAPTERS: 86400,
            CacheCategory.CHAPTER_DETAIL: 43200,
            CacheCategory.JUZ_GROUPING: 21600,
            CacheCategory.VERSE_SET: 21600,
            CacheCategory.TRANSLATION_SET: 86400,
        },
        clock=clock,
    )
