"""
FastAPI application entry point for the Quran proxy.

Wires together all application components: CORS middleware, route
registration, the token manager and content API client, the category cache,
the proxy orchestrator, and the background cache sweep.

Run with:
    uvicorn quran_proxy.main:app --port 5000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quran_proxy.cache import CacheStore
from quran_proxy.config import get_settings
from quran_proxy.errors import register_error_handlers
from quran_proxy.proxy import QuranProxy
from quran_proxy.quran_client import QuranClient
from quran_proxy.routes.cache import router as cache_router
from quran_proxy.routes.chapters import router as chapters_router
from quran_proxy.routes.verses import router as verses_router
from quran_proxy.scheduler import CacheSweepScheduler
from quran_proxy.token_manager import TokenManager

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging: configured at module level before anything else runs
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: manages startup and shutdown of long-lived resources
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Manage application lifecycle: initialise shared resources on startup,
    tear them down cleanly on shutdown.

    Startup sequence:
      1. Create the TokenManager and QuranClient.
      2. Create the CacheStore and the QuranProxy; store the proxy on
         ``app.state``.
      3. Start the cache sweep scheduler.

    Shutdown sequence:
      1. Stop the scheduler.
      2. Close the QuranClient and TokenManager HTTP pools.
      3. Drop every cached entry.
    """
    # ------------------------------------------------------------------
    # STARTUP
    # ------------------------------------------------------------------
    logger.info("Starting Quran proxy (%s environment) …", settings.quran_env)

    token_manager = TokenManager(settings)
    client = QuranClient(settings, token_manager)
    cache = CacheStore.from_settings(settings)

    app.state.proxy = QuranProxy(client, cache, settings)

    scheduler = CacheSweepScheduler(cache, settings.cache_sweep_interval)
    app.state.scheduler = scheduler
    await scheduler.start()

    logger.info(
        "Cache TTLs: chapters=%ds detail=%ds juz=%ds verses=%ds translations=%ds",
        settings.cache_ttl_all_chapters,
        settings.cache_ttl_chapter_detail,
        settings.cache_ttl_juz_grouping,
        settings.cache_ttl_verse_set,
        settings.cache_ttl_translation_set,
    )
    logger.info("Quran proxy startup complete, serving requests")

    yield  # application runs here

    # ------------------------------------------------------------------
    # SHUTDOWN
    # ------------------------------------------------------------------
    logger.info("Shutting down Quran proxy …")

    await scheduler.stop()
    await client.close()
    await token_manager.close()
    await cache.invalidate_all()

    logger.info("Quran proxy shutdown complete")


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Quran Proxy",
    description="Caching proxy in front of the Quran Foundation content API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(chapters_router, prefix="/api", tags=["chapters"])
app.include_router(verses_router, prefix="/api", tags=["verses"])
app.include_router(cache_router, prefix="/api", tags=["cache"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------
@app.get("/api/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Return service liveness status."""
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}
