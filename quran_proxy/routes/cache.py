"""
Cache administration routes.

Endpoints:
  GET  /api/cache/status        — Per-category entry count, TTL and age (milliseconds)
  POST /api/cache/clear         — Invalidate every category
  POST /api/cache/clear/{type}  — Invalidate one of surahs|juz|verses|translations|all

Clearing is immediate and idempotent.  None of these endpoints call upstream.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/cache/status", summary="Cache status")
async def get_cache_status(request: Request) -> dict:
    return request.app.state.proxy.cache_status()


@router.post("/cache/clear", summary="Clear all caches")
async def clear_all_caches(request: Request) -> dict:
    await request.app.state.proxy.clear_cache("all")
    return {"message": "All caches cleared successfully"}


@router.post("/cache/clear/{cache_type}", summary="Clear one cache")
async def clear_cache(request: Request, cache_type: str):
    """Clear the category named by *cache_type*; 400 for unknown names."""
    try:
        await request.app.state.proxy.clear_cache(cache_type)
    except ValueError as exc:
        logger.warning("Rejected cache clear for %r", cache_type)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    return {"message": f"{cache_type} cache cleared successfully"}
