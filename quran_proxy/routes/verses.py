"""
Verse routes for the Quran proxy.

Endpoints:
  GET /api/verses/random  — Random verse with the requested translations

Never cached: a new verse on every call is the point of the endpoint.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/verses/random", summary="Random verse")
async def get_random_verse(
    request: Request,
    translations: Optional[str] = Query(
        None,
        description="Comma-separated translation resource ids, e.g. 85,131",
    ),
) -> dict:
    return await request.app.state.proxy.random_verse(translations)
