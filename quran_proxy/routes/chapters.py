"""
Chapter routes for the Quran proxy.

Endpoints:
  GET /api/surahs                          — All chapters (cached 24h)
  GET /api/juzs                            — Juz listing (pass-through)
  GET /api/surahs/by-juz/{juz_number}      — Chapters within a juz (cached 6h)
  GET /api/surah/{id}                      — Chapter with merged verses (cached 12h)
  GET /api/surah/{id}/verses/{font}        — Verses in one script
  GET /api/surah/{id}/translation          — Default-resource translation

Upstream failures surface as ``500 {"error": message}`` through the handler
registered in :mod:`quran_proxy.errors`.
"""

import logging

from fastapi import APIRouter, Path, Query, Request

from quran_proxy.proxy import PRIMARY_SCRIPT, TOTAL_CHAPTERS

logger = logging.getLogger(__name__)

router = APIRouter()

_TOTAL_JUZ: int = 30


@router.get("/surahs", summary="All chapters")
async def get_surahs(request: Request) -> dict:
    """Return the upstream chapter list, served from cache when fresh."""
    return await request.app.state.proxy.list_chapters()


@router.get("/juzs", summary="Juz listing")
async def get_juzs(request: Request) -> dict:
    """Return the raw juz listing with per-chapter verse mappings."""
    return await request.app.state.proxy.list_juzs()


@router.get("/surahs/by-juz/{juz_number}", summary="Chapters within a juz")
async def get_surahs_by_juz(
    request: Request,
    juz_number: int = Path(..., ge=1, le=_TOTAL_JUZ),
) -> dict:
    """
    Return ``{"surahs": [...]}`` for every chapter with verses in the juz.

    The list is discovered by scanning paginated verse listings and may be
    incomplete if the scan hits its page or time bound.
    """
    return await request.app.state.proxy.chapters_by_juz(juz_number)


@router.get("/surah/{chapter_id}", summary="Chapter with verses and translation")
async def get_surah(
    request: Request,
    chapter_id: int = Path(..., ge=1, le=TOTAL_CHAPTERS),
    font: str = Query(PRIMARY_SCRIPT),
    clear_cache: bool = Query(False, alias="clearCache"),
    force_refresh: bool = Query(False, alias="forceRefresh"),
) -> dict:
    """
    Return chapter metadata with uthmani/indopak verses, translation,
    transliteration and the containing juz.

    Either ``clearCache`` or ``forceRefresh`` evicts the cached record first.
    """
    return await request.app.state.proxy.chapter_detail(
        chapter_id,
        font=font,
        force_refresh=clear_cache or force_refresh,
    )


@router.get("/surah/{chapter_id}/verses/{font}", summary="Verses in one script")
async def get_surah_verses(
    request: Request,
    font: str,
    chapter_id: int = Path(..., ge=1, le=TOTAL_CHAPTERS),
) -> dict:
    return await request.app.state.proxy.verses_by_script(chapter_id, font)


@router.get("/surah/{chapter_id}/translation", summary="Chapter translation")
async def get_surah_translation(
    request: Request,
    chapter_id: int = Path(..., ge=1, le=TOTAL_CHAPTERS),
) -> dict:
    return await request.app.state.proxy.chapter_translation(chapter_id)
