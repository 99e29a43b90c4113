"""
Quran Foundation content API client.

All HTTP calls to the content API route through this module.
No other module in the project should call the content API directly.

Every request carries the bearer token from :class:`TokenManager` in the
``x-auth-token`` header together with the ``x-client-id`` header.  Failures
are raised as :class:`UpstreamApiError`; nothing is retried here.  Callers
that need fallback behaviour (translation probing, juz scanning) implement
it themselves.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from quran_proxy.config import Settings
from quran_proxy.errors import UpstreamApiError
from quran_proxy.token_manager import TokenManager

logger = logging.getLogger(__name__)


class QuranClient:
    """
    Async HTTP client for the Quran Foundation content API (v4).

    Public methods map 1-to-1 to an upstream endpoint and return the parsed
    JSON payload unchanged.

    Usage::

        client = QuranClient(settings, TokenManager(settings))
        chapters = await client.get_chapters()
        await client.close()
    """

    def __init__(
        self,
        settings: Settings,
        token_manager: TokenManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url: str = settings.base_url.rstrip("/")
        self._client_id: str = settings.quran_client_id
        self._tokens = token_manager
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout),
            transport=transport,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client and release any held connections."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Core request
    # ------------------------------------------------------------------

    async def call(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Issue an authenticated GET against the content API.

        Args:
            path: Endpoint path starting with ``/``, e.g. ``"/chapters/1"``.
            params: Optional query parameters.

        Returns:
            Parsed JSON response body.

        Raises:
            UpstreamAuthError: If no token could be obtained.
            UpstreamApiError: On any non-2xx status, transport failure,
                undecodable body, or a body that is not a JSON object.
        """
        token = await self._tokens.get_token()
        url = f"{self._base_url}{path}"
        headers = {"x-auth-token": token, "x-client-id": self._client_id}
        log_url = str(httpx.URL(url, params=params))

        logger.debug("Quran API request: GET %s", log_url)
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            logger.error("Quran API request timed out: GET %s — %s", log_url, exc)
            raise UpstreamApiError(path, None, f"timeout: {exc}") from exc
        except httpx.RequestError as exc:
            logger.error("Quran API network error: GET %s — %s", log_url, exc)
            raise UpstreamApiError(path, None, str(exc) or type(exc).__name__) from exc

        if response.is_error:
            body_snippet = response.text[:500] if response.text else ""
            logger.error(
                "Quran API HTTP error %d on GET %s — body: %s",
                response.status_code,
                log_url,
                body_snippet or "<empty body>",
            )
            if response.status_code == 401:
                # Rejected token; force a fresh exchange on the next call.
                self._tokens.invalidate()
            raise UpstreamApiError(path, response.status_code, body_snippet)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Quran API JSON decode error on GET %s — %s", log_url, exc)
            raise UpstreamApiError(path, response.status_code, "invalid JSON body") from exc

        # Every content endpoint answers with a JSON object.
        if not isinstance(data, dict):
            logger.error(
                "Quran API returned %s instead of an object on GET %s",
                type(data).__name__,
                log_url,
            )
            raise UpstreamApiError(path, response.status_code, "unexpected response shape")

        logger.debug("Quran API call successful: GET %s (%d)", log_url, response.status_code)
        return data

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_chapters(self) -> Dict[str, Any]:
        """``GET /chapters`` — metadata for all 114 chapters."""
        return await self.call("/chapters")

    async def get_chapter(self, chapter_id: int) -> Dict[str, Any]:
        """``GET /chapters/{id}`` — ``{"chapter": {...}}``."""
        return await self.call(f"/chapters/{chapter_id}")

    async def get_juzs(self) -> Dict[str, Any]:
        """``GET /juzs`` — each juz with its ``verse_mapping`` of chapter → verse range."""
        return await self.call("/juzs")

    async def get_verses_by_juz(
        self, juz_number: int, page: int, per_page: int
    ) -> Dict[str, Any]:
        """
        Fetch one page of verses belonging to a juz.

        Endpoint: ``GET /verses/by_juz/{juz}?page=&per_page=``

        Returns:
            Dict with ``"verses"`` (each carrying ``verse_key``) and
            ``"pagination"`` (``next_page`` is ``None`` on the last page).
        """
        return await self.call(
            f"/verses/by_juz/{juz_number}",
            params={"page": page, "per_page": per_page},
        )

    async def get_verses_by_script(self, script: str, chapter_id: int) -> Dict[str, Any]:
        """``GET /quran/verses/{script}?chapter_number={id}`` — e.g. uthmani, indopak."""
        return await self.call(
            f"/quran/verses/{script}",
            params={"chapter_number": chapter_id},
        )

    async def get_translation_by_chapter(
        self, resource_id: int, chapter_id: int
    ) -> Dict[str, Any]:
        """``GET /translations/{resource}/by_chapter/{id}``."""
        return await self.call(f"/translations/{resource_id}/by_chapter/{chapter_id}")

    async def get_quran_translation(
        self, resource_id: int, chapter_id: int
    ) -> Dict[str, Any]:
        """``GET /quran/translations/{resource}?chapter_number={id}``."""
        return await self.call(
            f"/quran/translations/{resource_id}",
            params={"chapter_number": chapter_id},
        )

    async def get_random_verse(self, translations: str) -> Dict[str, Any]:
        """``GET /verses/random?translations=...&words=true``."""
        return await self.call(
            "/verses/random",
            params={"translations": translations, "words": "true"},
        )
