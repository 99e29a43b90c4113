"""
Error taxonomy for calls to the Quran Foundation API.

Every failure that reaches an HTTP caller is a ``QuranApiError`` and is
rendered as ``500 {"error": message}`` by :func:`register_error_handlers`.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class QuranApiError(Exception):
    """Base class for upstream failures surfaced to clients."""


class UpstreamAuthError(QuranApiError):
    """The client-credentials exchange failed."""

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__("Failed to authenticate with Quran API")


class UpstreamApiError(QuranApiError):
    """A content API call returned non-2xx or never completed.

    ``status`` is ``None`` for transport failures (timeouts, DNS, resets).
    """

    def __init__(self, path: str, status: Optional[int], body: str = "") -> None:
        self.path = path
        self.status = status
        self.body = body
        if status is None:
            reason = body or "network error"
        else:
            reason = f"HTTP {status}"
            if body:
                reason = f"{reason}: {body}"
        super().__init__(f"Failed to fetch data from Quran API: {reason}")


async def _quran_api_error_handler(request: Request, exc: QuranApiError) -> JSONResponse:
    logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """Attach the upstream-error handler to *app*."""
    app.add_exception_handler(QuranApiError, _quran_api_error_handler)
