"""
OAuth2 client-credentials token manager for the Quran Foundation API.

Holds a single bearer token per instance and refreshes it before it expires.
Only :class:`~quran_proxy.quran_client.QuranClient` should call
:meth:`TokenManager.get_token`.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from quran_proxy.config import Settings
from quran_proxy.errors import UpstreamAuthError

logger = logging.getLogger(__name__)

_SCOPE: str = "content"


@dataclass(frozen=True)
class AccessToken:
    """A bearer token and the wall-clock time at which the provider expires it."""

    value: str
    expires_at: float

    def is_usable(self, now: float, margin: float) -> bool:
        return now < self.expires_at - margin


class TokenManager:
    """
    Obtains and caches the bearer token used for every content API call.

    The token is reused until it comes within ``token_safety_margin`` seconds
    of expiry.  Refreshes are serialised behind an ``asyncio.Lock`` so that a
    burst of requests arriving with a stale token triggers one exchange.

    Usage::

        tokens = TokenManager(settings)
        value = await tokens.get_token()
        await tokens.close()
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._auth_url: str = settings.auth_url
        self._credentials: tuple[str, str] = (
            settings.quran_client_id,
            settings.quran_client_secret,
        )
        self._margin: float = float(settings.token_safety_margin)
        self._clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()
        self._client: httpx.AsyncClient = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout),
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    @property
    def token(self) -> Optional[AccessToken]:
        return self._token

    def invalidate(self) -> None:
        """Forget the cached token so the next call performs a fresh exchange."""
        self._token = None

    async def get_token(self) -> str:
        """
        Return a usable bearer token, exchanging credentials if necessary.

        Raises:
            UpstreamAuthError: If the token endpoint fails or returns a
                malformed body.
        """
        token = self._token
        if token is not None and token.is_usable(self._clock(), self._margin):
            return token.value

        async with self._lock:
            # Another task may have refreshed while we waited for the lock.
            token = self._token
            if token is not None and token.is_usable(self._clock(), self._margin):
                return token.value

            self._token = await self._exchange()
            return self._token.value

    async def _exchange(self) -> AccessToken:
        logger.debug("Requesting new access token from %s", self._auth_url)
        try:
            response = await self._client.post(
                self._auth_url,
                auth=self._credentials,
                data={"grant_type": "client_credentials", "scope": _SCOPE},
            )
        except httpx.RequestError as exc:
            logger.error("Token request to %s failed — %s", self._auth_url, exc)
            raise UpstreamAuthError(str(exc)) from exc

        if response.is_error:
            body_snippet = response.text[:500] if response.text else "<empty body>"
            logger.error(
                "Token endpoint returned HTTP %d — body: %s",
                response.status_code,
                body_snippet,
            )
            raise UpstreamAuthError(f"HTTP {response.status_code}")

        try:
            payload = response.json()
            value = str(payload["access_token"])
            expires_in = float(payload["expires_in"])
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Token endpoint returned a malformed body — %s", exc)
            raise UpstreamAuthError("malformed token response") from exc

        token = AccessToken(value=value, expires_at=self._clock() + expires_in)
        logger.info("Obtained access token valid for %ds", int(expires_in))
        return token
