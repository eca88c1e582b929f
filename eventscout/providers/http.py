"""httpx-backed page fetcher."""

from typing import Optional

import httpx
import structlog

from eventscout.config.settings import Settings, get_settings
from eventscout.providers.base import FetchError, FetchTimeoutError

logger = structlog.get_logger(__name__)


class HttpPageFetcher:
    """Fetch page markup with browser-like headers and a hard deadline."""

    def __init__(self, settings: Optional[Settings] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = settings or get_settings()
        self.headers = {
            "User-Agent": settings.http_user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": settings.http_accept_language,
        }
        self._transport = transport

    async def fetch(self, url: str, timeout_ms: int) -> str:
        """GET ``url`` and return the body.

        Raises:
            FetchTimeoutError: If the deadline passes.
            FetchError: On transport errors or non-2xx responses.
        """
        try:
            async with httpx.AsyncClient(
                headers=self.headers,
                timeout=timeout_ms / 1000,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            logger.warning("fetch_timeout", url=url, timeout_ms=timeout_ms)
            raise FetchTimeoutError(f"Request timeout after {timeout_ms}ms", url=url) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request failed: {e}", url=url) from e

        if not response.is_success:
            raise FetchError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
            )
        return response.text
