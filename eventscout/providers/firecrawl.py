"""Crawl-style provider backed by the Firecrawl search API.

Unlike the search-engine provider, hits come back with scraped page content,
which the prioritizer uses for content-aware scoring.
"""

import re
from typing import Optional
from urllib.parse import urlparse

import httpx
import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from eventscout.providers.base import SearchItem, SearchParams, SearchResponse
from eventscout.providers.cse import is_retryable
from eventscout.utils.dates import to_iso_day

logger = structlog.get_logger(__name__)

FIRECRAWL_URL = "https://api.firecrawl.dev/v1/search"
MAX_CONTENT_CHARS = 8000

SOCIAL_MEDIA_DOMAINS = frozenset({
    "instagram.com", "facebook.com", "twitter.com", "x.com", "linkedin.com",
    "youtube.com", "tiktok.com", "reddit.com",
})

_DATE_SNIPPET = re.compile(
    r"\b\d{4}-\d{2}-\d{2}\b"
    r"|\b\d{1,2}\.?\s*(?:-|–)?\s*(?:\d{1,2}\.?\s+)?"
    r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec|Mai|März|Okt|Dez)[a-zä]*\.?,?\s+\d{4}\b"
    r"|\b(?:January|February|March|April|May|June|July|August|September|October|November|December)"
    r"\s+\d{1,2}(?:\s*(?:-|–)\s*\d{1,2})?,?\s+\d{4}\b",
    re.IGNORECASE,
)


def is_social_media(url: str) -> bool:
    hostname = (urlparse(url).hostname or "").lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname in SOCIAL_MEDIA_DOMAINS


def extract_date_from_content(content: Optional[str]) -> Optional[str]:
    """First date-looking snippet in the scraped markdown, as YYYY-MM-DD."""
    if not content:
        return None
    for match in _DATE_SNIPPET.finditer(content[:MAX_CONTENT_CHARS]):
        iso = to_iso_day(match.group(0))
        if iso:
            return iso
    return None


class FirecrawlProvider:
    """Search the web through Firecrawl and keep the scraped markdown."""

    name = "firecrawl"

    def __init__(
        self,
        api_key: str,
        base_url: str = FIRECRAWL_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self._transport = transport

    def build_payload(self, params: SearchParams) -> dict:
        query = params.query
        if params.country_context:
            query = f"{query} {params.country_context.country_names[0]}"
        payload = {
            "query": query,
            "limit": min(params.limit, 20),
            "scrapeOptions": {"formats": ["markdown", "links"], "onlyMainContent": False},
        }
        if params.country_context:
            payload["location"] = params.country_context.country_names[0]
            payload["country"] = params.country_context.iso2
        return payload

    @retry(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _post(self, payload: dict) -> dict:
        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            response = await client.post(
                self.base_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=payload,
            )
            response.raise_for_status()
            return response.json()

    async def search(self, params: SearchParams) -> SearchResponse:
        data = await self._post(self.build_payload(params))
        results = data.get("data") or []
        if isinstance(results, dict):
            results = results.get("web") or []

        items: list[SearchItem] = []
        for result in results:
            url = result.get("url")
            if url and is_social_media(url):
                continue
            content = (result.get("markdown") or "")[:MAX_CONTENT_CHARS] or None
            metadata = result.get("metadata") or {}
            items.append(
                SearchItem(
                    url=url,
                    title=result.get("title") or metadata.get("title"),
                    description=result.get("description") or metadata.get("description"),
                    content=content,
                    links=[link for link in result.get("links") or [] if isinstance(link, str)],
                    extracted_date=extract_date_from_content(content),
                )
            )

        logger.debug("firecrawl_search_complete", query=params.query, items=len(items))
        return SearchResponse(items=items[: params.limit])
