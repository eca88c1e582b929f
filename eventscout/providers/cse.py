"""Search-engine provider backed by the Google Custom Search JSON API."""

from typing import Optional

import httpx
import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from eventscout.providers.base import SearchItem, SearchParams, SearchResponse

logger = structlog.get_logger(__name__)

CSE_URL = "https://www.googleapis.com/customsearch/v1"
PAGE_SIZE = 10


def is_retryable(exc: BaseException) -> bool:
    """Transport errors, 429 and 5xx are worth another attempt."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


class CSEProvider:
    """Query a programmable search engine and return ranked links."""

    name = "cse"

    def __init__(
        self,
        api_key: str,
        engine_id: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.engine_id = engine_id
        self._transport = transport

    def build_query(self, params: SearchParams) -> str:
        parts = [params.query]
        if params.country_context:
            parts.append(params.country_context.country_names[0])
        return " ".join(parts)

    @retry(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    async def _fetch_page(self, client: httpx.AsyncClient, request_params: dict) -> dict:
        response = await client.get(CSE_URL, params=request_params)
        response.raise_for_status()
        return response.json()

    async def search(self, params: SearchParams) -> SearchResponse:
        items: list[SearchItem] = []
        request_params = {
            "key": self.api_key,
            "cx": self.engine_id,
            "q": self.build_query(params),
        }
        if params.country:
            request_params["gl"] = params.country.lower()
        if params.country_context:
            request_params["lr"] = f"lang_{params.country_context.locale}"

        async with httpx.AsyncClient(timeout=30.0, transport=self._transport) as client:
            start = 1
            while len(items) < params.limit:
                page = await self._fetch_page(
                    client,
                    {**request_params, "start": start, "num": min(PAGE_SIZE, params.limit - len(items))},
                )
                results = page.get("items") or []
                for result in results:
                    items.append(
                        SearchItem(
                            url=result.get("link"),
                            title=result.get("title"),
                            description=result.get("snippet"),
                        )
                    )
                if len(results) < PAGE_SIZE:
                    break
                start += PAGE_SIZE

        logger.debug("cse_search_complete", query=request_params["q"], items=len(items))
        return SearchResponse(items=items[: params.limit])
