"""Provider ports: discovery search and page fetching."""

from datetime import date
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from eventscout.utils.country import CountryContext


class FetchError(Exception):
    """A page could not be fetched (transport error or non-2xx response)."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    """A page fetch exceeded its deadline."""

    pass


class SearchParams(BaseModel):
    """Arguments for one provider search call."""

    query: str
    country: Optional[str] = None
    limit: int = Field(10, gt=0)
    country_context: Optional[CountryContext] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None


class SearchItem(BaseModel):
    """One raw provider hit. Everything except ``url`` is optional."""

    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    links: list[str] = Field(default_factory=list)
    related_urls: list[str] = Field(default_factory=list)
    extracted_date: Optional[str] = None
    confidence: Optional[float] = None


class SearchResponse(BaseModel):
    items: list[SearchItem] = Field(default_factory=list)


@runtime_checkable
class DiscoveryProvider(Protocol):
    """A source of candidate event URLs."""

    name: str

    async def search(self, params: SearchParams) -> SearchResponse:
        ...


@runtime_checkable
class PageFetcher(Protocol):
    """Plain HTTP GET returning page markup."""

    async def fetch(self, url: str, timeout_ms: int) -> str:
        ...
