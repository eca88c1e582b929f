"""Discovery providers, page fetching and caching."""

from .base import (
    DiscoveryProvider,
    FetchError,
    FetchTimeoutError,
    PageFetcher,
    SearchItem,
    SearchParams,
    SearchResponse,
)
from .cache import CachedDiscoveryProvider, CachePort, InMemoryCache
from .cse import CSEProvider
from .curated import CuratedEntry, CuratedListProvider
from .firecrawl import FirecrawlProvider
from .http import HttpPageFetcher

__all__ = [
    "DiscoveryProvider",
    "FetchError",
    "FetchTimeoutError",
    "PageFetcher",
    "SearchItem",
    "SearchParams",
    "SearchResponse",
    "CachePort",
    "CachedDiscoveryProvider",
    "InMemoryCache",
    "CSEProvider",
    "CuratedEntry",
    "CuratedListProvider",
    "FirecrawlProvider",
    "HttpPageFetcher",
]
