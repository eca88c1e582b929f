"""Cache port and the discovery-provider wrapper that uses it."""

import time
from typing import Any, Optional, Protocol, runtime_checkable

import structlog

from eventscout.providers.base import DiscoveryProvider, SearchParams, SearchResponse

logger = structlog.get_logger(__name__)


@runtime_checkable
class CachePort(Protocol):
    """Key/value store with per-entry expiry."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop ``key``, or everything when ``key`` is None."""
        ...


class InMemoryCache:
    """Process-local ``CachePort`` backing, mainly for tests and the CLI."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (self._clock() + ttl_seconds, value)

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


def discovery_cache_key(provider: str, params: SearchParams) -> str:
    return ":".join([
        provider,
        params.query.strip().lower(),
        params.country or "",
        params.date_from.isoformat() if params.date_from else "",
        params.date_to.isoformat() if params.date_to else "",
        str(params.limit),
    ])


class CachedDiscoveryProvider:
    """Wrap a provider so repeated identical searches hit the cache."""

    def __init__(self, provider: DiscoveryProvider, cache: CachePort, ttl_seconds: int = 900):
        self.provider = provider
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.name = provider.name

    async def search(self, params: SearchParams) -> SearchResponse:
        key = discovery_cache_key(self.name, params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("discovery_cache_hit", provider=self.name, key=key)
            return cached

        response = await self.provider.search(params)
        self.cache.set(key, response, self.ttl_seconds)
        return response
