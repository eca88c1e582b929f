"""Stage 1: Multi-provider URL discovery.

Every enabled provider is queried in parallel under its own timeout. Provider
failures degrade to an empty contribution. Hits are merged in provider
completion order, deduplicated by URL (first seen wins) and truncated to
``limits.max_candidates``.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from urllib.parse import urlparse

import structlog

from eventscout.config.settings import PipelineConfig
from eventscout.errors import DiscoveryError
from eventscout.models.candidate import Candidate, CandidateMetadata
from eventscout.models.enums import DiscoverySource
from eventscout.models.pipeline import DiscoveryTelemetry, PipelineContext
from eventscout.pipeline.telemetry import elapsed_ms
from eventscout.providers.base import DiscoveryProvider, SearchItem, SearchParams
from eventscout.utils.country import get_country_context, hostname_tld, tld_matches_country, to_iso2
from eventscout.utils.dates import to_iso_day

logger = structlog.get_logger(__name__)

CRAWL_PROVIDERS = frozenset({DiscoverySource.FIRECRAWL.value})


@dataclass
class DiscoveryResult:
    candidates: list[Candidate] = field(default_factory=list)
    providers_used: list[str] = field(default_factory=list)


def dedupe_key(url: str) -> str:
    return url.strip().rstrip("/")


def date_in_window(iso_day: str, date_from: Optional[date], date_to: Optional[date]) -> bool:
    day = date.fromisoformat(iso_day)
    if date_from and day < date_from:
        return False
    if date_to and day > date_to:
        return False
    return True


class EventDiscoverer:
    """Query the enabled discovery providers and merge their hits."""

    def __init__(self, config: PipelineConfig, providers: list[DiscoveryProvider]):
        self.config = config
        enabled = set(config.sources.enabled())
        self.providers = [p for p in providers if p.name in enabled]

    def provider_limit(self, name: str) -> int:
        max_candidates = self.config.limits.max_candidates
        if name == DiscoverySource.CSE.value:
            return min(20, max_candidates)
        if name == DiscoverySource.FIRECRAWL.value:
            return 15
        return min(10, max_candidates)

    async def _run_provider(
        self, provider: DiscoveryProvider, context: PipelineContext
    ) -> tuple[DiscoveryProvider, list[SearchItem]]:
        params = SearchParams(
            query=context.query,
            country=context.country,
            limit=self.provider_limit(provider.name),
            country_context=context.country_context,
            date_from=context.date_from,
            date_to=context.date_to,
        )
        start = time.perf_counter()
        entry = DiscoveryTelemetry(provider=provider.name)
        items: list[SearchItem] = []
        try:
            response = await asyncio.wait_for(
                provider.search(params),
                timeout=self.config.timeouts.discovery / 1000,
            )
            items = response.items
        except asyncio.TimeoutError:
            entry.timeout = True
            entry.error = f"timeout after {self.config.timeouts.discovery}ms"
            logger.warning("provider_timeout", provider=provider.name, timeout_ms=self.config.timeouts.discovery)
        except Exception as e:
            entry.error = str(e)
            logger.error("provider_failed", provider=provider.name, error=str(e))

        entry.count = len(items)
        entry.duration_ms = elapsed_ms(start)
        context.telemetry.record_discovery(entry)
        logger.info("provider_complete", provider=provider.name, count=entry.count, duration_ms=entry.duration_ms)
        return provider, items

    def _to_candidates(
        self, provider: DiscoveryProvider, items: list[SearchItem], context: PipelineContext
    ) -> list[Candidate]:
        source = DiscoverySource(provider.name)
        is_crawl = provider.name in CRAWL_PROVIDERS
        candidates = []

        for item in items:
            if not item.url or not item.url.strip():
                logger.warning("provider_item_missing_url", provider=provider.name, title=item.title)
                continue

            metadata = CandidateMetadata(
                original_query=context.query,
                country=context.country,
                title=item.title,
                description=item.description,
                scraped_content=item.content,
                scraped_links=item.links,
                extracted_date=item.extracted_date,
            )
            if item.confidence is not None:
                metadata.extra["provider_confidence"] = item.confidence

            if is_crawl:
                hostname = urlparse(item.url).hostname or ""
                if context.country and not tld_matches_country(hostname, context.country):
                    metadata.geo_reason = (
                        f"tld {hostname_tld(hostname) or '(none)'} does not match {context.country}"
                    )
                iso_day = to_iso_day(item.extracted_date)
                if iso_day and not date_in_window(iso_day, context.date_from, context.date_to):
                    logger.info(
                        "candidate_dropped",
                        url=item.url,
                        date_reason=f"extracted date {iso_day} outside requested window",
                    )
                    continue

            candidates.append(
                Candidate(
                    id=f"{source.value}_{uuid.uuid4().hex[:12]}",
                    url=item.url.strip(),
                    source=source,
                    related_urls=[u for u in item.related_urls if u and u.strip()],
                    metadata=metadata,
                )
            )
        return candidates

    async def discover(
        self, query: str, country: Optional[str], context: PipelineContext
    ) -> DiscoveryResult:
        """Discover candidate URLs for ``query``.

        ``query`` and ``country`` override the ones on ``context`` when given.

        Raises:
            DiscoveryError: If none of the injected providers is enabled.
        """
        iso2 = to_iso2(country) or context.country
        if query != context.query or iso2 != context.country:
            context = context.model_copy(update={
                "query": query or context.query,
                "country": iso2,
                "country_context": get_country_context(iso2),
            })
        if not self.providers:
            raise DiscoveryError(
                f"No provider available for enabled sources: {', '.join(self.config.sources.enabled())}"
            )

        start = time.perf_counter()
        logger.info("discovery_start", query=context.query, country=context.country, locale=context.locale)

        result = DiscoveryResult(providers_used=[p.name for p in self.providers])
        merged: list[Candidate] = []
        tasks = [asyncio.create_task(self._run_provider(p, context)) for p in self.providers]
        for finished in asyncio.as_completed(tasks):
            provider, items = await finished
            found = self._to_candidates(provider, items, context)
            for candidate in found:
                candidate.metadata.stage_timings["discovery"] = elapsed_ms(start)
            merged.extend(found)

        seen: set[str] = set()
        for candidate in merged:
            key = dedupe_key(candidate.url)
            if key in seen:
                continue
            seen.add(key)
            result.candidates.append(candidate)
        result.candidates = result.candidates[: self.config.limits.max_candidates]

        logger.info(
            "discovery_complete",
            total_hits=len(merged),
            candidates=len(result.candidates),
            providers=result.providers_used,
            duration_ms=elapsed_ms(start),
        )
        return result
