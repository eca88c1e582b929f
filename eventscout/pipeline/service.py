"""Caller-facing search service.

Wraps ``EventPipeline`` so callers always get a ``PipelineResult``: an
orchestration failure becomes an empty result with an error entry, and the
published events are narrowed to the requested country and date window.
"""

import time
from datetime import date
from typing import Optional

import structlog

from eventscout.config.settings import PipelineConfig, load_pipeline_config
from eventscout.errors import PipelineError
from eventscout.models.events import PublishedEvent
from eventscout.models.pipeline import PipelineContext, PipelineMetrics, PipelineResult
from eventscout.pipeline.orchestrator import EventPipeline
from eventscout.pipeline.telemetry import elapsed_ms
from eventscout.utils.country import EUROPEAN_COUNTRIES, to_iso2
from eventscout.utils.dates import to_iso_day

logger = structlog.get_logger(__name__)


def matches_country(event: PublishedEvent, country: Optional[str]) -> bool:
    """True if ``event`` belongs to ``country``. ``EU`` accepts any European country."""
    target = to_iso2(country)
    if not target:
        return True
    if target == "EU":
        return event.country in EUROPEAN_COUNTRIES
    return event.country == target


def within_window(event: PublishedEvent, date_from: Optional[date], date_to: Optional[date]) -> bool:
    """True if ``event`` starts inside the window. Undated events are kept."""
    day = to_iso_day(event.starts_at)
    if day is None:
        return True
    if date_from and day < date_from.isoformat():
        return False
    if date_to and day > date_to.isoformat():
        return False
    return True


def failed_result(error: Exception, duration_ms: float) -> PipelineResult:
    return PipelineResult(
        metrics=PipelineMetrics.empty(total_duration_ms=duration_ms),
        errors=[{"stage": "error", "error": str(error)}],
    )


class EventSearchService:
    """Run searches through the pipeline with graceful degradation."""

    def __init__(self, pipeline: EventPipeline, config: Optional[PipelineConfig] = None):
        self.pipeline = pipeline
        self.config = config

    async def search(
        self,
        query: str,
        country: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        locale: str = "en",
    ) -> PipelineResult:
        start = time.perf_counter()
        context = PipelineContext(
            query=query,
            country=country,
            date_from=date_from,
            date_to=date_to,
            locale=locale,
            config=self.config or load_pipeline_config(),
        )

        try:
            result = await self.pipeline.process(context)
        except PipelineError as e:
            logger.error("search_failed", query=query, country=context.country, stage=e.stage, error=str(e))
            return failed_result(e, elapsed_ms(start))

        kept = [
            event for event in result.published_events
            if matches_country(event, context.country) and within_window(event, date_from, date_to)
        ]
        dropped = len(result.published_events) - len(kept)
        if dropped:
            logger.info("published_events_filtered", dropped=dropped, kept=len(kept))
        result.published_events = kept
        return result
