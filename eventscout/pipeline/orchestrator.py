"""Event Pipeline Orchestrator - Coordinates all pipeline stages.

Stages run strictly in order for one PipelineContext:

    discover → prioritize → parse → extract → publish

Within parse/extract/publish, candidates run in adaptively sized batches.
Per-candidate failures become ``failed`` and never abort the run; only
orchestration-level failures leave ``process()``, wrapped in PipelineError.
"""

import time
from typing import Optional

import structlog

from eventscout.errors import PipelineError
from eventscout.llm.client import LanguageModel
from eventscout.models.candidate import Candidate
from eventscout.models.enums import CandidateStatus
from eventscout.models.events import PublishedEvent
from eventscout.models.pipeline import PipelineContext, PipelineMetrics, PipelineResult
from eventscout.pipeline.batching import TaskOutcome, concurrency_for_stage, run_in_batches
from eventscout.pipeline.stages import (
    EventDiscoverer,
    EventExtractor,
    EventParser,
    EventPrioritizer,
    EventPublisher,
)
from eventscout.pipeline.telemetry import elapsed_ms, log_stage
from eventscout.providers.base import DiscoveryProvider, PageFetcher

logger = structlog.get_logger(__name__)


def _mark_failed(candidates: list[Candidate], outcomes: list[TaskOutcome], stage: str) -> None:
    """Candidates whose worker raised become ``failed``."""
    by_id = {c.id: c for c in candidates}
    for outcome in outcomes:
        if outcome.ok:
            continue
        candidate = by_id[outcome.candidate_id]
        logger.error(f"{stage}_failed_for_candidate", url=candidate.url, error=str(outcome.error))
        if not candidate.status.is_terminal:
            candidate.advance(CandidateStatus.FAILED)


def build_metrics(
    discovered: list[Candidate],
    prioritized: list[Candidate],
    parsed: list[Candidate],
    extracted: list[Candidate],
    published: list[PublishedEvent],
    total_duration_ms: float,
) -> PipelineMetrics:
    breakdown: dict[str, int] = {}
    for candidate in discovered:
        breakdown[candidate.source.value] = breakdown.get(candidate.source.value, 0) + 1

    average = sum(e.confidence for e in published) / len(published) if published else 0.0
    return PipelineMetrics(
        total_candidates=len(discovered),
        prioritized_candidates=len(prioritized),
        parsed_candidates=len(parsed),
        extracted_candidates=len(extracted),
        published_candidates=len(published),
        rejected_candidates=sum(1 for c in discovered if c.status == CandidateStatus.REJECTED),
        failed_candidates=sum(1 for c in discovered if c.status == CandidateStatus.FAILED),
        total_duration_ms=total_duration_ms,
        average_confidence=round(average, 2),
        source_breakdown=breakdown,
    )


class EventPipeline:
    """Drive one search request through all five stages."""

    def __init__(
        self,
        providers: list[DiscoveryProvider],
        llm: Optional[LanguageModel],
        fetcher: PageFetcher,
    ):
        self.providers = providers
        self.llm = llm
        self.fetcher = fetcher

    async def process(self, context: PipelineContext) -> PipelineResult:
        """Run the pipeline for ``context``.

        Returns:
            PipelineResult with every discovered candidate (in its final
            status), the published events, metrics and stage logs.

        Raises:
            PipelineError: If orchestration itself fails (stage="orchestrator").
        """
        start = time.perf_counter()
        config = context.config
        result = PipelineResult()

        logger.info(
            "pipeline_start",
            query=context.query,
            country=context.country,
            max_candidates=config.limits.max_candidates,
            max_extractions=config.limits.max_extractions,
            prioritization_threshold=config.thresholds.prioritization,
            early_termination=config.early_termination.count,
        )

        try:
            discovered: list[Candidate] = []
            prioritized: list[Candidate] = []
            parsed: list[Candidate] = []
            extracted: list[Candidate] = []
            published: list[PublishedEvent] = []

            # Stage 1: Discovery
            discovered, result.providers_tried = await self._run_discovery(context)
            result.candidates = discovered

            # Stage 2: Prioritization
            if discovered:
                prioritized = await self._run_prioritization(context, discovered)

            # Stage 3: Parsing
            if prioritized:
                parsed = await self._run_parsing(context, prioritized)

            # Stage 4: Extraction
            if parsed:
                extracted = await self._run_extraction(context, parsed)

            # Stage 5: Publishing
            if extracted:
                published = await self._run_publishing(context, extracted)

            if not published:
                logger.warning("pipeline_short_circuit", reached=self._last_stage(discovered, prioritized, parsed, extracted))

            result.published_events = published
            result.logs = list(context.telemetry.stages)
            result.metrics = build_metrics(discovered, prioritized, parsed, extracted, published, elapsed_ms(start))

            logger.info(
                "pipeline_complete",
                duration_ms=result.metrics.total_duration_ms,
                published=len(published),
                average_confidence=result.metrics.average_confidence,
                source_breakdown=result.metrics.source_breakdown,
            )
            return result

        except Exception as e:
            logger.error("pipeline_failed", error=str(e), duration_ms=elapsed_ms(start))
            raise PipelineError(f"Pipeline failed: {e}", stage="orchestrator", original_error=e) from e

    @staticmethod
    def _last_stage(*stage_outputs: list) -> str:
        names = ["discovery", "prioritization", "parsing", "extraction"]
        for name, output in zip(names, stage_outputs):
            if not output:
                return name
        return "publishing"

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def _run_discovery(self, context: PipelineContext) -> tuple[list[Candidate], list[str]]:
        start = time.perf_counter()
        discoverer = EventDiscoverer(context.config, self.providers)
        discovery = await discoverer.discover(context.query, context.country, context)
        log_stage(
            context.telemetry,
            "discovery",
            start,
            input_count=len(discoverer.providers),
            output_count=len(discovery.candidates),
            providers=discovery.providers_used,
        )
        return discovery.candidates, discovery.providers_used

    async def _run_prioritization(self, context: PipelineContext, candidates: list[Candidate]) -> list[Candidate]:
        start = time.perf_counter()
        prioritizer = EventPrioritizer(context.config, self.llm)
        prioritized = await prioritizer.prioritize(
            candidates, context.country, date_from=context.date_from, date_to=context.date_to
        )
        log_stage(
            context.telemetry,
            "prioritization",
            start,
            input_count=len(candidates),
            output_count=len(prioritized),
            threshold=prioritizer.effective_threshold(len(candidates)),
        )
        return prioritized

    async def _run_parsing(self, context: PipelineContext, candidates: list[Candidate]) -> list[Candidate]:
        start = time.perf_counter()
        parser = EventParser(context.config, self.fetcher)
        run = await run_in_batches(
            candidates,
            parser.parse,
            concurrency=concurrency_for_stage("parsing", len(candidates)),
            delay_ms=context.config.batch_delays.parsing,
            stage="parsing",
        )
        _mark_failed(candidates, run.outcomes, "parse")
        parsed = [c for c in candidates if c.status == CandidateStatus.PARSED]
        log_stage(context.telemetry, "parsing", start, input_count=len(candidates), output_count=len(parsed))
        return parsed

    async def _run_extraction(self, context: PipelineContext, candidates: list[Candidate]) -> list[Candidate]:
        start = time.perf_counter()
        config = context.config
        extractor = EventExtractor(config, self.llm, self.fetcher)

        queue = sorted(candidates, key=lambda c: c.priority_score or 0.0, reverse=True)
        queue = queue[: config.limits.max_extractions]
        by_id = {c.id: c for c in queue}
        target = config.early_termination

        def enough_high_confidence(outcomes: list[TaskOutcome]) -> bool:
            high = [
                o for o in outcomes
                if o.ok and by_id[o.candidate_id].status == CandidateStatus.EXTRACTED
                and o.value.confidence >= target.min_confidence
            ]
            return len(high) >= target.count

        run = await run_in_batches(
            queue,
            extractor.extract,
            concurrency=concurrency_for_stage("extraction", len(queue)),
            delay_ms=config.batch_delays.extraction,
            should_stop=enough_high_confidence,
            stage="extraction",
        )
        _mark_failed(queue, run.outcomes, "extract")
        extracted = [c for c in queue if c.status == CandidateStatus.EXTRACTED]
        log_stage(
            context.telemetry,
            "extraction",
            start,
            input_count=len(queue),
            output_count=len(extracted),
            early_terminated=run.stopped_early,
            batches_run=run.batches_run,
            batches_total=run.batches_total,
        )
        return extracted

    async def _run_publishing(self, context: PipelineContext, candidates: list[Candidate]) -> list[PublishedEvent]:
        start = time.perf_counter()
        publisher = EventPublisher(context.config, context.country)
        run = await run_in_batches(
            candidates,
            publisher.publish,
            concurrency=concurrency_for_stage("publishing", len(candidates)),
            delay_ms=context.config.batch_delays.publishing,
            stage="publishing",
        )
        _mark_failed(candidates, run.outcomes, "publish")
        outcomes = run.by_candidate()
        published = [
            outcomes[c.id].value for c in candidates
            if c.id in outcomes and outcomes[c.id].ok and outcomes[c.id].value is not None
        ]
        log_stage(context.telemetry, "publishing", start, input_count=len(candidates), output_count=len(published))
        return published
