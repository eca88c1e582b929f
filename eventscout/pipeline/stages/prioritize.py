"""Stage 2: Relevance scoring and threshold filtering.

Scoring path per candidate:
1. Content-aware model call when a crawl provider scraped page content
2. URL-only model call when the URL itself looks like an event page
3. Deterministic keyword/year/TLD heuristic otherwise, or when the model fails

Small pools run in degraded mode: the threshold for that call is relaxed,
shared config is never touched.
"""

import asyncio
import re
import time
from datetime import date
from typing import Optional
from urllib.parse import urlparse

import structlog
from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, Field

from eventscout.config.prompts import PRIORITIZATION_CONTENT_PROMPT, PRIORITIZATION_URL_PROMPT
from eventscout.config.settings import PipelineConfig
from eventscout.errors import PrioritizationError
from eventscout.llm.client import LanguageModel
from eventscout.llm.json_response import parse_json_response
from eventscout.models.candidate import Candidate, PrioritizationScore
from eventscout.models.enums import CandidateStatus, ScoringMethod
from eventscout.pipeline.batching import run_in_batches
from eventscout.pipeline.telemetry import elapsed_ms
from eventscout.utils.country import CountryContext, get_country_context, tld_matches_country
from eventscout.utils.dates import days_from_today, to_iso_day

logger = structlog.get_logger(__name__)

BATCH_SIZE = 8

WEIGHTS = {
    "is_event": 0.30,
    "has_agenda": 0.25,
    "has_speakers": 0.20,
    "is_recent": 0.15,
    "is_relevant": 0.10,
}
COUNTRY_WEIGHTS = {
    "is_event": 0.25,
    "has_agenda": 0.20,
    "has_speakers": 0.15,
    "is_recent": 0.15,
    "is_relevant": 0.10,
    "is_country_relevant": 0.15,
}

# URL tokens that justify spending a URL-only model call
EVENT_URL_TOKENS = (
    "event", "conference", "summit", "workshop", "congress", "forum", "symposium",
    "seminar", "expo", "agenda", "speakers", "kongress", "konferenz", "tagung",
    "veranstaltung", "webinar",
)

GERMAN_CUES = (
    "veranstaltung", "konferenz", "kongress", "tagung", "anmeldung", "referenten",
    "programm", "teilnahme", "fachtagung", "jahrestagung",
)

RECENT_WINDOW_DAYS = (-30, 365)
NO_DATE_RECENCY_CAP = 0.3
LOCALE_BONUS = 0.05
CONTENT_PROMPT_CHARS = 3000


class ScoreResponse(BaseModel):
    """Sub-scores returned by the model."""

    is_event: float = Field(ge=0.0, le=1.0)
    has_agenda: float = Field(ge=0.0, le=1.0)
    has_speakers: float = Field(ge=0.0, le=1.0)
    is_recent: float = Field(ge=0.0, le=1.0)
    is_relevant: float = Field(ge=0.0, le=1.0)
    is_country_relevant: Optional[float] = Field(None, ge=0.0, le=1.0)
    normalized_date: Optional[str] = None


def weighted_overall(scores: dict[str, float]) -> float:
    """Weighted sum using the country-aware vector when country relevance is known."""
    weights = COUNTRY_WEIGHTS if scores.get("is_country_relevant") is not None else WEIGHTS
    return sum(scores[name] * weight for name, weight in weights.items())


def _contains(text: str, token: str) -> bool:
    return re.search(rf"\b{re.escape(token)}\b", text) is not None


def describe_window(date_from: Optional[date], date_to: Optional[date]) -> str:
    """Human-readable requested date window for prompts."""
    if date_from and date_to:
        return f"{date_from.isoformat()} to {date_to.isoformat()}"
    if date_from:
        return f"from {date_from.isoformat()}"
    if date_to:
        return f"until {date_to.isoformat()}"
    return "any"


class EventPrioritizer:
    """Score candidates and keep those at or above the effective threshold."""

    def __init__(self, config: PipelineConfig, llm: Optional[LanguageModel] = None):
        self.config = config
        self.llm = llm
        self._content_prompt = PromptTemplate.from_template(PRIORITIZATION_CONTENT_PROMPT)
        self._url_prompt = PromptTemplate.from_template(PRIORITIZATION_URL_PROMPT)

    def effective_threshold(self, pool_size: int, override: Optional[float] = None) -> float:
        """Threshold for one call. Pools at or below the degraded size get the relaxed value."""
        if override is not None:
            return override
        configured = self.config.thresholds.prioritization
        degraded = self.config.degraded_mode
        if pool_size <= degraded.pool_size:
            return min(configured, degraded.threshold)
        return configured

    # -------------------------------------------------------------------------
    # Scoring paths
    # -------------------------------------------------------------------------

    def _country_relevance(self, candidate: Candidate, country_context: Optional[CountryContext]) -> Optional[float]:
        if country_context is None:
            return None
        hostname = urlparse(candidate.url).hostname or ""
        if tld_matches_country(hostname, country_context.iso2):
            return 0.8
        text = self._signal_text(candidate)
        tokens = [t.lower() for t in country_context.location_tokens + country_context.cities]
        if any(_contains(text, token) for token in tokens):
            return 0.7
        return 0.3

    def fallback_scores(self, candidate: Candidate, country_context: Optional[CountryContext] = None) -> dict:
        """Keyword, year and TLD heuristic. Never raises."""
        url = candidate.url.lower()
        scores = {
            "is_event": 0.5,
            "has_agenda": 0.3,
            "has_speakers": 0.3,
            "is_recent": 0.5,
            "is_relevant": 0.5,
        }
        if any(token in url for token in ("conference", "summit", "event", "kongress", "konferenz")):
            scores["is_event"] = 0.8
        if any(token in url for token in ("agenda", "program", "schedule")):
            scores["has_agenda"] = 0.7
        if any(token in url for token in ("speaker", "presenter", "referent")):
            scores["has_speakers"] = 0.7
        this_year = date.today().year
        url_year = next((year for year in (this_year, this_year + 1) if str(year) in url), None)
        if url_year is not None:
            scores["is_recent"] = 0.8
            scores["url_year"] = url_year
        if any(token in url for token in ("compliance", "legal", "regulation", "regulatory")):
            scores["is_relevant"] = 0.8
        scores["is_country_relevant"] = self._country_relevance(candidate, country_context)
        return scores

    async def _model_scores(self, prompt: str) -> dict:
        response = await asyncio.wait_for(
            self.llm.generate_content(prompt),
            timeout=self.config.timeouts.prioritization / 1000,
        )
        return ScoreResponse.model_validate(parse_json_response(response)).model_dump()

    def _content_prompt_text(self, candidate: Candidate, country: Optional[str], date_window: str) -> str:
        meta = candidate.metadata
        return self._content_prompt.format(
            url=candidate.url,
            title=meta.title or "Unknown",
            description=meta.description or "Unknown",
            query=meta.original_query,
            country=country or "any",
            date_window=date_window,
            content=(meta.scraped_content or "")[:CONTENT_PROMPT_CHARS],
        )

    def _url_prompt_text(self, candidate: Candidate, country: Optional[str]) -> str:
        return self._url_prompt.format(
            url=candidate.url,
            query=candidate.metadata.original_query,
            country=country or "any",
        )

    async def score_candidate(
        self,
        candidate: Candidate,
        target_country: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> PrioritizationScore:
        """Compute the prioritization score for one candidate.

        The requested window only informs the content prompt; recency is
        still judged against today.
        """
        country_context = get_country_context(target_country)
        url = candidate.url.lower()

        method = ScoringMethod.FALLBACK
        prompt = None
        if self.llm is not None:
            if candidate.metadata.scraped_content:
                window = describe_window(date_from, date_to)
                method, prompt = ScoringMethod.LLM_CONTENT, self._content_prompt_text(candidate, target_country, window)
            elif any(token in url for token in EVENT_URL_TOKENS):
                method, prompt = ScoringMethod.LLM_URL, self._url_prompt_text(candidate, target_country)

        scores = None
        if prompt is not None:
            try:
                scores = await self._model_scores(prompt)
            except Exception as e:
                logger.warning("llm_scoring_failed", url=candidate.url, method=method.value, error=str(e))
                method = ScoringMethod.FALLBACK
        if scores is None:
            scores = self.fallback_scores(candidate, country_context)
            logger.debug("using_fallback_scoring", url=candidate.url)

        if country_context is not None and scores.get("is_country_relevant") is None:
            scores["is_country_relevant"] = self._country_relevance(candidate, country_context)
        if country_context is None:
            scores["is_country_relevant"] = None

        return self._finalize(candidate, scores, method, country_context)

    def _signal_text(self, candidate: Candidate) -> str:
        meta = candidate.metadata
        parts = [candidate.url, meta.title or "", meta.description or "", (meta.scraped_content or "")[:2000]]
        return " ".join(parts).lower()

    def _finalize(
        self,
        candidate: Candidate,
        scores: dict,
        method: ScoringMethod,
        country_context: Optional[CountryContext],
    ) -> PrioritizationScore:
        normalized_date = to_iso_day(scores.get("normalized_date")) or to_iso_day(candidate.metadata.extracted_date)
        # a current or next year in the URL stands in for a missing date
        if normalized_date is None and scores.get("url_year") is None:
            scores["is_recent"] = min(scores["is_recent"], NO_DATE_RECENCY_CAP)

        overall = weighted_overall(scores)

        if normalized_date is not None:
            offset = days_from_today(normalized_date)
            if not RECENT_WINDOW_DAYS[0] <= offset <= RECENT_WINDOW_DAYS[1]:
                logger.info("candidate_out_of_window", url=candidate.url, normalized_date=normalized_date)
                overall = 0.0

        if overall > 0 and country_context is not None:
            text = self._signal_text(candidate)
            if country_context.locale == "de" and any(cue in text for cue in GERMAN_CUES):
                overall += LOCALE_BONUS
            if any(_contains(text, city.lower()) for city in country_context.cities):
                overall += LOCALE_BONUS

        return PrioritizationScore(
            is_event=scores["is_event"],
            has_agenda=scores["has_agenda"],
            has_speakers=scores["has_speakers"],
            is_recent=scores["is_recent"],
            is_relevant=scores["is_relevant"],
            is_country_relevant=scores.get("is_country_relevant"),
            overall=round(min(max(overall, 0.0), 1.0), 2),
            method=method,
            normalized_date=normalized_date,
        )

    # -------------------------------------------------------------------------
    # Stage entry point
    # -------------------------------------------------------------------------

    async def _prioritize_one(
        self,
        candidate: Candidate,
        target_country: Optional[str],
        threshold: float,
        window: tuple[Optional[date], Optional[date]],
    ) -> bool:
        start = time.perf_counter()
        try:
            score = await self.score_candidate(candidate, target_country, date_from=window[0], date_to=window[1])
        except Exception as e:
            raise PrioritizationError(f"Scoring failed: {e}", candidate=candidate, original_error=e) from e
        candidate.priority_score = score.overall
        candidate.metadata.extra["prioritization"] = score.model_dump(mode="json")
        candidate.metadata.stage_timings["prioritization"] = elapsed_ms(start)

        if score.overall >= threshold:
            candidate.advance(CandidateStatus.PRIORITIZED)
            logger.info("candidate_prioritized", url=candidate.url, score=score.overall, method=score.method.value)
            return True

        candidate.advance(CandidateStatus.REJECTED)
        logger.info("candidate_rejected", url=candidate.url, score=score.overall, threshold=threshold)
        return False

    async def prioritize(
        self,
        candidates: list[Candidate],
        target_country: Optional[str] = None,
        threshold: Optional[float] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Candidate]:
        """Score candidates and return the prioritized subset in input order.

        Args:
            candidates: Discovered candidates.
            target_country: ISO2 code used for country relevance and locale bonuses.
            threshold: Explicit threshold for this call. Defaults to the
                configured one, relaxed in degraded mode.
            date_from: Requested window start, shown to the content-aware model.
            date_to: Requested window end, shown to the content-aware model.

        Returns:
            Candidates with status ``prioritized``.
        """
        effective = self.effective_threshold(len(candidates), threshold)
        degraded = threshold is None and effective < self.config.thresholds.prioritization
        logger.info(
            "prioritization_start",
            candidates=len(candidates),
            threshold=effective,
            degraded_mode=degraded,
        )

        run = await run_in_batches(
            candidates,
            lambda c: self._prioritize_one(c, target_country, effective, (date_from, date_to)),
            concurrency=BATCH_SIZE,
            delay_ms=self.config.batch_delays.prioritization,
            stage="prioritization",
        )

        outcomes = run.by_candidate()
        prioritized = []
        for candidate in candidates:
            outcome = outcomes.get(candidate.id)
            if outcome is None:
                continue
            if not outcome.ok:
                logger.error("candidate_scoring_failed", url=candidate.url, error=str(outcome.error))
                if not candidate.status.is_terminal:
                    candidate.advance(CandidateStatus.FAILED)
                continue
            if outcome.value:
                prioritized.append(candidate)

        logger.info(
            "prioritization_complete",
            input_count=len(candidates),
            prioritized=len(prioritized),
            threshold=effective,
        )
        return prioritized
