"""Stage 5: Quality gate and output formatting."""

import re
import time
from typing import Optional

import structlog

from eventscout.config.settings import PipelineConfig
from eventscout.errors import PublishingError
from eventscout.models.candidate import Candidate, ExtractResult, ParseResult, utc_now
from eventscout.models.enums import CandidateStatus, ParseMethod
from eventscout.models.events import PublishedEvent, PublishedSpeaker, PublishMetadata
from eventscout.pipeline.telemetry import elapsed_ms
from eventscout.utils.country import EUROPEAN_COUNTRIES, country_from_location, to_iso2
from eventscout.utils.dates import to_iso_day
from eventscout.utils.names import speaker_name_confidence

logger = structlog.get_logger(__name__)

SPAM_KEYWORDS = (
    "click here", "buy now", "free money", "make money fast", "viagra", "casino",
    "lottery", "winner", "congratulations",
)

# Location token → target countries it can never belong to
IMPOSSIBLE_COMBINATIONS: list[tuple[str, frozenset[str]]] = [
    ("ho chi minh", EUROPEAN_COUNTRIES),
    ("hcmc", EUROPEAN_COUNTRIES),
    ("hanoi", EUROPEAN_COUNTRIES),
    ("vietnam", EUROPEAN_COUNTRIES),
    ("barcelona", frozenset({"DE"})),
    ("spain", frozenset({"DE"})),
]

MIN_TITLE_CHARS = 3
MIN_DESCRIPTION_CHARS = 10
MIN_NORMALIZED_TITLE_CHARS = 10
STRONG_EVIDENCE_COUNT = 5


def clean_text(text: str) -> str:
    """Collapse whitespace and drop characters outside a conservative punctuation set."""
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"[^\w\s\-.,!?()':&/]", "", text)
    return text.strip()


def is_impossible_location(location: str, target_country: Optional[str]) -> bool:
    target = to_iso2(target_country)
    if not target or not location:
        return False
    lowered = location.lower()
    return any(token in lowered and target in countries for token, countries in IMPOSSIBLE_COMBINATIONS)


def field_completeness(result: ParseResult) -> float:
    values = [result.title, result.description, result.start_iso or result.date, result.location, result.venue]
    return sum(1 for value in values if value and value.strip()) / len(values)


class EventPublisher:
    """Gate, format and score extracted candidates."""

    def __init__(self, config: PipelineConfig, target_country: Optional[str] = None):
        self.config = config
        self.target_country = to_iso2(target_country)

    def quality_check(self, result: ParseResult) -> list[str]:
        """Reasons ``result`` must not be published. Empty means it passes."""
        reasons = []
        threshold = self.config.thresholds.confidence
        if result.confidence < threshold:
            reasons.append(f"Confidence too low: {result.confidence} < {threshold}")

        title = (result.title or "").strip()
        if len(title) < MIN_TITLE_CHARS:
            reasons.append("Title is missing or too short")
        if len((result.description or "").strip()) < MIN_DESCRIPTION_CHARS:
            reasons.append("Description is missing or too short")

        content = f"{result.title or ''} {result.description or ''}".lower()
        if any(keyword in content for keyword in SPAM_KEYWORDS):
            reasons.append("Content appears to be spam")

        if len(re.sub(r"[^a-z0-9]", "", title.lower())) < MIN_NORMALIZED_TITLE_CHARS:
            reasons.append("Content appears to be duplicate")

        raw_date = result.start_iso or result.date
        if raw_date and to_iso_day(raw_date) is None:
            reasons.append("Invalid date format")

        location = (result.location or "").strip()
        if result.location is not None and (len(location) < 3 or location.isdigit()):
            reasons.append("Invalid location format")
        if location and is_impossible_location(location, self.target_country):
            reasons.append("Impossible country/location combination")
        return reasons

    def quality_score(self, result: ParseResult, llm_enhanced: bool) -> float:
        score = 0.4 * result.confidence + 0.3 * field_completeness(result)
        if result.title and len(result.title) > 10:
            score += 0.1
        if result.description and len(result.description) > 50:
            score += 0.1
        if result.speakers:
            score += 0.05
        if result.venue:
            score += 0.05
        if llm_enhanced:
            score += 0.1
        return round(min(score, 1.0), 2)

    @staticmethod
    def confidence_reason(result: ParseResult, quality_score: float) -> str:
        reasons = []
        if result.parse_method == ParseMethod.LLM_ENHANCED:
            reasons.append("LLM enhanced")
        if result.confidence > 0.8:
            reasons.append("high confidence extraction")
        elif result.confidence > 0.6:
            reasons.append("moderate confidence extraction")
        if quality_score > 0.8:
            reasons.append("high quality data")
        if len(result.evidence) > STRONG_EVIDENCE_COUNT:
            reasons.append("strong evidence")
        return ", ".join(reasons) if reasons else "standard processing"

    def format_event(self, candidate: Candidate, result: ParseResult, quality_score: float) -> PublishedEvent:
        location = clean_text(result.location or "")
        extract = result if isinstance(result, ExtractResult) else None
        return PublishedEvent(
            id=candidate.id,
            title=clean_text(result.title or ""),
            description=clean_text(result.description or ""),
            source_url=candidate.url,
            starts_at=to_iso_day(result.start_iso or result.date) or "",
            location=location,
            venue=clean_text(result.venue) if result.venue else None,
            country=country_from_location(location) or self.target_country or "Unknown",
            city=location.split(",")[0].strip() if location else "",
            speakers=[
                PublishedSpeaker(
                    name=clean_text(s.name),
                    title=s.title,
                    org=s.company,
                    confidence=speaker_name_confidence(s.name),
                )
                for s in result.speakers
            ],
            sessions=list(result.agenda),
            agenda=list(result.agenda),
            confidence=result.confidence,
            confidence_reason=self.confidence_reason(result, quality_score),
            pipeline_metadata=PublishMetadata(
                source=candidate.source.value,
                priority_score=candidate.priority_score or 0.0,
                parse_method=result.parse_method.value,
                evidence=len(result.evidence),
                processing_time_ms=candidate.metadata.processing_time_ms,
                llm_enhanced=bool(extract and extract.llm_enhanced),
                schema_validated=bool(extract and extract.schema_validated),
                enhancement_notes=result.enhancement_notes,
                quality_score=quality_score,
                publish_timestamp=utc_now().isoformat(),
            ),
        )

    async def publish(self, candidate: Candidate) -> Optional[PublishedEvent]:
        """Publish ``candidate`` or return None.

        Gate failures set ``rejected``; a missing result or an internal error
        sets ``failed``.
        """
        start = time.perf_counter()
        try:
            result = candidate.best_result()
            if result is None:
                raise PublishingError("No extraction or parse result available for publishing", candidate=candidate)

            reasons = self.quality_check(result)
            if reasons:
                candidate.advance(CandidateStatus.REJECTED)
                logger.warning("quality_gate_failed", url=candidate.url, reasons=reasons)
                return None

            llm_enhanced = isinstance(result, ExtractResult) and result.llm_enhanced
            event = self.format_event(candidate, result, self.quality_score(result, llm_enhanced))
            candidate.advance(CandidateStatus.PUBLISHED)
            candidate.metadata.stage_timings["publishing"] = elapsed_ms(start)
            logger.info(
                "event_published",
                url=candidate.url,
                quality_score=event.pipeline_metadata.quality_score,
                confidence=event.confidence,
            )
            return event
        except Exception as e:
            logger.error("publish_failed", url=candidate.url, error=str(e))
            if not candidate.status.is_terminal:
                candidate.advance(CandidateStatus.FAILED)
            return None
