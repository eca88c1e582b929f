"""Stage 4: Language-model enhancement, schema validation and final confidence.

Model values win where present. A model failure falls back to the
deterministic parse with an annotation, so extraction never hard-fails a
candidate that has a parse result.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

import structlog
from langchain_core.prompts import PromptTemplate

from eventscout.config.prompts import ENHANCEMENT_PROMPT
from eventscout.config.settings import PipelineConfig
from eventscout.errors import ExtractionError
from eventscout.llm.client import LanguageModel
from eventscout.llm.json_response import parse_json_response
from eventscout.models.candidate import Candidate, Evidence, ExtractResult, ParseResult, Speaker, to_speaker
from eventscout.models.enums import CandidateStatus, EvidenceSource, ParseMethod
from eventscout.pipeline.telemetry import elapsed_ms
from eventscout.providers.base import PageFetcher
from eventscout.utils.dates import is_iso_day, parse_event_date
from eventscout.utils.links import same_host_links
from eventscout.utils.names import is_valid_person_name

logger = structlog.get_logger(__name__)

ENRICHMENT_LINK_KEYWORDS = (
    "speaker", "speakers", "agenda", "program", "programme", "schedule",
    "sponsor", "sponsors", "partner", "partners", "exhibitor", "exhibitors",
    "practical-information", "venue",
)
RELATED_LINK_MAX = 3
NO_MODEL_REASON = "no language model configured"

COMPLETENESS_FIELDS = ("title", "description", "date", "location", "venue")
STRING_FIELDS = ("title", "description", "date", "location", "venue")
DEFAULT_LLM_EVIDENCE_CONFIDENCE = 0.8


@dataclass
class ValidationOutcome:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def normalize_speakers(raw_speakers: Any) -> list[Speaker]:
    """Convert, validate and dedupe speakers by lower-cased name|title|company."""
    if not isinstance(raw_speakers, list):
        return []
    speakers: list[Speaker] = []
    seen: set[str] = set()
    for raw in raw_speakers:
        speaker = to_speaker(raw)
        if speaker is None or not is_valid_person_name(speaker.name):
            continue
        key = speaker.dedupe_key()
        if key in seen:
            continue
        seen.add(key)
        speakers.append(speaker)
    return speakers


def date_value(result: ParseResult) -> Optional[str]:
    return result.start_iso or result.date


def completeness(result: ParseResult) -> float:
    values = {
        "title": result.title,
        "description": result.description,
        "date": date_value(result),
        "location": result.location,
        "venue": result.venue,
    }
    present = [name for name in COMPLETENESS_FIELDS if values[name] and str(values[name]).strip()]
    return len(present) / len(COMPLETENESS_FIELDS)


def validate_schema(result: ParseResult) -> ValidationOutcome:
    outcome = ValidationOutcome()
    if not result.title or not result.title.strip():
        outcome.errors.append("Title is required")
    if not result.description or len(result.description.strip()) < 10:
        outcome.errors.append("Description must be at least 10 characters")

    value = date_value(result)
    if value and not is_iso_day(value):
        outcome.errors.append("Date must be a valid YYYY-MM-DD date")

    if result.location and len(result.location.strip()) < 3:
        outcome.errors.append("Location must be at least 3 characters")

    invalid = [s for s in result.speakers if not s.name or len(s.name.strip()) < 2]
    if invalid:
        outcome.errors.append(f"Invalid speakers found: {len(invalid)} invalid entries")

    if not 0.0 <= result.confidence <= 1.0:
        outcome.errors.append("Confidence must be between 0 and 1")
    return outcome


def final_confidence(base: float, result: ParseResult, validation: ValidationOutcome) -> float:
    """Adjust ``base`` by validation outcome, then scale by field completeness."""
    if validation.is_valid:
        confidence = min(base + 0.1, 1.0)
    else:
        confidence = max(base - 0.05 * len(validation.errors), 0.1)
    confidence *= 0.7 + 0.3 * completeness(result)
    return round(confidence, 2)


class EventExtractor:
    """Enhance a deterministic parse with a model pass and revalidate it."""

    def __init__(self, config: PipelineConfig, llm: Optional[LanguageModel], fetcher: Optional[PageFetcher] = None):
        self.config = config
        self.llm = llm
        self.fetcher = fetcher
        self._prompt = PromptTemplate.from_template(ENHANCEMENT_PROMPT)

    # -------------------------------------------------------------------------
    # Related links
    # -------------------------------------------------------------------------

    async def resolve_related_links(self, candidate: Candidate) -> list[str]:
        """Up to three same-host speaker/agenda/sponsor pages.

        Anchors recorded by the parser are used as-is. The page is only
        fetched for candidates that never went through the parser, and a
        failed fetch is ignored.
        """
        discovered = [u for u in candidate.related_urls if u and u.strip()]
        if len(discovered) >= RELATED_LINK_MAX:
            return discovered[:RELATED_LINK_MAX]

        page_links = candidate.metadata.page_links
        if page_links is None:
            if self.fetcher is None:
                return discovered
            timeout_ms = self.config.timeouts.related_links
            try:
                page = await asyncio.wait_for(
                    self.fetcher.fetch(candidate.url, timeout_ms),
                    timeout=timeout_ms / 1000,
                )
            except Exception as e:
                logger.warning("related_links_failed", url=candidate.url, error=str(e) or type(e).__name__)
                return discovered
            page_links = same_host_links(page, candidate.url)

        for link in page_links:
            if len(discovered) >= RELATED_LINK_MAX:
                break
            path = urlparse(link).path.lower()
            if any(keyword in path for keyword in ENRICHMENT_LINK_KEYWORDS) and link not in discovered:
                discovered.append(link)
        return discovered

    # -------------------------------------------------------------------------
    # Model enhancement
    # -------------------------------------------------------------------------

    def build_prompt(self, parse_result: ParseResult, url: str, related_links: list[str]) -> str:
        return self._prompt.format(
            url=url,
            title=parse_result.title or "Not found",
            description=parse_result.description or "Not found",
            date=parse_result.date or "Not found",
            location=parse_result.location or "Not found",
            venue=parse_result.venue or "Not found",
            speakers=", ".join(s.name for s in parse_result.speakers) or "Not found",
            agenda=", ".join(parse_result.agenda) or "Not found",
            related_links="\n".join(related_links) or "None",
        )

    @staticmethod
    def _llm_confidence(enhancement: dict) -> Optional[float]:
        value = enhancement.get("confidence")
        if isinstance(value, (int, float)) and not isinstance(value, bool) and 0.0 <= value <= 1.0:
            return float(value)
        return None

    @staticmethod
    def _llm_evidence(merged: ExtractResult, enhancement: dict, confidence: float) -> list[Evidence]:
        evidence = []
        for name in STRING_FIELDS:
            value = enhancement.get(name)
            if isinstance(value, str) and value.strip():
                evidence.append(Evidence(
                    field=name,
                    value=value.strip(),
                    source=EvidenceSource.LLM,
                    quoted_text=value.strip(),
                    confidence=confidence,
                    context="LLM enhancement",
                ))
        if enhancement.get("speakers") and merged.speakers:
            names = ", ".join(s.name for s in merged.speakers)
            evidence.append(Evidence(
                field="speakers", value=names, source=EvidenceSource.LLM,
                quoted_text=names, confidence=confidence, context="LLM enhancement",
            ))
        if enhancement.get("agenda") and merged.agenda:
            items = ", ".join(merged.agenda)
            evidence.append(Evidence(
                field="agenda", value=items, source=EvidenceSource.LLM,
                quoted_text=items, confidence=confidence, context="LLM enhancement",
            ))
        return evidence

    def merge(self, parse_result: ParseResult, enhancement: dict) -> ExtractResult:
        """Overlay model values on the parse result. Originals survive where the model is silent."""
        merged = ExtractResult(**parse_result.model_dump(exclude={"evidence"}), evidence=list(parse_result.evidence))

        for name in STRING_FIELDS:
            value = enhancement.get(name)
            if isinstance(value, str) and value.strip():
                setattr(merged, name, value.strip())

        speakers = normalize_speakers(enhancement.get("speakers"))
        if speakers:
            merged.speakers = speakers
        else:
            merged.speakers = normalize_speakers(parse_result.speakers)

        agenda = enhancement.get("agenda")
        if isinstance(agenda, list):
            items = [str(item).strip() for item in agenda if isinstance(item, (str, int, float)) and str(item).strip()]
            if items:
                merged.agenda = items

        llm_confidence = self._llm_confidence(enhancement)
        merged.llm_confidence = llm_confidence
        merged.evidence = merged.evidence + self._llm_evidence(
            merged, enhancement, llm_confidence if llm_confidence is not None else DEFAULT_LLM_EVIDENCE_CONFIDENCE
        )
        merged.parse_method = ParseMethod.LLM_ENHANCED
        merged.llm_enhanced = True
        notes = enhancement.get("notes")
        merged.enhancement_notes = notes.strip() if isinstance(notes, str) and notes.strip() else "LLM enhancement applied"
        return merged

    async def enhance(self, parse_result: ParseResult, url: str, related_links: list[str]) -> ExtractResult:
        if self.llm is None:
            raise ValueError(NO_MODEL_REASON)
        response = await asyncio.wait_for(
            self.llm.generate_content(self.build_prompt(parse_result, url, related_links)),
            timeout=self.config.timeouts.extraction / 1000,
        )
        return self.merge(parse_result, parse_json_response(response))

    @staticmethod
    def deterministic_fallback(parse_result: ParseResult, reason: str) -> ExtractResult:
        result = ExtractResult(**parse_result.model_dump(exclude={"evidence"}), evidence=list(parse_result.evidence))
        result.speakers = normalize_speakers(parse_result.speakers)
        result.parse_method = ParseMethod.DETERMINISTIC
        result.llm_enhanced = False
        result.enhancement_notes = f"LLM enhancement failed, using deterministic result ({reason})"
        return result

    # -------------------------------------------------------------------------
    # Stage entry point
    # -------------------------------------------------------------------------

    async def extract(self, candidate: Candidate) -> ExtractResult:
        """Enhance, validate and score ``candidate``'s parse result.

        Raises:
            ExtractionError: If the candidate has no parse result.
        """
        start = time.perf_counter()
        if candidate.parse_result is None:
            raise ExtractionError("No parse result available for extraction", candidate=candidate)

        parse_result = candidate.parse_result
        logger.info("extract_start", url=candidate.url)

        if self.llm is None:
            logger.debug("llm_enhancement_skipped", url=candidate.url)
            result = self.deterministic_fallback(parse_result, NO_MODEL_REASON)
        else:
            related_links = await self.resolve_related_links(candidate)
            if related_links:
                candidate.related_urls = related_links

            try:
                result = await self.enhance(parse_result, candidate.url, related_links)
            except Exception as e:
                reason = str(e) or type(e).__name__
                logger.warning("llm_enhancement_failed", url=candidate.url, error=reason)
                result = self.deterministic_fallback(parse_result, reason)

        normalized = parse_event_date(result.date)
        result.start_iso = normalized.start_iso
        result.end_iso = normalized.end_iso
        result.date_confidence = normalized.confidence

        validation = validate_schema(result)
        result.schema_validated = validation.is_valid
        result.validation_errors = validation.errors
        result.confidence = final_confidence(parse_result.confidence, result, validation)

        candidate.extract_result = result
        candidate.advance(CandidateStatus.EXTRACTED)
        candidate.metadata.stage_timings["extraction"] = elapsed_ms(start)
        candidate.metadata.processing_time_ms = elapsed_ms(start)

        logger.info(
            "extract_complete",
            url=candidate.url,
            confidence=result.confidence,
            llm_enhanced=result.llm_enhanced,
            schema_valid=validation.is_valid,
            duration_ms=elapsed_ms(start),
        )
        return result
