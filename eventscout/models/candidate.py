"""Candidate records and the per-stage results attached to them.

Stage Flow:
1. Discovery       → Candidate (status=discovered)
2. Prioritization  → Candidate.priority_score
3. Parsing         → ParseResult
4. Extraction      → ExtractResult (ParseResult + enhancement metadata)
5. Publishing      → PublishedEvent (see models/events.py)
"""

from datetime import datetime, timezone
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from eventscout.errors import InvalidTransitionError
from eventscout.models.enums import (
    CandidateStatus,
    DateConfidence,
    DiscoverySource,
    EvidenceSource,
    ParseMethod,
    ScoringMethod,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Speakers
# =============================================================================

class Speaker(BaseModel):
    """A single speaker, normalized from whatever shape a source produced."""

    name: str
    title: Optional[str] = None
    company: Optional[str] = None

    def dedupe_key(self) -> str:
        return "|".join(
            [self.name.lower(), (self.title or "").lower(), (self.company or "").lower()]
        )


def _first_str(raw: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def to_speaker(raw: Union[str, dict, Speaker, None]) -> Optional[Speaker]:
    """Convert a raw speaker value (string, mapping or Speaker) into a Speaker.

    Mappings may use ``title``/``role`` for the job title and
    ``company``/``org``/``organization`` for the affiliation.

    Returns:
        Speaker, or None when no usable name is present.
    """
    if raw is None:
        return None
    if isinstance(raw, Speaker):
        return raw
    if isinstance(raw, str):
        name = raw.strip()
        return Speaker(name=name) if name else None
    if isinstance(raw, dict):
        name = _first_str(raw, "name")
        if not name:
            return None
        return Speaker(
            name=name,
            title=_first_str(raw, "title", "role"),
            company=_first_str(raw, "company", "org", "organization"),
        )
    return None


# =============================================================================
# Evidence and results
# =============================================================================

class Evidence(BaseModel):
    """Provenance record tying one extracted field to literal source text."""

    field: str
    value: str
    source: EvidenceSource
    quoted_text: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utc_now)
    selector: Optional[str] = None
    context: Optional[str] = None


class ParseResult(BaseModel):
    """Deterministic parse of a candidate page."""

    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[str] = Field(None, description="Raw date text as found on the page")
    start_iso: Optional[str] = None
    end_iso: Optional[str] = None
    date_confidence: Optional[DateConfidence] = None
    location: Optional[str] = None
    venue: Optional[str] = None
    speakers: list[Speaker] = Field(default_factory=list)
    agenda: list[str] = Field(default_factory=list)

    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    evidence: list[Evidence] = Field(default_factory=list)
    parse_method: ParseMethod = ParseMethod.DETERMINISTIC
    parse_errors: list[str] = Field(default_factory=list)
    enhancement_notes: Optional[str] = None

    def populated_core_fields(self) -> list[str]:
        """Which of title/description/date/location/venue are non-empty."""
        values = {
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "location": self.location,
            "venue": self.venue,
        }
        return [name for name, value in values.items() if value and value.strip()]


class ExtractResult(ParseResult):
    """Language-model enhanced extraction with schema validation metadata."""

    llm_enhanced: bool = False
    schema_validated: bool = False
    validation_errors: list[str] = Field(default_factory=list)
    llm_confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class PrioritizationScore(BaseModel):
    """Sub-scores and weighted overall relevance for one candidate."""

    is_event: float = Field(ge=0.0, le=1.0)
    has_agenda: float = Field(ge=0.0, le=1.0)
    has_speakers: float = Field(ge=0.0, le=1.0)
    is_recent: float = Field(ge=0.0, le=1.0)
    is_relevant: float = Field(ge=0.0, le=1.0)
    is_country_relevant: Optional[float] = Field(None, ge=0.0, le=1.0)
    overall: float = Field(ge=0.0, le=1.0)
    method: ScoringMethod = ScoringMethod.FALLBACK
    normalized_date: Optional[str] = None


# =============================================================================
# Candidate
# =============================================================================

class CandidateMetadata(BaseModel):
    """Free-form diagnostics carried alongside a candidate."""

    original_query: str = ""
    country: Optional[str] = None
    processing_time_ms: float = 0.0
    stage_timings: dict[str, float] = Field(default_factory=dict)
    geo_reason: Optional[str] = None

    # Hints scraped by crawl-style providers, used for content-aware scoring
    title: Optional[str] = None
    description: Optional[str] = None
    scraped_content: Optional[str] = None
    scraped_links: list[str] = Field(default_factory=list)
    extracted_date: Optional[str] = None

    # Same-host anchors recorded by the parser; None until the page is fetched
    page_links: Optional[list[str]] = None

    extra: dict[str, Any] = Field(default_factory=dict)


class Candidate(BaseModel):
    """A discovered URL tracked through the pipeline lifecycle."""

    id: str
    url: str
    source: DiscoverySource
    status: CandidateStatus = CandidateStatus.DISCOVERED
    discovered_at: datetime = Field(default_factory=utc_now)
    priority_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    parse_result: Optional[ParseResult] = None
    extract_result: Optional[ExtractResult] = None
    related_urls: list[str] = Field(default_factory=list)
    metadata: CandidateMetadata = Field(default_factory=CandidateMetadata)

    def advance(self, status: CandidateStatus) -> None:
        """Move to ``status``, refusing regressions and exits from terminal states.

        Raises:
            InvalidTransitionError: If the transition is not allowed.
        """
        current = self.status
        if status == current:
            return
        if current.is_terminal:
            raise InvalidTransitionError(
                f"Candidate {self.id} is {current.value} and cannot become {status.value}",
                candidate=self,
            )
        if status in (CandidateStatus.REJECTED, CandidateStatus.FAILED):
            self.status = status
            return
        if status.rank <= current.rank:
            raise InvalidTransitionError(
                f"Candidate {self.id} cannot regress from {current.value} to {status.value}",
                candidate=self,
            )
        self.status = status

    def best_result(self) -> Optional[ParseResult]:
        """The richer of extract_result and parse_result."""
        return self.extract_result or self.parse_result

    @property
    def confidence(self) -> Optional[float]:
        result = self.best_result()
        return result.confidence if result else None
