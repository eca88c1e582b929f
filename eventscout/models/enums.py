"""Enumeration types for the pipeline models."""

from enum import Enum


class CandidateStatus(str, Enum):
    """Lifecycle state of a candidate URL."""

    DISCOVERED = "discovered"
    PRIORITIZED = "prioritized"
    PARSED = "parsed"
    EXTRACTED = "extracted"
    PUBLISHED = "published"
    REJECTED = "rejected"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (CandidateStatus.PUBLISHED, CandidateStatus.REJECTED, CandidateStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the forward stage order. Terminal failure states rank last."""
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [
    CandidateStatus.DISCOVERED,
    CandidateStatus.PRIORITIZED,
    CandidateStatus.PARSED,
    CandidateStatus.EXTRACTED,
    CandidateStatus.PUBLISHED,
    CandidateStatus.REJECTED,
    CandidateStatus.FAILED,
]


class DiscoverySource(str, Enum):
    """Provider tags for discovered candidates."""

    CSE = "cse"                  # Search-engine style provider
    FIRECRAWL = "firecrawl"      # Crawl-style provider with scraped content
    CURATED = "curated"          # Curated seed list


class EvidenceSource(str, Enum):
    """Where an extracted field value came from."""

    HTML = "html"
    PDF = "pdf"
    MICRODATA = "microdata"
    LLM = "llm"
    REGEX = "regex"


class ParseMethod(str, Enum):
    """How a parse result was produced."""

    DETERMINISTIC = "deterministic"
    LLM_ENHANCED = "llm_enhanced"


class DateConfidence(str, Enum):
    """Confidence tag attached to a normalized date."""

    HIGH = "high"
    LOW = "low"


class ScoringMethod(str, Enum):
    """Which path produced a prioritization score."""

    LLM_CONTENT = "llm_content"
    LLM_URL = "llm_url"
    FALLBACK = "fallback"
