"""Pydantic data models for the event pipeline."""

from .candidate import (
    Candidate,
    CandidateMetadata,
    Evidence,
    ExtractResult,
    ParseResult,
    PrioritizationScore,
    Speaker,
    to_speaker,
    utc_now,
)
from .enums import (
    CandidateStatus,
    DateConfidence,
    DiscoverySource,
    EvidenceSource,
    ParseMethod,
    ScoringMethod,
)
from .events import PublishedEvent, PublishedSpeaker, PublishMetadata
from .pipeline import (
    DiscoveryTelemetry,
    PipelineContext,
    PipelineMetrics,
    PipelineResult,
    PipelineTelemetry,
    StageLog,
)

__all__ = [
    # Enums
    "CandidateStatus",
    "DateConfidence",
    "DiscoverySource",
    "EvidenceSource",
    "ParseMethod",
    "ScoringMethod",
    # Candidate
    "Candidate",
    "CandidateMetadata",
    "Evidence",
    "ExtractResult",
    "ParseResult",
    "PrioritizationScore",
    "Speaker",
    "to_speaker",
    "utc_now",
    # Output
    "PublishedEvent",
    "PublishedSpeaker",
    "PublishMetadata",
    # Run
    "DiscoveryTelemetry",
    "PipelineContext",
    "PipelineMetrics",
    "PipelineResult",
    "PipelineTelemetry",
    "StageLog",
]
