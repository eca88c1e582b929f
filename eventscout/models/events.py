"""Published event output models."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PublishedSpeaker(BaseModel):
    """Normalized speaker entry on a published event."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: Optional[str] = None
    org: Optional[str] = None
    bio: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)


class PublishMetadata(BaseModel):
    """Pipeline provenance attached to every published event."""

    model_config = ConfigDict(frozen=True)

    source: str
    priority_score: float = 0.0
    parse_method: str
    evidence: int = Field(0, description="Number of evidence entries backing the event")
    processing_time_ms: float = 0.0
    llm_enhanced: bool = False
    schema_validated: bool = False
    enhancement_notes: Optional[str] = None
    quality_score: float = Field(ge=0.0, le=1.0)
    publish_timestamp: str


class PublishedEvent(BaseModel):
    """Terminal, immutable event record produced by the publisher."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    source_url: str
    starts_at: str = Field(description="YYYY-MM-DD or empty when unknown")
    location: str
    venue: Optional[str] = None
    country: str
    city: str
    speakers: list[PublishedSpeaker] = Field(default_factory=list)
    sessions: list[str] = Field(default_factory=list)
    agenda: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    confidence_reason: str
    pipeline_metadata: PublishMetadata
