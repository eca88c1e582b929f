"""Run-level models: request context, telemetry, metrics and the pipeline result."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from eventscout.config.settings import PipelineConfig
from eventscout.models.candidate import Candidate, utc_now
from eventscout.models.events import PublishedEvent
from eventscout.utils.country import CountryContext, get_country_context, to_iso2


class StageLog(BaseModel):
    """Per-stage throughput record."""

    stage: str
    duration_ms: float
    input_count: int
    output_count: int
    efficiency: float = Field(description="output / input as a percentage")
    timestamp: datetime = Field(default_factory=utc_now)
    details: dict[str, Any] = Field(default_factory=dict)


class DiscoveryTelemetry(BaseModel):
    """Outcome of a single provider call during discovery."""

    provider: str
    count: int = 0
    duration_ms: float = 0.0
    timeout: bool = False
    error: Optional[str] = None


class PipelineTelemetry(BaseModel):
    """In-process telemetry sink collecting stage and provider records."""

    stages: list[StageLog] = Field(default_factory=list)
    discovery: list[DiscoveryTelemetry] = Field(default_factory=list)

    def record_stage(self, log: StageLog) -> None:
        self.stages.append(log)

    def record_discovery(self, entry: DiscoveryTelemetry) -> None:
        self.discovery.append(entry)


class PipelineContext(BaseModel):
    """Everything one search request needs to run the pipeline."""

    query: str
    country: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    locale: str = "en"
    config: PipelineConfig = Field(default_factory=PipelineConfig)
    telemetry: PipelineTelemetry = Field(default_factory=PipelineTelemetry)
    country_context: Optional[CountryContext] = None
    started_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _derive_country(self) -> "PipelineContext":
        self.country = to_iso2(self.country)
        if self.country_context is None:
            self.country_context = get_country_context(self.country)
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class PipelineMetrics(BaseModel):
    """Aggregate counts for one run."""

    total_candidates: int = 0
    prioritized_candidates: int = 0
    parsed_candidates: int = 0
    extracted_candidates: int = 0
    published_candidates: int = 0
    rejected_candidates: int = 0
    failed_candidates: int = 0
    total_duration_ms: float = 0.0
    average_confidence: float = 0.0
    source_breakdown: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def empty(cls, total_duration_ms: float = 0.0) -> "PipelineMetrics":
        return cls(total_duration_ms=total_duration_ms)


class PipelineResult(BaseModel):
    """What ``EventPipeline.process`` hands back to the caller."""

    candidates: list[Candidate] = Field(default_factory=list)
    published_events: list[PublishedEvent] = Field(default_factory=list)
    metrics: PipelineMetrics = Field(default_factory=PipelineMetrics)
    logs: list[StageLog] = Field(default_factory=list)
    providers_tried: list[str] = Field(default_factory=list)
    errors: list[dict[str, str]] = Field(default_factory=list)
