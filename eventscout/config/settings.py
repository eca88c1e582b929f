"""Application settings using Pydantic."""

from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Discovery provider credentials
    cse_api_key: Optional[str] = None
    cse_engine_id: Optional[str] = None
    firecrawl_api_key: Optional[str] = None
    curated_seed_file: Optional[str] = None

    # HTTP fetching
    http_user_agent: str = "Mozilla/5.0 (compatible; EventScoutBot/1.0)"
    http_accept_language: str = "en-US,en;q=0.8"

    # Discovery cache
    discovery_cache_ttl_seconds: int = 900

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# =============================================================================
# Pipeline tunables
# =============================================================================

class Thresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    prioritization: float = Field(0.5, ge=0.0, le=1.0)
    confidence: float = Field(0.6, ge=0.0, le=1.0)
    parse_quality: float = Field(0.5, ge=0.0, le=1.0)


class Sources(BaseModel):
    model_config = ConfigDict(frozen=True)

    cse: bool = True
    firecrawl: bool = True
    curated: bool = False

    def enabled(self) -> list[str]:
        return [name for name in ("cse", "firecrawl", "curated") if getattr(self, name)]


class Limits(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_candidates: int = Field(50, gt=0)
    max_extractions: int = Field(20, gt=0)


class Timeouts(BaseModel):
    """Per-operation timeouts in milliseconds."""

    model_config = ConfigDict(frozen=True)

    discovery: int = Field(30_000, gt=0)
    prioritization: int = Field(15_000, gt=0)
    parsing: int = Field(10_000, gt=0)
    extraction: int = Field(20_000, gt=0)
    related_links: int = Field(18_000, gt=0)


class BatchDelays(BaseModel):
    """Politeness delays between batches, in milliseconds."""

    model_config = ConfigDict(frozen=True)

    prioritization: int = Field(300, ge=0)
    parsing: int = Field(50, ge=0)
    extraction: int = Field(300, ge=0)
    publishing: int = Field(50, ge=0)


class DegradedMode(BaseModel):
    """Threshold relaxation applied to very small candidate pools."""

    model_config = ConfigDict(frozen=True)

    pool_size: int = Field(3, ge=0)
    threshold: float = Field(0.3, ge=0.0, le=1.0)


class EarlyTermination(BaseModel):
    """Stop extracting once this many high-confidence results exist."""

    model_config = ConfigDict(frozen=True)

    count: int = Field(8, gt=0)
    min_confidence: float = Field(0.8, ge=0.0, le=1.0)


class PipelineConfig(BaseSettings):
    """Process-wide pipeline tunables.

    Loaded from defaults plus ``EVENT_PIPELINE_*`` environment overrides,
    e.g. ``EVENT_PIPELINE_THRESHOLDS__CONFIDENCE=0.7``. Frozen after load.
    """

    model_config = SettingsConfigDict(
        env_prefix="EVENT_PIPELINE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    thresholds: Thresholds = Field(default_factory=Thresholds)
    sources: Sources = Field(default_factory=Sources)
    limits: Limits = Field(default_factory=Limits)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    batch_delays: BatchDelays = Field(default_factory=BatchDelays)
    degraded_mode: DegradedMode = Field(default_factory=DegradedMode)
    early_termination: EarlyTermination = Field(default_factory=EarlyTermination)

    @model_validator(mode="after")
    def _require_a_source(self) -> "PipelineConfig":
        if not self.sources.enabled():
            raise ValueError("At least one discovery source must be enabled")
        return self


def load_pipeline_config(**overrides) -> PipelineConfig:
    """Load pipeline config from defaults and environment, then apply overrides."""
    return PipelineConfig(**overrides)
