"""Event pipeline: stages, batching, orchestration and the search service."""

from .orchestrator import EventPipeline, build_metrics
from .service import EventSearchService

__all__ = ["EventPipeline", "EventSearchService", "build_metrics"]
