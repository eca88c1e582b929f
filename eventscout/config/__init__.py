"""Configuration: settings, pipeline tunables and prompt templates."""

from .settings import (
    BatchDelays,
    DegradedMode,
    EarlyTermination,
    Limits,
    PipelineConfig,
    Settings,
    Sources,
    Thresholds,
    Timeouts,
    get_settings,
    load_pipeline_config,
)

__all__ = [
    "Settings",
    "get_settings",
    "PipelineConfig",
    "load_pipeline_config",
    "Thresholds",
    "Sources",
    "Limits",
    "Timeouts",
    "BatchDelays",
    "DegradedMode",
    "EarlyTermination",
]
