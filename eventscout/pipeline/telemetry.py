"""Stage timing and throughput logging."""

import time

import structlog

from eventscout.models.pipeline import PipelineTelemetry, StageLog

logger = structlog.get_logger(__name__)


def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return round((time.perf_counter() - start) * 1000, 2)


def log_stage(
    telemetry: PipelineTelemetry,
    stage: str,
    start: float,
    input_count: int,
    output_count: int,
    **details,
) -> StageLog:
    """Build a StageLog, emit it and hand it to the telemetry sink."""
    efficiency = round(output_count / input_count * 100, 2) if input_count else 0.0
    entry = StageLog(
        stage=stage,
        duration_ms=elapsed_ms(start),
        input_count=input_count,
        output_count=output_count,
        efficiency=efficiency,
        details=details,
    )
    telemetry.record_stage(entry)
    logger.info(
        "stage_complete",
        stage=stage,
        duration_ms=entry.duration_ms,
        input_count=input_count,
        output_count=output_count,
        efficiency=efficiency,
        **details,
    )
    return entry
