"""Bounded-concurrency batch runner for per-candidate stage work.

Each batch fans out with ``asyncio.gather`` and is awaited as a whole before
the next one starts. Results are tagged with the originating candidate id, so
callers never rely on positional ordering.
"""

import asyncio
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

import structlog

from eventscout.models.candidate import Candidate

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# (ceiling, floor) per stage
STAGE_CONCURRENCY = {
    "parsing": (8, 3),
    "extraction": (4, 2),
    "publishing": (5, 2),
}


def calculate_optimal_concurrency(count: int, ceiling: int, floor: int) -> int:
    """Batch size for ``count`` inputs.

    Small inputs use the floor, medium inputs scale with half the input size,
    large inputs use the ceiling.
    """
    if count <= 5:
        return max(1, min(count, floor))
    if count <= 15:
        return min(math.ceil(count / 2), ceiling)
    return ceiling


def concurrency_for_stage(stage: str, count: int) -> int:
    ceiling, floor = STAGE_CONCURRENCY[stage]
    return calculate_optimal_concurrency(count, ceiling, floor)


@dataclass
class TaskOutcome(Generic[T]):
    """Result of one worker call, tagged with its candidate id."""

    candidate_id: str
    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchRun(Generic[T]):
    outcomes: list[TaskOutcome[T]] = field(default_factory=list)
    batches_total: int = 0
    batches_run: int = 0
    stopped_early: bool = False

    def by_candidate(self) -> dict[str, TaskOutcome[T]]:
        return {outcome.candidate_id: outcome for outcome in self.outcomes}


async def _tagged(candidate: Candidate, worker: Callable[[Candidate], Awaitable[T]]) -> TaskOutcome[T]:
    try:
        return TaskOutcome(candidate_id=candidate.id, value=await worker(candidate))
    except Exception as e:
        return TaskOutcome(candidate_id=candidate.id, error=e)


async def run_in_batches(
    candidates: Sequence[Candidate],
    worker: Callable[[Candidate], Awaitable[T]],
    concurrency: int,
    delay_ms: int = 0,
    should_stop: Optional[Callable[[list[TaskOutcome[T]]], bool]] = None,
    stage: str = "batch",
) -> BatchRun[T]:
    """Run ``worker`` over ``candidates`` in barrier-synchronized batches.

    Args:
        candidates: Inputs, split into consecutive batches of ``concurrency``.
        worker: Coroutine function applied to each candidate. Exceptions are
            captured on the outcome instead of cancelling sibling tasks.
        concurrency: Batch size.
        delay_ms: Pause between batches.
        should_stop: Checked after each batch with all outcomes so far; when it
            returns True the remaining batches are skipped.
        stage: Name used in log events.

    Returns:
        BatchRun with the tagged outcomes and batch bookkeeping.
    """
    concurrency = max(1, concurrency)
    batches = [candidates[i:i + concurrency] for i in range(0, len(candidates), concurrency)]
    run: BatchRun[T] = BatchRun(batches_total=len(batches))

    for index, batch in enumerate(batches):
        results = await asyncio.gather(*(_tagged(candidate, worker) for candidate in batch))
        run.outcomes.extend(results)
        run.batches_run += 1

        if should_stop is not None and should_stop(run.outcomes):
            remaining = len(batches) - index - 1
            if remaining:
                run.stopped_early = True
                logger.info("batches_stopped_early", stage=stage, remaining_batches=remaining)
            break

        if delay_ms and index < len(batches) - 1:
            await asyncio.sleep(delay_ms / 1000)

    return run
