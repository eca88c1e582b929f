"""Error taxonomy for the event pipeline.

Every pipeline error carries the stage it was raised in, the candidate it
concerns (if any) and the underlying exception. Candidate-level errors are
isolated by the orchestrator; only orchestration-level errors leave
``EventPipeline.process``.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from eventscout.models.candidate import Candidate


class PipelineError(Exception):
    """Error during event pipeline execution."""

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        candidate: Optional["Candidate"] = None,
        original_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        if stage is not None:
            self.stage = stage
        self.candidate = candidate
        self.original_error = original_error


class DiscoveryError(PipelineError):
    """A discovery provider failed."""

    stage = "discovery"


class PrioritizationError(PipelineError):
    """Scoring a candidate failed."""

    stage = "prioritization"


class ParsingError(PipelineError):
    """Fetching or parsing a candidate page failed."""

    stage = "parsing"


class ExtractionError(PipelineError):
    """Extraction precondition failed."""

    stage = "extraction"


class PublishingError(PipelineError):
    """Publishing precondition failed."""

    stage = "publishing"


class InvalidTransitionError(PipelineError):
    """A candidate status change would move backwards or leave a terminal state."""

    stage = "state"
