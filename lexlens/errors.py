"""
Error taxonomy for the clause pipeline.

Document-level errors (extraction, segmentation) fail the whole job.
Clause-level errors are recorded per clause and never fail the job.
"""

from typing import Optional


class PipelineError(Exception):
    """Fatal pipeline error."""

    error_code = "ERR_PIPELINE"

    def __init__(self, message: str, error_code: Optional[str] = None):
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message)


class ExtractionError(PipelineError):
    """Source file is unreadable or of an unsupported type."""

    error_code = "ERR_EXTRACTION"


class SegmentationFailure(PipelineError):
    """Segmentation raised unexpectedly. Aborts the job."""

    error_code = "ERR_SEGMENTATION"


class ClauseProcessingError(PipelineError):
    """Classification, risk scoring, embedding or persistence failed for one clause."""

    error_code = "ERR_CLAUSE"

    def __init__(self, position: int, stage: str, message: str):
        self.position = position
        self.stage = stage
        super().__init__(f"clause {position} failed at {stage}: {message}")


class EmbeddingError(PipelineError):
    """Embedding model failed or returned an unexpected shape."""

    error_code = "ERR_EMBEDDING"


class DimensionMismatchError(ValueError):
    """Two vectors of different lengths were compared."""

    def __init__(self, left: int, right: int):
        self.left = left
        self.right = right
        super().__init__(f"Embeddings must have the same dimension ({left} != {right})")


class QueueError(PipelineError):
    """Enqueue or dequeue failed at the infrastructure level."""

    error_code = "ERR_QUEUE"


class InvalidTransitionError(PipelineError):
    """Status change not permitted by the lifecycle."""

    error_code = "ERR_INVALID_TRANSITION"


class RecordNotFoundError(PipelineError):
    """Document or processing job does not exist."""

    error_code = "ERR_NOT_FOUND"
