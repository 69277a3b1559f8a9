"""Custom exception hierarchy for the content insight pipeline."""

from errors.exceptions import (
    ContentPipelineError,
    EmbeddingError,
    ExtractionError,
    ModelInvocationError,
    NotFoundError,
    NotProcessedError,
    SchemaValidationError,
)

__all__ = [
    "ContentPipelineError",
    "EmbeddingError",
    "ExtractionError",
    "ModelInvocationError",
    "NotFoundError",
    "NotProcessedError",
    "SchemaValidationError",
]
