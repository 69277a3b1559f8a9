"""Domain-specific exceptions for the content insight pipeline.

Each exception carries an :class:`~models.errors.ErrorCode` so the API layer
and the status tracker can report failures in one frozen format without
inspecting message text.
"""

from __future__ import annotations

from models.errors import ErrorCode, format_error


class ContentPipelineError(Exception):
    """Base class for every failure the pipeline reports to callers."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_status_error(self) -> str:
        """Render as ``{ERROR_CODE}: {message}`` for ``ProcessingStatus.error``."""
        return format_error(self.code, self.message)


class ExtractionError(ContentPipelineError):
    """The source document is unreachable, unsupported, or has too little text."""

    code = ErrorCode.EXTRACTION_FAILED

    def __init__(self, source_url: str, message: str) -> None:
        self.source_url = source_url
        super().__init__(message)


class SchemaValidationError(ContentPipelineError):
    """The model answered, but its output does not match the expected schema."""

    code = ErrorCode.SCHEMA_VALIDATION_FAILED

    def __init__(self, output_name: str, message: str) -> None:
        self.output_name = output_name
        super().__init__(f"{output_name}: {message}")


class ModelInvocationError(ContentPipelineError):
    """Transport failure, timeout, auth failure or rate limit at the model provider."""

    code = ErrorCode.LLM_PROVIDER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class EmbeddingError(ContentPipelineError):
    """The embedding provider failed.  Best-effort: never fails a run."""

    code = ErrorCode.EMBEDDING_FAILED


class NotProcessedError(ContentPipelineError):
    """A derived view was requested before a successful analysis run exists."""

    code = ErrorCode.NOT_PROCESSED

    def __init__(self, content_id: str, state: str = "none") -> None:
        self.content_id = content_id
        self.state = state
        super().__init__(
            f"content '{content_id}' has not been processed (state={state})"
        )


class NotFoundError(ContentPipelineError):
    """A referenced content item does not exist."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, entity_id: str, entity_type: str = "content") -> None:
        self.entity_id = entity_id
        self.entity_type = entity_type
        super().__init__(f"{entity_type} '{entity_id}' not found")
