"""Structured error codes shared by the HTTP layer and the status tracker.

Failed runs record their error as::

    {ERROR_CODE}: {human_readable_detail}

and HTTP error bodies carry the bare code in ``error``.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Canonical error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    NOT_PROCESSED = "NOT_PROCESSED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    SCHEMA_VALIDATION_FAILED = "SCHEMA_VALIDATION_FAILED"
    LLM_PROVIDER_ERROR = "LLM_PROVIDER_ERROR"
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# HTTP status per code.  Codes missing here map to 500.
HTTP_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.NOT_PROCESSED: 409,
    ErrorCode.EXTRACTION_FAILED: 422,
    ErrorCode.SCHEMA_VALIDATION_FAILED: 502,
    ErrorCode.LLM_PROVIDER_ERROR: 503,
    ErrorCode.EMBEDDING_FAILED: 503,
}

# Keep failed-status messages short enough for a UI toast.
MAX_ERROR_DETAIL_CHARS = 500


def format_error(code: ErrorCode, detail: str) -> str:
    """Format an error for a status record.

    Returns:
        ``{ERROR_CODE}: {detail}`` with the detail truncated.
    """
    return f"{code.value}: {detail[:MAX_ERROR_DETAIL_CHARS]}"


def http_status_for(code: ErrorCode) -> int:
    """Return the HTTP status code used for *code*."""
    return HTTP_STATUS_BY_CODE.get(code, 500)
