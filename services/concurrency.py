"""Global concurrency controls for LLM API calls and heavy endpoints.

Caps the number of concurrent outbound model and embedding requests per worker
process with an ``asyncio.Semaphore``, and rejects LLM-heavy HTTP requests with
503 when the worker is saturated instead of queuing them indefinitely.

The middleware is pure ASGI (not BaseHTTPMiddleware) so the SSE status stream
is not buffered.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Coroutine

from starlette.types import ASGIApp, Receive, Scope, Send

from config.settings import get_settings

logger = logging.getLogger(__name__)

# ── Global LLM semaphore ─────────────────────────────────────

_llm_semaphore: asyncio.Semaphore | None = None


def _get_semaphore() -> asyncio.Semaphore:
    """Lazy-init to ensure semaphore is bound to the running event loop."""
    global _llm_semaphore
    if _llm_semaphore is None:
        limit = get_settings().max_concurrent_llm_calls
        _llm_semaphore = asyncio.Semaphore(limit)
        logger.info("LLM concurrency semaphore initialized (max=%d)", limit)
    return _llm_semaphore


async def rate_limited_llm_call(
    func: Callable[..., Coroutine[Any, Any, Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Execute an async provider call with concurrency limiting.

    Usage::

        result = await rate_limited_llm_call(agent.run, prompt, model_settings=...)
    """
    async with _get_semaphore():
        return await func(*args, **kwargs)


# ── Heavy endpoint concurrency middleware (pure ASGI) ─────────

_MAX_CONCURRENT_HEAVY = 15  # per worker
_heavy_semaphore: asyncio.Semaphore | None = None

# Exact paths and per-content suffixes that trigger model calls in-request.
_HEAVY_PATHS = frozenset({
    "/api/assessment/questions",
    "/api/assessment/answers",
    "/api/assessment/grade",
})
_HEAVY_CONTENT_SUFFIXES = ("/ask", "/questions")


def _is_heavy(path: str) -> bool:
    if path in _HEAVY_PATHS:
        return True
    return path.startswith("/api/content/") and path.endswith(_HEAVY_CONTENT_SUFFIXES)


def _get_heavy_semaphore() -> asyncio.Semaphore:
    global _heavy_semaphore
    if _heavy_semaphore is None:
        _heavy_semaphore = asyncio.Semaphore(_MAX_CONCURRENT_HEAVY)
        logger.info("Heavy endpoint semaphore initialized (max=%d)", _MAX_CONCURRENT_HEAVY)
    return _heavy_semaphore


class ConcurrencyLimitMiddleware:
    """Reject heavy requests with 503 + Retry-After when the worker is at capacity.

    Status polling, concept lists and health checks pass through unaffected.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not _is_heavy(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        sem = _get_heavy_semaphore()
        if sem.locked():
            logger.warning("Concurrency limit reached for %s, returning 503", scope.get("path"))
            body = json.dumps({
                "error": "SERVICE_BUSY",
                "detail": "Server busy: too many concurrent requests. Please retry.",
            }).encode()
            await send({
                "type": "http.response.start",
                "status": 503,
                "headers": [
                    (b"content-type", b"application/json"),
                    (b"retry-after", b"5"),
                ],
            })
            await send({"type": "http.response.body", "body": body})
            return

        async with sem:
            await self.app(scope, receive, send)
