"""Embedding client: text → fixed-dimension float vector.

Talks to any OpenAI-compatible ``/embeddings`` endpoint (DashScope compatible
mode by default).  Embeddings are best-effort in the pipeline: failures raise
:class:`EmbeddingError` and the orchestrator carries on without a vector.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod

import httpx
import numpy as np

from config.settings import get_settings
from errors.exceptions import EmbeddingError
from services.concurrency import rate_limited_llm_call

logger = logging.getLogger(__name__)

MAX_EMBEDDING_INPUT_CHARS = 10_000

_WHITESPACE = re.compile(r"\s+")


def prepare_embedding_input(text: str) -> str:
    """Collapse whitespace and cap the length sent to the provider."""
    return _WHITESPACE.sub(" ", text).strip()[:MAX_EMBEDDING_INPUT_CHARS]


class EmbeddingClient(ABC):
    """Abstract embedding provider."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*.

        Raises:
            EmbeddingError: The provider failed or returned an unusable vector.
        """


class OpenAICompatibleEmbeddingClient(EmbeddingClient):
    """POST ``{model, input, encoding_format}`` to ``{base_url}/embeddings``."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        dimension: int | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._client = client
        self._base_url = (base_url or settings.embedding_base_url).rstrip("/")
        self._api_key = api_key or settings.embedding_api_key or settings.dashscope_api_key
        self._model = model or settings.embedding_model
        self._dimension = dimension or settings.embedding_dim
        self._timeout = timeout or settings.embedding_timeout_seconds

    @property
    def dimension(self) -> int:
        return self._dimension

    async def _post(self, url: str, payload: dict, headers: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, headers=headers, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload, headers=headers)

    async def embed(self, text: str) -> list[float]:
        cleaned = prepare_embedding_input(text)
        if not cleaned:
            raise EmbeddingError("cannot embed empty text")

        payload = {"model": self._model, "input": cleaned, "encoding_format": "float"}
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        url = f"{self._base_url}/embeddings"

        try:
            resp = await rate_limited_llm_call(self._post, url, payload, headers)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Embedding API error %d: %s",
                exc.response.status_code, exc.response.text[:200],
            )
            raise EmbeddingError(f"embedding API returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"embedding API unreachable: {exc!r}") from exc
        except ValueError as exc:
            raise EmbeddingError("embedding API returned invalid JSON") from exc

        try:
            vector = np.asarray(data["data"][0]["embedding"], dtype=float)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingError(f"unexpected embedding response shape: {exc!r}") from exc

        if vector.ndim != 1 or vector.shape[0] != self._dimension:
            raise EmbeddingError(
                f"embedding has shape {vector.shape}, expected ({self._dimension},)"
            )
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError("embedding contains non-finite values")

        logger.debug("Embedded %d chars → %d dims", len(cleaned), vector.shape[0])
        return vector.tolist()
