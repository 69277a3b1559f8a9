"""Shared pytest fixtures for the content insight tests.

Provides:
- ``store``: Fresh InMemoryContentStore per test
- ``model_client``: Scripted FakeModelClient (no responses configured)
- ``embedding_client``: FakeEmbeddingClient returning a fixed vector
- ``documents``: URL → (status, body, content-type) served by the extractor
- ``extractor``: DocumentTextExtractor backed by httpx.MockTransport
- ``pipeline``: ContentAnalysisPipeline wired from the fixtures above
"""

from __future__ import annotations

import pytest

from agents.content_analysis import ContentAnalysisPipeline
from config.llm_config import LLMConfig
from services.content_store import InMemoryContentStore
from tests.helpers import (
    SAMPLE_TEXT,
    FakeEmbeddingClient,
    FakeModelClient,
    make_extractor,
)


@pytest.fixture
def store() -> InMemoryContentStore:
    """Fresh content store — isolated per test."""
    return InMemoryContentStore()


@pytest.fixture
def model_client() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def embedding_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def documents() -> dict[str, tuple[int, bytes, str]]:
    return {
        "https://files.test/photo-1.txt": (200, SAMPLE_TEXT.encode(), "text/plain"),
    }


@pytest.fixture
def extractor(documents):
    return make_extractor(documents)


@pytest.fixture
def pipeline(store, extractor, model_client, embedding_client) -> ContentAnalysisPipeline:
    return ContentAnalysisPipeline(
        store=store,
        extractor=extractor,
        model_client=model_client,
        embedding_client=embedding_client,
        llm_config=LLMConfig(model="test"),
    )
