"""Dependency providers for the API routers.

Long-lived clients and the analysis pipeline are process singletons; the
per-request view objects are cheap and built from them.  Tests replace any of
these through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from agents.content_analysis import ContentAnalysisPipeline
from agents.content_views import ContentViews
from agents.related_content import RelatedContentFinder
from agents.test_authoring import AssessmentPipeline
from agents.tutor import Tutor
from services.content_store import ContentStore, get_content_store
from services.embedding_client import EmbeddingClient, OpenAICompatibleEmbeddingClient
from services.model_client import ModelClient, PydanticAIModelClient
from services.text_extractor import DocumentTextExtractor


def get_store() -> ContentStore:
    return get_content_store()


@lru_cache
def get_model_client() -> ModelClient:
    return PydanticAIModelClient()


@lru_cache
def get_embedding_client() -> EmbeddingClient:
    return OpenAICompatibleEmbeddingClient()


@lru_cache
def get_text_extractor() -> DocumentTextExtractor:
    return DocumentTextExtractor()


@lru_cache
def get_pipeline() -> ContentAnalysisPipeline:
    """The process-wide analysis pipeline (owns the background run tasks)."""
    return ContentAnalysisPipeline(
        store=get_content_store(),
        extractor=get_text_extractor(),
        model_client=get_model_client(),
        embedding_client=get_embedding_client(),
    )


def get_content_views(
    store: ContentStore = Depends(get_store),
    model_client: ModelClient = Depends(get_model_client),
) -> ContentViews:
    return ContentViews(store, model_client)


def get_related_finder(store: ContentStore = Depends(get_store)) -> RelatedContentFinder:
    return RelatedContentFinder(store)


def get_tutor(
    store: ContentStore = Depends(get_store),
    model_client: ModelClient = Depends(get_model_client),
    finder: RelatedContentFinder = Depends(get_related_finder),
) -> Tutor:
    return Tutor(store, model_client, finder)


def get_assessment_pipeline(
    model_client: ModelClient = Depends(get_model_client),
) -> AssessmentPipeline:
    return AssessmentPipeline(model_client)
