"""Related-content finder — nearest neighbours by embedding within a classroom."""

from __future__ import annotations

import logging

from models.content import ContentAnalysis, RelatedContent
from services.content_store import ContentStore
from services.similarity import rank_by_similarity

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_MIN_SIMILARITY = 0.7
MAX_REASON_ITEMS = 2


def relevance_reason(source: ContentAnalysis, candidate: ContentAnalysis) -> str:
    """Explain why *candidate* is related: shared topics, else shared concepts."""
    candidate_topics = {t.lower() for t in candidate.topics}
    shared_topics = [t for t in source.topics if t.lower() in candidate_topics]
    if shared_topics:
        return f"Shares topics: {', '.join(shared_topics[:MAX_REASON_ITEMS])}"

    source_concepts = {c.term.lower(): c for c in source.key_concepts}
    shared_concepts: list[tuple[int, str]] = []
    for concept in candidate.key_concepts:
        match = source_concepts.get(concept.term.lower())
        if match is not None:
            shared_concepts.append((match.importance + concept.importance, match.term))
    if shared_concepts:
        shared_concepts.sort(key=lambda pair: pair[0], reverse=True)
        terms = [term for _, term in shared_concepts[:MAX_REASON_ITEMS]]
        return f"Related concepts: {', '.join(terms)}"

    return "Similar subject matter"


class RelatedContentFinder:
    """Find other processed documents in the same classroom with similar embeddings."""

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    async def find(
        self,
        content_id: str,
        classroom_id: str | None = None,
        limit: int = DEFAULT_LIMIT,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ) -> list[RelatedContent]:
        """Return up to *limit* related items, most similar first.

        Args:
            content_id: The processed source document.
            classroom_id: Classroom to search; defaults to the source's classroom.
            limit: Maximum number of results.
            min_similarity: Cosine similarity threshold (inclusive).
        """
        source = await self._store.require_analysis(content_id)
        if not source.embedding:
            logger.info("No embedding for %s, related content unavailable", content_id)
            return []

        scope = source.classroom_id if classroom_id is None else classroom_id
        candidates = await self._store.list_analyses(scope)
        ranked = rank_by_similarity(
            source, candidates, min_similarity=min_similarity, limit=limit,
        )
        logger.debug(
            "Related content for %s: %d candidates, %d above %.2f",
            content_id, len(candidates), len(ranked), min_similarity,
        )
        return [
            RelatedContent(
                content_id=candidate.content_id,
                title=candidate.title,
                subject=candidate.subject,
                topics=candidate.topics,
                uploaded_at=candidate.uploaded_at,
                similarity=similarity,
                relevance_reason=relevance_reason(source, candidate),
            )
            for candidate, similarity in ranked
        ]
