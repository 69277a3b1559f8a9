"""Vector similarity helpers (numpy)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

import numpy as np

from models.content import ContentAnalysis

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Reported precision.  Ranking uses the rounded score so equal reported
# scores are always ordered by upload time.
SIMILARITY_DECIMALS = 4


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors.  A zero vector scores 0."""
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        raise ValueError(f"dimension mismatch: {va.shape} vs {vb.shape}")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def cosine_similarities(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of *query* against every row of *matrix*."""
    q = np.asarray(query, dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    dots = matrix @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


def rank_by_similarity(
    source: ContentAnalysis,
    candidates: Sequence[ContentAnalysis],
    *,
    min_similarity: float,
    limit: int,
) -> list[tuple[ContentAnalysis, float]]:
    """Rank *candidates* against *source* by embedding similarity.

    Skips the source itself and any candidate whose embedding is empty or of
    a different dimension.  Keeps scores ``>= min_similarity``, rounds them to
    ``SIMILARITY_DECIMALS`` and orders by that score descending, then by upload
    time, newest first.
    """
    dim = len(source.embedding)
    if dim == 0 or limit <= 0:
        return []

    pool = [
        c for c in candidates
        if c.content_id != source.content_id and len(c.embedding) == dim
    ]
    if not pool:
        return []

    matrix = np.asarray([c.embedding for c in pool], dtype=float)
    sims = cosine_similarities(source.embedding, matrix)

    scored = [
        (c, round(float(s), SIMILARITY_DECIMALS))
        for c, s in zip(pool, sims)
        if s >= min_similarity
    ]
    scored.sort(key=lambda pair: _uploaded_ts(pair[0]), reverse=True)
    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:limit]


def _uploaded_ts(analysis: ContentAnalysis) -> float:
    uploaded = analysis.uploaded_at or analysis.processed_at or _EPOCH
    if uploaded.tzinfo is None:
        uploaded = uploaded.replace(tzinfo=timezone.utc)
    return uploaded.timestamp()
