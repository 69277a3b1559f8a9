"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import get_store
from services.content_store import ContentStore

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(store: ContentStore = Depends(get_store)):
    """Liveness probe.  Reports the configured store backend."""
    return {"status": "healthy", "store": store.backend}
