"""Content store: processing status records and analysis bundles.

Abstract interface with an in-memory implementation for single-process
deployments and tests, and a Redis implementation for multi-worker
deployments.  Records cross the store boundary as validated pydantic models;
a stored record that no longer validates is logged and treated as absent.

``claim_run`` is the only conditional write: it moves an item to ``pending``
unless a run is already pending or running, which gives single-flight
processing per content item.  An active record whose ``updated_at`` is older
than ``stale_run_seconds`` belongs to a run that died with its worker and may
be claimed again.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from pydantic import ValidationError

from config.settings import get_settings
from errors.exceptions import NotProcessedError
from models.content import ContentAnalysis, ProcessingState, ProcessingStatus, utcnow

logger = logging.getLogger(__name__)


def pending_status(content_id: str, run_id: str) -> ProcessingStatus:
    """The status record written when a new run is claimed."""
    return ProcessingStatus(
        content_id=content_id,
        state=ProcessingState.PENDING,
        progress=0,
        run_id=run_id,
    )


# ── Abstract Interface ───────────────────────────────────────


class ContentStore(ABC):
    """Abstract content store — implement for different backends."""

    def __init__(self, stale_run_seconds: float | None = None) -> None:
        if stale_run_seconds is None:
            stale_run_seconds = get_settings().stale_run_seconds
        self.stale_run_seconds = stale_run_seconds

    def blocks_new_run(self, current: ProcessingStatus | None) -> bool:
        """True while *current* is a live pending/running record."""
        if current is None or not current.is_active:
            return False
        idle = (utcnow() - current.updated_at).total_seconds()
        if idle < self.stale_run_seconds:
            return True
        logger.warning(
            "Reclaiming stale %s run %s for %s (no update for %.0fs)",
            current.state.value, current.run_id, current.content_id, idle,
        )
        return False

    @abstractmethod
    async def get_status(self, content_id: str) -> ProcessingStatus | None:
        """Return the status record, or None if the item was never processed."""
        ...

    @abstractmethod
    async def save_status(self, status: ProcessingStatus) -> None:
        """Persist a status record (create or replace)."""
        ...

    @abstractmethod
    async def claim_run(
        self, content_id: str, run_id: str,
    ) -> tuple[bool, ProcessingStatus]:
        """Atomically start a run unless a live one is pending or running.

        Returns:
            ``(True, pending_status)`` when claimed, otherwise
            ``(False, current_status)``.
        """
        ...

    @abstractmethod
    async def get_analysis(self, content_id: str) -> ContentAnalysis | None:
        """Return the analysis bundle, or None."""
        ...

    @abstractmethod
    async def save_analysis(self, analysis: ContentAnalysis) -> None:
        """Replace the analysis bundle for ``analysis.content_id`` wholesale."""
        ...

    @abstractmethod
    async def list_analyses(self, classroom_id: str) -> list[ContentAnalysis]:
        """Return every stored bundle belonging to *classroom_id*."""
        ...

    async def require_analysis(self, content_id: str) -> ContentAnalysis:
        """Return the bundle of a successfully processed item.

        Raises:
            NotProcessedError: The item is not in state ``complete`` or has no bundle.
        """
        status = await self.get_status(content_id)
        state = status.state if status else ProcessingState.NONE
        if state != ProcessingState.COMPLETE:
            raise NotProcessedError(content_id, state.value)
        analysis = await self.get_analysis(content_id)
        if analysis is None:
            raise NotProcessedError(content_id, state.value)
        return analysis

    async def close(self) -> None:
        """Release backend resources."""
        return None

    @property
    def backend(self) -> str:
        return type(self).__name__


# ── In-Memory Implementation ────────────────────────────────


class InMemoryContentStore(ContentStore):
    """Process-local store.  Records are deep-copied in and out."""

    def __init__(self, stale_run_seconds: float | None = None) -> None:
        super().__init__(stale_run_seconds)
        self._statuses: dict[str, ProcessingStatus] = {}
        self._analyses: dict[str, ContentAnalysis] = {}
        self._lock = asyncio.Lock()

    async def get_status(self, content_id: str) -> ProcessingStatus | None:
        status = self._statuses.get(content_id)
        return status.model_copy(deep=True) if status else None

    async def save_status(self, status: ProcessingStatus) -> None:
        async with self._lock:
            self._statuses[status.content_id] = status.model_copy(deep=True)

    async def claim_run(
        self, content_id: str, run_id: str,
    ) -> tuple[bool, ProcessingStatus]:
        async with self._lock:
            current = self._statuses.get(content_id)
            if self.blocks_new_run(current):
                return False, current.model_copy(deep=True)
            claimed = pending_status(content_id, run_id)
            self._statuses[content_id] = claimed
            return True, claimed.model_copy(deep=True)

    async def get_analysis(self, content_id: str) -> ContentAnalysis | None:
        analysis = self._analyses.get(content_id)
        return analysis.model_copy(deep=True) if analysis else None

    async def save_analysis(self, analysis: ContentAnalysis) -> None:
        async with self._lock:
            self._analyses[analysis.content_id] = analysis.model_copy(deep=True)

    async def list_analyses(self, classroom_id: str) -> list[ContentAnalysis]:
        return [
            a.model_copy(deep=True)
            for a in self._analyses.values()
            if a.classroom_id == classroom_id
        ]

    @property
    def size(self) -> int:
        """Number of stored bundles."""
        return len(self._analyses)


# ── Redis Implementation ─────────────────────────────────────


class RedisContentStore(ContentStore):
    """Redis-backed store for multi-worker deployments.

    Layout::

        content:status:{id}        JSON ProcessingStatus
        content:analysis:{id}      JSON ContentAnalysis
        content:classroom:{cid}    SET of content ids
    """

    _STATUS_PREFIX = "content:status:"
    _ANALYSIS_PREFIX = "content:analysis:"
    _CLASSROOM_PREFIX = "content:classroom:"

    def __init__(
        self,
        redis_url: str = "",
        *,
        client=None,
        stale_run_seconds: float | None = None,
    ) -> None:
        super().__init__(stale_run_seconds)
        if client is None:
            import redis.asyncio as aioredis

            client = aioredis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=10,
                socket_timeout=10,
            )
        self._redis = client

    def _status_key(self, content_id: str) -> str:
        return f"{self._STATUS_PREFIX}{content_id}"

    def _analysis_key(self, content_id: str) -> str:
        return f"{self._ANALYSIS_PREFIX}{content_id}"

    def _classroom_key(self, classroom_id: str) -> str:
        return f"{self._CLASSROOM_PREFIX}{classroom_id}"

    @staticmethod
    def _load_status(content_id: str, data: str | None) -> ProcessingStatus | None:
        if data is None:
            return None
        try:
            return ProcessingStatus.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding invalid status record for %s", content_id)
            return None

    @staticmethod
    def _load_analysis(content_id: str, data: str | None) -> ContentAnalysis | None:
        if data is None:
            return None
        try:
            return ContentAnalysis.model_validate_json(data)
        except ValidationError:
            logger.warning("Discarding invalid analysis record for %s", content_id)
            return None

    async def get_status(self, content_id: str) -> ProcessingStatus | None:
        data = await self._redis.get(self._status_key(content_id))
        return self._load_status(content_id, data)

    async def save_status(self, status: ProcessingStatus) -> None:
        await self._redis.set(self._status_key(status.content_id), status.model_dump_json())

    async def claim_run(
        self, content_id: str, run_id: str,
    ) -> tuple[bool, ProcessingStatus]:
        from redis.exceptions import WatchError

        key = self._status_key(content_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    current = self._load_status(content_id, await pipe.get(key))
                    if self.blocks_new_run(current):
                        await pipe.unwatch()
                        return False, current
                    claimed = pending_status(content_id, run_id)
                    pipe.multi()
                    pipe.set(key, claimed.model_dump_json())
                    await pipe.execute()
                    return True, claimed
                except WatchError:
                    logger.debug("Status for %s changed during claim, retrying", content_id)
                    continue

    async def get_analysis(self, content_id: str) -> ContentAnalysis | None:
        data = await self._redis.get(self._analysis_key(content_id))
        return self._load_analysis(content_id, data)

    async def save_analysis(self, analysis: ContentAnalysis) -> None:
        previous = await self.get_analysis(analysis.content_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(self._analysis_key(analysis.content_id), analysis.model_dump_json())
            if previous is not None and previous.classroom_id != analysis.classroom_id:
                pipe.srem(self._classroom_key(previous.classroom_id), analysis.content_id)
            pipe.sadd(self._classroom_key(analysis.classroom_id), analysis.content_id)
            await pipe.execute()

    async def list_analyses(self, classroom_id: str) -> list[ContentAnalysis]:
        ids = sorted(await self._redis.smembers(self._classroom_key(classroom_id)))
        if not ids:
            return []
        raw = await self._redis.mget([self._analysis_key(cid) for cid in ids])
        analyses = []
        for cid, data in zip(ids, raw):
            analysis = self._load_analysis(cid, data)
            if analysis is not None:
                analyses.append(analysis)
        return analyses

    async def close(self) -> None:
        """Close the Redis connection pool."""
        await self._redis.aclose()

    async def ping(self) -> bool:
        """Check Redis connectivity."""
        try:
            return await self._redis.ping()
        except Exception:
            return False


# ── Module-level Singleton ───────────────────────────────────

_store: ContentStore | None = None


def get_content_store() -> ContentStore:
    """Get the singleton content store instance."""
    global _store
    if _store is None:
        settings = get_settings()
        if settings.content_store_type == "redis" and settings.redis_url:
            _store = RedisContentStore(redis_url=settings.redis_url)
            logger.info("Initialized RedisContentStore")
        else:
            _store = InMemoryContentStore()
            logger.info("Initialized InMemoryContentStore")
    return _store


async def close_content_store() -> None:
    """Close and forget the singleton store (app shutdown)."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None
