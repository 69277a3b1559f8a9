"""Content analysis pipeline — extract → analyze → embed → store.

One background run per content item produces the whole analysis bundle:

Stage 1 (Extract): download the document and pull out its text
Stage 2 (Analyze): one structured model call returns summaries, concepts,
    practice questions and metadata
Stage 3 (Embed): embed title + detailed summary + concept terms (best-effort)
Stage 4 (Store): replace the bundle wholesale, then mark the status complete

The status record is the polling contract.  It only moves forward within a
run (``pending → running → complete | failed``), and ``claim_run`` in the
store guarantees at most one run per item is pending or running.
"""

from __future__ import annotations

import asyncio
import logging
import uuid

from config.llm_config import LLMConfig
from config.prompts.content_analysis import (
    ANALYSIS_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_embedding_text,
)
from config.settings import get_settings
from errors.exceptions import ContentPipelineError, EmbeddingError
from models.content import (
    PROCESSING_VERSION,
    AnalysisDraft,
    ContentAnalysis,
    ContentItem,
    ProcessingState,
    ProcessingStatus,
    ProcessTrigger,
    utcnow,
)
from models.errors import ErrorCode, format_error
from services.content_store import ContentStore
from services.embedding_client import EmbeddingClient
from services.model_client import ModelClient
from services.text_extractor import DocumentTextExtractor

logger = logging.getLogger(__name__)

PROGRESS_EXTRACTED = 20
PROGRESS_ANALYZED = 60
PROGRESS_EMBEDDED = 80
PROGRESS_COMPLETE = 100


class ContentAnalysisPipeline:
    """Background analysis of uploaded documents.

    Args:
        store: Where status records and bundles live.
        extractor: Text extractor for source documents.
        model_client: Structured LLM client.
        embedding_client: Embedding provider; failures only degrade related content.
        llm_config: Generation overrides for the analysis call.
    """

    def __init__(
        self,
        store: ContentStore,
        extractor: DocumentTextExtractor,
        model_client: ModelClient,
        embedding_client: EmbeddingClient,
        llm_config: LLMConfig | None = None,
    ) -> None:
        self._store = store
        self._extractor = extractor
        self._model_client = model_client
        self._embedding_client = embedding_client
        self._llm_config = llm_config or LLMConfig(
            model=get_settings().model_for("analysis"),
            temperature=0.3,
        )
        self._tasks: dict[str, asyncio.Task[None]] = {}

    # ── Public API ───────────────────────────────────────────

    async def process_content(self, item: ContentItem) -> ProcessTrigger:
        """Start (or coalesce into) an analysis run for *item*.

        Returns immediately.  When a run for the item is already pending or
        running, nothing new is started and the current status is returned
        with ``accepted=False``.
        """
        run_id = uuid.uuid4().hex[:12]
        claimed, status = await self._store.claim_run(item.content_id, run_id)
        if not claimed:
            logger.info(
                "Processing already in flight for %s (state=%s, run=%s), coalescing",
                item.content_id, status.state.value, status.run_id,
            )
            return ProcessTrigger(accepted=False, status=status)

        task = asyncio.create_task(
            self._run(item, run_id), name=f"content-analysis:{item.content_id}"
        )
        self._tasks[item.content_id] = task
        task.add_done_callback(lambda t, cid=item.content_id: self._forget(cid, t))
        logger.info("Queued analysis run %s for %s", run_id, item.content_id)
        return ProcessTrigger(accepted=True, status=status)

    async def get_status(self, content_id: str) -> ProcessingStatus:
        """Current processing status.  Unknown items report ``state=none``."""
        status = await self._store.get_status(content_id)
        return status or ProcessingStatus(content_id=content_id)

    async def wait(self, content_id: str) -> ProcessingStatus:
        """Wait for the in-flight run of *content_id* (if any) and return the final status."""
        task = self._tasks.get(content_id)
        if task is not None:
            await asyncio.wait({task})
        return await self.get_status(content_id)

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel outstanding runs (app shutdown)."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d in-flight analysis runs", len(tasks))

    # ── Run ──────────────────────────────────────────────────

    def _forget(self, content_id: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(content_id) is task:
            del self._tasks[content_id]

    async def _advance(self, status: ProcessingStatus, **changes) -> ProcessingStatus:
        updated = status.model_copy(update={**changes, "updated_at": utcnow()})
        await self._store.save_status(updated)
        return updated

    async def _run(self, item: ContentItem, run_id: str) -> None:
        status = ProcessingStatus(
            content_id=item.content_id,
            state=ProcessingState.RUNNING,
            progress=0,
            run_id=run_id,
            started_at=utcnow(),
        )
        await self._store.save_status(status)
        logger.info("Analysis run %s started for %s (%s)", run_id, item.content_id, item.title)

        try:
            text = await self._extractor.extract(item.source_url)
            status = await self._advance(status, progress=PROGRESS_EXTRACTED)

            draft = await self._model_client.generate(
                build_analysis_prompt(item, text),
                AnalysisDraft,
                system_prompt=ANALYSIS_SYSTEM_PROMPT,
                config=self._llm_config,
            )
            status = await self._advance(status, progress=PROGRESS_ANALYZED)

            embedding = await self._embed(item, draft)
            status = await self._advance(status, progress=PROGRESS_EMBEDDED)

            analysis = self._build_analysis(item, draft, embedding, len(text))
            await self._store.save_analysis(analysis)
            await self._advance(
                status,
                state=ProcessingState.COMPLETE,
                progress=PROGRESS_COMPLETE,
                completed_at=utcnow(),
            )
            logger.info(
                "Analysis run %s complete for %s: %d concepts, %d questions, embedding=%d dims",
                run_id, item.content_id, len(analysis.key_concepts),
                len(analysis.practice_questions), len(analysis.embedding),
            )
        except ContentPipelineError as exc:
            logger.warning("Analysis run %s failed for %s: %s", run_id, item.content_id, exc)
            await self._advance(
                status,
                state=ProcessingState.FAILED,
                error=exc.to_status_error(),
                completed_at=utcnow(),
            )
        except asyncio.CancelledError:
            await self._advance(
                status,
                state=ProcessingState.FAILED,
                error=format_error(ErrorCode.INTERNAL_ERROR, "processing cancelled"),
                completed_at=utcnow(),
            )
            raise
        except Exception as exc:
            logger.exception("Analysis run %s crashed for %s", run_id, item.content_id)
            await self._advance(
                status,
                state=ProcessingState.FAILED,
                error=format_error(ErrorCode.INTERNAL_ERROR, f"{type(exc).__name__}: {exc}"),
                completed_at=utcnow(),
            )

    async def _embed(self, item: ContentItem, draft: AnalysisDraft) -> list[float]:
        text = build_embedding_text(
            item, draft.summaries.detailed, [c.term for c in draft.key_concepts]
        )
        try:
            return await self._embedding_client.embed(text)
        except EmbeddingError as exc:
            logger.warning(
                "Embedding failed for %s, continuing without vector: %s", item.content_id, exc
            )
            return []
        except Exception:
            logger.warning(
                "Embedding provider error for %s, continuing without vector",
                item.content_id, exc_info=True,
            )
            return []

    @staticmethod
    def _build_analysis(
        item: ContentItem,
        draft: AnalysisDraft,
        embedding: list[float],
        text_length: int,
    ) -> ContentAnalysis:
        # Ids from the model are not trusted to be unique.
        questions = [
            q.model_copy(update={"id": f"q{i}"})
            for i, q in enumerate(draft.practice_questions, 1)
        ]
        return ContentAnalysis(
            content_id=item.content_id,
            title=item.title,
            subject=item.subject,
            grade_level=item.grade_level,
            classroom_id=item.classroom_id,
            uploaded_at=item.uploaded_at,
            summaries=draft.summaries,
            key_concepts=draft.key_concepts,
            practice_questions=questions,
            topics=draft.topics,
            prerequisites=draft.prerequisites,
            learning_objectives=draft.learning_objectives,
            embedding=embedding,
            difficulty_level=draft.difficulty_level,
            estimated_reading_time_minutes=draft.estimated_reading_time_minutes,
            text_length=text_length,
            processed_at=utcnow(),
            processing_version=PROCESSING_VERSION,
        )
