"""Content analysis endpoints — trigger processing, poll status, read derived views."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from agents.content_analysis import ContentAnalysisPipeline
from agents.content_views import ContentViews
from agents.related_content import RelatedContentFinder
from agents.tutor import Tutor
from api.deps import get_content_views, get_pipeline, get_related_finder, get_tutor
from config.settings import get_settings
from models.content import (
    ContentAnalysis,
    PracticeQuestionOptions,
    ProcessingState,
    ProcessingStatus,
    QAResponse,
    SummaryResult,
)
from models.request import (
    AskQuestionRequest,
    KeyConceptsResponse,
    PracticeQuestionsResponse,
    ProcessContentRequest,
    ProcessContentResponse,
    RelatedContentRequest,
    RelatedContentResponse,
    SummaryRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/content", tags=["content"])


@router.post("/process", status_code=202, response_model=ProcessContentResponse)
async def process_content(
    req: ProcessContentRequest,
    pipeline: ContentAnalysisPipeline = Depends(get_pipeline),
):
    """Start background analysis of an uploaded document.

    A request for an item that is already pending or running does not start
    a second run; the response reports ``already_processing`` instead.
    """
    logger.info("Process request: content_id=%s, title=%s", req.content_id, req.title)
    trigger = await pipeline.process_content(req.to_item())
    return ProcessContentResponse(
        status="accepted" if trigger.accepted else "already_processing",
        content_id=req.content_id,
        processing=trigger.status,
    )


@router.get("/{content_id}/status", response_model=ProcessingStatus)
async def get_status(
    content_id: str,
    pipeline: ContentAnalysisPipeline = Depends(get_pipeline),
):
    """Poll processing status.  Unknown ids report ``state=none``."""
    return await pipeline.get_status(content_id)


async def _status_events(
    request: Request,
    pipeline: ContentAnalysisPipeline,
    content_id: str,
    interval: float,
) -> AsyncGenerator[dict, None]:
    """Emit the status whenever it changes; stop once it can no longer change."""
    last = None
    while True:
        status = await pipeline.get_status(content_id)
        payload = status.model_dump_json(by_alias=True)
        if payload != last:
            yield {"event": "status", "data": payload}
            last = payload
        if status.is_terminal or status.state == ProcessingState.NONE:
            return
        if await request.is_disconnected():
            logger.debug("Status stream client disconnected: %s", content_id)
            return
        await asyncio.sleep(interval)


@router.get("/{content_id}/status/stream")
async def stream_status(
    content_id: str,
    request: Request,
    pipeline: ContentAnalysisPipeline = Depends(get_pipeline),
):
    """Push status updates over SSE until processing completes or fails."""
    interval = get_settings().status_poll_interval_seconds
    return EventSourceResponse(
        _status_events(request, pipeline, content_id, interval),
        media_type="text/event-stream",
    )


@router.post("/{content_id}/summary", response_model=SummaryResult)
async def generate_summary(
    content_id: str,
    req: SummaryRequest | None = None,
    views: ContentViews = Depends(get_content_views),
):
    req = req or SummaryRequest()
    return await views.generate_summary(content_id, req.type)


@router.post("/{content_id}/questions", response_model=PracticeQuestionsResponse)
async def generate_practice_questions(
    content_id: str,
    options: PracticeQuestionOptions | None = None,
    views: ContentViews = Depends(get_content_views),
):
    questions = await views.generate_practice_questions(content_id, options)
    return PracticeQuestionsResponse(content_id=content_id, questions=questions)


@router.get("/{content_id}/analysis", response_model=ContentAnalysis)
async def get_analysis(
    content_id: str,
    views: ContentViews = Depends(get_content_views),
):
    """The full stored bundle.  404 for unknown ids, 409 until a run completes."""
    return await views.get_analysis(content_id)


@router.get("/{content_id}/concepts", response_model=KeyConceptsResponse)
async def extract_key_concepts(
    content_id: str,
    views: ContentViews = Depends(get_content_views),
):
    concepts = await views.extract_key_concepts(content_id)
    return KeyConceptsResponse(content_id=content_id, key_concepts=concepts)


@router.post("/{content_id}/ask", response_model=QAResponse)
async def ask_question(
    content_id: str,
    req: AskQuestionRequest,
    tutor: Tutor = Depends(get_tutor),
):
    return await tutor.ask_question(content_id, req.question, req.conversation_history)


@router.post("/{content_id}/related", response_model=RelatedContentResponse)
async def find_related_content(
    content_id: str,
    req: RelatedContentRequest | None = None,
    finder: RelatedContentFinder = Depends(get_related_finder),
):
    req = req or RelatedContentRequest()
    related = await finder.find(
        content_id,
        req.classroom_id,
        limit=req.limit,
        min_similarity=req.min_similarity,
    )
    return RelatedContentResponse(content_id=content_id, related=related)
