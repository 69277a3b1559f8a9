"""Shared builders and fakes for the test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import inspect
from typing import Any, Callable

import httpx

from errors.exceptions import EmbeddingError
from models.content import (
    ContentAnalysis,
    ContentItem,
    KeyConcept,
    ProcessingState,
    ProcessingStatus,
    Question,
    Summaries,
)
from services.content_store import ContentStore
from services.embedding_client import EmbeddingClient
from services.model_client import ModelClient
from services.text_extractor import DocumentTextExtractor

SAMPLE_TEXT = (
    "Photosynthesis is the process by which green plants use sunlight, water and "
    "carbon dioxide to produce glucose and oxygen. It takes place in the chloroplasts, "
    "which contain the pigment chlorophyll. The light-dependent reactions capture energy "
    "from sunlight and split water molecules, releasing oxygen. The Calvin cycle then "
    "uses that captured energy to fix carbon dioxide into sugars. Factors such as light "
    "intensity, temperature and carbon dioxide concentration limit the rate of the process."
)

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def sample_question_args(
    qid: str = "q1",
    qtype: str = "mcq",
    difficulty: str = "easy",
    topic: str = "Photosynthesis",
) -> dict[str, Any]:
    """Return a valid Question dict."""
    args: dict[str, Any] = {
        "id": qid,
        "type": qtype,
        "text": f"Question {qid} about {topic}?",
        "correct_answer": "Chlorophyll" if qtype == "mcq" else "A model answer.",
        "explanation": "Because the text says so.",
        "difficulty": difficulty,
        "blooms_level": "remember",
        "topic": topic,
        "estimated_time_minutes": 2,
    }
    if qtype == "mcq":
        args["options"] = ["Chlorophyll", "Glucose", "Oxygen", "Water"]
    return args


def sample_analysis_draft_args() -> dict[str, Any]:
    """Return a valid AnalysisDraft dict suitable for a model response."""
    questions = [
        sample_question_args("x", "mcq", "easy"),
        sample_question_args("x", "mcq", "medium"),
        sample_question_args("x", "mcq", "hard"),
        sample_question_args("x", "short_answer", "easy"),
        sample_question_args("x", "short_answer", "medium"),
        sample_question_args("x", "short_answer", "hard"),
        sample_question_args("x", "essay", "medium", topic="Calvin cycle"),
        sample_question_args("x", "essay", "hard", topic="Calvin cycle"),
    ]
    return {
        "summaries": {
            "short": "Plants turn light, water and carbon dioxide into glucose and oxygen.",
            "bullets": "• Happens in chloroplasts\n• Needs sunlight\n• Releases oxygen",
            "detailed": "Photosynthesis converts light energy into chemical energy stored in glucose.",
        },
        "key_concepts": [
            {"term": "Chlorophyll", "definition": "Green pigment", "category": "definition", "importance": 8},
            {"term": "Calvin cycle", "definition": "Carbon fixation", "category": "concept", "importance": 7},
        ],
        "practice_questions": questions,
        "topics": ["Photosynthesis", "Plant biology"],
        "prerequisites": ["Cell structure"],
        "learning_objectives": ["Describe photosynthesis"],
        "estimated_reading_time_minutes": 5,
        "difficulty_level": "intermediate",
    }


def make_item(
    content_id: str = "photo-1",
    source_url: str = "https://files.test/photo-1.txt",
    classroom_id: str = "class-1",
    **overrides: Any,
) -> ContentItem:
    return ContentItem(
        content_id=content_id,
        source_url=source_url,
        title=overrides.pop("title", "Photosynthesis"),
        subject=overrides.pop("subject", "Biology"),
        grade_level=overrides.pop("grade_level", "Grade 7"),
        classroom_id=classroom_id,
        uploaded_at=overrides.pop("uploaded_at", BASE_TIME),
        **overrides,
    )


def make_analysis(
    content_id: str = "photo-1",
    *,
    embedding: list[float] | None = None,
    classroom_id: str = "class-1",
    topics: list[str] | None = None,
    concepts: list[tuple[str, int]] | None = None,
    questions: list[Question] | None = None,
    uploaded_at: datetime | None = None,
) -> ContentAnalysis:
    """Build a stored bundle directly, bypassing the pipeline."""
    return ContentAnalysis(
        content_id=content_id,
        title=f"Title {content_id}",
        subject="Biology",
        grade_level="Grade 7",
        classroom_id=classroom_id,
        uploaded_at=uploaded_at or BASE_TIME,
        summaries=Summaries(
            short="A short summary of the content.",
            bullets="• First point\n• Second point\n- Third point",
            detailed="A longer, detailed summary of the whole document for readers.",
        ),
        key_concepts=[
            KeyConcept(term=term, definition=f"{term} definition", category="concept", importance=imp)
            for term, imp in (concepts or [("Chlorophyll", 8)])
        ],
        practice_questions=questions if questions is not None else [],
        topics=topics if topics is not None else ["Photosynthesis"],
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
    )


async def seed_complete(store: ContentStore, analysis: ContentAnalysis) -> None:
    """Store *analysis* as the result of a finished run."""
    await store.save_analysis(analysis)
    await store.save_status(ProcessingStatus(
        content_id=analysis.content_id,
        state=ProcessingState.COMPLETE,
        progress=100,
    ))


def days_later(days: int) -> datetime:
    return BASE_TIME + timedelta(days=days)


# ── Fakes ────────────────────────────────────────────────────


class FakeModelClient(ModelClient):
    """Scripted model client.

    ``responses`` maps an output type to a value, a list of values (consumed
    in order), or a sync or async callable ``(prompt) -> value``.  Values may be model
    instances, dicts (validated into the output type) or exceptions (raised).
    """

    def __init__(self, responses: dict[type, Any] | None = None) -> None:
        self.responses: dict[type, Any] = dict(responses or {})
        self.calls: list[tuple[str, type, str]] = []

    async def generate(self, prompt, output_type, *, system_prompt="", config=None):
        self.calls.append((prompt, output_type, system_prompt))
        if output_type not in self.responses:
            raise AssertionError(f"unexpected model call for {output_type.__name__}")
        value = self.responses[output_type]
        if isinstance(value, list):
            value = value.pop(0)
        if callable(value) and not isinstance(value, type):
            value = value(prompt)
            if inspect.isawaitable(value):
                value = await value
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, dict):
            return output_type.model_validate(value)
        return value

    def calls_for(self, output_type: type) -> list[str]:
        return [prompt for prompt, otype, _ in self.calls if otype is output_type]


class FakeEmbeddingClient(EmbeddingClient):
    """Returns a fixed vector, or raises when ``fail`` is set."""

    def __init__(self, vector: list[float] | None = None, fail: bool = False) -> None:
        self.vector = vector or [0.1, 0.2, 0.3]
        self.fail = fail
        self.inputs: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.inputs.append(text)
        if self.fail:
            raise EmbeddingError("embedding provider unavailable")
        return list(self.vector)


def make_extractor(
    documents: dict[str, tuple[int, bytes, str]],
    on_request: Callable[[httpx.Request], None] | None = None,
) -> DocumentTextExtractor:
    """Extractor whose downloads are served from *documents* (url → status, body, content-type)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if on_request is not None:
            on_request(request)
        status, body, content_type = documents.get(str(request.url), (404, b"", "text/plain"))
        return httpx.Response(status, content=body, headers={"content-type": content_type})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return DocumentTextExtractor(client, timeout=5, max_bytes=1_000_000)
