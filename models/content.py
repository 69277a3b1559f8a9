"""Content analysis records — status, analysis bundle and derived views.

These are the explicit, validated shapes of everything the pipeline stores or
returns.  Enum-typed fields reject unknown values instead of coercing them, so
a model answer with ``"difficulty": "very hard"`` fails validation.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import Field, model_validator

from models.base import CamelModel

PROCESSING_VERSION = "2.0"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Enums ────────────────────────────────────────────────────


class ProcessingState(str, Enum):
    """Lifecycle of one content item's analysis."""
    NONE = "none"
    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"


ACTIVE_STATES = frozenset({ProcessingState.PENDING, ProcessingState.RUNNING})
TERMINAL_STATES = frozenset({ProcessingState.COMPLETE, ProcessingState.FAILED})


class SummaryType(str, Enum):
    SHORT = "short"
    BULLETS = "bullets"
    DETAILED = "detailed"


class ConceptCategory(str, Enum):
    FORMULA = "formula"
    DEFINITION = "definition"
    CONCEPT = "concept"
    PRINCIPLE = "principle"


class QuestionType(str, Enum):
    MCQ = "mcq"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class RequestedDifficulty(str, Enum):
    """Difficulty accepted by the practice-question view (adds ``mixed``)."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    MIXED = "mixed"


class BloomsLevel(str, Enum):
    REMEMBER = "remember"
    UNDERSTAND = "understand"
    APPLY = "apply"
    ANALYZE = "analyze"
    EVALUATE = "evaluate"
    CREATE = "create"


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ConversationRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


# ── Status ───────────────────────────────────────────────────


class ProcessingStatus(CamelModel):
    """Per-item processing state, polled by the UI."""
    content_id: str
    state: ProcessingState = ProcessingState.NONE
    progress: int = Field(default=0, ge=0, le=100)
    error: str | None = None
    run_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


# ── Content item ─────────────────────────────────────────────


class ContentItem(CamelModel):
    """An uploaded learning document, as handed over by the upload collaborator."""
    content_id: str = Field(min_length=1)
    source_url: str = Field(min_length=1)
    title: str = Field(min_length=1)
    subject: str = "General"
    grade_level: str = "General"
    classroom_id: str = ""
    uploaded_at: datetime = Field(default_factory=utcnow)


class ProcessTrigger(CamelModel):
    """Outcome of a processing request: a new run, or coalesced into a running one."""
    accepted: bool
    status: ProcessingStatus


# ── Analysis bundle ──────────────────────────────────────────


class Summaries(CamelModel):
    short: str = Field(min_length=1, description="A concise 2-3 sentence summary")
    bullets: str = Field(min_length=1, description="6-8 key points, one bullet per line")
    detailed: str = Field(min_length=1, description="Comprehensive 3-4 paragraph summary")


class KeyConcept(CamelModel):
    term: str = Field(min_length=1)
    definition: str
    category: ConceptCategory
    importance: int = Field(ge=1, le=10)


class Question(CamelModel):
    """A practice question.  MCQs must list their correct answer among the options."""
    id: str = ""
    type: QuestionType
    text: str = Field(min_length=1)
    options: list[str] | None = None
    correct_answer: str
    explanation: str = ""
    difficulty: Difficulty
    blooms_level: BloomsLevel
    topic: str = ""
    estimated_time_minutes: int = Field(default=2, ge=1)

    @model_validator(mode="before")
    @classmethod
    def _resolve_answer_reference(cls, data: Any) -> Any:
        """Turn an option index or letter ("B") into the option text."""
        if not isinstance(data, dict):
            return data
        options = data.get("options")
        answer = data.get("correct_answer", data.get("correctAnswer"))
        if not options or answer is None:
            return data
        key = "correct_answer" if "correct_answer" in data else "correctAnswer"
        if isinstance(answer, int) and not isinstance(answer, bool) and 0 <= answer < len(options):
            data = {**data, key: options[answer]}
        elif isinstance(answer, str) and answer not in options:
            letter = answer.strip().rstrip(".)").upper()
            if len(letter) == 1 and "A" <= letter <= "Z":
                idx = ord(letter) - ord("A")
                if idx < len(options):
                    data = {**data, key: options[idx]}
        return data

    @model_validator(mode="after")
    def _check_mcq_answer(self) -> Question:
        if self.type == QuestionType.MCQ:
            if not self.options or len(self.options) < 2:
                raise ValueError("mcq questions need at least 2 options")
            if self.correct_answer not in self.options:
                raise ValueError("mcq correct_answer must be one of the options")
        return self


class AnalysisDraft(CamelModel):
    """What the model returns for a full-bundle analysis request."""
    summaries: Summaries
    key_concepts: list[KeyConcept] = Field(min_length=1)
    practice_questions: list[Question] = Field(min_length=1)
    topics: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    learning_objectives: list[str] = Field(default_factory=list)
    estimated_reading_time_minutes: int = Field(ge=1)
    difficulty_level: DifficultyLevel


class ContentAnalysis(CamelModel):
    """The analysis bundle for one content item.  Replaced wholesale on reprocessing."""
    content_id: str
    title: str = ""
    subject: str = ""
    grade_level: str = ""
    classroom_id: str = ""
    uploaded_at: datetime | None = None
    summaries: Summaries
    key_concepts: list[KeyConcept] = Field(default_factory=list)
    practice_questions: list[Question] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
    learning_objectives: list[str] = Field(default_factory=list)
    embedding: list[float] = Field(default_factory=list)
    difficulty_level: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    estimated_reading_time_minutes: int = 1
    text_length: int = 0
    processed_at: datetime = Field(default_factory=utcnow)
    processing_version: str = PROCESSING_VERSION


# ── Derived views ────────────────────────────────────────────


class SummaryResult(CamelModel):
    type: SummaryType
    content: str
    word_count: int
    key_points: list[str] = Field(default_factory=list)
    reading_time_minutes: int


class PracticeQuestionOptions(CamelModel):
    count: int = Field(default=10, ge=1)
    difficulty: RequestedDifficulty = RequestedDifficulty.MIXED
    types: list[QuestionType] = Field(
        default_factory=lambda: [QuestionType.MCQ, QuestionType.SHORT_ANSWER],
        min_length=1,
    )
    focus_topics: list[str] = Field(default_factory=list)


class GeneratedQuestionSet(CamelModel):
    """Model output when the stored question bank cannot fill every slot."""
    questions: list[Question] = Field(min_length=1)


class ConversationTurn(CamelModel):
    role: ConversationRole
    content: str


class QAResponse(CamelModel):
    answer: str = Field(min_length=1)
    confidence: float = Field(ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)
    related_concepts: list[str] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)


class RelatedContent(CamelModel):
    content_id: str
    title: str = ""
    subject: str = ""
    topics: list[str] = Field(default_factory=list)
    uploaded_at: datetime | None = None
    similarity: float
    relevance_reason: str
