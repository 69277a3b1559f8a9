"""API request / response models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from models.assessment import AnswerMergeResult, AnswerValue, TestQuestion
from models.base import CamelModel
from models.content import (
    ContentItem,
    ConversationTurn,
    KeyConcept,
    ProcessingStatus,
    Question,
    RelatedContent,
    SummaryType,
    utcnow,
)


# ── Content ──────────────────────────────────────────────────


class ProcessContentRequest(CamelModel):
    """POST /api/content/process — request body."""

    content_id: str = Field(min_length=1)
    source_url: str = Field(min_length=1)
    title: str = Field(min_length=1)
    subject: str = ""
    grade_level: str = ""
    classroom_id: str = ""
    uploaded_at: datetime | None = None

    def to_item(self) -> ContentItem:
        return ContentItem(
            content_id=self.content_id,
            source_url=self.source_url,
            title=self.title,
            subject=self.subject or "General",
            grade_level=self.grade_level or "General",
            classroom_id=self.classroom_id,
            uploaded_at=self.uploaded_at or utcnow(),
        )


class ProcessContentResponse(CamelModel):
    """POST /api/content/process — response body."""

    status: Literal["accepted", "already_processing"]
    content_id: str
    processing: ProcessingStatus


class SummaryRequest(CamelModel):
    """POST /api/content/{id}/summary — request body."""

    type: SummaryType = SummaryType.SHORT


class PracticeQuestionsResponse(CamelModel):
    content_id: str
    questions: list[Question]


class KeyConceptsResponse(CamelModel):
    content_id: str
    key_concepts: list[KeyConcept]


class AskQuestionRequest(CamelModel):
    """POST /api/content/{id}/ask — request body."""

    question: str = Field(min_length=1)
    conversation_history: list[ConversationTurn] = Field(default_factory=list)


class RelatedContentRequest(CamelModel):
    """POST /api/content/{id}/related — request body."""

    classroom_id: str | None = None
    limit: int = Field(default=5, ge=1, le=50)
    min_similarity: float = Field(default=0.7, ge=0.0, le=1.0)


class RelatedContentResponse(CamelModel):
    content_id: str
    related: list[RelatedContent]


# ── Assessment ───────────────────────────────────────────────


class GenerateTestRequest(CamelModel):
    """POST /api/assessment/questions — request body."""

    subject: str = Field(min_length=1)
    grade_range: str = Field(min_length=1)
    instruction: str = Field(min_length=1)
    total_marks: float = Field(default=100, gt=0)
    duration: int = Field(default=60, gt=0)
    curriculum_text: str = ""
    include_answers: bool = False


class GenerateAnswersRequest(CamelModel):
    """POST /api/assessment/answers — request body."""

    questions: list[TestQuestion] = Field(min_length=1)
    subject: str = Field(min_length=1)
    grade_range: str = Field(min_length=1)


class GenerateAnswersResponse(AnswerMergeResult):
    """POST /api/assessment/answers — questions with answers attached."""


class GradeSubmissionRequest(CamelModel):
    """POST /api/assessment/grade — request body."""

    questions: list[TestQuestion] = Field(min_length=1)
    student_answers: dict[str, AnswerValue | None] = Field(default_factory=dict)
    subject: str = Field(min_length=1)
