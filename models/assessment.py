"""Test authoring and grading models.

Two-pass authoring: the first model call produces :class:`TestQuestion` items
(ids assigned by the service), the second produces a
:class:`GeneratedAnswer` per question id.  The merge keeps every question even
when the answer pass skipped it.
"""

from __future__ import annotations

from enum import Enum
from typing import Union

from pydantic import Field

from models.base import CamelModel

AnswerValue = Union[str, list[str], dict[str, str]]


class TestQuestionType(str, Enum):
    """Question types used in authored tests."""
    MCQ = "mcq"
    FILL = "fill"
    MATCH = "match"
    SHORT = "short"
    LONG = "long"


OBJECTIVE_TYPES = frozenset({TestQuestionType.MCQ, TestQuestionType.FILL, TestQuestionType.MATCH})


class MatchPair(CamelModel):
    left: str
    right: str


class TestQuestion(CamelModel):
    """A test question, optionally carrying its answer after pass 2."""
    __test__ = False  # not a pytest test class

    id: str
    type: TestQuestionType
    text: str = Field(min_length=1)
    marks: float = Field(gt=0)
    options: list[str] | None = None
    pairs: list[MatchPair] | None = None
    order: int = 0
    correct_answer: AnswerValue | None = None
    explanation: str | None = None
    grading_criteria: str | None = None


class QuestionDraft(CamelModel):
    """Pass-1 model output for one question (no id: ids are assigned locally)."""
    type: TestQuestionType
    text: str = Field(min_length=1)
    marks: float = Field(gt=0)
    options: list[str] | None = None
    pairs: list[MatchPair] | None = None


class TestDraft(CamelModel):
    """Pass-1 model output."""
    __test__ = False

    title: str = "Untitled Test"
    description: str = ""
    questions: list[QuestionDraft] = Field(default_factory=list)
    estimated_duration: int = 60
    total_marks: float = 100


class GeneratedTest(CamelModel):
    title: str
    description: str = ""
    questions: list[TestQuestion] = Field(default_factory=list)
    estimated_duration: int
    total_marks: float


class GeneratedAnswer(CamelModel):
    correct_answer: AnswerValue
    explanation: str
    grading_criteria: str | None = None


class AnswerKey(CamelModel):
    """Pass-2 model output: question id → answer."""
    answers: dict[str, GeneratedAnswer] = Field(default_factory=dict)


class AnswerMergeResult(CamelModel):
    questions: list[TestQuestion]
    answered_ids: list[str] = Field(default_factory=list)
    missing_answer_ids: list[str] = Field(default_factory=list)


# ── Grading ──────────────────────────────────────────────────


class QuestionGrade(CamelModel):
    score: float = Field(ge=0)
    max_score: float
    is_correct: bool
    feedback: str = ""
    partial_credit: bool = False


class SubjectiveGrade(CamelModel):
    """Model output for one short/long answer."""
    question_id: str
    score: float = Field(ge=0)
    feedback: str = ""


class SubjectiveGradingResult(CamelModel):
    grades: list[SubjectiveGrade] = Field(default_factory=list)
    overall_feedback: str = ""


class GradingReport(CamelModel):
    total_score: float
    max_score: float
    question_feedback: dict[str, QuestionGrade] = Field(default_factory=dict)
    overall_feedback: str = ""
    grading_breakdown: dict[str, float] = Field(default_factory=dict)
