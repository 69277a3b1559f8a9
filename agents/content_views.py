"""Derived views over a stored analysis bundle — summaries, practice questions, concepts.

Every view reads the bundle written by :mod:`agents.content_analysis` and
raises :class:`NotProcessedError` until a run has completed.  Only the
practice-question view may call the model, and only for slots the stored
question bank cannot fill.
"""

from __future__ import annotations

import logging
import math
import re

from pydantic import ValidationError

from config.llm_config import LLMConfig
from config.prompts.content_analysis import ANALYSIS_SYSTEM_PROMPT, build_practice_topup_prompt
from config.settings import get_settings
from errors.exceptions import NotFoundError, SchemaValidationError
from models.content import (
    ContentAnalysis,
    Difficulty,
    GeneratedQuestionSet,
    KeyConcept,
    PracticeQuestionOptions,
    Question,
    QuestionType,
    RequestedDifficulty,
    SummaryResult,
    SummaryType,
)
from services.content_store import ContentStore
from services.model_client import ModelClient

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

# Difficulty rotation for "mixed" requests: slot i gets _MIXED_CYCLE[i % 3].
_MIXED_CYCLE = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)

_BULLET_PREFIX = re.compile(r"^\s*(?:[•\-*·]|\d+[.)])\s*")

Slot = tuple[QuestionType, Difficulty]


def plan_question_slots(options: PracticeQuestionOptions) -> list[Slot]:
    """Assign a (type, difficulty) to every requested question position."""
    types = options.types
    slots: list[Slot] = []
    for i in range(options.count):
        if options.difficulty == RequestedDifficulty.MIXED:
            difficulty = _MIXED_CYCLE[i % len(_MIXED_CYCLE)]
        else:
            difficulty = Difficulty(options.difficulty.value)
        slots.append((types[i % len(types)], difficulty))
    return slots


def split_bullets(text: str) -> list[str]:
    """Turn a bullet-list summary into clean key points."""
    points = []
    for line in text.splitlines():
        point = _BULLET_PREFIX.sub("", line).strip()
        if point:
            points.append(point)
    return points


def _matches_focus(question: Question, focus: list[str]) -> bool:
    topic = question.topic.lower()
    return bool(topic) and any(f in topic or topic in f for f in focus)


def _take(pool: list[Question], slot: Slot, focus: list[str]) -> Question | None:
    """Remove and return the best exact (type, difficulty) match for *slot*.

    Questions on a focus topic win; ``None`` when nothing in *pool* fits.
    """
    qtype, difficulty = slot
    exact = [q for q in pool if q.type == qtype and q.difficulty == difficulty]
    candidates = [q for q in exact if _matches_focus(q, focus)] or exact
    if not candidates:
        return None
    chosen = candidates[0]
    pool.remove(chosen)
    return chosen


def _renumber(question: Question, index: int) -> Question:
    """Re-validate *question* under its positional id ``q{index + 1}``."""
    data = question.model_dump()
    data["id"] = f"q{index + 1}"
    try:
        return Question.model_validate(data)
    except ValidationError as exc:
        raise SchemaValidationError("Question", str(exc)) from exc


class ContentViews:
    """Summary, practice-question and key-concept views for processed content."""

    def __init__(
        self,
        store: ContentStore,
        model_client: ModelClient,
        llm_config: LLMConfig | None = None,
    ) -> None:
        self._store = store
        self._model_client = model_client
        self._llm_config = llm_config or LLMConfig(
            model=get_settings().model_for("tutor"),
            temperature=0.5,
        )

    async def generate_summary(self, content_id: str, summary_type: SummaryType) -> SummaryResult:
        analysis = await self._store.require_analysis(content_id)
        content = getattr(analysis.summaries, summary_type.value)
        word_count = len(content.split())
        return SummaryResult(
            type=summary_type,
            content=content,
            word_count=word_count,
            key_points=split_bullets(analysis.summaries.bullets) or list(analysis.topics),
            reading_time_minutes=math.ceil(word_count / WORDS_PER_MINUTE),
        )

    async def extract_key_concepts(self, content_id: str) -> list[KeyConcept]:
        analysis = await self._store.require_analysis(content_id)
        return analysis.key_concepts

    async def get_analysis(self, content_id: str) -> ContentAnalysis:
        """Return the whole stored bundle.

        Raises:
            NotFoundError: Nothing is known about *content_id*.
            NotProcessedError: The item exists but has no completed run.
        """
        status = await self._store.get_status(content_id)
        if status is None and await self._store.get_analysis(content_id) is None:
            raise NotFoundError(content_id)
        return await self._store.require_analysis(content_id)

    async def generate_practice_questions(
        self,
        content_id: str,
        options: PracticeQuestionOptions | None = None,
    ) -> list[Question]:
        """Return exactly ``count`` questions matching the requested mix.

        Slots are filled from the stored question bank first (focus topics
        preferred); whatever is left is generated with one model call.
        """
        options = options or PracticeQuestionOptions()
        analysis = await self._store.require_analysis(content_id)
        slots = plan_question_slots(options)
        focus = [t.strip().lower() for t in options.focus_topics if t.strip()]

        bank = list(analysis.practice_questions)
        picked: list[Question | None] = [_take(bank, slot, focus) for slot in slots]
        missing = [i for i, q in enumerate(picked) if q is None]

        if missing:
            generated = await self._generate_missing(analysis, [slots[i] for i in missing], options)
            for i in missing:
                picked[i] = _take(generated, slots[i], focus)
                if picked[i] is None:
                    qtype, difficulty = slots[i]
                    raise SchemaValidationError(
                        "GeneratedQuestionSet",
                        f"no {qtype.value}/{difficulty.value} question for position {i + 1}",
                    )

        logger.info(
            "Practice questions for %s: %d requested, %d from bank, %d generated",
            content_id, len(slots), len(slots) - len(missing), len(missing),
        )
        return [_renumber(q, i) for i, q in enumerate(picked)]

    async def _generate_missing(
        self,
        analysis: ContentAnalysis,
        slots: list[Slot],
        options: PracticeQuestionOptions,
    ) -> list[Question]:
        result = await self._model_client.generate(
            build_practice_topup_prompt(analysis, slots, options.focus_topics),
            GeneratedQuestionSet,
            system_prompt=ANALYSIS_SYSTEM_PROMPT,
            config=self._llm_config,
        )
        if len(result.questions) < len(slots):
            raise SchemaValidationError(
                "GeneratedQuestionSet",
                f"expected {len(slots)} questions, got {len(result.questions)}",
            )
        return list(result.questions)
