"""Assessment pipeline — two-pass test authoring and submission grading.

Pass 1 (Questions): one model call writes the questions, without answers;
    ids are assigned here, never taken from the model
Pass 2 (Answers): one model call writes an answer per question id
Merge: every pass-1 question is kept, answered or not

Grading scores objective questions (mcq, fill, match) locally and sends the
open-ended ones (short, long) to the model in a single call.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Mapping, Sequence

from config.llm_config import LLMConfig
from config.prompts.test_authoring import (
    TEST_AUTHOR_SYSTEM_PROMPT,
    build_answer_key_prompt,
    build_grading_prompt,
    build_test_questions_prompt,
)
from config.settings import get_settings
from errors.exceptions import ContentPipelineError, SchemaValidationError
from models.assessment import (
    OBJECTIVE_TYPES,
    AnswerKey,
    AnswerMergeResult,
    AnswerValue,
    GeneratedAnswer,
    GeneratedTest,
    GradingReport,
    QuestionGrade,
    SubjectiveGradingResult,
    TestDraft,
    TestQuestion,
    TestQuestionType,
)
from services.model_client import ModelClient

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def new_question_id(position: int) -> str:
    """Service-assigned question id, unique across tests."""
    return f"tq{position}-{uuid.uuid4().hex[:6]}"


def merge_answers(
    questions: Sequence[TestQuestion],
    answers: Mapping[str, GeneratedAnswer],
) -> AnswerMergeResult:
    """Attach answers to questions by id.

    Questions without an answer are kept with ``correct_answer=None``;
    answers for unknown ids are ignored.
    """
    merged: list[TestQuestion] = []
    answered: list[str] = []
    missing: list[str] = []
    for question in questions:
        answer = answers.get(question.id)
        if answer is None:
            merged.append(question.model_copy(
                update={"correct_answer": None, "explanation": None, "grading_criteria": None}
            ))
            missing.append(question.id)
            continue
        merged.append(question.model_copy(update={
            "correct_answer": answer.correct_answer,
            "explanation": answer.explanation,
            "grading_criteria": answer.grading_criteria,
        }))
        answered.append(question.id)
    return AnswerMergeResult(questions=merged, answered_ids=answered, missing_answer_ids=missing)


# ── Objective grading helpers ────────────────────────────────


def _normalize(value: object) -> str:
    return _WHITESPACE.sub(" ", str(value)).strip().casefold()


def _is_blank(answer: AnswerValue | None) -> bool:
    if answer is None:
        return True
    if isinstance(answer, str):
        return not answer.strip()
    return len(answer) == 0


def _option_index(value: object, options: Sequence[str]) -> int | None:
    """Resolve an MCQ answer given as a letter ("B") or as option text."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    normalized = [_normalize(o) for o in options]
    if _normalize(text) in normalized:
        return normalized.index(_normalize(text))
    letter = text.rstrip(".)").upper()
    if len(letter) == 1 and "A" <= letter <= "Z":
        idx = ord(letter) - ord("A")
        if idx < len(options):
            return idx
    return None


def _grade_mcq(question: TestQuestion, answer: AnswerValue) -> QuestionGrade:
    options = question.options or []
    expected = _option_index(question.correct_answer, options) if options else None
    given = _option_index(answer, options) if options else None
    if expected is not None:
        correct = given == expected
    else:
        correct = _normalize(answer) == _normalize(question.correct_answer)
    return QuestionGrade(
        score=question.marks if correct else 0,
        max_score=question.marks,
        is_correct=correct,
        feedback="Correct." if correct else "Incorrect.",
    )


def _grade_fill(question: TestQuestion, answer: AnswerValue) -> QuestionGrade:
    expected = question.correct_answer
    accepted = expected if isinstance(expected, list) else [expected]
    correct = _normalize(answer) in {_normalize(a) for a in accepted}
    return QuestionGrade(
        score=question.marks if correct else 0,
        max_score=question.marks,
        is_correct=correct,
        feedback="Correct." if correct else f"Expected: {', '.join(map(str, accepted))}.",
    )


def _grade_match(question: TestQuestion, answer: AnswerValue) -> QuestionGrade:
    key = question.correct_answer
    if not isinstance(key, dict):
        key = {p.left: p.right for p in question.pairs or []}
    given = answer if isinstance(answer, dict) else {}
    given_norm = {_normalize(k): _normalize(v) for k, v in given.items()}
    right = sum(1 for left, r in key.items() if given_norm.get(_normalize(left)) == _normalize(r))
    total = len(key) or 1
    score = question.marks * right / total
    return QuestionGrade(
        score=round(score, 2),
        max_score=question.marks,
        is_correct=right == len(key),
        feedback=f"{right} of {len(key)} pairs matched correctly.",
        partial_credit=0 < right < len(key),
    )


_OBJECTIVE_GRADERS = {
    TestQuestionType.MCQ: _grade_mcq,
    TestQuestionType.FILL: _grade_fill,
    TestQuestionType.MATCH: _grade_match,
}


def _has_key(question: TestQuestion) -> bool:
    if question.correct_answer is not None:
        return True
    return question.type == TestQuestionType.MATCH and bool(question.pairs)


class AssessmentPipeline:
    """Test authoring (two passes) and grading on top of a :class:`ModelClient`."""

    def __init__(self, model_client: ModelClient, llm_config: LLMConfig | None = None) -> None:
        self._model_client = model_client
        self._llm_config = llm_config or LLMConfig(
            model=get_settings().model_for("test_author"),
        )

    async def generate_test_questions(
        self,
        *,
        subject: str,
        grade_range: str,
        instruction: str,
        total_marks: float = 100,
        duration: int = 60,
        curriculum_text: str = "",
    ) -> GeneratedTest:
        """Pass 1: write the questions (no answers)."""
        draft = await self._model_client.generate(
            build_test_questions_prompt(
                subject=subject,
                grade_range=grade_range,
                instruction=instruction,
                total_marks=total_marks,
                duration=duration,
                curriculum_text=curriculum_text,
            ),
            TestDraft,
            system_prompt=TEST_AUTHOR_SYSTEM_PROMPT,
            config=self._llm_config.merge(LLMConfig(temperature=0.7)),
        )
        if not draft.questions:
            raise SchemaValidationError("TestDraft", "model returned no questions")

        questions = [
            TestQuestion(id=new_question_id(i), order=i, **q.model_dump())
            for i, q in enumerate(draft.questions, 1)
        ]
        logger.info("Generated %d test questions for %s (%s)", len(questions), subject, grade_range)
        return GeneratedTest(
            title=draft.title,
            description=draft.description,
            questions=questions,
            estimated_duration=draft.estimated_duration or duration,
            total_marks=sum(q.marks for q in questions),
        )

    async def generate_answers(
        self,
        questions: Sequence[TestQuestion],
        *,
        subject: str,
        grade_range: str,
    ) -> dict[str, GeneratedAnswer]:
        """Pass 2: one answer per question id.  Entries for unknown ids are dropped."""
        if not questions:
            return {}
        key = await self._model_client.generate(
            build_answer_key_prompt(questions, subject=subject, grade_range=grade_range),
            AnswerKey,
            system_prompt=TEST_AUTHOR_SYSTEM_PROMPT,
            config=self._llm_config.merge(LLMConfig(temperature=0.3)),
        )
        known = {q.id for q in questions}
        unknown = sorted(set(key.answers) - known)
        if unknown:
            logger.warning("Dropping answers for unknown question ids: %s", unknown)
        return {qid: answer for qid, answer in key.answers.items() if qid in known}

    async def author_test(
        self,
        *,
        subject: str,
        grade_range: str,
        instruction: str,
        total_marks: float = 100,
        duration: int = 60,
        curriculum_text: str = "",
    ) -> GeneratedTest:
        """Both passes.  A failed answer pass leaves the questions unanswered."""
        test = await self.generate_test_questions(
            subject=subject,
            grade_range=grade_range,
            instruction=instruction,
            total_marks=total_marks,
            duration=duration,
            curriculum_text=curriculum_text,
        )
        try:
            answers = await self.generate_answers(
                test.questions, subject=subject, grade_range=grade_range,
            )
        except ContentPipelineError as exc:
            logger.warning("Answer pass failed, returning unanswered questions: %s", exc)
            answers = {}

        merged = merge_answers(test.questions, answers)
        if merged.missing_answer_ids:
            logger.warning(
                "%d of %d questions have no answer: %s",
                len(merged.missing_answer_ids), len(test.questions), merged.missing_answer_ids,
            )
        return test.model_copy(update={"questions": merged.questions})

    async def grade_submission(
        self,
        questions: Sequence[TestQuestion],
        student_answers: Mapping[str, AnswerValue | None],
        *,
        subject: str,
    ) -> GradingReport:
        """Grade one student's answers against answered questions."""
        grades: dict[str, QuestionGrade] = {}
        subjective: list[tuple[TestQuestion, AnswerValue | None]] = []

        for question in questions:
            answer = student_answers.get(question.id)
            if _is_blank(answer):
                grades[question.id] = QuestionGrade(
                    score=0, max_score=question.marks, is_correct=False,
                    feedback="No answer provided.",
                )
            elif question.type in OBJECTIVE_TYPES and _has_key(question):
                grades[question.id] = _OBJECTIVE_GRADERS[question.type](question, answer)
            else:
                subjective.append((question, answer))

        overall = ""
        if subjective:
            result = await self._model_client.generate(
                build_grading_prompt(subjective, subject=subject),
                SubjectiveGradingResult,
                system_prompt=TEST_AUTHOR_SYSTEM_PROMPT,
                config=self._llm_config.merge(LLMConfig(temperature=0.4)),
            )
            by_id = {g.question_id: g for g in result.grades}
            for question, _ in subjective:
                grade = by_id.get(question.id)
                if grade is None:
                    logger.warning("Model returned no grade for %s", question.id)
                    grades[question.id] = QuestionGrade(
                        score=0, max_score=question.marks, is_correct=False,
                        feedback="Could not be graded automatically.",
                    )
                    continue
                score = min(max(grade.score, 0.0), question.marks)
                grades[question.id] = QuestionGrade(
                    score=score,
                    max_score=question.marks,
                    is_correct=score >= question.marks,
                    feedback=grade.feedback,
                    partial_credit=0 < score < question.marks,
                )
            overall = result.overall_feedback

        total = sum(g.score for g in grades.values())
        max_score = sum(q.marks for q in questions)
        breakdown = {t.value: 0.0 for t in TestQuestionType}
        for question in questions:
            breakdown[question.type.value] += grades[question.id].score

        if not overall:
            pct = round(100 * total / max_score) if max_score else 0
            overall = f"You scored {total:g} out of {max_score:g} ({pct}%)."

        logger.info("Graded submission: %.1f / %.1f (%d open-ended)", total, max_score, len(subjective))
        return GradingReport(
            total_score=total,
            max_score=max_score,
            question_feedback=grades,
            overall_feedback=overall,
            grading_breakdown=breakdown,
        )
