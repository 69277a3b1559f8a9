"""Assessment endpoints — test authoring (two passes) and grading."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from agents.test_authoring import AssessmentPipeline, merge_answers
from api.deps import get_assessment_pipeline
from models.assessment import GeneratedTest, GradingReport
from models.request import (
    GenerateAnswersRequest,
    GenerateAnswersResponse,
    GenerateTestRequest,
    GradeSubmissionRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assessment", tags=["assessment"])


@router.post("/questions", response_model=GeneratedTest)
async def generate_test_questions(
    req: GenerateTestRequest,
    pipeline: AssessmentPipeline = Depends(get_assessment_pipeline),
):
    """Write a test from the teacher's instructions.

    With ``includeAnswers`` the answer pass runs too; otherwise questions come
    back without answers and can be sent to ``/answers`` later.
    """
    kwargs = dict(
        subject=req.subject,
        grade_range=req.grade_range,
        instruction=req.instruction,
        total_marks=req.total_marks,
        duration=req.duration,
        curriculum_text=req.curriculum_text,
    )
    if req.include_answers:
        return await pipeline.author_test(**kwargs)
    return await pipeline.generate_test_questions(**kwargs)


@router.post("/answers", response_model=GenerateAnswersResponse)
async def generate_answers(
    req: GenerateAnswersRequest,
    pipeline: AssessmentPipeline = Depends(get_assessment_pipeline),
):
    """Write the answer key for existing questions and merge it in."""
    answers = await pipeline.generate_answers(
        req.questions, subject=req.subject, grade_range=req.grade_range,
    )
    merged = merge_answers(req.questions, answers)
    return GenerateAnswersResponse(**merged.model_dump())


@router.post("/grade", response_model=GradingReport)
async def grade_submission(
    req: GradeSubmissionRequest,
    pipeline: AssessmentPipeline = Depends(get_assessment_pipeline),
):
    return await pipeline.grade_submission(
        req.questions, req.student_answers, subject=req.subject,
    )
