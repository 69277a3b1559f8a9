"""Content analysis prompts — full-bundle analysis and practice-question top-up.

The analysis prompt asks for every teaching artifact in a single call; the
output schema itself is enforced by the ``AnalysisDraft`` output type.
"""

from __future__ import annotations

from typing import Sequence

from models.content import ContentAnalysis, ContentItem, Difficulty, QuestionType

# Longer documents are cut to keep the request inside the model context.
MAX_ANALYSIS_CHARS = 50_000

ANALYSIS_SYSTEM_PROMPT = """\
You are an **expert educational content analyzer**. You read learning
material uploaded by a teacher and produce teaching artifacts for students.

## Rules

1. Base every artifact ONLY on the supplied content. Do not invent facts.
2. Keep language age-appropriate for the stated grade level.
3. Enumerated fields must use exactly the allowed values:
   - concept category: formula | definition | concept | principle
   - question type: mcq | short_answer | essay
   - question difficulty: easy | medium | hard
   - Bloom's level: remember | understand | apply | analyze | evaluate | create
   - overall difficulty: beginner | intermediate | advanced
4. Multiple-choice questions list 4 options and `correct_answer` must repeat
   one option verbatim.
"""

ANALYSIS_USER_PROMPT = """\
Analyze the following educational content and provide a comprehensive analysis.

CONTENT TITLE: {title}
SUBJECT: {subject}
GRADE LEVEL: {grade_level}

CONTENT TEXT:
{text}

Please provide:

1. SUMMARIES:
   - short: 2-3 sentences capturing the essence
   - bullets: 6-8 key points, one per line, each starting with "• "
   - detailed: comprehensive 3-4 paragraph summary

2. KEY CONCEPTS (8-12 concepts):
   - Extract important terms, formulas, definitions and principles
   - Categorize each and rate its importance from 1-10
   - Provide clear, student-friendly definitions

3. PRACTICE QUESTIONS (8-10 questions):
   - Mix of mcq, short_answer and essay questions
   - Include correct answers and detailed explanations
   - Vary difficulty levels (easy, medium, hard)
   - Align with Bloom's taxonomy levels
   - Test understanding, not just memorization

4. METADATA:
   - Main topics covered
   - Prerequisites needed
   - Learning objectives
   - Estimated reading time in minutes
   - Overall difficulty level

Make everything age-appropriate for {grade_level} students and specific to {subject}.
"""


def build_analysis_prompt(item: ContentItem, text: str) -> str:
    """Build the full-bundle analysis request for one document.

    Args:
        item: The content item metadata.
        text: Extracted document text (truncated to ``MAX_ANALYSIS_CHARS``).
    """
    return ANALYSIS_USER_PROMPT.format(
        title=item.title,
        subject=item.subject or "General",
        grade_level=item.grade_level or "General",
        text=text[:MAX_ANALYSIS_CHARS],
    )


def build_embedding_text(item: ContentItem, detailed_summary: str, terms: Sequence[str]) -> str:
    """Text embedded for similarity search: title, detailed summary, concept terms."""
    return " ".join([item.title, detailed_summary, " ".join(terms)]).strip()


PRACTICE_TOPUP_PROMPT = """\
Write practice questions for students about the content below.

CONTENT TITLE: {title}
SUBJECT: {subject}
GRADE LEVEL: {grade_level}

KEY CONCEPTS:
{concepts}

DETAILED SUMMARY:
{summary}
{focus}
Write exactly {count} questions, one for each slot below, in this order:
{slots}

Each question must match its slot's type and difficulty exactly. For mcq,
give 4 options and repeat the correct option verbatim in `correct_answer`.
Include an explanation, a Bloom's level, a topic, and an estimated time in
minutes for every question.
"""


def build_practice_topup_prompt(
    analysis: ContentAnalysis,
    slots: Sequence[tuple[QuestionType, Difficulty]],
    focus_topics: Sequence[str] = (),
) -> str:
    """Build a request for exactly the (type, difficulty) slots the stored bank could not fill."""
    concepts = "\n".join(
        f"- {c.term}: {c.definition}" for c in analysis.key_concepts
    ) or "None available"
    slot_lines = "\n".join(
        f"{i}. type={qtype.value}, difficulty={difficulty.value}"
        for i, (qtype, difficulty) in enumerate(slots, 1)
    )
    focus = (
        f"\nFOCUS TOPICS (prefer these): {', '.join(focus_topics)}\n" if focus_topics else ""
    )
    return PRACTICE_TOPUP_PROMPT.format(
        title=analysis.title or "Educational Content",
        subject=analysis.subject or "General",
        grade_level=analysis.grade_level or "General",
        concepts=concepts,
        summary=analysis.summaries.detailed,
        focus=focus,
        count=len(slots),
        slots=slot_lines,
    )
