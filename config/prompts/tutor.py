"""Tutor prompt — grounded question answering over one analyzed document."""

from __future__ import annotations

from typing import Sequence

from models.content import ContentAnalysis, ConversationTurn, RelatedContent

TUTOR_SYSTEM_PROMPT = """\
You are an **expert AI tutor** helping students understand educational
content. Answer using the provided content analysis and context.

## Rules

1. Ground the answer in the content context. If the content does not cover
   the question, say so and answer from general knowledge carefully.
2. Reference specific concepts from the content when relevant.
3. Suggest related concepts the student might explore next.
4. Offer 2-3 follow-up questions that deepen understanding.
5. Rate your confidence in the answer from 0 to 1.
6. Be engaging, educational and encouraging. Use examples when helpful.
7. Respond in the **same language** as the student's question.
"""

TUTOR_USER_PROMPT = """\
CONTENT CONTEXT:
Title: {title}
Subject: {subject}
Topics: {topics}
Key Concepts:
{concepts}
Summary: {summary}

SIMILAR CONTENT FOR REFERENCE:
{similar}

CONVERSATION HISTORY:
{history}

STUDENT QUESTION: {question}
"""


def build_tutor_prompt(
    analysis: ContentAnalysis,
    question: str,
    history: Sequence[ConversationTurn] = (),
    related: Sequence[RelatedContent] = (),
) -> str:
    """Assemble the Q&A request.

    Args:
        analysis: The bundle of the document being asked about.
        question: The student's question.
        history: Already-truncated conversation turns, oldest first.
        related: Similar documents from the same classroom.
    """
    concepts = "\n".join(
        f"- {c.term}: {c.definition}" for c in analysis.key_concepts
    ) or "None available"
    similar = "\n".join(
        f"- {r.title}: {', '.join(r.topics) or r.subject}" for r in related
    ) or "None"
    history_text = "\n".join(
        f"{turn.role.value}: {turn.content}" for turn in history
    ) or "No previous conversation"

    return TUTOR_USER_PROMPT.format(
        title=analysis.title or "Educational Content",
        subject=analysis.subject or "General",
        topics=", ".join(analysis.topics) or "None",
        concepts=concepts,
        summary=analysis.summaries.detailed or "No summary available",
        similar=similar,
        history=history_text,
        question=question,
    )
