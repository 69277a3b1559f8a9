"""Tutor — answer a student's question about one processed document."""

from __future__ import annotations

import logging
from typing import Sequence

from agents.related_content import RelatedContentFinder
from config.llm_config import LLMConfig
from config.prompts.tutor import TUTOR_SYSTEM_PROMPT, build_tutor_prompt
from config.settings import get_settings
from models.content import ConversationTurn, QAResponse
from services.content_store import ContentStore
from services.model_client import ModelClient

logger = logging.getLogger(__name__)

MAX_HISTORY_TURNS = 10
RELATED_CONTEXT_LIMIT = 3


class Tutor:
    """Grounded Q&A: bundle context + similar documents + recent history → one model call."""

    def __init__(
        self,
        store: ContentStore,
        model_client: ModelClient,
        related_finder: RelatedContentFinder | None = None,
        llm_config: LLMConfig | None = None,
    ) -> None:
        self._store = store
        self._model_client = model_client
        self._related = related_finder or RelatedContentFinder(store)
        self._llm_config = llm_config or LLMConfig(
            model=get_settings().model_for("tutor"),
            temperature=0.7,
        )

    async def ask_question(
        self,
        content_id: str,
        question: str,
        history: Sequence[ConversationTurn] = (),
    ) -> QAResponse:
        """Answer *question* in the context of *content_id*.

        Only the last ``MAX_HISTORY_TURNS`` turns of *history* are sent.
        """
        analysis = await self._store.require_analysis(content_id)
        recent = list(history)[-MAX_HISTORY_TURNS:]
        related = await self._related.find(
            content_id,
            analysis.classroom_id,
            limit=RELATED_CONTEXT_LIMIT,
            min_similarity=0.0,
        )

        logger.info(
            "Answering question on %s (%d history turns, %d related docs)",
            content_id, len(recent), len(related),
        )
        return await self._model_client.generate(
            build_tutor_prompt(analysis, question, recent, related),
            QAResponse,
            system_prompt=TUTOR_SYSTEM_PROMPT,
            config=self._llm_config,
        )
