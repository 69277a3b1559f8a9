"""Tests for agents/tutor.py — grounded Q&A."""

from __future__ import annotations

import pytest

from agents.tutor import MAX_HISTORY_TURNS, Tutor
from config.llm_config import LLMConfig
from errors.exceptions import ModelInvocationError, NotProcessedError
from models.content import ConversationTurn, QAResponse
from tests.helpers import make_analysis, seed_complete

ANSWER = {
    "answer": "Chlorophyll absorbs light energy.",
    "confidence": 0.9,
    "sources": ["Title photo-1"],
    "related_concepts": ["Chloroplast"],
    "follow_up_questions": ["Why are leaves green?"],
}


@pytest.fixture
def tutor(store, model_client) -> Tutor:
    model_client.responses[QAResponse] = ANSWER
    return Tutor(store, model_client, llm_config=LLMConfig(model="test"))


class TestAskQuestion:
    async def test_answer_returned(self, tutor, store):
        await seed_complete(store, make_analysis("photo-1"))
        response = await tutor.ask_question("photo-1", "What does chlorophyll do?")
        assert response.answer == "Chlorophyll absorbs light energy."
        assert response.confidence == 0.9
        assert response.follow_up_questions == ["Why are leaves green?"]

    async def test_prompt_grounded_in_bundle(self, tutor, store, model_client):
        await seed_complete(store, make_analysis("photo-1", concepts=[("Chlorophyll", 8)]))
        await tutor.ask_question("photo-1", "What does chlorophyll do?")

        prompt = model_client.calls_for(QAResponse)[0]
        assert "Title: Title photo-1" in prompt
        assert "- Chlorophyll: Chlorophyll definition" in prompt
        assert "STUDENT QUESTION: What does chlorophyll do?" in prompt
        assert "No previous conversation" in prompt

    async def test_history_truncated(self, tutor, store, model_client):
        await seed_complete(store, make_analysis("photo-1"))
        history = [
            ConversationTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn-{i:02d}")
            for i in range(15)
        ]
        await tutor.ask_question("photo-1", "And then?", history)

        prompt = model_client.calls_for(QAResponse)[0]
        assert "turn-04" not in prompt
        kept = [f"turn-{i:02d}" for i in range(15 - MAX_HISTORY_TURNS, 15)]
        assert all(turn in prompt for turn in kept)
        assert "user: turn-14" in prompt

    async def test_related_documents_in_context(self, tutor, store, model_client):
        await seed_complete(store, make_analysis("photo-1"))
        await seed_complete(store, make_analysis("resp-1", topics=["Respiration"]))
        await seed_complete(store, make_analysis("other-class", classroom_id="class-9"))

        await tutor.ask_question("photo-1", "How is this related to respiration?")

        prompt = model_client.calls_for(QAResponse)[0]
        assert "- Title resp-1: Respiration" in prompt
        assert "other-class" not in prompt

    async def test_not_processed(self, tutor, model_client):
        with pytest.raises(NotProcessedError):
            await tutor.ask_question("missing", "Anything?")
        assert model_client.calls == []

    async def test_model_failure_propagates(self, store, model_client):
        model_client.responses[QAResponse] = ModelInvocationError("upstream down", status_code=502)
        await seed_complete(store, make_analysis("photo-1"))
        tutor = Tutor(store, model_client, llm_config=LLMConfig(model="test"))
        with pytest.raises(ModelInvocationError):
            await tutor.ask_question("photo-1", "Anything?")
