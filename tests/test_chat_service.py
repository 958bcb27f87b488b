"""
Unit Tests for Chat Service

Tests the main coordinator: classification metadata, tool hints, confidence
feedback into the pattern store and error handling.
"""

import os

import pytest
from unittest.mock import AsyncMock, Mock, patch

from ai import ConversationTurn, MissingCredentialError, ProviderUnavailableError
from core import PatternOutcome, PatternStore
from core.events import CONFIDENCE_EVENT, TOOL_ATTEMPT_EVENT
from services.chat_service import ChatService, process_user_message
from tests import RecordingSink, ScriptedProvider, answer, call
from tools import ToolRegistry


QUESTION = "Explain python decorators"

GOOD_ANSWER = (
    "Here is how to explain Python decorators.\n\n"
    "A decorator wraps a function:\n\n"
    "```python\ndef deco(f):\n    return f\n```\n\n"
    "Decorators are applied with the @ syntax on top of a function definition."
)

POOR_ANSWER = "I don't know."


@pytest.fixture
def registry():
    """Fixture providing a registry with one file tool."""
    registry = ToolRegistry()

    @registry.tool("Read a file")
    def read_file(path: str = "README.md") -> str:
        return f"contents of {path}"

    return registry


@pytest.fixture
def store():
    """Fixture providing an in-memory pattern store."""
    return PatternStore()


@pytest.fixture
def sink():
    """Fixture providing a recording event sink."""
    return RecordingSink()


def make_service(provider, registry, store, sink, **kwargs) -> ChatService:
    return ChatService(
        provider=provider,
        tool_registry=registry,
        pattern_store=store,
        event_sink=sink,
        **kwargs,
    )


class TestChatService:
    """Test ChatService.process_message."""

    @pytest.mark.asyncio
    async def test_process_message_success(self, registry, store, sink):
        """A confident answer after a tool call."""
        provider = ScriptedProvider([call("read_file", {"path": "deco.py"}), answer(GOOD_ANSWER)])
        service = make_service(provider, registry, store, sink)

        response = await service.process_message(QUESTION, session_id="test_session_123")

        assert response.success is True
        assert response.message == GOOD_ANSWER
        assert response.analysis.needs_revision is False
        assert response.metadata["session_id"] == "test_session_123"
        assert response.metadata["intent"] == "idea"
        assert response.metadata["task_type"] == "generation"
        assert response.metadata["agent"] == "generator"
        assert response.metadata["is_complex"] is False
        assert response.metadata["tools_used"] == ["read_file"]
        assert response.metadata["iterations"] == 2
        assert response.metadata["was_revised"] is False
        assert response.metadata["confidence"] > 0.75
        assert "mission" not in response.metadata
        assert response.suggestions == ["Break this into steps", "Create the files in the workspace"]

    @pytest.mark.asyncio
    async def test_events_and_success_pattern(self, registry, store, sink):
        """Tool attempts and the verdict are emitted; the tool sequence is learned."""
        provider = ScriptedProvider([call("read_file"), answer(GOOD_ANSWER)])

        await make_service(provider, registry, store, sink).process_message(QUESTION)

        assert [e[0] for e in sink.events] == [TOOL_ATTEMPT_EVENT, CONFIDENCE_EVENT]
        assert sink.events[1][1]["was_revised"] is False
        assert len(store) == 1
        assert store.patterns[0].outcome == PatternOutcome.SUCCESS

    @pytest.mark.asyncio
    async def test_session_id_generated(self, registry, store, sink):
        """A session id is created when none is given."""
        response = await make_service(
            ScriptedProvider([answer(GOOD_ANSWER)]), registry, store, sink
        ).process_message(QUESTION)

        assert response.metadata["session_id"]

    @pytest.mark.asyncio
    async def test_conversation_history_passed(self, registry, store, sink):
        """Earlier turns are sent to the provider before the new message."""
        history = [
            ConversationTurn.user("Tell me about generators"),
            ConversationTurn.assistant("Generators yield values..."),
        ]
        provider = ScriptedProvider([answer(GOOD_ANSWER)])

        await make_service(provider, registry, store, sink).process_message(
            QUESTION, conversation_history=history
        )

        assert provider.calls[0][:2] == tuple(history)
        assert provider.calls[0][2].content == QUESTION

    @pytest.mark.asyncio
    async def test_on_chunk(self, registry, store, sink):
        """The final answer is delivered to the chunk callback."""
        chunks = []

        await make_service(
            ScriptedProvider([answer(GOOD_ANSWER)]), registry, store, sink
        ).process_message(QUESTION, on_chunk=chunks.append)

        assert chunks == [GOOD_ANSWER]

    @pytest.mark.asyncio
    async def test_complex_request_has_mission(self, registry, store, sink):
        """Complex requests carry a mission description."""
        response = await make_service(
            ScriptedProvider([answer("Migration plan ready.")]), registry, store, sink
        ).process_message("please migrate the database to postgres")

        assert response.metadata["is_complex"] is True
        assert response.metadata["mission"]["mission"] == "Migrate the database to postgres"


class TestToolHints:
    """Test that learned tool sequences are offered to the model."""

    @pytest.mark.asyncio
    async def test_repeated_request_gets_hint(self, registry, store, sink):
        """A request resembling a learned one is prefixed with the tool hint."""
        provider = ScriptedProvider([call("read_file"), answer(GOOD_ANSWER)])
        service = make_service(provider, registry, store, sink)

        first = await service.process_message(QUESTION)
        second = await service.process_message(QUESTION)

        assert first.metadata["suggested_tools"] == []
        assert second.metadata["suggested_tools"] == ["read_file"]
        user_turn = provider.calls[-1][0]
        assert "read_file" in user_turn.content
        assert user_turn.content.endswith(f"\n\n{QUESTION}")

    @pytest.mark.asyncio
    async def test_workspace_context(self, registry, store, sink):
        """The workspace path is part of the context."""
        provider = ScriptedProvider([answer(GOOD_ANSWER)])

        await make_service(
            provider, registry, store, sink, workspace_path="/srv/project"
        ).process_message(QUESTION)

        assert "Current workspace: /srv/project" in provider.calls[0][0].content


class TestConfidenceFeedback:
    """Test how the verdict feeds the learning layer."""

    @pytest.mark.asyncio
    async def test_low_confidence_with_tools_records_failure(self, registry, store, sink):
        """A poor answer produced with tools counts against those tools."""
        provider = ScriptedProvider([call("read_file"), answer(POOR_ANSWER)])

        response = await make_service(provider, registry, store, sink).process_message(QUESTION)

        assert response.analysis.needs_revision is True
        assert response.message == POOR_ANSWER
        assert len(store) == 1
        failure = store.patterns[0]
        assert failure.outcome == PatternOutcome.FAILURE
        assert failure.error_context.attempted_tools == ("read_file",)
        assert failure.error_context.error_message.startswith("Low confidence answer")
        assert store.success_rate("read_file") == pytest.approx(0.45)

    @pytest.mark.asyncio
    async def test_rejected_answer_not_suggested_again(self, registry, store, sink):
        """Tools behind a rejected answer are never offered as a hint."""
        provider = ScriptedProvider([call("read_file"), answer("ok")])
        service = make_service(provider, registry, store, sink)
        request = "summarize quarterly revenue report"

        response = await service.process_message(request)

        assert response.analysis.needs_revision is True
        assert [p.outcome for p in store.patterns] == [PatternOutcome.FAILURE]
        assert store.suggest_tool_names(request) == []

    @pytest.mark.asyncio
    async def test_accepted_answer_records_success(self, registry, store, sink):
        """An accepted answer stores the successful tool calls."""
        provider = ScriptedProvider([call("read_file", {"path": "deco.py"}), answer(GOOD_ANSWER)])

        await make_service(provider, registry, store, sink).process_message(QUESTION)

        success = store.patterns[0]
        assert success.outcome == PatternOutcome.SUCCESS
        assert success.tool_sequence[0].args == {"path": "deco.py"}
        assert store.success_rate("read_file") == pytest.approx(0.55)

    @pytest.mark.asyncio
    async def test_low_confidence_without_tools(self, registry, store, sink):
        """Nothing is learned when no tool was involved."""
        response = await make_service(
            ScriptedProvider([answer(POOR_ANSWER)]), registry, store, sink
        ).process_message(QUESTION)

        assert response.analysis.needs_revision is True
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_revision_suggestion_first(self, registry, store, sink):
        """Low confidence puts the follow-up suggestion first, capped at three."""
        response = await make_service(
            ScriptedProvider([answer(POOR_ANSWER)]), registry, store, sink
        ).process_message(QUESTION)

        assert response.suggestions == [
            "Ask for more detail or a code example",
            "Break this into steps",
            "Create the files in the workspace",
        ]

    @pytest.mark.asyncio
    async def test_auto_revise(self, registry, store, sink):
        """With auto_revise the revised prompt is sent once and re-scored."""
        provider = ScriptedProvider([answer(POOR_ANSWER), answer(GOOD_ANSWER)])

        response = await make_service(
            provider, registry, store, sink, auto_revise=True
        ).process_message(QUESTION)

        assert len(provider.calls) == 2
        revised = provider.calls[1][0].content
        assert revised.startswith(QUESTION)
        assert "Confidence Review Note" in revised
        assert response.message == GOOD_ANSWER
        assert response.metadata["was_revised"] is True
        assert response.analysis.needs_revision is False
        assert sink.events[-1] == (CONFIDENCE_EVENT, sink.events[-1][1])
        assert sink.events[-1][1]["was_revised"] is True


class TestErrorHandling:
    """Test failures surfaced to the caller."""

    @pytest.mark.asyncio
    async def test_provider_unavailable(self, registry, store, sink):
        """Transport failures give an unsuccessful response with remediation."""
        provider = Mock()
        provider.send = AsyncMock(side_effect=ProviderUnavailableError("connection refused"))

        response = await make_service(provider, registry, store, sink).process_message(QUESTION)

        assert response.success is False
        assert "connection refused" in response.message
        assert "GOOGLE_API_KEY" in response.message
        assert response.metadata["error"] == "provider_unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_error(self, registry, store, sink):
        """Unexpected errors give the friendly message."""
        provider = Mock()
        provider.send = AsyncMock(side_effect=RuntimeError("kaboom"))

        response = await make_service(provider, registry, store, sink).process_message(QUESTION)

        assert response.success is False
        assert "trouble processing your request" in response.message
        assert response.metadata["error"] == "kaboom"

    @pytest.mark.asyncio
    async def test_iteration_limit(self, registry, store, sink):
        """A model that never stops calling tools is not a success."""
        provider = ScriptedProvider([call("read_file")])

        response = await make_service(
            provider, registry, store, sink, max_iterations=2
        ).process_message(QUESTION)

        assert len(provider.calls) == 2
        assert response.success is False
        assert response.metadata["hit_iteration_limit"] is True
        assert "trouble processing your request" in response.message

    @patch("ai.llm_service.GOOGLE_API_KEY", None)
    def test_default_provider_needs_credential(self, store, sink):
        """Without an API key the default provider cannot be built."""
        with pytest.raises(MissingCredentialError):
            ChatService(pattern_store=store, event_sink=sink)


class TestProcessUserMessage:
    """Test convenience function."""

    @pytest.mark.asyncio
    async def test_process_user_message_convenience(self, registry, store, sink):
        """Extra keyword arguments configure the service."""
        response = await process_user_message(
            QUESTION,
            session_id="s1",
            provider=ScriptedProvider([answer(GOOD_ANSWER)]),
            tool_registry=registry,
            pattern_store=store,
            event_sink=sink,
        )

        assert response.success is True
        assert response.metadata["session_id"] == "s1"


# ============================================================================
# INTEGRATION TESTS
# ============================================================================

class TestChatServiceIntegration:
    """Integration tests (require API key)."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.skipif(not os.getenv("GOOGLE_API_KEY"), reason="GOOGLE_API_KEY not set")
    async def test_simple_greeting_flow(self):
        """Test simple greeting conversation."""
        service = ChatService(pattern_store=PatternStore(), event_sink=RecordingSink())

        response = await service.process_message("Hello!")

        assert response.success is True
        assert len(response.message) > 0
