"""
Unit Tests for the Tool Orchestrator

Tests the bounded provider ↔ tool loop: ordering, error results, argument
parsing, iteration limit and learning notifications.
"""

import logging

import pytest
from unittest.mock import AsyncMock, Mock

from ai import (
    ConversationTurn,
    ProviderResponse,
    ProviderUnavailableError,
    Role,
    ToolCallRequest,
)
from core.events import TOOL_ATTEMPT_EVENT
from core.orchestrator import OrchestratorState, ToolOrchestrator, run_tool_loop
from core.patterns import PatternOutcome, PatternStore
from tests import RecordingSink, ScriptedProvider, answer, call
from tools import ToolRegistry


@pytest.fixture
def registry():
    """Fixture providing a registry with a few tools."""
    registry = ToolRegistry()

    @registry.tool("Read a file")
    def read_file(path: str = "default.txt") -> str:
        return f"contents of {path}"

    @registry.tool("List a directory")
    async def list_dir(path: str = ".") -> list:
        return ["a.py", "b.py"]

    @registry.tool("Always fails")
    def explode() -> str:
        raise RuntimeError("boom")

    return registry


def make_orchestrator(provider, registry, **kwargs) -> ToolOrchestrator:
    return ToolOrchestrator(
        provider=provider,
        executor=registry,
        tool_catalog=registry.catalog(),
        **kwargs,
    )


class TestFinalAnswer:
    """Test exchanges that end with a final answer."""

    @pytest.mark.asyncio
    async def test_answer_without_tools(self, registry):
        """A plain answer ends the loop after one call."""
        provider = ScriptedProvider([answer("Hello!")])

        result = await make_orchestrator(provider, registry).run("hi")

        assert result.final_answer == "Hello!"
        assert result.iterations == 1
        assert result.state == OrchestratorState.DONE
        assert result.hit_iteration_limit is False
        assert [t.role for t in result.history] == [Role.USER, Role.ASSISTANT]
        assert provider.catalogs[0] == registry.catalog()

    @pytest.mark.asyncio
    async def test_tool_results_follow_calls_in_order(self, registry):
        """Each call gets one tool turn, in request order, before the next model call."""
        provider = ScriptedProvider([
            ProviderResponse(tool_calls=(
                ToolCallRequest(name="read_file", arguments={"path": "a.py"}, id="c1"),
                ToolCallRequest(name="list_dir", arguments={}, id="c2"),
            )),
            answer("Done"),
        ])

        result = await make_orchestrator(provider, registry).run("read a.py and list files")

        second_call = provider.calls[1]
        assert [t.role for t in second_call] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.TOOL]
        assert second_call[2].content == "contents of a.py"
        assert second_call[2].tool_result.id == "c1"
        assert second_call[3].content == '["a.py", "b.py"]'
        assert second_call[3].tool_result.id == "c2"
        assert result.final_answer == "Done"
        assert result.iterations == 2
        assert [t.tool_name for t in result.tool_calls] == ["read_file", "list_dir"]

    @pytest.mark.asyncio
    async def test_caller_history_not_mutated(self, registry):
        """The caller's history is copied; the result is an immutable snapshot."""
        history = [ConversationTurn.user("earlier"), ConversationTurn.assistant("reply")]
        provider = ScriptedProvider([answer("ok")])

        result = await make_orchestrator(provider, registry).run("next", history=history)

        assert len(history) == 2
        assert isinstance(result.history, tuple)
        assert result.history[:2] == tuple(history)
        assert result.history[2].content == "next"

    @pytest.mark.asyncio
    async def test_context_prefixes_user_turn(self, registry):
        """Extra context is placed before the request."""
        provider = ScriptedProvider([answer("ok")])

        await make_orchestrator(provider, registry).run("list files", context="Hint: use list_dir")

        assert provider.calls[0][0].content == "Hint: use list_dir\n\nlist files"

    @pytest.mark.asyncio
    async def test_on_chunk_receives_answer(self, registry):
        """Sync and async chunk callbacks both receive the final answer."""
        chunks = []
        async_chunk = AsyncMock()

        await make_orchestrator(ScriptedProvider([answer("Hello")]), registry).run(
            "hi", on_chunk=chunks.append
        )
        await make_orchestrator(ScriptedProvider([answer("Hello")]), registry).run(
            "hi", on_chunk=async_chunk
        )

        assert chunks == ["Hello"]
        async_chunk.assert_awaited_once_with("Hello")


class TestToolErrors:
    """Test that tool problems become ERROR results."""

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        """A nonexistent tool yields an error result and the loop continues."""
        provider = ScriptedProvider([call("nope", call_id="c1"), answer("Sorry")])

        result = await make_orchestrator(provider, registry).run("do something")

        tool_turn = provider.calls[1][-1]
        assert tool_turn.content == "ERROR: Tool nope not found"
        assert result.final_answer == "Sorry"
        assert result.tool_calls[0].success is False

    @pytest.mark.asyncio
    async def test_tool_exception(self, registry):
        """Executor exceptions are caught and reported."""
        provider = ScriptedProvider([call("explode"), answer("It failed")])

        result = await make_orchestrator(provider, registry).run("explode please")

        assert provider.calls[1][-1].content == "ERROR: boom"
        assert result.final_answer == "It failed"

    @pytest.mark.asyncio
    async def test_malformed_arguments_become_empty(self, registry, caplog):
        """Unparseable text arguments are replaced by {} with a warning."""
        provider = ScriptedProvider([call("read_file", '{"path": '), answer("ok")])

        with caplog.at_level(logging.WARNING, logger="core.orchestrator"):
            result = await make_orchestrator(provider, registry).run("read")

        assert provider.calls[1][-1].content == "contents of default.txt"
        assert result.tool_calls[0].call.arguments == {}
        assert "Malformed arguments" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize("arguments", [["a"], None, 42])
    async def test_non_object_arguments_become_empty(self, registry, caplog, arguments):
        """Arguments that are neither an object nor text are replaced by {}."""
        provider = ScriptedProvider([
            ProviderResponse(tool_calls=(ToolCallRequest(name="read_file", arguments=arguments),)),
            answer("done"),
        ])

        with caplog.at_level(logging.WARNING, logger="core.orchestrator"):
            result = await make_orchestrator(provider, registry).run("read")

        assert result.final_answer == "done"
        assert provider.calls[1][-1].content == "contents of default.txt"
        assert result.tool_calls[0].call.arguments == {}
        assert result.tool_calls[0].success is True
        assert "Malformed arguments" in caplog.text

    @pytest.mark.asyncio
    async def test_text_arguments_parsed(self, registry):
        """Valid JSON text arguments are parsed."""
        provider = ScriptedProvider([call("read_file", '{"path": "x.md"}'), answer("ok")])

        await make_orchestrator(provider, registry).run("read x.md")

        assert provider.calls[1][-1].content == "contents of x.md"
        assert provider.calls[1][1].tool_calls[0].arguments == {"path": "x.md"}

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, registry):
        """Transport failures are fatal to the caller."""
        provider = Mock()
        provider.send = AsyncMock(side_effect=ProviderUnavailableError("connection refused"))

        with pytest.raises(ProviderUnavailableError):
            await make_orchestrator(provider, registry).run("hi")


class TestIterationLimit:
    """Test the max_iterations bound."""

    @pytest.mark.asyncio
    async def test_never_stopping_provider(self, registry):
        """A provider that always asks for tools is called exactly max_iterations times."""
        provider = ScriptedProvider([call("read_file")])
        store = PatternStore()

        result = await make_orchestrator(
            provider, registry, pattern_store=store, max_iterations=3
        ).run("read forever")

        assert len(provider.calls) == 3
        assert result.iterations == 3
        assert result.hit_iteration_limit is True
        assert result.final_answer == ""
        assert result.state == OrchestratorState.DONE
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_best_effort_answer(self, registry):
        """Text sent alongside tool calls is returned when the limit is hit."""
        provider = ScriptedProvider([
            ProviderResponse(content="Still reading...", tool_calls=(ToolCallRequest(name="read_file"),)),
        ])

        result = await make_orchestrator(provider, registry, max_iterations=2).run("read")

        assert result.hit_iteration_limit is True
        assert result.final_answer == "Still reading..."

    @pytest.mark.asyncio
    async def test_best_effort_answer_streamed(self, registry):
        """The chunk callback also receives a best-effort answer."""
        chunks = []
        provider = ScriptedProvider([
            ProviderResponse(content="Still reading...", tool_calls=(ToolCallRequest(name="read_file"),)),
        ])

        await make_orchestrator(provider, registry, max_iterations=2).run(
            "read", on_chunk=chunks.append
        )

        assert chunks == ["Still reading..."]

    @pytest.mark.asyncio
    async def test_empty_best_effort_not_streamed(self, registry):
        """Nothing is streamed when there is no text at all."""
        chunks = []

        await make_orchestrator(
            ScriptedProvider([call("read_file")]), registry, max_iterations=2
        ).run("read", on_chunk=chunks.append)

        assert chunks == []

    @pytest.mark.asyncio
    async def test_always_unknown_tool(self, registry):
        """A provider that keeps asking for a missing tool stops at the bound without raising."""
        provider = ScriptedProvider([call("ghost")])

        result = await make_orchestrator(provider, registry, max_iterations=5).run("haunt me")

        assert len(provider.calls) == 5
        assert result.iterations == 5
        assert result.hit_iteration_limit is True
        assert result.final_answer == ""
        tool_turns = [t for t in result.history if t.role == Role.TOOL]
        assert len(tool_turns) == 5
        assert all(t.content == "ERROR: Tool ghost not found" for t in tool_turns)
        assert all(not t.success for t in result.tool_calls)


class TestLearningNotifications:
    """Test pattern store and event sink reporting."""

    @pytest.mark.asyncio
    async def test_success_recorded_once(self, registry):
        """Successful calls of the exchange become one success pattern."""
        store = PatternStore()
        provider = ScriptedProvider([
            call("read_file", {"path": "a.py"}),
            call("list_dir"),
            answer("Done"),
        ])

        await make_orchestrator(provider, registry, pattern_store=store).run("inspect the project")

        successes = [p for p in store.patterns if p.outcome == PatternOutcome.SUCCESS]
        assert len(successes) == 1
        assert successes[0].tool_names == ["read_file", "list_dir"]
        assert [s.position for s in successes[0].tool_sequence] == [0, 1]

    @pytest.mark.asyncio
    async def test_success_recording_left_to_caller(self, registry):
        """With record_success=False no success pattern is stored."""
        store = PatternStore()
        provider = ScriptedProvider([call("read_file"), answer("Done")])

        result = await make_orchestrator(provider, registry, pattern_store=store).run(
            "inspect the project", record_success=False
        )

        assert len(store) == 0
        assert result.successful_calls[0].name == "read_file"

    @pytest.mark.asyncio
    async def test_failures_recorded(self, registry):
        """Failed attempts are reported as failure patterns; no success without a success."""
        store = PatternStore()
        provider = ScriptedProvider([call("explode"), answer("It failed")])

        await make_orchestrator(provider, registry, pattern_store=store).run("explode the thing")

        patterns = store.patterns
        assert len(patterns) == 1
        assert patterns[0].outcome == PatternOutcome.FAILURE
        assert patterns[0].error_context.attempted_tools == ("explode",)
        assert patterns[0].error_context.error_message == "boom"
        assert store.success_rate("explode") == pytest.approx(0.45)

    @pytest.mark.asyncio
    async def test_tool_attempt_events(self, registry):
        """Every tool attempt is emitted with name, success and duration."""
        sink = RecordingSink()
        provider = ScriptedProvider([call("read_file"), call("nope"), answer("ok")])

        await make_orchestrator(provider, registry, event_sink=sink).run("read")

        assert [e[0] for e in sink.events] == [TOOL_ATTEMPT_EVENT, TOOL_ATTEMPT_EVENT]
        first, second = (e[1] for e in sink.events)
        assert first["tool_name"] == "read_file"
        assert first["success"] is True
        assert first["duration_ms"] >= 0
        assert second == {**second, "tool_name": "nope", "success": False}


class TestRunToolLoop:
    """Test the convenience function."""

    @pytest.mark.asyncio
    async def test_run_tool_loop(self, registry):
        """run_tool_loop builds an orchestrator and runs it once."""
        provider = ScriptedProvider([call("read_file", {"path": "r.md"}), answer("Read it")])

        result = await run_tool_loop(
            "read r.md",
            provider=provider,
            executor=registry,
            tool_catalog=registry.catalog(),
            max_iterations=2,
        )

        assert result.final_answer == "Read it"
        assert result.successful_calls[0].arguments == {"path": "r.md"}
        assert result.get_execution_summary()["tools_used"] == ["read_file"]
