"""
Tool Orchestrator - Main Tool-Calling Loop

Implements the bounded "ask → execute tools → ask again" protocol:
1. Ask: Send the full history and tool catalog to the model provider
2. Act: Execute every requested tool, in order, and append the results
3. Repeat until the model answers without tool calls, or the iteration
   bound is reached

Tool failures never stop the loop: they become "ERROR: ..." results the model
can react to. Only provider failures (ProviderUnavailableError) and missing
credentials are fatal to the caller.

Every tool attempt is reported to the learning event sink, failed attempts
and successful exchanges to the pattern store.
"""

import inspect
import json
import logging
import time
from typing import List, Dict, Any, Optional, Callable, Sequence, Tuple
from dataclasses import dataclass, field
from enum import Enum

from ai import (
    ConversationTurn,
    ModelProvider,
    ToolCallRequest,
    ToolCallResult,
    ERROR_PREFIX,
    traced,
)
from config import MAX_ITERATIONS
from core.events import LearningEventSink, TOOL_ATTEMPT_EVENT
from core.patterns import PatternStore
from tools.registry import ToolExecutor

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Any]


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class OrchestratorState(Enum):
    """Orchestrator loop state."""
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"


@dataclass
class ToolExecution:
    """
    Record of one tool attempt.

    Attributes:
        call: The tool call as executed (arguments already parsed)
        success: Whether the tool produced a non-error result
        content: Result content sent back to the model
        duration_ms: Execution time in milliseconds
    """
    call: ToolCallRequest
    success: bool
    content: str
    duration_ms: float = 0.0

    @property
    def tool_name(self) -> str:
        return self.call.name


@dataclass
class OrchestrationResult:
    """
    Outcome of one orchestrated exchange.

    Attributes:
        final_answer: The model's final text ("" or best effort when the
            iteration limit was hit)
        history: Immutable snapshot of the full conversation history
        tool_calls: Every tool attempt, in execution order
        iterations: Number of provider calls made
        state: Final loop state (always DONE on return)
        hit_iteration_limit: True if the loop stopped at max_iterations
        execution_time: Wall time of the exchange (seconds)
    """
    final_answer: str
    history: Tuple[ConversationTurn, ...]
    tool_calls: List[ToolExecution] = field(default_factory=list)
    iterations: int = 0
    state: OrchestratorState = OrchestratorState.DONE
    hit_iteration_limit: bool = False
    execution_time: float = 0.0

    @property
    def successful_calls(self) -> List[ToolCallRequest]:
        return [t.call for t in self.tool_calls if t.success]

    @property
    def tools_used(self) -> List[str]:
        """Distinct tool names in first-use order."""
        return list(dict.fromkeys(t.tool_name for t in self.tool_calls))

    def get_execution_summary(self) -> Dict[str, Any]:
        """Get a summary of the execution."""
        return {
            "iterations": self.iterations,
            "num_tool_calls": len(self.tool_calls),
            "tools_used": self.tools_used,
            "had_errors": any(not t.success for t in self.tool_calls),
            "hit_iteration_limit": self.hit_iteration_limit,
            "execution_time": self.execution_time,
        }


# ============================================================================
# TOOL ORCHESTRATOR
# ============================================================================

class ToolOrchestrator:
    """
    Drives a model provider through repeated tool-calling rounds.

    The conversation history is owned by the orchestrator for the duration of
    run(); callers only ever receive tuple snapshots of it.
    """

    def __init__(
        self,
        provider: ModelProvider,
        executor: ToolExecutor,
        tool_catalog: Optional[List[Dict[str, Any]]] = None,
        pattern_store: Optional[PatternStore] = None,
        event_sink: Optional[LearningEventSink] = None,
        max_iterations: int = MAX_ITERATIONS,
    ):
        """
        Initialize the orchestrator.

        Args:
            provider: Model provider to converse with
            executor: Executes tool calls by name
            tool_catalog: Tool declarations sent to the provider
            pattern_store: Receives failed attempts and successful exchanges
            event_sink: Receives one event per tool attempt
            max_iterations: Maximum number of provider calls per exchange
        """
        self.provider = provider
        self.executor = executor
        self.tool_catalog = tool_catalog or []
        self.pattern_store = pattern_store
        self.event_sink = event_sink
        self.max_iterations = max_iterations

    @traced("tool_orchestration")
    async def run(
        self,
        user_message: str,
        history: Optional[Sequence[ConversationTurn]] = None,
        on_chunk: Optional[ChunkCallback] = None,
        context: Optional[str] = None,
        record_success: bool = True,
    ) -> OrchestrationResult:
        """
        Run the tool-calling loop for one user message.

        Args:
            user_message: The user's request
            history: Previous conversation turns (not modified)
            on_chunk: Called with the final answer text (sync or async)
            context: Extra instructions placed before the request in the
                user turn, e.g. a suggested tool sequence
            record_success: Record the successful tool calls with the pattern
                store. Callers that judge the answer first pass False and call
                observe_success themselves.

        Returns:
            OrchestrationResult with the final answer and full history

        Raises:
            ProviderUnavailableError: If the model provider cannot be reached
        """
        start_time = time.time()

        content = f"{context}\n\n{user_message}" if context else user_message
        turns: List[ConversationTurn] = list(history or [])
        turns.append(ConversationTurn.user(content))

        executions: List[ToolExecution] = []
        state = OrchestratorState.AWAITING_MODEL
        final_answer = ""
        best_effort = ""
        iterations = 0

        while iterations < self.max_iterations:
            iterations += 1
            state = OrchestratorState.AWAITING_MODEL

            response = await self.provider.send(tuple(turns), self.tool_catalog)

            if not response.has_tool_calls:
                final_answer = response.content
                turns.append(ConversationTurn.assistant(final_answer))
                state = OrchestratorState.DONE
                logger.info(f"✅ Final answer after {iterations} iteration(s)")
                break

            state = OrchestratorState.EXECUTING_TOOLS
            if response.content:
                best_effort = response.content

            calls = [self._normalize_call(call) for call in response.tool_calls]
            turns.append(ConversationTurn.assistant(response.content, calls))

            logger.info(f"🔧 Iteration {iterations}: executing {len(calls)} tool call(s)")

            for call in calls:
                execution = await self._execute_tool(call, user_message)
                executions.append(execution)
                turns.append(ConversationTurn.tool(
                    ToolCallResult(content=execution.content, id=call.id, name=call.name)
                ))

        hit_limit = state != OrchestratorState.DONE
        if hit_limit:
            logger.warning(
                f"⚠️  Reached max iterations ({self.max_iterations}) without a final answer"
            )
            final_answer = best_effort
            state = OrchestratorState.DONE

        if final_answer and on_chunk is not None:
            result = on_chunk(final_answer)
            if inspect.isawaitable(result):
                await result

        successful = [e.call for e in executions if e.success]
        if record_success and not hit_limit and successful and self.pattern_store is not None:
            self.pattern_store.observe_success(user_message, successful)

        return OrchestrationResult(
            final_answer=final_answer,
            history=tuple(turns),
            tool_calls=executions,
            iterations=iterations,
            state=state,
            hit_iteration_limit=hit_limit,
            execution_time=time.time() - start_time,
        )

    def _normalize_call(self, call: ToolCallRequest) -> ToolCallRequest:
        """Parse text arguments into a dict; malformed arguments become {}."""
        if isinstance(call.arguments, dict):
            return call

        args: Dict[str, Any] = {}
        if not isinstance(call.arguments, str):
            logger.warning(
                f"⚠️  Malformed arguments for {call.name}: "
                f"{type(call.arguments).__name__} instead of an object. Using {{}}"
            )
            return ToolCallRequest(name=call.name, arguments=args, id=call.id)

        raw = call.arguments.strip()
        if raw:
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, dict):
                    args = parsed
                else:
                    logger.warning(f"⚠️  Arguments for {call.name} are not an object, using {{}}")
            except json.JSONDecodeError as e:
                logger.warning(f"⚠️  Malformed arguments for {call.name}: {e}. Using {{}}")

        return ToolCallRequest(name=call.name, arguments=args, id=call.id)

    async def _execute_tool(self, call: ToolCallRequest, user_message: str) -> ToolExecution:
        """
        Execute one tool call, converting every failure into an ERROR result.

        Args:
            call: Tool call with parsed arguments
            user_message: The request being served (for failure patterns)

        Returns:
            ToolExecution with the content to send back to the model
        """
        start_time = time.perf_counter()

        if not self.executor.has_tool(call.name):
            content = f"{ERROR_PREFIX}Tool {call.name} not found"
        else:
            try:
                output = await self.executor.execute(call.name, call.arguments)
                content = output if isinstance(output, str) else str(output)
            except Exception as e:
                logger.error(f"❌ Tool {call.name} execution failed: {e}", exc_info=True)
                content = f"{ERROR_PREFIX}{e}"

        duration_ms = (time.perf_counter() - start_time) * 1000
        success = not content.startswith(ERROR_PREFIX)

        if not success:
            logger.warning(f"⚠️  Tool {call.name} failed: {content}")
            if self.pattern_store is not None:
                self.pattern_store.observe_failure(
                    user_message,
                    attempted_tools=[call.name],
                    error_message=content[len(ERROR_PREFIX):],
                )

        if self.event_sink is not None:
            self.event_sink.emit(TOOL_ATTEMPT_EVENT, {
                "tool_name": call.name,
                "success": success,
                "duration_ms": duration_ms,
            })

        return ToolExecution(call=call, success=success, content=content, duration_ms=duration_ms)


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

async def run_tool_loop(
    user_message: str,
    provider: ModelProvider,
    executor: ToolExecutor,
    tool_catalog: Optional[List[Dict[str, Any]]] = None,
    history: Optional[Sequence[ConversationTurn]] = None,
    pattern_store: Optional[PatternStore] = None,
    event_sink: Optional[LearningEventSink] = None,
    max_iterations: int = MAX_ITERATIONS,
) -> OrchestrationResult:
    """
    Convenience function to run the tool loop once.

    Args:
        user_message: User's input message
        provider: Model provider
        executor: Tool executor
        tool_catalog: Tool declarations
        history: Previous conversation
        pattern_store: Optional learning store
        event_sink: Optional learning event sink
        max_iterations: Max provider calls

    Returns:
        OrchestrationResult
    """
    orchestrator = ToolOrchestrator(
        provider=provider,
        executor=executor,
        tool_catalog=tool_catalog,
        pattern_store=pattern_store,
        event_sink=event_sink,
        max_iterations=max_iterations,
    )

    return await orchestrator.run(user_message=user_message, history=history)
