"""
Chat Service - Main Coordinator

Orchestrates the entire user interaction flow:
1. Classifies the request (intent + complexity) for routing and telemetry
2. Asks the pattern store for a tool sequence that worked before
3. Runs the tool orchestrator
4. Scores the answer with the confidence gate
5. Feeds the verdict back to the learning layer
6. Returns a formatted response

This is the main entry point for applications embedding the agent core.
"""

import logging
import uuid
from typing import Dict, List, Optional, Any, Sequence
from dataclasses import dataclass

from ai import ConversationTurn, ModelProvider, ProviderUnavailableError, GeminiProvider
from config import (
    MAX_ITERATIONS,
    PATTERN_STORE_PATH,
    WORKSPACE_PROMPT,
    TOOL_HINT_PROMPT,
    format_prompt,
)
from core import (
    IntentType,
    ConfidenceAnalysis,
    ConfidenceGate,
    Exchange,
    JsonFilePersistence,
    LearningEventSink,
    OrchestrationResult,
    PatternStore,
    ToolOrchestrator,
    analyze_complexity,
    classify_intent,
    create_mission_request,
    map_intent_to_task_type,
    select_agent,
)
from tools import ToolRegistry
from .learning_events import create_event_sink

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 3


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class ChatResponse:
    """
    Response from the chat service.

    Attributes:
        message: The response text to display to the user
        success: Whether the request was handled successfully
        metadata: Additional metadata about the response
        suggestions: Follow-up suggestions for the user
        analysis: Confidence verdict for the answer
        result: Full orchestration result (history, tool calls)
    """
    message: str
    success: bool
    metadata: Dict[str, Any]
    suggestions: Optional[List[str]] = None
    analysis: Optional[ConfidenceAnalysis] = None
    result: Optional[OrchestrationResult] = None


# ============================================================================
# CHAT SERVICE
# ============================================================================

class ChatService:
    """
    Main chat service coordinator.

    Wires the classifier, orchestrator, pattern store and confidence gate
    together and keeps the per-session exchanges the gate compares against.
    """

    def __init__(
        self,
        provider: Optional[ModelProvider] = None,
        tool_registry: Optional[ToolRegistry] = None,
        pattern_store: Optional[PatternStore] = None,
        confidence_gate: Optional[ConfidenceGate] = None,
        event_sink: Optional[LearningEventSink] = None,
        workspace_path: Optional[str] = None,
        max_iterations: int = MAX_ITERATIONS,
        auto_revise: bool = False,
    ):
        """
        Initialize the chat service.

        Args:
            provider: Model provider (defaults to GeminiProvider, which raises
                MissingCredentialError without an API key)
            tool_registry: Tools available to the model
            pattern_store: Learned tool patterns (defaults to the JSON store
                at PATTERN_STORE_PATH)
            confidence_gate: Answer scorer
            event_sink: Learning event sink (Langfuse when configured)
            workspace_path: Workspace the tools operate on
            max_iterations: Maximum provider calls per exchange
            auto_revise: Re-ask once with the revised prompt when the answer
                needs revision
        """
        self.provider = provider or GeminiProvider()
        self.tool_registry = tool_registry if tool_registry is not None else ToolRegistry()
        self.event_sink = event_sink or create_event_sink()
        self.pattern_store = (
            pattern_store if pattern_store is not None
            else PatternStore(JsonFilePersistence(PATTERN_STORE_PATH))
        )
        self.confidence_gate = confidence_gate or ConfidenceGate(event_sink=self.event_sink)
        self.workspace_path = workspace_path
        self.auto_revise = auto_revise

        self.orchestrator = ToolOrchestrator(
            provider=self.provider,
            executor=self.tool_registry,
            tool_catalog=self.tool_registry.catalog(),
            pattern_store=self.pattern_store,
            event_sink=self.event_sink,
            max_iterations=max_iterations,
        )

        self._sessions: Dict[str, List[Exchange]] = {}
        logger.info(f"✅ ChatService initialized ({len(self.tool_registry)} tools)")

    async def process_message(
        self,
        user_message: str,
        conversation_history: Optional[Sequence[ConversationTurn]] = None,
        session_id: Optional[str] = None,
        on_chunk=None,
    ) -> ChatResponse:
        """
        Process a user message and generate a response.

        Args:
            user_message: The user's input text
            conversation_history: Previous conversation turns
            session_id: Session identifier
            on_chunk: Receives the final answer text as it becomes available

        Returns:
            ChatResponse with the agent's reply and metadata
        """
        # Generate session ID if not provided
        if not session_id:
            session_id = str(uuid.uuid4())

        logger.info(f"💬 Processing message (session: {session_id}): {user_message[:50]}...")

        intent = classify_intent(user_message)
        complexity = analyze_complexity(user_message)
        agent = select_agent(intent.intent)
        logger.info(
            f"🎯 Intent: {intent.intent.value} → {agent.agent_type}, "
            f"complex: {complexity.is_complex}"
        )

        suggested_tools = self.pattern_store.suggest_tool_names(user_message)

        try:
            result = await self.orchestrator.run(
                user_message=user_message,
                history=conversation_history,
                on_chunk=on_chunk,
                context=self._build_context(suggested_tools),
                record_success=False,
            )
        except ProviderUnavailableError as e:
            logger.error(f"❌ Provider unavailable: {e}")
            return ChatResponse(
                message=str(e),
                success=False,
                metadata={"error": "provider_unavailable", "session_id": session_id},
            )
        except Exception as e:
            logger.error(f"❌ ChatService error: {e}", exc_info=True)
            return ChatResponse(
                message=self._get_error_message(),
                success=False,
                metadata={"error": str(e), "session_id": session_id},
            )

        exchanges = self._sessions.setdefault(session_id, [])
        analysis = self._evaluate(result, user_message, exchanges)
        was_revised = False

        if analysis.needs_revision and self.auto_revise and analysis.revised_prompt:
            logger.info("🔁 Low confidence answer, asking again with revised prompt")
            try:
                result = await self.orchestrator.run(
                    user_message=analysis.revised_prompt,
                    history=conversation_history,
                    on_chunk=on_chunk,
                    record_success=False,
                )
                analysis = self._evaluate(result, user_message, exchanges)
                was_revised = True
            except ProviderUnavailableError as e:
                logger.warning(f"⚠️  Revision skipped: {e}")

        self.confidence_gate.record_metric(
            analysis,
            was_revised=was_revised,
            response_length=len(result.final_answer),
        )
        self._apply_feedback(user_message, result, analysis)

        exchanges.append(Exchange(prompt=user_message, response=result.final_answer))

        metadata: Dict[str, Any] = {
            "intent": intent.intent.value,
            "intent_confidence": intent.confidence,
            "task_type": map_intent_to_task_type(intent.intent),
            "agent": agent.agent_type,
            "is_complex": complexity.is_complex,
            "estimated_steps": complexity.estimated_steps,
            "suggested_tools": suggested_tools,
            "tools_used": result.tools_used,
            "iterations": result.iterations,
            "hit_iteration_limit": result.hit_iteration_limit,
            "execution_time": result.execution_time,
            "confidence": analysis.confidence,
            "was_revised": was_revised,
            "session_id": session_id,
        }
        if complexity.is_complex:
            metadata["mission"] = create_mission_request(user_message, complexity)

        success = bool(result.final_answer) and not result.hit_iteration_limit
        if not success:
            logger.warning(f"⚠️  No final answer (hit limit: {result.hit_iteration_limit})")

        return ChatResponse(
            message=result.final_answer or self._get_error_message(),
            success=success,
            metadata=metadata,
            suggestions=self._generate_suggestions(intent.intent, analysis),
            analysis=analysis,
            result=result,
        )

    def _build_context(self, suggested_tools: List[str]) -> Optional[str]:
        parts = []
        if self.workspace_path:
            parts.append(format_prompt(WORKSPACE_PROMPT, workspace_path=self.workspace_path))
        if suggested_tools:
            parts.append(format_prompt(TOOL_HINT_PROMPT, tool_sequence=" → ".join(suggested_tools)))
        return "\n\n".join(parts) or None

    def _evaluate(
        self,
        result: OrchestrationResult,
        user_message: str,
        exchanges: List[Exchange],
    ) -> ConfidenceAnalysis:
        return self.confidence_gate.evaluate(
            current_response=result.final_answer,
            original_prompt=user_message,
            session_history=exchanges,
            workspace_context=self.workspace_path,
            tools_used=result.tools_used,
        )

    def _apply_feedback(
        self,
        user_message: str,
        result: OrchestrationResult,
        analysis: ConfidenceAnalysis,
    ) -> None:
        """
        Feed the verdict back to the pattern store.

        An accepted answer reinforces the tool calls that succeeded; a
        low-confidence answer produced with tools counts as a failure of
        those tools and teaches no sequence.
        """
        if not analysis.needs_revision:
            if result.successful_calls and not result.hit_iteration_limit:
                self.pattern_store.observe_success(user_message, result.successful_calls)
            return

        if not result.tools_used:
            return

        self.pattern_store.observe_failure(
            user_message,
            attempted_tools=result.tools_used,
            error_message=f"Low confidence answer ({analysis.confidence * 100:.1f}%)",
        )

    def _generate_suggestions(
        self,
        intent: IntentType,
        analysis: ConfidenceAnalysis,
    ) -> List[str]:
        """
        Generate follow-up suggestions based on the intent and verdict.

        Returns:
            List of suggestion strings
        """
        suggestions: List[str] = []

        if analysis.needs_revision:
            suggestions.append("Ask for more detail or a code example")

        if intent == IntentType.COMMAND:
            suggestions += [
                "Show me the output",
                "Run the tests",
            ]

        elif intent == IntentType.IDEA:
            suggestions += [
                "Break this into steps",
                "Create the files in the workspace",
            ]

        elif intent == IntentType.REFLECTION:
            suggestions += [
                "Explain the root cause",
                "Apply the fix",
            ]

        elif intent == IntentType.EXPLORATION:
            suggestions += [
                "Show me an example",
                "List related files",
            ]

        elif intent == IntentType.HELP:
            suggestions += [
                "What commands can you run?",
                "Show me an example request",
            ]

        return suggestions[:MAX_SUGGESTIONS]

    def _get_error_message(self) -> str:
        """Get a friendly error message."""
        return (
            "I'm having trouble processing your request right now. "
            "This could be a temporary issue. Please try:\n"
            "- Rephrasing your request\n"
            "- Breaking it into smaller steps\n\n"
            "If the problem persists, feel free to start a new conversation."
        )


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

async def process_user_message(
    user_message: str,
    conversation_history: Optional[Sequence[ConversationTurn]] = None,
    session_id: Optional[str] = None,
    **kwargs
) -> ChatResponse:
    """
    Convenience function to process a user message.

    Args:
        user_message: The user's message
        conversation_history: Previous conversation
        session_id: Session ID
        **kwargs: Passed to ChatService (provider, tool_registry, ...)

    Returns:
        ChatResponse
    """
    service = ChatService(**kwargs)
    return await service.process_message(
        user_message=user_message,
        conversation_history=conversation_history,
        session_id=session_id,
    )
