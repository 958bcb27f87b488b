"""
Learning event interface shared by the orchestrator and the confidence gate.

Concrete sinks live in services.learning_events.
"""

from typing import Any, Dict, Protocol

# Event types
TOOL_ATTEMPT_EVENT = "tool_attempt"
CONFIDENCE_EVENT = "confidence_evaluation"


class LearningEventSink(Protocol):
    """Receives per-tool-attempt and per-evaluation events for the learning layer."""

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        ...
