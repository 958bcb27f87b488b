"""
Agent Core Test Suite

Unit and integration tests for all modules.
Run tests with: pytest tests/
Integration tests (live Gemini calls) need GOOGLE_API_KEY: pytest -m integration
"""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from ai import ConversationTurn, ProviderResponse, ToolCallRequest  # noqa: E402


class ScriptedProvider:
    """
    ModelProvider double replaying canned responses.

    The last response is repeated once the script is exhausted, so a script
    ending in a tool call never stops asking for tools.
    """

    def __init__(self, responses: Sequence[ProviderResponse]):
        self.responses = list(responses)
        self.calls: List[tuple] = []
        self.catalogs: List[Optional[List[Dict[str, Any]]]] = []

    async def send(self, history, tool_catalog=None) -> ProviderResponse:
        self.calls.append(tuple(history))
        self.catalogs.append(tool_catalog)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class RecordingSink:
    """LearningEventSink double keeping every event."""

    def __init__(self):
        self.events: List[tuple] = []

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        self.events.append((event_type, payload))


def answer(text: str) -> ProviderResponse:
    return ProviderResponse(content=text)


def call(name: str, arguments: Any = None, call_id: Optional[str] = None) -> ProviderResponse:
    return ProviderResponse(
        tool_calls=(ToolCallRequest(name=name, arguments={} if arguments is None else arguments, id=call_id),)
    )


__all__ = [
    "ScriptedProvider",
    "RecordingSink",
    "ConversationTurn",
    "answer",
    "call",
]
