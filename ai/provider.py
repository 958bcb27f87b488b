"""
Model Provider Interface

Provider-agnostic data types exchanged between the tool orchestrator and a
language-model backend:
- ConversationTurn: one entry of the ordered conversation history
- ToolCallRequest / ToolCallResult: a requested tool invocation and its output
- ProviderResponse: what a provider returns for one round-trip
- ModelProvider: the protocol every backend adapter implements

Also defines the only two errors that are fatal to a caller of the core:
ProviderUnavailableError and MissingCredentialError.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from config import PROVIDER_UNAVAILABLE_MESSAGE, MISSING_CREDENTIAL_MESSAGE


ERROR_PREFIX = "ERROR: "


# ============================================================================
# ERRORS
# ============================================================================

class ProviderUnavailableError(Exception):
    """The model provider could not be reached or failed at transport level."""

    def __init__(self, message: str, remediation: str = PROVIDER_UNAVAILABLE_MESSAGE):
        super().__init__(f"{message}. {remediation}")
        self.remediation = remediation


class MissingCredentialError(ValueError):
    """A provider was requested but no credential is configured."""

    def __init__(self, message: str = MISSING_CREDENTIAL_MESSAGE):
        super().__init__(message)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class Role(Enum):
    """Author of a conversation turn."""
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCallRequest:
    """
    A tool invocation requested by the model.

    Attributes:
        name: Name of the tool to run
        arguments: Structured arguments, or raw text when the provider
            emitted unparsed JSON
        id: Provider-assigned call identifier (if the provider uses them)
    """
    name: str
    arguments: Union[Dict[str, Any], str] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass(frozen=True)
class ToolCallResult:
    """
    Output of one tool invocation.

    Attributes:
        content: Tool output, or "ERROR: <message>" on failure
        id: Identifier of the ToolCallRequest this answers
        name: Tool name (kept for providers that key results by name)
    """
    content: str
    id: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.content.startswith(ERROR_PREFIX)


@dataclass(frozen=True)
class ConversationTurn:
    """
    One entry of the conversation history.

    An assistant turn that carries tool_calls must be followed, in order, by
    one TOOL turn per call before the next model invocation.
    """
    role: Role
    content: str
    tool_calls: Tuple[ToolCallRequest, ...] = ()
    tool_result: Optional[ToolCallResult] = None

    @classmethod
    def user(cls, content: str) -> "ConversationTurn":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(
        cls,
        content: str,
        tool_calls: Sequence[ToolCallRequest] = (),
    ) -> "ConversationTurn":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, result: ToolCallResult) -> "ConversationTurn":
        return cls(role=Role.TOOL, content=result.content, tool_result=result)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form, used for logging and persistence."""
        data: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {"id": tc.id, "name": tc.name, "arguments": tc.arguments}
                for tc in self.tool_calls
            ]
        if self.tool_result is not None:
            data["tool_call_id"] = self.tool_result.id
        return data


@dataclass(frozen=True)
class ProviderResponse:
    """
    Result of one provider round-trip.

    Attributes:
        content: Text produced by the model (may be empty on tool calls)
        tool_calls: Tool invocations requested, in the model's order
    """
    content: str = ""
    tool_calls: Tuple[ToolCallRequest, ...] = ()

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


# ============================================================================
# PROTOCOL
# ============================================================================

class ModelProvider(Protocol):
    """Any language-model backend able to take part in the tool loop."""

    async def send(
        self,
        history: Sequence[ConversationTurn],
        tool_catalog: Optional[List[Dict[str, Any]]] = None,
    ) -> ProviderResponse:
        """
        Send the full history (and optional tool catalog) to the model.

        Raises:
            ProviderUnavailableError: On any transport-level failure
        """
        ...
