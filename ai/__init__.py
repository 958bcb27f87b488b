"""
AI Infrastructure Module

This module provides the model-provider layer of the agent core:
- Provider-agnostic conversation and tool-call types
- The ModelProvider protocol consumed by the tool orchestrator
- A Gemini adapter with retry logic and Langfuse observability

All model calls should go through a ModelProvider so the orchestrator stays
provider-agnostic.
"""

from .provider import (
    # Data types
    Role,
    ConversationTurn,
    ToolCallRequest,
    ToolCallResult,
    ProviderResponse,

    # Protocol
    ModelProvider,

    # Errors
    ProviderUnavailableError,
    MissingCredentialError,
    ERROR_PREFIX,
)

from .llm_service import (
    GeminiProvider,
    get_langfuse_client,
    traced,
)

__all__ = [
    "Role",
    "ConversationTurn",
    "ToolCallRequest",
    "ToolCallResult",
    "ProviderResponse",
    "ModelProvider",
    "ProviderUnavailableError",
    "MissingCredentialError",
    "ERROR_PREFIX",
    "GeminiProvider",
    "get_langfuse_client",
    "traced",
]
