"""
Function Calling Tools Module

This module provides the tool layer of the agent core: the registry that
holds the tools (functions) the model can invoke through function calling,
and the ToolExecutor protocol the orchestrator depends on.

Concrete tools (file access, terminal, search) are registered by the
application embedding the core.
"""

from .registry import (
    ToolExecutor,
    ToolSpec,
    ToolRegistry,
)

__all__ = [
    "ToolExecutor",
    "ToolSpec",
    "ToolRegistry",
]
