"""
Tool Registry

Holds the tools (functions) the model can invoke through function calling,
together with their declarations. The registry is the default ToolExecutor
used by the orchestrator:
- has_tool(name) tells whether a tool exists
- execute(name, args) runs it and returns a string result, raising on failure

Tools may be plain functions or coroutines. Dict and list results are
serialized as JSON so the model receives structured output.
"""

import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


# ============================================================================
# PROTOCOL
# ============================================================================

class ToolExecutor(Protocol):
    """Anything able to execute tools by name."""

    def has_tool(self, name: str) -> bool:
        ...

    async def execute(self, name: str, args: Dict[str, Any]) -> str:
        """Run a tool and return its output. Raise to signal failure."""
        ...


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class ToolSpec:
    """
    A registered tool.

    Attributes:
        name: Name the model uses to call the tool
        description: What the tool does (shown to the model)
        parameters: Parameter schema, e.g. {"type": "OBJECT", "properties": {...}}
        func: Callable (sync or async) invoked with keyword arguments
    """
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=lambda: {"type": "OBJECT", "properties": {}})
    func: Optional[Callable[..., Any]] = None

    def declaration(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


# ============================================================================
# TOOL REGISTRY
# ============================================================================

class ToolRegistry:
    """
    Name → tool mapping implementing the ToolExecutor protocol.

    Example:
        >>> registry = ToolRegistry()
        >>> @registry.tool("Echo the given text", {"type": "OBJECT", "properties": {"text": {"type": "STRING"}}})
        ... def echo(text: str) -> str:
        ...     return text
        >>> registry.has_tool("echo")
        True
    """

    def __init__(self, specs: Optional[List[ToolSpec]] = None):
        self._tools: Dict[str, ToolSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ToolSpec) -> None:
        """
        Add a tool.

        Raises:
            ValueError: If the tool has no callable or the name is taken
        """
        if spec.func is None:
            raise ValueError(f"Tool '{spec.name}' has no callable")
        if spec.name in self._tools:
            raise ValueError(f"Tool '{spec.name}' is already registered")

        self._tools[spec.name] = spec
        logger.debug(f"🔧 Registered tool: {spec.name}")

    def tool(
        self,
        description: str,
        parameters: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
    ):
        """Decorator registering a function as a tool (named after the function by default)."""
        def decorator(func):
            spec = ToolSpec(
                name=name or func.__name__,
                description=description,
                func=func,
            )
            if parameters is not None:
                spec.parameters = parameters
            self.register(spec)
            return func
        return decorator

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_tool_by_name(self, name: str) -> ToolSpec:
        """
        Retrieve a tool by name.

        Raises:
            ValueError: If tool name not found
        """
        spec = self._tools.get(name)
        if spec is None:
            raise ValueError(f"Tool '{name}' not found. Available: {list(self._tools)}")
        return spec

    async def execute(self, name: str, args: Dict[str, Any]) -> str:
        """
        Execute a tool with keyword arguments.

        Args:
            name: Tool name
            args: Keyword arguments for the tool

        Returns:
            The tool output as a string (JSON for dict/list results)

        Raises:
            ValueError: If the tool does not exist
            Exception: Whatever the tool raises
        """
        spec = self.get_tool_by_name(name)

        result = spec.func(**args)
        if inspect.isawaitable(result):
            result = await result

        if isinstance(result, str):
            return result
        if isinstance(result, (dict, list)):
            return json.dumps(result, ensure_ascii=False, default=str)
        return str(result)

    def catalog(self) -> List[Dict[str, Any]]:
        """Tool declarations ({name, description, parameters}) for the model."""
        return [spec.declaration() for spec in self._tools.values()]

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)
