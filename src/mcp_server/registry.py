"""Tool Registry for the MCP Server.

Holds tool definitions and their handlers. Registration order is kept and
is the order tools are listed in.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from shared.logging import get_logger
from shared.models import ResponseEnvelope, ToolDefinition
from shared.schema import check_tool_schema

if TYPE_CHECKING:
    from habitica.client import HabiticaClient

logger = get_logger(__name__)


# Handler signature: (upstream client, argument bag) -> envelope
ToolHandler = Callable[["HabiticaClient", dict[str, Any]], Awaitable[ResponseEnvelope]]


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice."""


class ToolRegistry:
    """
    Central registry for all MCP tools.

    Responsibilities:
    - Register tool definitions with their handlers
    - Lookup handlers by name
    - List definitions in registration order
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, tool: ToolDefinition, handler: ToolHandler) -> None:
        """
        Register a tool in the registry.

        Args:
            tool: Tool definition to register
            handler: Coroutine function translating the call upstream

        Raises:
            DuplicateToolError: If tool name is already registered
            jsonschema.SchemaError: If the input schema is malformed
        """
        if tool.name in self._tools:
            raise DuplicateToolError(f"Tool '{tool.name}' is already registered")

        check_tool_schema(tool.input_schema)

        self._tools[tool.name] = tool
        self._handlers[tool.name] = handler

        logger.debug("Tool registered", tool=tool.name, required=tool.required_fields)

    def register_many(self, tools: list[tuple[ToolDefinition, ToolHandler]]) -> None:
        """Register multiple tools at once."""
        for tool, handler in tools:
            self.register(tool, handler)

    def lookup(self, tool_name: str) -> Optional[ToolHandler]:
        """
        Get the handler for a tool.

        Returns:
            The handler if registered, None otherwise
        """
        return self._handlers.get(tool_name)

    def get_definition(self, tool_name: str) -> Optional[ToolDefinition]:
        """Get a tool definition by name."""
        return self._tools.get(tool_name)

    def list_names(self) -> list[str]:
        return list(self._tools)

    def get_tools_for_listing(self) -> list[dict[str, Any]]:
        """Tool definitions in the public ``{name, description, inputSchema}`` shape."""
        return [tool.to_listing() for tool in self._tools.values()]

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    # Defined last: the method name shadows the builtin in the class body
    def list(self) -> "list[ToolDefinition]":
        """List all tool definitions in registration order."""
        return list(self._tools.values())
