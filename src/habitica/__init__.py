"""Habitica tool set.

Contains:
- The upstream HTTP client
- Tool definitions
- Handlers translating tool arguments into Habitica API calls
"""

from typing import TYPE_CHECKING

from habitica.client import HabiticaClient, create_http_client
from habitica.handlers import HANDLERS
from habitica.tools import TOOL_DEFINITIONS

if TYPE_CHECKING:
    from mcp_server.registry import ToolRegistry


def register_habitica_tools(registry: "ToolRegistry") -> None:
    """
    Register every Habitica tool with its handler.

    Called once at server startup; tools are registered in catalogue order.
    """
    registry.register_many([(tool, HANDLERS[tool.name]) for tool in TOOL_DEFINITIONS])


__all__ = [
    "HabiticaClient",
    "create_http_client",
    "register_habitica_tools",
    "TOOL_DEFINITIONS",
    "HANDLERS",
]
