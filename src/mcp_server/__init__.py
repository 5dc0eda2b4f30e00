"""MCP Server - tool registry, dispatch, auditing and transports.

The application itself lives in ``mcp_server.main`` and is built with
``create_app``.
"""

from mcp_server.audit import AuditLogger
from mcp_server.dispatcher import ToolDispatcher
from mcp_server.errors import (
    GatewayError,
    InternalError,
    MissingArgumentError,
    MissingCredentialsError,
    UnknownToolError,
    UpstreamError,
)
from mcp_server.registry import DuplicateToolError, ToolRegistry

__all__ = [
    "AuditLogger",
    "ToolDispatcher",
    "ToolRegistry",
    "DuplicateToolError",
    "GatewayError",
    "InternalError",
    "MissingArgumentError",
    "MissingCredentialsError",
    "UnknownToolError",
    "UpstreamError",
]
