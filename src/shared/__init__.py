"""Shared models, configuration and logging for the Habitica MCP Gateway."""

from shared.models import (
    AccessDecision,
    AccessOutcome,
    AuditEntry,
    RateLimitRecord,
    RateLimitResult,
    ResponseEnvelope,
    TextContent,
    ToolDefinition,
    ToolInvocation,
    UpstreamCredentials,
)
from shared.config import AccessGateConfig, Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "AccessDecision",
    "AccessOutcome",
    "AuditEntry",
    "RateLimitRecord",
    "RateLimitResult",
    "ResponseEnvelope",
    "TextContent",
    "ToolDefinition",
    "ToolInvocation",
    "UpstreamCredentials",
    "AccessGateConfig",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
