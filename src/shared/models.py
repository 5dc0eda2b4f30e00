"""Core data models for the Habitica MCP Gateway.

This module defines the data structures shared by the access gate,
the tool dispatcher and the transport adapters.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Access control
# ---------------------------------------------------------------------------

class RateLimitRecord(BaseModel):
    """Request counter for one client identity within one window."""
    count: int = Field(..., ge=1)
    window_start: float = Field(..., description="Epoch seconds when the window opened")

    model_config = ConfigDict(frozen=True)


class RateLimitResult(BaseModel):
    """Outcome of a single rate limiter check."""
    allowed: bool
    count: int
    limit: int
    reset_at: float = Field(..., description="Epoch seconds when the window closes")

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class AccessOutcome(str, Enum):
    """Result of the access gate pipeline."""
    ALLOWED = "allowed"
    DENIED_IP = "denied_ip"
    DENIED_RATE_LIMIT = "denied_rate_limit"
    DENIED_AUTH = "denied_auth"


class AccessDecision(BaseModel):
    """
    Decision reached by the access gate for one request.

    Only the first failing stage is reported. Rate-limit fields are set
    whenever the rate-limit stage ran.
    """
    outcome: AccessOutcome
    identity: str
    bypassed: bool = False
    limit: Optional[int] = None
    count: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[float] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == AccessOutcome.ALLOWED

    @property
    def reset_at_iso(self) -> Optional[str]:
        if self.reset_at is None:
            return None
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class ToolDefinition(BaseModel):
    """
    Complete definition of an MCP tool.

    The input schema is descriptive metadata published to callers;
    handlers enforce their own required arguments.
    """
    name: str = Field(..., min_length=1, description="Unique tool name")
    description: str = Field(..., description="Clear description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        serialization_alias="inputSchema",
        description="JSON Schema describing the argument bag"
    )

    model_config = ConfigDict(frozen=True)

    @property
    def required_fields(self) -> list[str]:
        return list(self.input_schema.get("required", []))

    def to_listing(self) -> dict[str, Any]:
        """Public shape used by tool listings."""
        return self.model_dump(by_alias=True)


class ToolInvocation(BaseModel):
    """A single request to execute a tool."""
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    identity: str = "unknown"
    request_id: Optional[str] = None


class TextContent(BaseModel):
    """One text block of a response envelope."""
    type: Literal["text"] = "text"
    text: str


class ResponseEnvelope(BaseModel):
    """Uniform success shape returned to callers on every transport."""
    content: list[TextContent] = Field(default_factory=list)

    @classmethod
    def from_text(cls, *texts: str) -> "ResponseEnvelope":
        return cls(content=[TextContent(text=text) for text in texts])

    @classmethod
    def from_json(cls, data: Any) -> "ResponseEnvelope":
        return cls.from_text(json.dumps(data, indent=2, ensure_ascii=False))


class UpstreamCredentials(BaseModel):
    """Credentials passed through opaquely to the upstream API."""
    user_id: str = Field(..., min_length=1)
    api_token: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class InvocationStatus(str, Enum):
    """Status of a tool invocation."""
    SUCCESS = "success"
    ERROR = "error"


class AuditEntry(BaseModel):
    """
    Audit log entry for tool invocations.

    Captures identity, tool, arguments, timestamp, and result.
    """
    id: str
    timestamp: datetime = Field(default_factory=_utcnow)
    tool_name: str
    identity: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    status: InvocationStatus
    error: Optional[str] = None
    error_kind: Optional[str] = None
    execution_time_ms: float = 0
    request_id: Optional[str] = None
