"""Error taxonomy for tool dispatch.

Each error knows the HTTP status and JSON-RPC code it maps to, so both
transports translate failures the same way.
"""

from typing import Any, Optional

# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
MISSING_CREDENTIALS = -32001

GENERIC_UPSTREAM_MESSAGE = "Unknown error"


class GatewayError(Exception):
    """Base exception for dispatch failures."""
    kind = "internal_error"
    status_code = 500
    rpc_code = INTERNAL_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind}


class MissingCredentialsError(GatewayError):
    """Upstream credentials are absent from the request."""
    kind = "missing_credentials"
    status_code = 400
    rpc_code = MISSING_CREDENTIALS


class UnknownToolError(GatewayError):
    """No handler is registered under the requested name."""
    kind = "method_not_found"
    status_code = 404
    rpc_code = METHOD_NOT_FOUND

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class MissingArgumentError(GatewayError):
    """A handler precondition on its arguments failed."""
    kind = "missing_argument"
    status_code = 400
    rpc_code = INVALID_PARAMS

    def __init__(self, argument: str, tool_name: Optional[str] = None) -> None:
        super().__init__(f"{argument} is required")
        self.argument = argument
        self.tool_name = tool_name


class UpstreamError(GatewayError):
    """
    Failure reported by, or while reaching, the upstream service.

    ``upstream_message`` holds the service-supplied message when there is
    one; ``message`` is the caller-facing text.
    """
    kind = "upstream_error"
    status_code = 500
    rpc_code = INTERNAL_ERROR

    def __init__(
        self,
        upstream_message: Optional[str] = None,
        upstream_status: Optional[int] = None
    ) -> None:
        self.upstream_message = upstream_message or GENERIC_UPSTREAM_MESSAGE
        self.upstream_status = upstream_status
        super().__init__(f"Habitica API error: {self.upstream_message}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.upstream_status is not None:
            data["upstreamStatus"] = self.upstream_status
        return data


class InternalError(GatewayError):
    """Anything unanticipated."""
    kind = "internal_error"
    status_code = 500
    rpc_code = INTERNAL_ERROR

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
