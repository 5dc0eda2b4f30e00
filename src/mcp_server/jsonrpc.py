"""JSON-RPC 2.0 transport for the MCP surface.

Single request/response exchanges over HTTP POST. Supported methods:
``initialize``, ``notifications/initialized``, ``ping``, ``tools/list``
and ``tools/call``. Tool failures map to JSON-RPC error objects using the
code carried by each ``GatewayError``.
"""

from typing import TYPE_CHECKING, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError

from shared.logging import get_logger
from mcp_server.dispatcher import ToolDispatcher
from mcp_server.errors import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    GatewayError,
    InternalError,
)
from mcp_server.registry import ToolRegistry

if TYPE_CHECKING:
    from habitica.client import HabiticaClient

logger = get_logger(__name__)

PROTOCOL_VERSION = "2024-11-05"


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request."""
    jsonrpc: Literal["2.0"] = "2.0"
    method: str = Field(..., min_length=1)
    params: Optional[dict[str, Any]] = None
    id: Optional[Union[StrictStr, StrictInt]] = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""
    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response; exactly one of result and error is set."""
    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Union[StrictStr, StrictInt]] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            data["error"] = self.error.model_dump(exclude_none=True)
        else:
            data["result"] = self.result
        return data


def error_response(
    request_id: Optional[Union[str, int]],
    code: int,
    message: str,
    data: Optional[Any] = None
) -> dict[str, Any]:
    return JsonRpcResponse(
        id=request_id,
        error=JsonRpcError(code=code, message=message, data=data),
    ).to_dict()


def parse_error_response() -> dict[str, Any]:
    return error_response(None, PARSE_ERROR, "Parse error")


# Resolves the caller's upstream client; may raise MissingCredentialsError
UpstreamFactory = Callable[[], "HabiticaClient"]


class JsonRpcHandler:
    """
    Handles JSON-RPC messages posted to the MCP endpoint.

    Credentials are only resolved for ``tools/call``, so discovery methods
    work without them.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        dispatcher: ToolDispatcher,
        server_name: str,
        server_version: str
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.server_name = server_name
        self.server_version = server_version

    async def handle(
        self,
        payload: Any,
        upstream_factory: UpstreamFactory,
        identity: str = "unknown",
        request_id: Optional[str] = None
    ) -> Optional[dict[str, Any]]:
        """
        Process one decoded JSON-RPC message.

        Args:
            payload: Decoded request body
            upstream_factory: Builds the caller's upstream client on demand
            identity: Client identity, for auditing
            request_id: HTTP request identifier, for auditing

        Returns:
            The response object, or None for notifications
        """
        if not isinstance(payload, dict):
            return error_response(None, INVALID_REQUEST, "Invalid Request")

        raw_id = payload.get("id")
        try:
            request = JsonRpcRequest.model_validate(payload)
        except ValidationError as e:
            logger.warning("Invalid JSON-RPC request", errors=e.errors(include_url=False))
            valid_id = isinstance(raw_id, (str, int)) and not isinstance(raw_id, bool)
            rpc_id = raw_id if valid_id else None
            return error_response(rpc_id, INVALID_REQUEST, "Invalid Request")

        if "id" not in payload:
            logger.debug("JSON-RPC notification received", method=request.method)
            return None

        if request.method == "initialize":
            return JsonRpcResponse(id=request.id, result=self._initialize_result()).to_dict()

        if request.method == "ping":
            return JsonRpcResponse(id=request.id, result={}).to_dict()

        if request.method == "tools/list":
            result = {"tools": self.registry.get_tools_for_listing()}
            return JsonRpcResponse(id=request.id, result=result).to_dict()

        if request.method == "tools/call":
            return await self._call_tool(request, upstream_factory, identity, request_id)

        return error_response(request.id, METHOD_NOT_FOUND, f"Method not found: {request.method}")

    def _initialize_result(self) -> dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": self.server_name, "version": self.server_version},
        }

    async def _call_tool(
        self,
        request: JsonRpcRequest,
        upstream_factory: UpstreamFactory,
        identity: str,
        request_id: Optional[str]
    ) -> dict[str, Any]:
        params = request.params or {}
        name = params.get("name")
        arguments = params.get("arguments") or {}

        if not name or not isinstance(name, str):
            return error_response(request.id, INVALID_PARAMS, "Tool name is required")
        if not isinstance(arguments, dict):
            return error_response(request.id, INVALID_PARAMS, "arguments must be an object")

        try:
            upstream = upstream_factory()
            envelope = await self.dispatcher.invoke(
                name,
                arguments,
                upstream,
                identity=identity,
                request_id=request_id,
            )
        except GatewayError as e:
            return error_response(request.id, e.rpc_code, e.message, {"kind": e.kind})
        except Exception as e:
            logger.error("JSON-RPC tool call failed", tool=name, error=str(e), exc_info=True)
            error = InternalError()
            return error_response(request.id, INTERNAL_ERROR, error.message, {"kind": error.kind})

        return JsonRpcResponse(id=request.id, result=envelope.model_dump()).to_dict()
