"""MCP Server - FastAPI Application.

Every request passes the access gate before any route runs. Tool calls
arrive over the REST surface (``/tools/{name}``, ``/mcp/call``) or the
JSON-RPC surface (``/mcp``) and are dispatched to the Habitica handlers.
"""

import json
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from fastapi import Body, FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import AccessGateConfig, Settings, get_settings
from shared.logging import bind_context, clear_context, get_logger, setup_logging
from shared.models import AccessDecision, AccessOutcome, ResponseEnvelope, UpstreamCredentials
from access_gate import AccessGate, RateLimiter, RateLimitSweeper, resolve_client_identity
from habitica import HabiticaClient, create_http_client, register_habitica_tools
from mcp_server.audit import AuditLogger
from mcp_server.dispatcher import ToolDispatcher
from mcp_server.errors import GatewayError, InternalError, MissingCredentialsError
from mcp_server.jsonrpc import JsonRpcHandler, parse_error_response
from mcp_server.registry import ToolRegistry

logger = get_logger(__name__)

SERVICE_NAME = "habitica-mcp-gateway"
VERSION = "0.1.0"


# Request/Response Models
class ToolCallRequest(BaseModel):
    """Body of ``POST /mcp/call``."""
    name: str = Field(..., min_length=1, description="Tool name")
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolListResponse(BaseModel):
    """List of available tools."""
    tools: list[dict[str, Any]]


# ---------------------------------------------------------------------------
# Gate responses
# ---------------------------------------------------------------------------

def denial_response(decision: AccessDecision, config: AccessGateConfig, api_key_header: str) -> JSONResponse:
    """Build the HTTP response for a denied access decision."""
    if decision.outcome == AccessOutcome.DENIED_IP:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={
                "error": "IP not allowed",
                "message": "Your IP address is not on the allow-list.",
                "ip": decision.identity,
            },
        )

    if decision.outcome == AccessOutcome.DENIED_RATE_LIMIT:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "error": "Too many requests",
                "message": (
                    f"You have exceeded the limit of {config.max_requests_per_window} requests "
                    f"per {int(config.window_seconds)} seconds."
                ),
                "resetTime": decision.reset_at_iso,
                "currentCount": decision.count,
            },
            headers=rate_limit_headers(decision),
        )

    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={
            "error": "Unauthorized",
            "message": f"Missing or invalid API key. Provide the correct key in the {api_key_header} header.",
            "hint": f"Set MCP_API_KEY on the server and send it in the {api_key_header} header",
        },
    )


def rate_limit_headers(decision: AccessDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": decision.reset_at_iso or "",
    }


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------

def resolve_credentials(request: Request, settings: Settings) -> UpstreamCredentials:
    """
    Read upstream credentials from the request headers.

    Falls back to the configured default credentials when a header is absent.

    Raises:
        MissingCredentialsError: If either value is still missing
    """
    habitica = settings.habitica
    user_id = request.headers.get(habitica.user_id_header) or habitica.user_id
    api_token = request.headers.get(habitica.api_token_header) or habitica.api_token

    if not user_id or not api_token:
        raise MissingCredentialsError(
            "Missing Habitica credentials. Provide them in the "
            f"{habitica.user_id_header} and {habitica.api_token_header} headers."
        )
    return UpstreamCredentials(user_id=user_id, api_token=api_token)


def upstream_for(request: Request) -> HabiticaClient:
    credentials = resolve_credentials(request, request.app.state.settings)
    return HabiticaClient(request.app.state.http_client, credentials)


async def run_tool(request: Request, name: str, arguments: Optional[dict[str, Any]]) -> ResponseEnvelope:
    """Resolve credentials and dispatch; unexpected failures become ``InternalError``."""
    upstream = upstream_for(request)
    dispatcher: ToolDispatcher = request.app.state.dispatcher

    try:
        return await dispatcher.invoke(
            name,
            arguments,
            upstream,
            identity=request.state.identity,
            request_id=request.state.request_id,
        )
    except GatewayError:
        raise
    except Exception as e:
        raise InternalError() from e


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Optional[Settings] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    rate_limiter: Optional[RateLimiter] = None
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Application settings, defaults to ``get_settings()``
        upstream_transport: Optional httpx transport for the upstream client
        rate_limiter: Optional pre-built rate limiter

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    gate_config = AccessGateConfig.from_settings(settings.security)

    if rate_limiter is None:
        rate_limiter = RateLimiter(
            max_requests=gate_config.max_requests_per_window,
            window_seconds=gate_config.window_seconds,
        )
    gate = AccessGate(gate_config, rate_limiter=rate_limiter)
    sweeper = RateLimitSweeper(rate_limiter, interval_seconds=settings.security.sweep_interval_seconds)

    registry = ToolRegistry()
    register_habitica_tools(registry)

    audit_logger = AuditLogger(
        log_path=settings.server.audit_log_path,
        enabled=settings.server.enable_audit,
    )
    dispatcher = ToolDispatcher(registry, audit_logger=audit_logger)
    jsonrpc = JsonRpcHandler(registry, dispatcher, server_name=SERVICE_NAME, server_version=VERSION)

    http_client = create_http_client(
        settings.habitica.base_url,
        timeout=settings.habitica.timeout_seconds,
        transport=upstream_transport,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        setup_logging(settings.log_level, json_output=settings.environment == "production")
        logger.info("Starting MCP Server", tool_count=len(registry), port=settings.server.port)

        sweeper.start()

        yield

        logger.info("Shutting down MCP Server")
        await sweeper.stop()
        await audit_logger.flush()
        await http_client.aclose()

    app = FastAPI(
        title="Habitica MCP Gateway",
        description="Access-controlled MCP gateway for the Habitica API",
        version=VERSION,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.gate = gate
    app.state.rate_limiter = rate_limiter
    app.state.sweeper = sweeper
    app.state.registry = registry
    app.state.audit_logger = audit_logger
    app.state.dispatcher = dispatcher
    app.state.jsonrpc = jsonrpc
    app.state.http_client = http_client

    @app.middleware("http")
    async def access_gate_middleware(request: Request, call_next):
        """Run the access gate before any route."""
        server = settings.server
        identity = resolve_client_identity(
            request.client.host if request.client else None,
            request.headers.get("x-forwarded-for"),
            trust_forwarded_for=server.trust_forwarded_for,
        )
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.identity = identity
        request.state.request_id = request_id

        bind_context(request_id=request_id, client_ip=identity)
        try:
            supplied_secret = (
                request.headers.get(server.api_key_header)
                or request.query_params.get(server.api_key_query_param)
            )
            decision = gate.evaluate(
                identity,
                supplied_secret,
                request.url.path,
                user_agent=request.headers.get("user-agent"),
            )

            if not decision.allowed:
                return denial_response(decision, gate_config, server.api_key_header)

            response = await call_next(request)
            if not decision.bypassed:
                response.headers.update(rate_limit_headers(decision))
            return response
        finally:
            clear_context()

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("Tool call failed", kind=exc.kind, error=exc.message, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": "Not found",
                    "message": "This endpoint does not exist. See /tools for the available tools.",
                },
            )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error", error=str(exc), exc_info=exc)
        return JSONResponse(status_code=500, content=InternalError().to_dict())

    @app.get("/", tags=["System"])
    async def index():
        """Service index."""
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "endpoints": {
                "health": "GET /health",
                "tools": "GET /tools",
                "callTool": "POST /tools/{toolName}",
                "mcpTools": "POST /mcp/tools",
                "mcpCall": "POST /mcp/call",
                "jsonrpc": "POST /mcp",
            },
            "tools": registry.list_names(),
        }

    @app.get("/health", tags=["System"])
    async def health_check(request: Request):
        """Health check endpoint."""
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "version": VERSION,
            "protocol": "MCP JSON-RPC 2.0",
            "tools": len(registry),
            "security": {**gate.security_summary(), "clientIP": request.state.identity},
            "environment": {
                "hasCredentials": bool(settings.habitica.user_id and settings.habitica.api_token),
                "name": settings.environment,
            },
        }

    @app.get("/tools", response_model=ToolListResponse, tags=["Tools"])
    async def list_tools():
        """List all available tools in registration order."""
        return ToolListResponse(tools=registry.get_tools_for_listing())

    @app.post("/tools/{tool_name}", tags=["Tools"])
    async def call_tool(
        request: Request,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = Body(default=None)
    ):
        """Execute a tool; the request body is the argument bag."""
        envelope = await run_tool(request, tool_name, arguments)
        return envelope.model_dump()

    @app.post("/mcp/tools", response_model=ToolListResponse, tags=["MCP"])
    async def mcp_list_tools():
        return ToolListResponse(tools=registry.get_tools_for_listing())

    @app.post("/mcp/call", tags=["MCP"])
    async def mcp_call_tool(request: Request, call: ToolCallRequest):
        """Execute a tool given ``{name, arguments}``."""
        envelope = await run_tool(request, call.name, call.arguments)
        return envelope.model_dump()

    @app.post("/mcp", tags=["MCP"])
    async def mcp_jsonrpc(request: Request):
        """JSON-RPC 2.0 endpoint."""
        try:
            payload = json.loads(await request.body())
        except ValueError:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=parse_error_response())

        result = await jsonrpc.handle(
            payload,
            lambda: upstream_for(request),
            identity=request.state.identity,
            request_id=request.state.request_id,
        )
        if result is None:
            return Response(status_code=status.HTTP_202_ACCEPTED)
        return result

    return app


def main():
    """Run the MCP Server."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "mcp_server.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.environment == "development"
    )


if __name__ == "__main__":
    main()
