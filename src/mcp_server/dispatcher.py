"""Tool Dispatcher for the MCP Server.

Routes a named tool call to its handler and normalizes the outcome:
either a response envelope or a ``GatewayError``.
"""

import time
from typing import TYPE_CHECKING, Any, Optional

import httpx

from shared.logging import get_logger
from shared.models import InvocationStatus, ResponseEnvelope, ToolInvocation
from mcp_server.audit import AuditLogger
from mcp_server.errors import GatewayError, MissingArgumentError, UnknownToolError, UpstreamError
from mcp_server.registry import ToolRegistry

if TYPE_CHECKING:
    from habitica.client import HabiticaClient

logger = get_logger(__name__)


class ToolDispatcher:
    """
    Dispatches tool calls to registered handlers.

    Responsibilities:
    - Resolve the handler by name
    - Run it against the caller's upstream client
    - Translate transport failures into ``UpstreamError``
    - Audit every invocation of a known tool
    """

    def __init__(
        self,
        registry: ToolRegistry,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry
        self.audit_logger = audit_logger

    async def invoke(
        self,
        name: str,
        arguments: Optional[dict[str, Any]],
        upstream: "HabiticaClient",
        identity: str = "unknown",
        request_id: Optional[str] = None
    ) -> ResponseEnvelope:
        """
        Execute a tool call.

        Args:
            name: Tool name
            arguments: Argument bag, may be empty
            upstream: Client bound to the caller's credentials
            identity: Client identity, recorded in the audit trail
            request_id: Request identifier, recorded in the audit trail

        Returns:
            The handler's response envelope

        Raises:
            UnknownToolError: If no handler is registered under ``name``
            MissingArgumentError: If a required argument is absent
            UpstreamError: If the upstream call fails
        """
        handler = self.registry.lookup(name)
        if handler is None:
            logger.warning("Unknown tool requested", tool=name, client_ip=identity)
            raise UnknownToolError(name)

        invocation = ToolInvocation(
            name=name,
            arguments=arguments or {},
            identity=identity,
            request_id=request_id,
        )

        logger.debug("Dispatching tool", tool=name, request_id=request_id)
        start_time = time.perf_counter()

        try:
            envelope = await handler(upstream, invocation.arguments)
        except MissingArgumentError as e:
            e.tool_name = name
            await self._audit(invocation, start_time, e)
            raise
        except GatewayError as e:
            await self._audit(invocation, start_time, e)
            raise
        except httpx.HTTPError as e:
            error = UpstreamError(str(e) or None)
            await self._audit(invocation, start_time, error)
            raise error from e
        except Exception as e:
            logger.error("Tool handler failed", tool=name, error=str(e), exc_info=True)
            await self._audit(invocation, start_time, e)
            raise

        await self._audit(invocation, start_time)
        return envelope

    async def _audit(
        self,
        invocation: ToolInvocation,
        start_time: float,
        error: Optional[Exception] = None
    ) -> None:
        if self.audit_logger is None:
            return

        execution_time_ms = (time.perf_counter() - start_time) * 1000
        if error is None:
            await self.audit_logger.log(invocation, InvocationStatus.SUCCESS, execution_time_ms)
            return

        if isinstance(error, GatewayError):
            message, kind = error.message, error.kind
        else:
            message, kind = str(error), "internal_error"
        await self.audit_logger.log(
            invocation,
            InvocationStatus.ERROR,
            execution_time_ms,
            error=message,
            error_kind=kind,
        )
