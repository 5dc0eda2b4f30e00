"""Audit logging for tool invocations.

Every dispatched tool call, successful or not, is written to the
structured log immediately and to a JSON-lines file in batches.
"""

import asyncio
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles

from shared.logging import get_logger
from shared.models import AuditEntry, InvocationStatus, ToolInvocation

logger = get_logger(__name__)

REDACTED = "[REDACTED]"


class AuditLogger:
    """
    Audit logger for tool invocations.

    Entries record:
    - Client identity
    - Tool name
    - Arguments (with sensitive data redacted)
    - Status, error and duration
    """

    # Argument names that are never written to the audit trail
    SENSITIVE_PARAMS = {
        "password",
        "token",
        "secret",
        "api_key",
        "apikey",
        "api_token",
        "apitoken",
        "credential",
    }

    def __init__(
        self,
        log_path: str = "logs/audit.log",
        enabled: bool = True,
        buffer_size: int = 100
    ) -> None:
        self.log_path = Path(log_path)
        self.enabled = enabled
        self.buffer_size = buffer_size
        self._buffer: list[AuditEntry] = []
        self._lock = asyncio.Lock()

    @property
    def pending(self) -> int:
        """Number of entries waiting to be written."""
        return len(self._buffer)

    def _redact_sensitive(self, params: dict[str, Any]) -> dict[str, Any]:
        """Redact sensitive parameters from audit logs."""
        redacted = {}
        for key, value in params.items():
            if key.lower() in self.SENSITIVE_PARAMS:
                redacted[key] = REDACTED
            elif isinstance(value, dict):
                redacted[key] = self._redact_sensitive(value)
            else:
                redacted[key] = value
        return redacted

    def create_entry(
        self,
        invocation: ToolInvocation,
        status: InvocationStatus,
        execution_time_ms: float,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ) -> AuditEntry:
        return AuditEntry(
            id=str(uuid.uuid4()),
            tool_name=invocation.name,
            identity=invocation.identity,
            arguments=self._redact_sensitive(invocation.arguments),
            status=status,
            error=error,
            error_kind=error_kind,
            execution_time_ms=execution_time_ms,
            request_id=invocation.request_id,
        )

    async def log(
        self,
        invocation: ToolInvocation,
        status: InvocationStatus,
        execution_time_ms: float,
        error: Optional[str] = None,
        error_kind: Optional[str] = None
    ) -> Optional[AuditEntry]:
        """
        Record one tool invocation.

        Args:
            invocation: The dispatched call
            status: Whether the handler produced an envelope
            execution_time_ms: Wall time spent in dispatch
            error: Caller-facing error message, if any
            error_kind: Error category, if any

        Returns:
            The recorded entry, or None when auditing is disabled
        """
        if not self.enabled:
            return None

        entry = self.create_entry(invocation, status, execution_time_ms, error, error_kind)

        logger.info(
            "Tool invoked",
            audit_id=entry.id,
            client_ip=entry.identity,
            tool=entry.tool_name,
            status=entry.status.value,
            error_kind=entry.error_kind,
            execution_time_ms=round(entry.execution_time_ms, 2)
        )

        async with self._lock:
            self._buffer.append(entry)

            if len(self._buffer) >= self.buffer_size:
                await self._flush()

        return entry

    async def _flush(self) -> None:
        """Flush buffered entries to file."""
        if not self._buffer:
            return

        entries_to_write = self._buffer.copy()
        self._buffer.clear()

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(self.log_path, "a") as f:
                for entry in entries_to_write:
                    await f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            logger.error("Failed to write audit log", path=str(self.log_path), error=str(e))
            # Keep entries for the next flush
            self._buffer.extend(entries_to_write)

    async def flush(self) -> None:
        """Public method to flush audit buffer."""
        async with self._lock:
            await self._flush()
