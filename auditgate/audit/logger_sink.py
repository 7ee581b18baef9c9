"""LoggerAuditSink — writes audit lines through a dedicated structlog logger.

Each entry becomes one INFO event whose message is the stable audit line
(see format_audit_entry) with the entry fields bound alongside, so both a
line-oriented reader and a JSON log pipeline can consume it:

    {"event": "client:'10.0.0.1'|user:'bob'|status:'ATTEMPT'|operation:'...'",
     "audit_status": "ATTEMPT", "audit_user": "bob", ...}

The logger name is configurable (audit.logger_name) so deployments can route
the audit trail separately from operational logs.
"""

from __future__ import annotations

from typing import Any, Optional

from auditgate.audit.models import AuditEntry, format_audit_entry
from auditgate.constants import DEFAULT_AUDIT_LOGGER_NAME
from auditgate.utils.logger import get_logger


class LoggerAuditSink:
    """AuditSink writing entries as structured log events."""

    def __init__(
        self,
        logger_name: str = DEFAULT_AUDIT_LOGGER_NAME,
        audit_logger: Optional[Any] = None,
    ) -> None:
        self._logger_name = logger_name
        self._logger = audit_logger if audit_logger is not None else get_logger(logger_name)

    @property
    def logger_name(self) -> str:
        return self._logger_name

    async def record(self, entry: AuditEntry) -> None:
        self._logger.info(
            format_audit_entry(entry),
            audit_client=entry.client_address,
            audit_user=entry.user,
            audit_status=entry.status.value,
            audit_timestamp=entry.timestamp,
            audit_category=entry.category,
            audit_resource=entry.resource,
        )

    async def close(self) -> None:
        """Nothing to flush: structlog writes synchronously."""
