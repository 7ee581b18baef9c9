"""AuditSink Protocol + NullAuditSink.

AuditEntry is defined in auditgate/audit/models.py.
This module defines the pluggable sink interface the audit adapter emits to.

Layout:
    models.py      — AuditEntry, Status, line format
    protocol.py    — AuditSink Protocol + NullAuditSink
    logger_sink.py — LoggerAuditSink (structlog, default)
    factory.py     — create_audit_sink() — sink selection by config
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from auditgate.audit.models import AuditEntry
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)


# ─── AuditSink Protocol ───────────────────────────────────────────────────────


@runtime_checkable
class AuditSink(Protocol):
    """Pluggable audit sink interface.

    Implementations: LoggerAuditSink (default), NullAuditSink.
    Selection via create_audit_sink() factory (audit/factory.py).

    record() may raise; AuditAdapter catches and logs sink failures so that
    an unavailable sink never fails the audited operation.
    """

    async def record(self, entry: AuditEntry) -> None:
        """Emit one audit entry."""
        ...

    async def close(self) -> None:
        """Flush and release resources. Called during shutdown."""
        ...


# ─── NullAuditSink ────────────────────────────────────────────────────────────


class NullAuditSink:
    """No-op AuditSink — selected with ``audit.sink: null`` and used in tests."""

    async def record(self, entry: AuditEntry) -> None:
        """No-op: entry discarded."""
        logger.debug("NullAuditSink.record", status=entry.status.value, user=entry.user)

    async def close(self) -> None:
        """No-op."""


# ─── Protocol compliance assertion ────────────────────────────────────────────
assert isinstance(NullAuditSink(), AuditSink), (
    "NullAuditSink does not satisfy AuditSink protocol — implementation error"
)
