"""AuditAdapter — turns authentication and statement events into audit entries.

Flow for every event:

    classify (category, resource)
        → AuditDecisionGate: suppressed by a held role's whitelist?  → stop
        → obfuscate operation text (password literals and password bound values)
        → build AuditEntry
        → AuditSink.record()  (best effort)

Authentication events are checked against the claimed user's own role with
category CONNECTIONS on the ``connections`` resource, so

    ALTER ROLE svc WITH OPTIONS = {'grant_audit_whitelist_for_connections': 'connections'}

silences the login noise of a service account.

INVARIANT:
  - Emission never raises. A failing sink is logged and the audited operation
    proceeds; the decision gate already fails toward logging on storage errors.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from auditgate.audit.models import AuditEntry, Status, render_bound_values
from auditgate.audit.obfuscator import PasswordObfuscator
from auditgate.audit.protocol import AuditSink
from auditgate.audit.statement import classify_statement
from auditgate.constants import AUTH_OPERATION_TEXT, UNKNOWN_USER
from auditgate.resources.scope import ResourceScope, ResourceType
from auditgate.utils.logger import get_logger
from auditgate.whitelist.models import OperationCategory

if TYPE_CHECKING:
    from auditgate.auth.principal import Principal
    from auditgate.whitelist.gate import AuditDecisionGate
    from auditgate.whitelist.manager import WhitelistManager

logger = get_logger(__name__)

_CONNECTIONS = ResourceScope.root(ResourceType.CONNECTIONS)


def epoch_millis() -> int:
    return int(time.time() * 1000)


class AuditAdapter:
    """Builds and emits audit entries for events the gate does not suppress."""

    def __init__(
        self,
        gate: "AuditDecisionGate",
        sink: AuditSink,
        manager: Optional["WhitelistManager"] = None,
        obfuscator: Optional[PasswordObfuscator] = None,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._gate = gate
        self._sink = sink
        self._manager = manager
        self._obfuscator = obfuscator or PasswordObfuscator()
        self._clock = clock

    async def setup(self) -> None:
        """Prepare whitelist storage. Raises StorageError if it cannot be opened."""
        if self._manager is not None:
            await self._manager.setup()

    async def close(self) -> None:
        await self._sink.close()

    def timestamp(self) -> int:
        """Timestamp shared by the entries of one attempt."""
        return self._clock()

    # ── Authentication ────────────────────────────────────────────────────────

    async def audit_auth(
        self,
        client_address: str,
        username: Optional[str],
        status: Status,
        timestamp: int,
    ) -> bool:
        """Emit an authentication entry unless the claimed role whitelists connections.

        Returns:
            True if an entry was handed to the sink.
        """
        roles = frozenset({username}) if username else frozenset()
        category = OperationCategory.CONNECTIONS
        if await self._gate.is_whitelisted(roles, category, _CONNECTIONS):
            return False
        entry = AuditEntry(
            client_address=client_address,
            user=username or UNKNOWN_USER,
            status=status,
            operation=AUTH_OPERATION_TEXT[status.value],
            timestamp=timestamp,
            category=category.value,
            resource=_CONNECTIONS.name,
        )
        return await self._record(entry)

    # ── Statements ────────────────────────────────────────────────────────────

    async def audit_request(
        self,
        client_address: str,
        principal: "Principal",
        statement: str,
        status: Status,
        timestamp: Optional[int] = None,
        bound_values: Optional[Sequence[Any]] = None,
        keyspace: Optional[str] = None,
    ) -> bool:
        """Emit a statement entry unless one of the principal's roles whitelists it.

        Args:
            statement:    Raw statement text; secrets are masked before emission.
            bound_values: Values of a prepared statement, appended CQL style.
            keyspace:     Session keyspace for unqualified table names.

        Returns:
            True if an entry was handed to the sink.
        """
        resolved = classify_statement(statement, keyspace)
        if await self._gate.is_whitelisted(principal.roles, resolved.category, resolved.resource):
            return False

        operation = statement
        secrets: set[str] = set()
        if bound_values is not None:
            operation += render_bound_values(bound_values)
            secrets = self._obfuscator.find_bound_secrets(statement, bound_values)
        entry = AuditEntry(
            client_address=client_address,
            user=principal.name or UNKNOWN_USER,
            status=status,
            operation=self._obfuscator.obfuscate(operation, secrets),
            timestamp=timestamp if timestamp is not None else self._clock(),
            category=resolved.category.value,
            resource=resolved.resource.name,
        )
        return await self._record(entry)

    # ── Emission ──────────────────────────────────────────────────────────────

    async def _record(self, entry: AuditEntry) -> bool:
        try:
            await self._sink.record(entry)
        except Exception as exc:
            logger.error(
                "audit_emit_failed",
                user=entry.user,
                status=entry.status.value,
                category=entry.category,
                error=str(exc),
                exc_type=type(exc).__name__,
            )
            return False
        return True
