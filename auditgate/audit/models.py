"""AuditEntry dataclass and the audit line format.

Every emitted audit record flows through AuditEntry. Entries are write-once:
an ATTEMPT is never updated, it is followed by a SUCCEEDED or FAILED entry
that carries the same ``timestamp`` so the pair can be correlated.

IMPORTANT — operation text safety contract:
    ``operation`` must already be obfuscated when the entry is built (see
    audit/obfuscator.py). format_audit_entry() renders it verbatim.

Line format (stable — downstream parsers depend on it):
    client:'<ip>'|user:'<name>'|status:'<ATTEMPT|SUCCEEDED|FAILED>'|operation:'<text>'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence

from auditgate.constants import UNKNOWN_USER


class Status(str, Enum):
    """Lifecycle position of an audit entry within one logical attempt."""

    ATTEMPT = "ATTEMPT"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class AuditEntry:
    """One audit record.

    Field reference:
        client_address: Peer address of the client session.
        user:           Principal name, UNKNOWN_USER when none was claimed.
        status:         ATTEMPT, SUCCEEDED or FAILED.
        operation:      Obfuscated operation text (statement or auth message).
        timestamp:      Epoch milliseconds, shared by the entries of one attempt.
        category:       Operation category the gate evaluated (informational).
        resource:       Canonical resource text the gate evaluated (informational).
    """

    client_address: str
    user: str
    status: Status
    operation: str
    timestamp: int
    category: Optional[str] = None
    resource: Optional[str] = None


def format_audit_entry(entry: AuditEntry) -> str:
    """Render an entry as a single audit line."""
    return (
        f"client:'{entry.client_address}'"
        f"|user:'{entry.user or UNKNOWN_USER}'"
        f"|status:'{entry.status.value}'"
        f"|operation:'{entry.operation}'"
    )


# ─── Bound values ─────────────────────────────────────────────────────────────


def render_bound_values(values: Sequence[Any]) -> str:
    """Render prepared-statement values CQL style: ``[5, 'hepp', null]``."""
    return "[" + ", ".join(_render_value(value) for value in values) + "]"


def _render_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return render_bound_values(value)
    if isinstance(value, (set, frozenset)):
        return "{" + ", ".join(sorted(_render_value(item) for item in value)) + "}"
    if isinstance(value, dict):
        return "{" + ", ".join(
            f"{_render_value(k)}: {_render_value(v)}" for k, v in value.items()
        ) + "}"
    return str(value)
