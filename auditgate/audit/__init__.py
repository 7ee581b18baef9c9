"""auditgate audit package.

Re-exports the public API for ergonomic imports:

    from auditgate.audit import AuditAdapter, AuditEntry, AuditSink

Layout:
    models.py      — AuditEntry, Status, line format, bound value rendering
    obfuscator.py  — PasswordObfuscator (google-re2)
    statement.py   — classify_statement() (category + resource of a statement)
    protocol.py    — AuditSink Protocol + NullAuditSink
    logger_sink.py — LoggerAuditSink (structlog)
    factory.py     — create_audit_sink() — sink selection by config
    adapter.py     — AuditAdapter (gate → obfuscate → sink)
"""

from auditgate.audit.adapter import AuditAdapter
from auditgate.audit.factory import create_audit_sink
from auditgate.audit.logger_sink import LoggerAuditSink
from auditgate.audit.models import AuditEntry, Status, format_audit_entry, render_bound_values
from auditgate.audit.obfuscator import PasswordObfuscator
from auditgate.audit.protocol import AuditSink, NullAuditSink
from auditgate.audit.statement import ResolvedOperation, classify_statement

__all__ = [
    # Dataclasses + enums
    "AuditEntry",
    "ResolvedOperation",
    "Status",
    # Protocol + implementations
    "AuditSink",
    "LoggerAuditSink",
    "NullAuditSink",
    # Processing
    "AuditAdapter",
    "PasswordObfuscator",
    "classify_statement",
    "create_audit_sink",
    "format_audit_entry",
    "render_bound_values",
]
