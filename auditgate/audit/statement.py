"""Statement classification for the audit decision gate.

classify_statement() resolves a CQL statement text to the operation category
and the resource the statement acts on, which is what the decision gate needs
to consult role whitelists:

    SELECT * FROM ks.tbl WHERE key = 1      → SELECT    data/ks/tbl
    INSERT INTO ks.tbl (k, v) VALUES (?, ?) → MODIFY    data/ks/tbl
    CREATE TABLE ks.tbl (...)               → CREATE    data/ks
    GRANT SELECT ON TABLE ks.tbl TO bob     → AUTHORIZE data/ks/tbl
    <anything unrecognized>                 → ALL       data

The resource is the one the server checks the performer's permission on,
e.g. creating a table needs CREATE on its keyspace, so a keyspace-level
whitelist covers it.

Identifiers:
  - Unquoted identifiers fold to lowercase; "quoted" identifiers keep case.
  - Unqualified table names use the session keyspace when one is given;
    otherwise only the type root can be resolved.
  - Names that cannot form a valid resource scope fall back to the
    unrecognized-statement result rather than failing the audit path.

All patterns are pre-compiled at module load time. Rules are evaluated in
order; the first match wins.

IMPORT RULES:
  - ``import re2`` ONLY — google-re2 (linear time on client-supplied text).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

import re2  # google-re2 — NOT stdlib re

from auditgate.errors import ParseError
from auditgate.resources.scope import ResourceScope, ResourceType
from auditgate.utils.logger import get_logger
from auditgate.whitelist.models import OperationCategory

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedOperation:
    """Category and resource the decision gate evaluates for a statement."""

    category: OperationCategory
    resource: ResourceScope


# ---------------------------------------------------------------------------
# Grammar fragments
# ---------------------------------------------------------------------------

_IDENT = r'(?:"(?:[^"]|"")+"|[A-Za-z0-9_]+)'
_ROLE_NAME = r"(?:" + _IDENT + r"|'(?:[^']|'')+')"
_QNAME = r"(?:(?P<ks>" + _IDENT + r")\s*\.\s*)?(?P<name>" + _IDENT + r")"
_KEYSPACE = r"(?P<ks>" + _IDENT + r")"
_ROLE = r"(?P<role>" + _ROLE_NAME + r")"
_IF_NOT_EXISTS = r"(?:IF\s+NOT\s+EXISTS\s+)?"
_IF_EXISTS = r"(?:IF\s+EXISTS\s+)?"


def _compile(body: str) -> Any:
    return re2.compile(r"(?is)\s*" + body)


# ---------------------------------------------------------------------------
# Resource resolvers
# ---------------------------------------------------------------------------

Resolver = Callable[[Any, Optional[str]], ResourceScope]


def _identifier(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    if text.startswith('"'):
        return text[1:-1].replace('""', '"')
    if text.startswith("'"):
        return text[1:-1].replace("''", "'")
    return text.lower()


def _table(match: Any, keyspace: Optional[str]) -> ResourceScope:
    ks = _identifier(match.group("ks")) or keyspace
    if ks is None:
        return ResourceScope.data()
    return ResourceScope.data(ks, _identifier(match.group("name")))


def _keyspace_of(match: Any, keyspace: Optional[str]) -> ResourceScope:
    ks = _identifier(match.group("ks")) or keyspace
    return ResourceScope.data(ks)


def _keyspace(match: Any, keyspace: Optional[str]) -> ResourceScope:
    return ResourceScope.data(_identifier(match.group("ks")))


def _role(match: Any, keyspace: Optional[str]) -> ResourceScope:
    return ResourceScope(ResourceType.ROLES, (_identifier(match.group("role")),))


def _function_keyspace(match: Any, keyspace: Optional[str]) -> ResourceScope:
    ks = _identifier(match.group("ks")) or keyspace
    if ks is None:
        return ResourceScope.root(ResourceType.FUNCTIONS)
    return ResourceScope(ResourceType.FUNCTIONS, (ks,))


def _root(resource_type: ResourceType) -> Resolver:
    return lambda match, keyspace: ResourceScope.root(resource_type)


# ---------------------------------------------------------------------------
# StatementRule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatementRule:
    """One statement shape.

    Fields:
        slug:      Short name for debug logging.
        pattern:   Pre-compiled re2 pattern, anchored at the statement start.
        category:  Operation category of statements of this shape.
        resolve:   Builds the target ResourceScope from the match.
    """
    slug: str
    pattern: Any           # compiled re2 pattern
    category: OperationCategory
    resolve: Resolver


_C = OperationCategory

STATEMENT_RULES: list[StatementRule] = [
    # ── Data manipulation ─────────────────────────────────────────────────────
    StatementRule("select", _compile(r"SELECT\b.*?\bFROM\s+" + _QNAME), _C.SELECT, _table),
    StatementRule("insert", _compile(r"INSERT\s+INTO\s+" + _QNAME), _C.MODIFY, _table),
    StatementRule("update", _compile(r"UPDATE\s+" + _QNAME), _C.MODIFY, _table),
    StatementRule("delete", _compile(r"DELETE\b.*?\bFROM\s+" + _QNAME), _C.MODIFY, _table),
    StatementRule("truncate", _compile(r"TRUNCATE\s+(?:TABLE\s+)?" + _QNAME), _C.MODIFY, _table),
    StatementRule(
        "batch",
        _compile(r"BEGIN\s+(?:UNLOGGED\s+|COUNTER\s+)?BATCH\b"),
        _C.MODIFY,
        _root(ResourceType.DATA),
    ),
    # ── Keyspaces, tables, types ──────────────────────────────────────────────
    StatementRule(
        "create-keyspace",
        _compile(r"CREATE\s+KEYSPACE\s+" + _IF_NOT_EXISTS + _KEYSPACE),
        _C.CREATE,
        _keyspace,
    ),
    StatementRule(
        "create-table-or-type",
        _compile(r"CREATE\s+(?:TABLE|COLUMNFAMILY|TYPE)\s+" + _IF_NOT_EXISTS + _QNAME),
        _C.CREATE,
        _keyspace_of,
    ),
    StatementRule(
        "create-index",
        _compile(r"CREATE\s+(?:CUSTOM\s+)?INDEX\b.*?\bON\s+" + _QNAME),
        _C.ALTER,
        _table,
    ),
    StatementRule(
        "create-view",
        _compile(r"CREATE\s+MATERIALIZED\s+VIEW\b.*?\bFROM\s+" + _QNAME),
        _C.ALTER,
        _table,
    ),
    StatementRule("alter-keyspace", _compile(r"ALTER\s+KEYSPACE\s+" + _KEYSPACE), _C.ALTER, _keyspace),
    StatementRule("alter-type", _compile(r"ALTER\s+TYPE\s+" + _QNAME), _C.ALTER, _keyspace_of),
    StatementRule(
        "alter-table-or-view",
        _compile(r"ALTER\s+(?:TABLE|COLUMNFAMILY|MATERIALIZED\s+VIEW)\s+" + _QNAME),
        _C.ALTER,
        _table,
    ),
    StatementRule(
        "drop-keyspace",
        _compile(r"DROP\s+KEYSPACE\s+" + _IF_EXISTS + _KEYSPACE),
        _C.DROP,
        _keyspace,
    ),
    StatementRule("drop-type", _compile(r"DROP\s+TYPE\s+" + _IF_EXISTS + _QNAME), _C.DROP, _keyspace_of),
    StatementRule(
        "drop-table",
        _compile(r"DROP\s+(?:TABLE|COLUMNFAMILY)\s+" + _IF_EXISTS + _QNAME),
        _C.DROP,
        _table,
    ),
    # The base table of an index or view is not named in the statement.
    StatementRule(
        "drop-index-or-view",
        _compile(r"DROP\s+(?:INDEX|MATERIALIZED\s+VIEW)\s+" + _IF_EXISTS + _QNAME),
        _C.ALTER,
        _keyspace_of,
    ),
    # ── Permissions ───────────────────────────────────────────────────────────
    StatementRule(
        "authorize-all-keyspaces",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+ALL\s+KEYSPACES\b"),
        _C.AUTHORIZE,
        _root(ResourceType.DATA),
    ),
    StatementRule(
        "authorize-keyspace",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+KEYSPACE\s+" + _KEYSPACE),
        _C.AUTHORIZE,
        _keyspace,
    ),
    StatementRule(
        "authorize-all-roles",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+ALL\s+ROLES\b"),
        _C.AUTHORIZE,
        _root(ResourceType.ROLES),
    ),
    StatementRule(
        "authorize-role",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+ROLE\s+" + _ROLE),
        _C.AUTHORIZE,
        _role,
    ),
    StatementRule(
        "authorize-functions-in-keyspace",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+ALL\s+FUNCTIONS\s+IN\s+KEYSPACE\s+" + _KEYSPACE),
        _C.AUTHORIZE,
        _function_keyspace,
    ),
    StatementRule(
        "authorize-all-functions",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+ALL\s+FUNCTIONS\b"),
        _C.AUTHORIZE,
        _root(ResourceType.FUNCTIONS),
    ),
    StatementRule(
        "authorize-function",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+FUNCTION\s+" + _QNAME),
        _C.AUTHORIZE,
        _function_keyspace,
    ),
    StatementRule(
        "authorize-table",
        _compile(r"(?:GRANT|REVOKE)\b.*?\bON\s+(?:TABLE\s+)?" + _QNAME),
        _C.AUTHORIZE,
        _table,
    ),
    StatementRule(
        "grant-role",
        _compile(r"(?:GRANT\s+" + _ROLE + r"\s+TO|REVOKE\s+" + r"(?P<revoked>" + _ROLE_NAME + r")\s+FROM)\b"),
        _C.AUTHORIZE,
        lambda match, keyspace: ResourceScope(
            ResourceType.ROLES,
            (_identifier(match.group("role") or match.group("revoked")),),
        ),
    ),
    # ── Roles ─────────────────────────────────────────────────────────────────
    StatementRule("create-role", _compile(r"CREATE\s+(?:ROLE|USER)\b"), _C.CREATE, _root(ResourceType.ROLES)),
    StatementRule("alter-role", _compile(r"ALTER\s+(?:ROLE|USER)\s+" + _ROLE), _C.ALTER, _role),
    StatementRule("drop-role", _compile(r"DROP\s+(?:ROLE|USER)\s+" + _IF_EXISTS + _ROLE), _C.DROP, _role),
    # ── Functions ─────────────────────────────────────────────────────────────
    StatementRule(
        "create-function",
        _compile(
            r"CREATE\s+(?:OR\s+REPLACE\s+)?(?:FUNCTION|AGGREGATE)\s+" + _IF_NOT_EXISTS + _QNAME
        ),
        _C.CREATE,
        _function_keyspace,
    ),
    StatementRule(
        "drop-function",
        _compile(r"DROP\s+(?:FUNCTION|AGGREGATE)\s+" + _IF_EXISTS + _QNAME),
        _C.DROP,
        _function_keyspace,
    ),
]

UNRECOGNIZED = ResolvedOperation(OperationCategory.ALL, ResourceScope.data())


def classify_statement(statement: str, keyspace: Optional[str] = None) -> ResolvedOperation:
    """Resolve a statement to (category, resource). Never raises.

    Args:
        statement: Raw CQL statement text (not yet obfuscated — it is not logged).
        keyspace:  Session keyspace used for unqualified names, if any.
    """
    for rule in STATEMENT_RULES:
        match = rule.pattern.match(statement)
        if match is None:
            continue
        try:
            return ResolvedOperation(rule.category, rule.resolve(match, keyspace))
        except ParseError as exc:
            logger.debug("statement_resource_unresolved", rule=rule.slug, error=exc.message)
            return UNRECOGNIZED
    return UNRECOGNIZED
