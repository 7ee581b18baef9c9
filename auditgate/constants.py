"""Shared constants for auditgate.

Option names, markers and default locations used across modules are defined
here. No magic strings in other modules — import from here.
"""

# ─── Administrative option surface ────────────────────────────────────────────

# Infix shared by every whitelist role option: <verb>_audit_whitelist_for_<category>
WHITELIST_OPTION_INFIX: str = "audit_whitelist_for"

# The synthetic read-back option returned by get_role_whitelist().
# Only the ALL category is surfaced through role options.
OPTION_AUDIT_WHITELIST_ALL: str = "audit_whitelist_for_all"

# Separator between resources in an option value and in the read-back option.
RESOURCE_SEPARATOR: str = ","

# ─── Audit entry rendering ───────────────────────────────────────────────────

# Fixed-length marker substituted for every secret literal in operation text.
# Length is independent of the secret so the marker leaks nothing about it.
OBFUSCATION_MARKER: str = "*****"

# User field for entries where no principal name could be recovered.
UNKNOWN_USER: str = "<unknown>"

# Operation texts for authentication events, indexed by Status name.
AUTH_OPERATION_TEXT: dict[str, str] = {
    "ATTEMPT": "Authentication attempt",
    "SUCCEEDED": "Authentication succeeded",
    "FAILED": "Authentication failed",
}

# Default structlog logger name for the LoggerAuditSink.
DEFAULT_AUDIT_LOGGER_NAME: str = "auditgate.audit"

# ─── Storage ─────────────────────────────────────────────────────────────────

# Default location of the whitelist store. Override with
# AUDITGATE_WHITELIST_DB_PATH or whitelist.db_path in config.yaml.
DEFAULT_WHITELIST_DB_PATH: str = "~/.auditgate/whitelist.db"

# Maximum number of (role, category) whitelist lookups held by the manager's
# read cache. 0 disables caching.
DEFAULT_WHITELIST_CACHE_SIZE: int = 1000
