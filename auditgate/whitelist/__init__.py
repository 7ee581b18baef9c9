"""auditgate whitelist — role audit whitelists.

Public API:
    WhitelistManager          — create/alter/read/drop role whitelists
    AuditDecisionGate         — request-time whitelist matching
    WhitelistOptionParser     — role option key/value parsing
    WhitelistContract         — structural rules for parsed options
    WhitelistDataAccess       — storage Protocol
    LocalSQLiteWhitelistDataAccess — aiosqlite storage (default)
    WhitelistOperation, OperationCategory, WhitelistChangeSet, WhitelistResult
"""
from auditgate.whitelist.contract import WhitelistContract
from auditgate.whitelist.data_access import (
    LocalSQLiteWhitelistDataAccess,
    WhitelistDataAccess,
)
from auditgate.whitelist.gate import AuditDecisionGate
from auditgate.whitelist.manager import WhitelistManager, check_permission_to_whitelist
from auditgate.whitelist.models import (
    OperationCategory,
    WhitelistChangeSet,
    WhitelistOperation,
    WhitelistResult,
)
from auditgate.whitelist.parser import WhitelistOptionParser

__all__ = [
    "AuditDecisionGate",
    "LocalSQLiteWhitelistDataAccess",
    "OperationCategory",
    "WhitelistChangeSet",
    "WhitelistContract",
    "WhitelistDataAccess",
    "WhitelistManager",
    "WhitelistOperation",
    "WhitelistOptionParser",
    "WhitelistResult",
    "check_permission_to_whitelist",
]
