"""auditgate auth package — principals and claimed-identity extraction.

Public API:
  - Principal / AuthenticatedUser — who performs an operation, which roles it holds
  - Permission                    — permission names checked on exact resources
  - decode_username_from_sasl()   — login name from a SASL PLAIN response
  - AuthenticationError           — malformed credentials

The decorators live in submodules and are imported from there:
  - auditgate.auth.authenticator  — AuditAuthenticator, AuditSaslNegotiator
  - auditgate.auth.role_manager   — AuditRoleManager, RoleOptions
"""

from __future__ import annotations

from auditgate.auth.credentials import AuthenticationError, decode_username_from_sasl
from auditgate.auth.principal import (
    ALL_PERMISSIONS,
    AuthenticatedUser,
    Permission,
    Principal,
)

__all__ = [
    "ALL_PERMISSIONS",
    "AuthenticatedUser",
    "AuthenticationError",
    "Permission",
    "Principal",
    "decode_username_from_sasl",
]
