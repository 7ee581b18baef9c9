"""Whitelist error kinds for auditgate.

Every failure the whitelist layer can report is a WhitelistError subclass
with a stable ``code``. Parsers, the contract and the data access layer raise
these; WhitelistManager converts them into a WhitelistResult at its public
boundary so callers branch on ``result.error.code`` rather than on exception
propagation.

    WhitelistError
    ├── InvalidRequestError   unknown option key/verb/category, REVOKE at creation
    ├── UnauthorizedError     performer lacks AUTHORIZE on a named resource
    ├── ParseError            malformed resource-scope text
    └── StorageError          backing store failure or timeout
"""

from __future__ import annotations


class WhitelistError(Exception):
    """Base class for whitelist failures."""

    code: str = "whitelist_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(WhitelistError):
    """Raised when an administrative option is not a valid whitelist request."""

    code: str = "invalid_request"


class UnauthorizedError(WhitelistError):
    """Raised when the performer may not whitelist a resource."""

    code: str = "unauthorized"


class ParseError(WhitelistError):
    """Raised when resource-scope text does not follow ``type[/segment]*``."""

    code: str = "parse_error"


class StorageError(WhitelistError):
    """Raised when the whitelist store fails. Never retried by the manager."""

    code: str = "storage_error"
