"""Structural rules a parsed whitelist option must satisfy before it is applied."""

from __future__ import annotations

from auditgate.errors import InvalidRequestError
from auditgate.whitelist.models import WhitelistOperation


class WhitelistContract:
    """Stateless whitelist policy invariants."""

    def verify_create_role_option(self, operation: WhitelistOperation) -> None:
        """Only GRANT is meaningful while a role is being created.

        A role that does not exist yet has nothing to revoke.

        Raises:
            InvalidRequestError: operation is REVOKE.
        """
        if operation is not WhitelistOperation.GRANT:
            raise InvalidRequestError(
                f"Whitelist operation '{operation.value}' is not allowed when creating a role. "
                "Only grant is supported on role creation"
            )
