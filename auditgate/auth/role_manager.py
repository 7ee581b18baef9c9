"""Role manager decorator exposing whitelists as custom role options.

AuditRoleManager wraps the server's role manager. The whitelist options of a
role statement are validated first, the statement is then delegated, and the
options are applied afterwards through WhitelistManager:

    CREATE ROLE svc WITH OPTIONS = {'grant_audit_whitelist_for_select': 'data/ks'}
    ALTER  ROLE svc WITH OPTIONS = {'revoke_audit_whitelist_for_select': 'data/ks'}
    DROP   ROLE svc                      → whitelist dropped
    LIST ROLES / custom options of svc   → {'audit_whitelist_for_all': '...'}

The wrapped role manager is expected to have validated the options it
supports (see supported_options()).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from auditgate.auth.principal import Principal
from auditgate.utils.logger import get_logger
from auditgate.whitelist.manager import WhitelistManager

logger = get_logger(__name__)


@dataclass
class RoleOptions:
    """Options of a CREATE ROLE / ALTER ROLE statement relevant to auditing."""

    custom_options: Optional[dict[str, str]] = None


class RoleManager(Protocol):
    async def setup(self) -> None:
        ...

    async def create_role(self, performer: Principal, role: str, options: RoleOptions) -> None:
        ...

    async def alter_role(self, performer: Principal, role: str, options: RoleOptions) -> None:
        ...

    async def drop_role(self, performer: Principal, role: str) -> None:
        ...


class AuditRoleManager:
    """RoleManager that stores whitelist options next to the wrapped role."""

    def __init__(self, wrapped: RoleManager, whitelist_manager: WhitelistManager) -> None:
        self._wrapped = wrapped
        self._whitelists = whitelist_manager

    def supported_options(self) -> frozenset[str]:
        return frozenset({"OPTIONS"})

    async def setup(self) -> None:
        await self._wrapped.setup()
        await self._whitelists.setup()

    async def create_role(self, performer: Principal, role: str, options: RoleOptions) -> None:
        """Create the role, then apply its whitelist grants.

        Options are validated first, so a rejected option leaves no role behind.
        A storage failure after the role was created still raises.

        Raises:
            WhitelistError: the options were rejected or could not be stored.
        """
        if options.custom_options:
            self._whitelists.check_role_whitelist(
                performer, role, options.custom_options, creating=True
            ).raise_for_error()
        await self._wrapped.create_role(performer, role, options)
        if options.custom_options:
            result = await self._whitelists.create_role_whitelist(
                performer, role, options.custom_options
            )
            result.raise_for_error()

    async def alter_role(self, performer: Principal, role: str, options: RoleOptions) -> None:
        """Alter the role, then apply its whitelist grants and revokes.

        Options are validated before the wrapped role manager sees the statement.

        Raises:
            WhitelistError: the options were rejected or could not be stored.
        """
        if options.custom_options:
            self._whitelists.check_role_whitelist(
                performer, role, options.custom_options, creating=False
            ).raise_for_error()
        await self._wrapped.alter_role(performer, role, options)
        if options.custom_options:
            result = await self._whitelists.alter_role_whitelist(
                performer, role, options.custom_options
            )
            result.raise_for_error()

    async def drop_role(self, performer: Principal, role: str) -> None:
        await self._wrapped.drop_role(performer, role)
        result = await self._whitelists.drop_role_whitelist(role)
        if not result.ok:
            logger.warning("whitelist_left_behind", role=role, code=result.error.code)
        result.raise_for_error()

    async def get_custom_options(self, role: str) -> dict[str, str]:
        """Whitelist read-back for role listings.

        Raises:
            StorageError: whitelist store unavailable.
        """
        return await self._whitelists.get_role_whitelist(role)
