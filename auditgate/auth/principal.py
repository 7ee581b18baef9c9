"""Principals and the permission oracle the whitelist manager consults.

The database server owns the real role hierarchy and permission cache; the
audit layer only needs to ask "which permissions does this performer hold on
exactly this resource?" (Principal.get_permissions) and "which roles does this
principal hold?" (Principal.roles). AuthenticatedUser is a concrete value
implementation used by integrations without their own principal type.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Protocol, runtime_checkable

from auditgate.resources.scope import ResourceScope


class Permission(str, Enum):
    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"
    SELECT = "SELECT"
    MODIFY = "MODIFY"
    AUTHORIZE = "AUTHORIZE"
    DESCRIBE = "DESCRIBE"
    EXECUTE = "EXECUTE"


ALL_PERMISSIONS: frozenset[Permission] = frozenset(Permission)


@runtime_checkable
class Principal(Protocol):
    """An authenticated (or claimed) identity."""

    @property
    def name(self) -> str:
        ...

    @property
    def roles(self) -> frozenset[str]:
        """Every role held, including the principal's own role."""
        ...

    def get_permissions(self, resource: ResourceScope) -> frozenset[Permission]:
        """Permissions held on exactly ``resource`` (no ancestor inheritance)."""
        ...


@dataclass(frozen=True)
class AuthenticatedUser:
    """Value principal with explicit per-resource grants.

    Fields:
        name:         Login role name.
        member_of:    Additional roles granted to the login role.
        permissions:  Exact-resource grants.
        superuser:    Holds every permission on every resource.
    """

    name: str
    member_of: frozenset[str] = frozenset()
    permissions: Mapping[ResourceScope, frozenset[Permission]] = field(default_factory=dict)
    superuser: bool = False

    @property
    def roles(self) -> frozenset[str]:
        return frozenset({self.name}) | self.member_of

    def get_permissions(self, resource: ResourceScope) -> frozenset[Permission]:
        if self.superuser:
            return ALL_PERMISSIONS
        return frozenset(self.permissions.get(resource, frozenset()))
