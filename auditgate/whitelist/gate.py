"""Audit decision gate — should this operation be audited at all?

is_whitelisted() is the ONLY question the audit adapter asks before building
an audit entry. For every role the principal holds it walks the target
resource up to its type root and checks each scope against the role's
whitelist for the operation's category and for ALL:

    resource = data/ks/tbl, category = SELECT
    ancestors = data/ks/tbl → data/ks → data
    suppressed if any ancestor is in whitelist(role, SELECT) ∪ whitelist(role, ALL)

INVARIANT:
  - NEVER raises StorageError. A failed lookup is logged and the operation is
    audited.
  - The walk is bounded by the resource depth (at most 3 scopes for data).
"""

from __future__ import annotations

from typing import Iterable

from auditgate.auth.principal import Principal
from auditgate.errors import StorageError
from auditgate.resources.scope import ResourceScope
from auditgate.utils.logger import get_logger
from auditgate.whitelist.manager import WhitelistManager
from auditgate.whitelist.models import OperationCategory

logger = get_logger(__name__)


class AuditDecisionGate:
    """Request-time whitelist matcher backed by the manager's read path."""

    def __init__(self, manager: WhitelistManager) -> None:
        self._manager = manager

    async def is_whitelisted(
        self,
        roles: Iterable[str],
        category: OperationCategory,
        resource: ResourceScope,
    ) -> bool:
        """True if any held role whitelists ``resource`` (or an ancestor) for the category.

        Args:
            roles:     Role names held by the principal (its own name included).
            category:  Category inferred for the operation.
            resource:  Concrete target of the operation.
        """
        categories = [category]
        if category is not OperationCategory.ALL:
            categories.append(OperationCategory.ALL)
        candidates = [scope.name for scope in resource.ancestors()]

        for role in sorted(set(roles)):
            for checked in categories:
                try:
                    whitelisted = await self._manager.get_whitelisted_resources(role, checked)
                except StorageError as exc:
                    logger.error(
                        "whitelist_lookup_failed",
                        role=role,
                        category=checked.value,
                        resource=resource.name,
                        error=exc.message,
                    )
                    return False
                for candidate in candidates:
                    if candidate in whitelisted:
                        logger.debug(
                            "audit_suppressed_by_whitelist",
                            role=role,
                            category=checked.value,
                            resource=resource.name,
                            matched=candidate,
                        )
                        return True
        return False

    async def should_audit(
        self,
        principal: Principal,
        category: OperationCategory,
        resource: ResourceScope,
    ) -> bool:
        return not await self.is_whitelisted(principal.roles, category, resource)
