"""WhitelistManager — policy authority for role audit whitelists.

Role whitelists are managed through custom role options on CREATE ROLE /
ALTER ROLE:

    ALTER ROLE alice WITH OPTIONS = {
        'grant_audit_whitelist_for_select' : 'data/ks/tbl',
        'revoke_audit_whitelist_for_all'   : 'data/ks2'
    }

Only performers holding AUTHORIZE on a resource may whitelist it.

Statement processing:
  1. Every option entry is parsed (verb, contract check, category, resources)
     and permission-checked. Nothing is written until every entry passed.
  2. Entries are gathered into a WhitelistChangeSet: one set of additions and
     one set of removals per category.
  3. Categories are applied one after the other: additions, then removals.
     A resource granted and revoked in the same statement therefore ends up
     removed. A storage failure half way leaves earlier categories committed.

Error reporting:
  Mutating operations never raise WhitelistError — they return a
  WhitelistResult holding it. get_role_whitelist() and
  get_whitelisted_resources() raise StorageError.

Read cache:
  (role, category) lookups are cached in an instance-owned LRU. Every mutation
  of a role clears that role's entries before returning, success or not. A
  lookup that overlaps an invalidation returns what it read but does not
  cache it, so a snapshot taken before a write never outlives that write.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Callable, Iterable, Mapping, Optional

from auditgate.auth.principal import Permission, Principal
from auditgate.constants import (
    DEFAULT_WHITELIST_CACHE_SIZE,
    OPTION_AUDIT_WHITELIST_ALL,
    RESOURCE_SEPARATOR,
)
from auditgate.errors import UnauthorizedError, WhitelistError
from auditgate.resources.scope import ResourceScope
from auditgate.utils.logger import get_logger
from auditgate.whitelist.contract import WhitelistContract
from auditgate.whitelist.data_access import WhitelistDataAccess
from auditgate.whitelist.models import (
    OperationCategory,
    WhitelistChangeSet,
    WhitelistOperation,
    WhitelistResult,
)
from auditgate.whitelist.parser import WhitelistOptionParser

logger = get_logger(__name__)


class WhitelistManager:
    """Create, alter, read and drop role whitelists."""

    def __init__(
        self,
        data_access: WhitelistDataAccess,
        cache_size: int = DEFAULT_WHITELIST_CACHE_SIZE,
    ) -> None:
        self._data_access = data_access
        self._parser = WhitelistOptionParser()
        self._contract = WhitelistContract()
        self._cache_size = cache_size
        self._cache: OrderedDict[tuple[str, str], frozenset[str]] = OrderedDict()
        # Bumped on every invalidation; a read started under an older value is not cached.
        self._generation = 0

    async def setup(self) -> None:
        await self._data_access.setup()

    async def close(self) -> None:
        await self._data_access.close()

    # ── Mutations ─────────────────────────────────────────────────────────────

    async def create_role_whitelist(
        self,
        performer: Principal,
        role: str,
        options: Optional[Mapping[str, str]],
    ) -> WhitelistResult:
        """Apply the grant options of a CREATE ROLE statement.

        REVOKE options are rejected: a new role has nothing to revoke.
        """
        return await self._mutate(
            "create", performer, role, lambda: self._collect(performer, options, creating=True)
        )

    async def alter_role_whitelist(
        self,
        performer: Principal,
        role: str,
        options: Optional[Mapping[str, str]],
    ) -> WhitelistResult:
        """Apply the grant and revoke options of an ALTER ROLE statement."""
        return await self._mutate(
            "alter", performer, role, lambda: self._collect(performer, options, creating=False)
        )

    def check_role_whitelist(
        self,
        performer: Principal,
        role: str,
        options: Optional[Mapping[str, str]],
        *,
        creating: bool,
    ) -> WhitelistResult:
        """Parse, validate and permission-check options without writing anything.

        Lets a caller refuse a role statement before any of it takes effect.
        """
        try:
            self._collect(performer, options, creating=creating)
        except WhitelistError as exc:
            logger.warning(
                "whitelist_request_rejected",
                action="create" if creating else "alter",
                performer=performer.name,
                role=role,
                code=exc.code,
                error=exc.message,
            )
            return WhitelistResult.failure(exc)
        return WhitelistResult.success()

    async def drop_role_whitelist(self, role: str) -> WhitelistResult:
        """Delete every whitelist category of a dropped role.

        Idempotent: a role without a whitelist is a successful no-op.
        """
        try:
            await self._data_access.delete_whitelist(role)
        except WhitelistError as exc:
            logger.error("whitelist_drop_failed", role=role, error=exc.message, code=exc.code)
            return WhitelistResult.failure(exc)
        finally:
            self._invalidate(role)
        logger.info("whitelist_dropped", role=role)
        return WhitelistResult.success()

    async def _mutate(
        self,
        action: str,
        performer: Principal,
        role: str,
        collect: Callable[[], WhitelistChangeSet],
    ) -> WhitelistResult:
        try:
            changes = collect()
        except WhitelistError as exc:
            logger.warning(
                "whitelist_request_rejected",
                action=action,
                performer=performer.name,
                role=role,
                code=exc.code,
                error=exc.message,
            )
            return WhitelistResult.failure(exc)

        if changes.is_empty():
            return WhitelistResult.success()

        try:
            await self._apply(role, changes)
        except WhitelistError as exc:
            logger.error(
                "whitelist_update_failed",
                action=action,
                role=role,
                code=exc.code,
                error=exc.message,
            )
            return WhitelistResult.failure(exc)
        finally:
            self._invalidate(role)
        return WhitelistResult.success()

    def _collect(
        self,
        performer: Principal,
        options: Optional[Mapping[str, str]],
        *,
        creating: bool,
    ) -> WhitelistChangeSet:
        """Parse, validate and permission-check every option. No I/O."""
        changes = WhitelistChangeSet()
        for key, value in (options or {}).items():
            operation = self._parser.parse_whitelist_operation(key)
            if creating:
                self._contract.verify_create_role_option(operation)
            category = self._parser.parse_target_operation(key)
            resources = self._parser.parse_resource(value)

            check_permission_to_whitelist(performer, resources)

            names = [resource.name for resource in resources]
            if operation is WhitelistOperation.GRANT:
                changes.grant(category, names)
            else:
                changes.revoke(category, names)
        return changes

    async def _apply(self, role: str, changes: WhitelistChangeSet) -> None:
        for category in changes.categories():
            added = changes.additions.get(category)
            if added:
                await self._data_access.add_to_whitelist(role, category.value, added)
                logger.info(
                    "whitelist_granted",
                    role=role,
                    category=category.value,
                    resources=sorted(added),
                )
            removed = changes.removals.get(category)
            if removed:
                await self._data_access.remove_from_whitelist(role, category.value, removed)
                logger.info(
                    "whitelist_revoked",
                    role=role,
                    category=category.value,
                    resources=sorted(removed),
                )

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def get_role_whitelist(self, role: str) -> dict[str, str]:
        """Return the ALL whitelist as the synthetic ``audit_whitelist_for_all`` option.

        Resources are joined with ',' in sorted order.

        Raises:
            StorageError: whitelist store unavailable.
        """
        resources = await self.get_whitelisted_resources(role, OperationCategory.ALL)
        return {OPTION_AUDIT_WHITELIST_ALL: RESOURCE_SEPARATOR.join(sorted(resources))}

    async def get_whitelisted_resources(
        self, role: str, category: OperationCategory
    ) -> frozenset[str]:
        """Return the resource texts whitelisted for (role, category).

        Raises:
            StorageError: whitelist store unavailable.
        """
        cache_key = (role, category.value)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return cached
        generation = self._generation
        resources = await self._data_access.get_whitelist(role, category.value)
        # An invalidation during the read means the snapshot may predate a write.
        if generation == self._generation:
            self._cache_set(cache_key, resources)
        return resources

    # ── Read cache ────────────────────────────────────────────────────────────

    def _cache_get(self, key: tuple[str, str]) -> Optional[frozenset[str]]:
        if key in self._cache:
            self._cache.move_to_end(key)
            return self._cache[key]
        return None

    def _cache_set(self, key: tuple[str, str], resources: frozenset[str]) -> None:
        if self._cache_size <= 0:
            return
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self._cache_size:
            self._cache.popitem(last=False)
        self._cache[key] = resources

    def _invalidate(self, role: str) -> None:
        self._generation += 1
        for key in [key for key in self._cache if key[0] == role]:
            del self._cache[key]

    def clear_cache(self) -> None:
        """Forget every cached lookup, e.g. after an out-of-band store change."""
        self._generation += 1
        self._cache.clear()


# ─── Permission check ─────────────────────────────────────────────────────────


def check_permission_to_whitelist(performer: Principal, resources: Iterable[ResourceScope]) -> None:
    """Require AUTHORIZE on every resource, on the exact resource (not an ancestor).

    Resources are checked in canonical order so the reported one is stable.

    Raises:
        UnauthorizedError: on the first resource the performer may not authorize.
    """
    for resource in sorted(resources, key=lambda r: r.name):
        if Permission.AUTHORIZE not in performer.get_permissions(resource):
            raise UnauthorizedError(
                f"User {performer.name} is not authorized to whitelist access to {resource}"
            )
