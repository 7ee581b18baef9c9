"""Tests for auditgate/whitelist/manager.py — WhitelistManager

Tests:
  - create/alter apply grants; alter applies revokes
  - REVOKE at creation → invalid_request, nothing written
  - Permission check on the exact resource, first violation reported
  - Validation is all-or-nothing: one bad entry writes nothing
  - Grant + revoke of the same resource in one statement ends removed
  - Entries for the same category are unioned
  - get_role_whitelist() read-back format (sorted)
  - drop_role_whitelist() idempotent
  - check_role_whitelist() validates and permission-checks without writing
  - Storage failures returned as storage_error results
  - Read cache: hits, invalidation on mutation, size 0 disables
  - A lookup overlapping a grant, revoke or drop never caches its stale snapshot
"""

from __future__ import annotations

import asyncio
from typing import Iterable
from unittest.mock import AsyncMock

import pytest

from auditgate.auth.principal import AuthenticatedUser, Permission
from auditgate.errors import StorageError, UnauthorizedError
from auditgate.resources import ResourceScope, parse_resource
from auditgate.whitelist import (
    LocalSQLiteWhitelistDataAccess,
    OperationCategory,
    WhitelistManager,
    check_permission_to_whitelist,
)

# ─── Helpers ──────────────────────────────────────────────────────────────────


def _user_with_authorize(*resources: str) -> AuthenticatedUser:
    return AuthenticatedUser(
        name="operator",
        permissions={parse_resource(r): frozenset({Permission.AUTHORIZE}) for r in resources},
    )


def _failing_store() -> AsyncMock:
    store = AsyncMock()
    store.add_to_whitelist.side_effect = StorageError("disk full")
    store.remove_from_whitelist.side_effect = StorageError("disk full")
    store.delete_whitelist.side_effect = StorageError("disk full")
    store.get_whitelist.side_effect = StorageError("disk full")
    return store


# ─── Create / alter ───────────────────────────────────────────────────────────


class TestCreateRoleWhitelist:
    async def test_grants_are_stored(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        result = await manager.create_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_select": "data/ks/t, data/ks2"}
        )
        assert result.ok
        assert await manager.get_whitelisted_resources("svc", OperationCategory.SELECT) == frozenset(
            {"data/ks/t", "data/ks2"}
        )

    async def test_no_options_is_success(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        assert (await manager.create_role_whitelist(admin, "svc", None)).ok
        assert (await manager.create_role_whitelist(admin, "svc", {})).ok

    async def test_revoke_rejected_and_nothing_written(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        result = await manager.create_role_whitelist(
            admin,
            "svc",
            {
                "grant_audit_whitelist_for_all": "data/ks",
                "revoke_audit_whitelist_for_select": "data/ks",
            },
        )
        assert not result.ok
        assert result.error.code == "invalid_request"
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset()

    async def test_unknown_category_rejected(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        result = await manager.create_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_everything": "data"}
        )
        assert result.error.code == "invalid_request"

    async def test_malformed_resource_rejected(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        result = await manager.create_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_all": "data/ks,"}
        )
        assert result.error.code == "parse_error"


class TestAlterRoleWhitelist:
    async def test_revoke_removes_resources(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        await manager.create_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_all": "data/ks,data/ks2"}
        )
        result = await manager.alter_role_whitelist(
            admin, "svc", {"revoke_audit_whitelist_for_all": "data/ks"}
        )
        assert result.ok
        assert await manager.get_role_whitelist("svc") == {"audit_whitelist_for_all": "data/ks2"}

    async def test_grant_and_revoke_same_resource_ends_removed(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        result = await manager.alter_role_whitelist(
            admin,
            "svc",
            {
                "grant_audit_whitelist_for_select": "data/ks",
                "REVOKE_audit_whitelist_for_select": "data/ks",
            },
        )
        assert result.ok
        assert await manager.get_whitelisted_resources("svc", OperationCategory.SELECT) == frozenset()

    async def test_entries_for_same_category_are_unioned(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        await manager.alter_role_whitelist(
            admin,
            "svc",
            {
                "grant_audit_whitelist_for_modify": "data/a",
                "GRANT_audit_whitelist_for_modify": "data/b",
            },
        )
        assert await manager.get_whitelisted_resources("svc", OperationCategory.MODIFY) == frozenset(
            {"data/a", "data/b"}
        )

    async def test_one_bad_entry_writes_nothing(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        result = await manager.alter_role_whitelist(
            admin,
            "svc",
            {
                "grant_audit_whitelist_for_all": "data/ks",
                "grant_audit_whitelist_for_select": "nonsense/x",
            },
        )
        assert not result.ok
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset()


# ─── Permissions ──────────────────────────────────────────────────────────────


class TestPermissions:
    async def test_authorize_on_exact_resource_required(self, manager: WhitelistManager) -> None:
        performer = _user_with_authorize("data/ks")
        result = await manager.alter_role_whitelist(
            performer, "svc", {"grant_audit_whitelist_for_select": "data/ks/t"}
        )
        assert result.error.code == "unauthorized"
        assert result.error.message == (
            "User operator is not authorized to whitelist access to data/ks/t"
        )

    async def test_authorized_performer_succeeds(self, manager: WhitelistManager) -> None:
        performer = _user_with_authorize("data/ks")
        result = await manager.alter_role_whitelist(
            performer, "svc", {"grant_audit_whitelist_for_select": "data/ks"}
        )
        assert result.ok

    async def test_unauthorized_entry_blocks_whole_statement(self, manager: WhitelistManager) -> None:
        performer = _user_with_authorize("data/ks")
        result = await manager.alter_role_whitelist(
            performer,
            "svc",
            {
                "grant_audit_whitelist_for_select": "data/ks",
                "grant_audit_whitelist_for_modify": "data/other",
            },
        )
        assert result.error.code == "unauthorized"
        assert await manager.get_whitelisted_resources("svc", OperationCategory.SELECT) == frozenset()

    def test_check_reports_first_violation_in_canonical_order(self) -> None:
        performer = _user_with_authorize()
        resources = [parse_resource("data/zz"), parse_resource("data/aa")]
        with pytest.raises(UnauthorizedError) as exc_info:
            check_permission_to_whitelist(performer, resources)
        assert exc_info.value.message.endswith("data/aa")

    def test_check_passes_with_no_resources(self) -> None:
        check_permission_to_whitelist(_user_with_authorize(), [])

    def test_superuser_may_whitelist_anything(self, admin: AuthenticatedUser) -> None:
        check_permission_to_whitelist(admin, [ResourceScope.data("ks", "t"), parse_resource("roles/x")])


# ─── Read-back and drop ───────────────────────────────────────────────────────


class TestReadAndDrop:
    async def test_read_back_is_sorted_and_comma_joined(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        await manager.create_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_all": "data/ks2, data/ks1, connections"}
        )
        assert await manager.get_role_whitelist("svc") == {
            "audit_whitelist_for_all": "connections,data/ks1,data/ks2"
        }

    async def test_read_back_only_surfaces_all_category(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        await manager.create_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_select": "data/ks"}
        )
        assert await manager.get_role_whitelist("svc") == {"audit_whitelist_for_all": ""}

    async def test_drop_is_idempotent(
        self, manager: WhitelistManager, admin: AuthenticatedUser
    ) -> None:
        await manager.create_role_whitelist(admin, "svc", {"grant_audit_whitelist_for_all": "data"})
        assert (await manager.drop_role_whitelist("svc")).ok
        assert (await manager.drop_role_whitelist("svc")).ok
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset()


# ─── Storage failures ─────────────────────────────────────────────────────────


class TestStorageFailures:
    async def test_write_failure_returned_as_result(self, admin: AuthenticatedUser) -> None:
        manager = WhitelistManager(_failing_store())
        result = await manager.alter_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_all": "data"}
        )
        assert result.error.code == "storage_error"

    async def test_drop_failure_returned_as_result(self) -> None:
        manager = WhitelistManager(_failing_store())
        result = await manager.drop_role_whitelist("svc")
        assert result.error.code == "storage_error"
        with pytest.raises(StorageError):
            result.raise_for_error()

    async def test_read_failure_raises(self) -> None:
        manager = WhitelistManager(_failing_store())
        with pytest.raises(StorageError):
            await manager.get_role_whitelist("svc")

    async def test_rejection_happens_before_storage(self, admin: AuthenticatedUser) -> None:
        store = _failing_store()
        manager = WhitelistManager(store)
        result = await manager.create_role_whitelist(
            admin, "svc", {"revoke_audit_whitelist_for_all": "data"}
        )
        assert result.error.code == "invalid_request"
        store.add_to_whitelist.assert_not_awaited()
        store.remove_from_whitelist.assert_not_awaited()


class TestCheckRoleWhitelist:
    def test_valid_options_pass_without_writing(self, admin: AuthenticatedUser) -> None:
        store = AsyncMock()
        manager = WhitelistManager(store)
        result = manager.check_role_whitelist(
            admin, "svc", {"grant_audit_whitelist_for_select": "data/ks"}, creating=True
        )
        assert result.ok
        store.add_to_whitelist.assert_not_awaited()

    def test_revoke_rejected_only_when_creating(self, admin: AuthenticatedUser) -> None:
        manager = WhitelistManager(AsyncMock())
        options = {"revoke_audit_whitelist_for_select": "data/ks"}
        assert manager.check_role_whitelist(admin, "svc", options, creating=True).error.code == "invalid_request"
        assert manager.check_role_whitelist(admin, "svc", options, creating=False).ok

    def test_missing_authorize_rejected(self) -> None:
        manager = WhitelistManager(AsyncMock())
        result = manager.check_role_whitelist(
            _user_with_authorize("data/other"),
            "svc",
            {"grant_audit_whitelist_for_all": "data/ks"},
            creating=False,
        )
        assert isinstance(result.error, UnauthorizedError)


# ─── Read cache ───────────────────────────────────────────────────────────────


class TestReadCache:
    async def test_repeated_lookup_served_from_cache(self) -> None:
        store = AsyncMock()
        store.get_whitelist.return_value = frozenset({"data/ks"})
        manager = WhitelistManager(store, cache_size=10)

        for _ in range(3):
            await manager.get_whitelisted_resources("svc", OperationCategory.SELECT)
        assert store.get_whitelist.await_count == 1

    async def test_mutation_invalidates_role(
        self, data_access: LocalSQLiteWhitelistDataAccess, admin: AuthenticatedUser
    ) -> None:
        manager = WhitelistManager(data_access, cache_size=10)
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset()
        await manager.alter_role_whitelist(admin, "svc", {"grant_audit_whitelist_for_all": "data"})
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset({"data"})
        await manager.drop_role_whitelist("svc")
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset()

    async def test_zero_size_disables_cache(self) -> None:
        store = AsyncMock()
        store.get_whitelist.return_value = frozenset()
        manager = WhitelistManager(store, cache_size=0)

        await manager.get_whitelisted_resources("svc", OperationCategory.SELECT)
        await manager.get_whitelisted_resources("svc", OperationCategory.SELECT)
        assert store.get_whitelist.await_count == 2

    async def test_least_recently_used_entry_evicted(self) -> None:
        store = AsyncMock()
        store.get_whitelist.return_value = frozenset()
        manager = WhitelistManager(store, cache_size=2)

        await manager.get_whitelisted_resources("a", OperationCategory.ALL)
        await manager.get_whitelisted_resources("b", OperationCategory.ALL)
        await manager.get_whitelisted_resources("a", OperationCategory.ALL)  # refresh a
        await manager.get_whitelisted_resources("c", OperationCategory.ALL)  # evicts b
        await manager.get_whitelisted_resources("b", OperationCategory.ALL)
        assert store.get_whitelist.await_count == 4

    async def test_clear_cache(self) -> None:
        store = AsyncMock()
        store.get_whitelist.return_value = frozenset()
        manager = WhitelistManager(store, cache_size=10)

        await manager.get_whitelisted_resources("a", OperationCategory.ALL)
        manager.clear_cache()
        await manager.get_whitelisted_resources("a", OperationCategory.ALL)
        assert store.get_whitelist.await_count == 2


class _SlowReadStore:
    """In-memory store whose reads snapshot, then wait until released."""

    def __init__(self) -> None:
        self.rows: dict[tuple[str, str], set[str]] = {}
        self.read_started = asyncio.Event()
        self.release = asyncio.Event()

    async def setup(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def add_to_whitelist(self, role: str, category: str, resources: Iterable[str]) -> None:
        self.rows.setdefault((role, category), set()).update(resources)

    async def remove_from_whitelist(self, role: str, category: str, resources: Iterable[str]) -> None:
        self.rows.get((role, category), set()).difference_update(resources)

    async def get_whitelist(self, role: str, category: str) -> frozenset[str]:
        snapshot = frozenset(self.rows.get((role, category), set()))
        self.read_started.set()
        await self.release.wait()
        return snapshot

    async def delete_whitelist(self, role: str) -> None:
        for key in [key for key in self.rows if key[0] == role]:
            del self.rows[key]


class TestReadCacheConcurrency:
    async def test_read_overlapping_grant_is_not_cached(self, admin: AuthenticatedUser) -> None:
        store = _SlowReadStore()
        manager = WhitelistManager(store, cache_size=10)

        in_flight = asyncio.create_task(manager.get_whitelisted_resources("svc", OperationCategory.ALL))
        await store.read_started.wait()
        result = await manager.alter_role_whitelist(admin, "svc", {"grant_audit_whitelist_for_all": "data/ks"})
        assert result.ok
        store.release.set()

        assert await in_flight == frozenset()
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset({"data/ks"})

    async def test_read_overlapping_revoke_is_not_cached(self, admin: AuthenticatedUser) -> None:
        store = _SlowReadStore()
        store.rows[("svc", "ALL")] = {"data/ks"}
        manager = WhitelistManager(store, cache_size=10)

        in_flight = asyncio.create_task(manager.get_whitelisted_resources("svc", OperationCategory.ALL))
        await store.read_started.wait()
        result = await manager.alter_role_whitelist(admin, "svc", {"revoke_audit_whitelist_for_all": "data/ks"})
        assert result.ok
        store.release.set()

        assert await in_flight == frozenset({"data/ks"})
        assert await manager.get_whitelisted_resources("svc", OperationCategory.ALL) == frozenset()

    async def test_read_overlapping_drop_is_not_cached(self) -> None:
        store = _SlowReadStore()
        store.rows[("svc", "SELECT")] = {"data"}
        manager = WhitelistManager(store, cache_size=10)

        in_flight = asyncio.create_task(manager.get_whitelisted_resources("svc", OperationCategory.SELECT))
        await store.read_started.wait()
        assert (await manager.drop_role_whitelist("svc")).ok
        store.release.set()

        await in_flight
        assert await manager.get_whitelisted_resources("svc", OperationCategory.SELECT) == frozenset()
