"""Tests for auditgate/audit/adapter.py — AuditAdapter

Tests:
  - audit_request: classified, obfuscated, recorded with category/resource
  - Bound values appended (and obfuscated, including values bound to PASSWORD)
  - Whitelisted statements not recorded
  - Session keyspace honoured
  - audit_auth: CONNECTIONS on 'connections', <unknown> for missing name
  - Sink failure logged, never raised
  - Storage failure in the gate → entry still recorded
  - setup() sets up the manager
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from auditgate.audit.adapter import AuditAdapter
from auditgate.audit.models import AuditEntry, Status
from auditgate.auth.principal import AuthenticatedUser
from auditgate.errors import StorageError
from auditgate.whitelist import AuditDecisionGate, WhitelistManager

# ─── Helpers ──────────────────────────────────────────────────────────────────


class RecordingSink:
    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    async def close(self) -> None:
        pass


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def adapter(manager: WhitelistManager, sink: RecordingSink) -> AuditAdapter:
    return AuditAdapter(AuditDecisionGate(manager), sink, manager=manager, clock=lambda: 42)


BOB = AuthenticatedUser(name="bob")


# ─── Statements ───────────────────────────────────────────────────────────────


class TestAuditRequest:
    async def test_statement_recorded(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        emitted = await adapter.audit_request("10.0.0.1", BOB, "SELECT * FROM ks.t", Status.ATTEMPT)

        assert emitted is True
        [entry] = sink.entries
        assert entry.user == "bob"
        assert entry.client_address == "10.0.0.1"
        assert entry.operation == "SELECT * FROM ks.t"
        assert entry.timestamp == 42
        assert entry.category == "SELECT"
        assert entry.resource == "data/ks/t"

    async def test_explicit_timestamp_kept(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_request("10.0.0.1", BOB, "SELECT * FROM ks.t", Status.SUCCEEDED, timestamp=7)
        assert sink.entries[0].timestamp == 7

    async def test_password_obfuscated(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_request(
            "10.0.0.1", BOB, "CREATE ROLE eve WITH PASSWORD = 'hunter2'", Status.ATTEMPT
        )
        assert "hunter2" not in sink.entries[0].operation
        assert sink.entries[0].category == "CREATE"
        assert sink.entries[0].resource == "roles"

    async def test_bound_values_appended(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_request(
            "10.0.0.1",
            BOB,
            "SELECT * FROM ks.t WHERE k = ? AND v = ?",
            Status.ATTEMPT,
            bound_values=[5, "hepp"],
        )
        assert sink.entries[0].operation == "SELECT * FROM ks.t WHERE k = ? AND v = ?[5, 'hepp']"

    async def test_bound_password_masked(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_request(
            "10.0.0.1",
            BOB,
            "CREATE ROLE eve WITH PASSWORD = ? AND LOGIN = true",
            Status.ATTEMPT,
            bound_values=["hunter2"],
        )
        assert "hunter2" not in sink.entries[0].operation
        assert sink.entries[0].operation == "CREATE ROLE eve WITH PASSWORD = ? AND LOGIN = true['*****']"

    async def test_only_password_marker_value_masked(
        self, adapter: AuditAdapter, sink: RecordingSink
    ) -> None:
        await adapter.audit_request(
            "10.0.0.1",
            BOB,
            "ALTER ROLE eve WITH LOGIN = ? AND PASSWORD = :pw",
            Status.ATTEMPT,
            bound_values=[True, "s3cret"],
        )
        assert sink.entries[0].operation == "ALTER ROLE eve WITH LOGIN = ? AND PASSWORD = :pw[true, '*****']"

    async def test_session_keyspace(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_request("10.0.0.1", BOB, "SELECT * FROM t", Status.ATTEMPT, keyspace="ks")
        assert sink.entries[0].resource == "data/ks/t"

    async def test_whitelisted_statement_skipped(
        self,
        adapter: AuditAdapter,
        manager: WhitelistManager,
        admin: AuthenticatedUser,
        sink: RecordingSink,
    ) -> None:
        await manager.alter_role_whitelist(admin, "bob", {"grant_audit_whitelist_for_select": "data/ks"})

        emitted = await adapter.audit_request("10.0.0.1", BOB, "SELECT * FROM ks.t", Status.ATTEMPT)
        assert emitted is False
        assert sink.entries == []

        await adapter.audit_request("10.0.0.1", BOB, "INSERT INTO ks.t (k) VALUES (1)", Status.ATTEMPT)
        assert len(sink.entries) == 1


# ─── Authentication ───────────────────────────────────────────────────────────


class TestAuditAuth:
    async def test_auth_entry(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_auth("10.0.0.1", "alice", Status.FAILED, 99)
        [entry] = sink.entries
        assert entry.operation == "Authentication failed"
        assert entry.category == "CONNECTIONS"
        assert entry.resource == "connections"
        assert entry.timestamp == 99

    async def test_missing_username(self, adapter: AuditAdapter, sink: RecordingSink) -> None:
        await adapter.audit_auth("10.0.0.1", None, Status.ATTEMPT, 1)
        assert sink.entries[0].user == "<unknown>"

    async def test_timestamp_from_clock(self, adapter: AuditAdapter) -> None:
        assert adapter.timestamp() == 42


# ─── Failure handling ─────────────────────────────────────────────────────────


class TestFailures:
    async def test_sink_failure_not_raised(self, manager: WhitelistManager) -> None:
        sink = AsyncMock()
        sink.record.side_effect = OSError("disk full")
        adapter = AuditAdapter(AuditDecisionGate(manager), sink)

        emitted = await adapter.audit_request("10.0.0.1", BOB, "SELECT * FROM ks.t", Status.ATTEMPT)
        assert emitted is False
        sink.record.assert_awaited_once()

    async def test_storage_failure_still_audits(self, sink: RecordingSink) -> None:
        manager = AsyncMock()
        manager.get_whitelisted_resources.side_effect = StorageError("db gone")
        adapter = AuditAdapter(AuditDecisionGate(manager), sink)

        await adapter.audit_auth("10.0.0.1", "svc", Status.ATTEMPT, 1)
        assert len(sink.entries) == 1

    async def test_setup_and_close(self) -> None:
        manager = AsyncMock()
        closing_sink = AsyncMock()
        adapter = AuditAdapter(AuditDecisionGate(manager), closing_sink, manager=manager)

        await adapter.setup()
        await adapter.close()
        manager.setup.assert_awaited_once()
        closing_sink.close.assert_awaited_once()
