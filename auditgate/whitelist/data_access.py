"""Whitelist data access — per-role storage of category → resource texts.

Pure CRUD. No parsing, permission or policy logic lives here; the
WhitelistManager owns all of that.

Layout:
    WhitelistDataAccess             — Protocol the manager depends on
    LocalSQLiteWhitelistDataAccess  — aiosqlite implementation (default)

Consistency (LocalSQLiteWhitelistDataAccess):
  - Single long-lived connection opened in setup(), closed in close().
  - WAL mode: readers never wait for a writer.
  - Each add/remove call is one transaction. Write calls are serialised with an
    asyncio.Lock so two batched calls never share a transaction on the shared
    connection. Reads do not take the lock.
  - Reads go through the same connection, so a role always reads its own writes.
  - Schema version guard: PRAGMA user_version must be 0 (fresh) or 1.
  - Every sqlite failure is surfaced as StorageError. No retries.
"""

from __future__ import annotations

import asyncio
import os
from typing import Iterable, Optional, Protocol, runtime_checkable

import aiosqlite

from auditgate.constants import DEFAULT_WHITELIST_DB_PATH
from auditgate.errors import StorageError
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Schema DDL ───────────────────────────────────────────────────────────────

_CREATE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS audit_whitelist (
    role        TEXT NOT NULL,
    operation   TEXT NOT NULL,
    resource    TEXT NOT NULL,
    PRIMARY KEY (role, operation, resource)
);
"""

_SCHEMA_VERSION = 1

_IN_MEMORY = ":memory:"


# ─── Protocol ─────────────────────────────────────────────────────────────────


@runtime_checkable
class WhitelistDataAccess(Protocol):
    """Storage abstraction keyed by role name.

    ``category`` is the stored label (OperationCategory.value); ``resources``
    are canonical resource-scope texts. Every call is all-or-nothing for the
    (role, category) it touches.
    """

    async def setup(self) -> None:
        """Idempotently prepare backing storage."""
        ...

    async def add_to_whitelist(self, role: str, category: str, resources: Iterable[str]) -> None:
        ...

    async def remove_from_whitelist(self, role: str, category: str, resources: Iterable[str]) -> None:
        ...

    async def get_whitelist(self, role: str, category: str) -> frozenset[str]:
        ...

    async def delete_whitelist(self, role: str) -> None:
        """Delete every category for the role. No-op if the role has none."""
        ...

    async def close(self) -> None:
        ...


# ─── LocalSQLiteWhitelistDataAccess ───────────────────────────────────────────


class LocalSQLiteWhitelistDataAccess:
    """aiosqlite-backed whitelist store.

    Usage:
        data_access = LocalSQLiteWhitelistDataAccess("~/.auditgate/whitelist.db")
        await data_access.setup()     # raises StorageError on schema mismatch
        await data_access.add_to_whitelist("alice", "ALL", {"data/ks"})
        await data_access.get_whitelist("alice", "ALL")   # frozenset({"data/ks"})
        await data_access.close()
    """

    def __init__(self, db_path: str = DEFAULT_WHITELIST_DB_PATH) -> None:
        self._db_path: str = db_path if db_path == _IN_MEMORY else os.path.expanduser(db_path)
        self._db: Optional[aiosqlite.Connection] = None
        self._write_lock = asyncio.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def setup(self) -> None:
        """Open the connection, enable WAL and create or verify the schema.

        Idempotent: a second call on an open store is a no-op.

        Raises:
            StorageError: database cannot be opened, or PRAGMA user_version is
                          neither 0 nor 1.
        """
        if self._db is not None:
            return

        if self._db_path != _IN_MEMORY:
            parent_dir = os.path.dirname(self._db_path)
            if parent_dir:
                try:
                    os.makedirs(parent_dir, exist_ok=True)
                except OSError as exc:
                    raise StorageError(
                        f"Could not create whitelist database directory {parent_dir}: {exc}"
                    ) from exc

        try:
            self._db = await aiosqlite.connect(self._db_path)
            await self._db.execute("PRAGMA journal_mode=WAL;")

            cursor = await self._db.execute("PRAGMA user_version;")
            row = await cursor.fetchone()
            current_version: int = row[0] if row else 0

            if current_version == 0:
                await self._db.executescript(_CREATE_SCHEMA_SQL)
                await self._db.execute(f"PRAGMA user_version = {_SCHEMA_VERSION};")
                await self._db.commit()
                logger.info(
                    "whitelist_db_schema_created",
                    db_path=self._db_path,
                    schema_version=_SCHEMA_VERSION,
                )
            elif current_version == _SCHEMA_VERSION:
                logger.info(
                    "whitelist_db_schema_ok",
                    db_path=self._db_path,
                    schema_version=current_version,
                )
            else:
                await self.close()
                raise StorageError(
                    f"Unsupported whitelist database schema version: {current_version}. "
                    f"Expected {_SCHEMA_VERSION}; delete {self._db_path} to reset."
                )
        except aiosqlite.Error as exc:
            await self.close()
            raise StorageError(f"Could not open whitelist database {self._db_path}: {exc}") from exc

    async def close(self) -> None:
        """Close the connection gracefully."""
        if self._db is not None:
            db, self._db = self._db, None
            await db.close()
            logger.debug("whitelist_db_closed", db_path=self._db_path)

    # ── Writes ────────────────────────────────────────────────────────────────

    async def add_to_whitelist(self, role: str, category: str, resources: Iterable[str]) -> None:
        """Add resources to (role, category). Existing rows are left as is."""
        rows = [(role, category, resource) for resource in sorted(set(resources))]
        if not rows:
            return
        await self._write(
            "INSERT OR IGNORE INTO audit_whitelist (role, operation, resource) VALUES (?, ?, ?)",
            rows,
        )

    async def remove_from_whitelist(self, role: str, category: str, resources: Iterable[str]) -> None:
        """Remove resources from (role, category). Absent rows are ignored."""
        rows = [(role, category, resource) for resource in sorted(set(resources))]
        if not rows:
            return
        await self._write(
            "DELETE FROM audit_whitelist WHERE role = ? AND operation = ? AND resource = ?",
            rows,
        )

    async def delete_whitelist(self, role: str) -> None:
        """Delete all rows of a role. Deleting nothing is a successful no-op."""
        await self._write("DELETE FROM audit_whitelist WHERE role = ?", [(role,)])

    async def _write(self, sql: str, rows: list[tuple[str, ...]]) -> None:
        db = self._connection()
        async with self._write_lock:
            try:
                await db.executemany(sql, rows)
                await db.commit()
            except aiosqlite.Error as exc:
                await _rollback_quietly(db)
                raise StorageError(f"Whitelist write failed: {exc}") from exc

    # ── Reads ─────────────────────────────────────────────────────────────────

    async def get_whitelist(self, role: str, category: str) -> frozenset[str]:
        """Return the resource texts whitelisted for (role, category)."""
        db = self._connection()
        try:
            async with db.execute(
                "SELECT resource FROM audit_whitelist WHERE role = ? AND operation = ?",
                (role, category),
            ) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StorageError(f"Whitelist read failed: {exc}") from exc
        return frozenset(row[0] for row in rows)

    def _connection(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError("Whitelist database not initialized — call setup() first")
        return self._db


async def _rollback_quietly(db: aiosqlite.Connection) -> None:
    """Roll back the open transaction; the original error is what gets reported."""
    try:
        await db.rollback()
    except aiosqlite.Error as exc:
        logger.warning("whitelist_rollback_failed", error=str(exc))
