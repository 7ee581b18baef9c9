"""Root test configuration for auditgate.

Clears the AUDITGATE_* environment variables for every test so a developer's
shell (or a stray ~/.auditgate/config.yaml picked up through AUDITGATE_CONFIG)
cannot change config loading results. Tests that exercise env overrides set
them again through their own monkeypatch calls.

Shared fixtures:
  - data_access  — LocalSQLiteWhitelistDataAccess on a tmp_path database, set up
  - manager      — WhitelistManager over ``data_access``
  - admin        — superuser principal (AUTHORIZE everywhere)
"""

from __future__ import annotations

from typing import Any, AsyncIterator

import pytest

from auditgate.auth.principal import AuthenticatedUser
from auditgate.whitelist.data_access import LocalSQLiteWhitelistDataAccess
from auditgate.whitelist.manager import WhitelistManager


@pytest.fixture(autouse=True)
def clear_auditgate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AUDITGATE_CONFIG", "AUDITGATE_WHITELIST_DB_PATH", "AUDITGATE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
async def data_access(tmp_path: Any) -> AsyncIterator[LocalSQLiteWhitelistDataAccess]:
    store = LocalSQLiteWhitelistDataAccess(db_path=str(tmp_path / "whitelist.db"))
    await store.setup()
    yield store
    await store.close()


@pytest.fixture
async def manager(data_access: LocalSQLiteWhitelistDataAccess) -> WhitelistManager:
    return WhitelistManager(data_access, cache_size=100)


@pytest.fixture
def admin() -> AuthenticatedUser:
    return AuthenticatedUser(name="admin", superuser=True)
