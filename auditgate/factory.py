"""Audit layer bootstrap — wires storage, manager, gate, sink and adapter.

    config = load_config()
    layer = await create_audit_layer(config)
    authenticator = layer.wrap_authenticator(server_authenticator)
    role_manager = layer.wrap_role_manager(server_role_manager)
    ...
    await layer.close()

Components are built once here and passed by reference; nothing in the
package holds a module-level adapter or manager.

Startup refusal:
  create_audit_layer() raises StorageError when the whitelist store cannot be
  opened or carries an unexpected schema version (PRAGMA user_version guard).
  The host is expected to refuse startup rather than run unaudited.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from auditgate.audit.adapter import AuditAdapter
from auditgate.audit.factory import create_audit_sink
from auditgate.audit.obfuscator import PasswordObfuscator
from auditgate.audit.protocol import AuditSink
from auditgate.auth.authenticator import AuditAuthenticator, Authenticator
from auditgate.auth.role_manager import AuditRoleManager, RoleManager
from auditgate.config import Config
from auditgate.utils.logger import configure_logging, get_logger
from auditgate.whitelist.data_access import (
    LocalSQLiteWhitelistDataAccess,
    WhitelistDataAccess,
)
from auditgate.whitelist.gate import AuditDecisionGate
from auditgate.whitelist.manager import WhitelistManager

logger = get_logger(__name__)


@dataclass
class AuditLayer:
    """The wired audit layer. Owns the whitelist store and the audit sink."""

    config: Config
    manager: WhitelistManager
    gate: AuditDecisionGate
    sink: AuditSink
    adapter: AuditAdapter

    def wrap_authenticator(self, authenticator: Authenticator) -> AuditAuthenticator:
        return AuditAuthenticator(authenticator, self.adapter)

    def wrap_role_manager(self, role_manager: RoleManager) -> AuditRoleManager:
        return AuditRoleManager(role_manager, self.manager)

    async def close(self) -> None:
        """Close the sink, then the whitelist store. Safe to call twice."""
        await self.adapter.close()
        await self.manager.close()
        logger.info("audit_layer_closed")


async def create_audit_layer(
    config: Config,
    data_access: Optional[WhitelistDataAccess] = None,
    sink: Optional[AuditSink] = None,
) -> AuditLayer:
    """Build and set up the audit layer from ``config``.

    Args:
        config:      Loaded configuration (see load_config()).
        data_access: Storage override; defaults to LocalSQLiteWhitelistDataAccess
                     on ``config.whitelist.db_path``.
        sink:        Sink override; defaults to create_audit_sink(config).

    Raises:
        StorageError: whitelist store could not be opened or has an
                      incompatible schema version.
    """
    configure_logging(config.logging.level, json_output=config.logging.json)

    if data_access is None:
        data_access = LocalSQLiteWhitelistDataAccess(db_path=config.whitelist.db_path)

    manager = WhitelistManager(data_access, cache_size=config.whitelist.cache_size)
    gate = AuditDecisionGate(manager)
    if sink is None:
        sink = create_audit_sink(config)
    adapter = AuditAdapter(gate, sink, manager=manager, obfuscator=PasswordObfuscator())

    await adapter.setup()

    logger.info(
        "audit_layer_ready",
        sink=type(sink).__name__,
        whitelist_cache_size=config.whitelist.cache_size,
    )
    return AuditLayer(config=config, manager=manager, gate=gate, sink=sink, adapter=adapter)
