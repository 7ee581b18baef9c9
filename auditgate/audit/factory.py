"""Audit sink factory — sink selection by config.

Sink selection (audit.sink in config.yaml):
  - "logger" (default) → LoggerAuditSink on audit.logger_name
  - "null"             → NullAuditSink (audit trail disabled; decisions still run)

Unknown values are rejected by load_config() before this point; the factory
still raises ValueError for a hand-built Config carrying one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from auditgate.audit.logger_sink import LoggerAuditSink
from auditgate.audit.protocol import AuditSink, NullAuditSink
from auditgate.utils.logger import get_logger

if TYPE_CHECKING:
    from auditgate.config import Config

logger = get_logger(__name__)

SINK_LOGGER = "logger"
SINK_NULL = "null"
VALID_SINKS: frozenset[str] = frozenset({SINK_LOGGER, SINK_NULL})


def create_audit_sink(config: "Config") -> AuditSink:
    """Create the AuditSink named by ``config.audit.sink``.

    Raises:
        ValueError: unknown sink name.
    """
    sink_name = config.audit.sink
    if sink_name == SINK_NULL:
        logger.info("audit_sink_selected", sink="NullAuditSink")
        return NullAuditSink()
    if sink_name == SINK_LOGGER:
        logger.info(
            "audit_sink_selected",
            sink="LoggerAuditSink",
            logger_name=config.audit.logger_name,
        )
        return LoggerAuditSink(logger_name=config.audit.logger_name)
    raise ValueError(
        f"Unknown audit sink: '{sink_name}'. Supported values: {sorted(VALID_SINKS)}"
    )
