"""Structured logging utilities for auditgate.

This module provides async-safe structured logging using structlog.
Operational logs carry the client address of the negotiation or statement
being audited so that whitelist decisions can be traced back to a session.

NOTE: the audit trail itself is NOT written through these helpers. Audit
entries go through an AuditSink (see auditgate/audit/protocol.py); the
LoggerAuditSink happens to use a dedicated structlog logger for that purpose.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for per-session tracking
client_address_var: ContextVar[Optional[str]] = ContextVar("client_address", default=None)


def add_client_address(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add client_address to log context if available."""
    client_address = client_address_var.get()
    if client_address:
        event_dict.setdefault("client_address", client_address)
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for the audit layer.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_client_address,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "auditgate") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def set_client_address(client_address: str) -> None:
    """Set the client address in context for all subsequent logs."""
    client_address_var.set(client_address)


def clear_client_address() -> None:
    """Clear the client address from context."""
    client_address_var.set(None)


# Initialize logging with sensible defaults
# This is reconfigured by create_audit_layer() from the loaded Config
configure_logging()
