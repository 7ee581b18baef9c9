"""Config loading for auditgate.

Reads `.auditgate/config.yaml` (or `~/.auditgate/config.yaml`).
Raises SystemExit on parse errors or a missing `version` field.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. `config_path` argument (if provided — for testing or explicit override)
  2. AUDITGATE_CONFIG environment variable (if set)
  3. `.auditgate/config.yaml` (working directory — for development)
  4. `~/.auditgate/config.yaml` (home directory — for production deployments)

Environment variable overrides:
  AUDITGATE_WHITELIST_DB_PATH — overrides whitelist.db_path
  AUDITGATE_LOG_LEVEL         — overrides logging.level
  AUDITGATE_CONFIG            — sets an explicit config file path to try first

Example:

    version: 1
    whitelist:
      db_path: /var/lib/auditgate/whitelist.db
      cache_size: 1000
    audit:
      sink: logger            # logger | null
      logger_name: auditgate.audit
    logging:
      level: INFO
      json: true
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import NoReturn, Optional

import yaml

from auditgate.audit.factory import VALID_SINKS
from auditgate.constants import (
    DEFAULT_AUDIT_LOGGER_NAME,
    DEFAULT_WHITELIST_CACHE_SIZE,
    DEFAULT_WHITELIST_DB_PATH,
)
from auditgate.utils.logger import get_logger

logger = get_logger(__name__)

# ─── Version constants ────────────────────────────────────────────────────────

# Current supported config version
SUPPORTED_CONFIG_VERSION = 1

# Versions accepted by load_config()
SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

# ─── Validation sets ─────────────────────────────────────────────────────────

VALID_LOG_LEVELS: frozenset[str] = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Default config search paths (AUDITGATE_CONFIG env var prepended at runtime)
DEFAULT_CONFIG_PATHS = [
    ".auditgate/config.yaml",
    os.path.expanduser("~/.auditgate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class WhitelistConfig:
    """Whitelist storage configuration.

    db_path:    SQLite database file (``:memory:`` for an ephemeral store).
    cache_size: Entries in the manager's (role, category) read cache; 0 disables it.
    """

    db_path: str = DEFAULT_WHITELIST_DB_PATH
    cache_size: int = DEFAULT_WHITELIST_CACHE_SIZE


@dataclass
class AuditConfig:
    """Audit sink configuration."""

    sink: str = "logger"  # "logger" | "null"
    logger_name: str = DEFAULT_AUDIT_LOGGER_NAME


@dataclass
class LoggingConfig:
    """Operational logging configuration."""

    level: str = "INFO"
    json: bool = True


@dataclass
class Config:
    """Root configuration object populated from .auditgate/config.yaml.

    All fields have safe defaults — auditgate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    whitelist: WhitelistConfig = field(default_factory=WhitelistConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    path: Optional[str] = None  # Path to the loaded config file

    @classmethod
    def defaults(cls) -> "Config":
        """Return a fully-default Config (no file required)."""
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are silently ignored.

        Raises:
            SystemExit(1): On invalid audit.sink, whitelist.cache_size or logging.level.
        """
        # ── Whitelist ─────────────────────────────────────────────────────────
        whitelist_raw = raw.get("whitelist") or {}
        cache_size = whitelist_raw.get("cache_size", DEFAULT_WHITELIST_CACHE_SIZE)
        if not isinstance(cache_size, int) or isinstance(cache_size, bool) or cache_size < 0:
            _fail(
                f"CONFIG ERROR: Invalid whitelist.cache_size: '{cache_size}'. "
                "Expected a non-negative integer (0 disables the cache)."
            )
        whitelist = WhitelistConfig(
            db_path=str(whitelist_raw.get("db_path", DEFAULT_WHITELIST_DB_PATH)),
            cache_size=cache_size,
        )

        # ── Audit ─────────────────────────────────────────────────────────────
        audit_raw = raw.get("audit") or {}
        sink = audit_raw.get("sink", "logger")
        if sink is None:
            # YAML reads a bare `null` as None
            sink = "null"
        if sink not in VALID_SINKS:
            _fail(
                f"CONFIG ERROR: Invalid audit.sink: '{sink}'. "
                f"Supported values: {sorted(VALID_SINKS)}."
            )
        audit = AuditConfig(
            sink=sink,
            logger_name=audit_raw.get("logger_name", DEFAULT_AUDIT_LOGGER_NAME),
        )

        # ── Logging ───────────────────────────────────────────────────────────
        logging_raw = raw.get("logging") or {}
        level = str(logging_raw.get("level", "INFO")).upper()
        _validate_log_level(level, "logging.level")
        logging_config = LoggingConfig(
            level=level,
            json=bool(logging_raw.get("json", True)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            whitelist=whitelist,
            audit=audit,
            logging=logging_config,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate auditgate configuration.

    Search order:
      1. ``config_path`` argument (if provided)
      2. ``AUDITGATE_CONFIG`` environment variable (if set)
      3. ``.auditgate/config.yaml`` (current working directory)
      4. ``~/.auditgate/config.yaml`` (home directory)

    If no file is found at any of these paths, returns default Config (not an error).
    If a file is found but invalid, writes error to stderr and raises SystemExit(1).

    Environment overrides are applied afterwards, whether or not a file was found.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field, unsupported
                       version, invalid section values, or an invalid
                       ``AUDITGATE_LOG_LEVEL``.
    """
    # Build search list
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("AUDITGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    # Find first existing config file
    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    # ── No config file found ─────────────────────────────────────────────────
    if found_path is None:
        logger.info("No config file found — using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    # ── Parse config file ─────────────────────────────────────────────────────
    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "auditgate refuses to start with an invalid config. "
            "Check the YAML syntax and try again."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    # Empty file or non-mapping YAML (e.g. plain scalar)
    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    # ── Version validation ────────────────────────────────────────────────────
    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.audit.sink == "null":
        logger.warning("audit.sink is 'null' — audit entries are discarded")

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        sink=config.audit.sink,
        whitelist_db_path=config.whitelist.db_path,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Handles:
      AUDITGATE_WHITELIST_DB_PATH — overrides config.whitelist.db_path
      AUDITGATE_LOG_LEVEL         — overrides config.logging.level (validated)

    Raises:
        SystemExit(1): If AUDITGATE_LOG_LEVEL is set but not a known level.
    """
    env_db_path = os.environ.get("AUDITGATE_WHITELIST_DB_PATH")
    if env_db_path:
        config.whitelist.db_path = env_db_path

    env_level = os.environ.get("AUDITGATE_LOG_LEVEL")
    if env_level is not None:
        level = env_level.upper()
        _validate_log_level(level, "AUDITGATE_LOG_LEVEL environment variable")
        config.logging.level = level


def _validate_log_level(level: str, source: str) -> None:
    if level not in VALID_LOG_LEVELS:
        _fail(
            f"CONFIG ERROR: {source} is not a valid log level: '{level}'. "
            f"Supported values: {sorted(VALID_LOG_LEVELS)}."
        )


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)
