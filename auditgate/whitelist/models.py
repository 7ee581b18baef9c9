"""Whitelist value types.

WhitelistOperation  — GRANT / REVOKE verb parsed from the option key prefix
OperationCategory   — class of action a whitelist entry applies to
WhitelistChangeSet  — request-scoped per-category add/remove aggregation
WhitelistResult     — outcome of a mutating WhitelistManager operation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from auditgate.errors import WhitelistError

# ─── Verbs and categories ─────────────────────────────────────────────────────


class WhitelistOperation(str, Enum):
    """Whether a resource set is added to or removed from a whitelist."""

    GRANT = "grant"
    REVOKE = "revoke"


class OperationCategory(str, Enum):
    """Category of action being whitelisted.

    The value is the label stored per whitelist row. The lowercase name is the
    suffix accepted in ``<verb>_audit_whitelist_for_<category>`` option keys.
    Adding a member here is all it takes to accept a new category.

    ALL whitelists bypass category granularity: the decision gate consults
    them for every category.
    """

    ALL = "ALL"
    SELECT = "SELECT"
    MODIFY = "MODIFY"
    CREATE = "CREATE"
    ALTER = "ALTER"
    DROP = "DROP"
    AUTHORIZE = "AUTHORIZE"
    DESCRIBE = "DESCRIBE"
    EXECUTE = "EXECUTE"
    CONNECTIONS = "CONNECTIONS"

    @property
    def option_suffix(self) -> str:
        return self.value.lower()


# ─── Change set ───────────────────────────────────────────────────────────────


@dataclass
class WhitelistChangeSet:
    """Per-category additions and removals gathered from one statement.

    Entries naming the same category are unioned, so the statement costs at
    most one add and one remove data-access call per category.
    """

    additions: dict[OperationCategory, set[str]] = field(default_factory=dict)
    removals: dict[OperationCategory, set[str]] = field(default_factory=dict)

    def grant(self, category: OperationCategory, resources: Iterable[str]) -> None:
        self.additions.setdefault(category, set()).update(resources)

    def revoke(self, category: OperationCategory, resources: Iterable[str]) -> None:
        self.removals.setdefault(category, set()).update(resources)

    def categories(self) -> list[OperationCategory]:
        """Every touched category, in stable (declaration) order."""
        touched = set(self.additions) | set(self.removals)
        return [category for category in OperationCategory if category in touched]

    def is_empty(self) -> bool:
        return not self.additions and not self.removals


# ─── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WhitelistResult:
    """Outcome of create/alter/drop on a role whitelist.

    ``error`` is None on success. On failure it holds the WhitelistError
    describing the first violation; callers branch on ``error.code``.
    """

    error: Optional[WhitelistError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls) -> "WhitelistResult":
        return cls()

    @classmethod
    def failure(cls, error: WhitelistError) -> "WhitelistResult":
        return cls(error=error)

    def raise_for_error(self) -> None:
        """Re-raise the held error, for callers on a raising surface."""
        if self.error is not None:
            raise self.error
