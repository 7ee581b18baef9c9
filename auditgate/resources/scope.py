"""Hierarchical resource scopes.

A ResourceScope names a securable object: "all data", a keyspace, a table, a
role, a function, or the connection surface. Its canonical text is
``type[/segment]*`` — e.g. ``data``, ``data/ks``, ``data/ks/tbl``,
``roles/alice``, ``connections``.

Hierarchy:
    A scope is an ancestor of every scope of the same type whose path starts
    with its path. The bare type (``data``) is the root ancestor of every scope
    of that type. ancestors() walks from the scope itself up to its root, so
    the walk is at most max_depth + 1 long (3 for data).

IMPORT RULES:
  - ``import re2`` ONLY — google-re2 for segment validation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import re2  # google-re2 — NOT stdlib re

from auditgate.errors import ParseError

# ─── Resource types ───────────────────────────────────────────────────────────


class ResourceType(str, Enum):
    """Type tag of a resource scope. Value is the canonical lowercase tag."""

    DATA = "data"
    ROLES = "roles"
    FUNCTIONS = "functions"
    CONNECTIONS = "connections"

    @property
    def max_depth(self) -> int:
        """Maximum number of path segments below the root of this type."""
        return _MAX_DEPTH[self]


# data/<keyspace>/<table>, roles/<role>, functions/<keyspace>/<function>,
# connections/<transport>
_MAX_DEPTH: dict[ResourceType, int] = {
    ResourceType.DATA: 2,
    ResourceType.ROLES: 1,
    ResourceType.FUNCTIONS: 2,
    ResourceType.CONNECTIONS: 1,
}

_TYPES_BY_TAG: dict[str, ResourceType] = {t.value: t for t in ResourceType}

_SEGMENT_RE = re2.compile(r"[A-Za-z0-9_]+")

_SEPARATOR = "/"


# ─── ResourceScope ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResourceScope:
    """Immutable hierarchical resource identifier.

    Fields:
        type:  ResourceType tag.
        path:  Zero or more segments below the root (keyspace, table, ...).

    Equality and hashing are structural, so scopes can be used directly as
    set members and mapping keys.
    """

    type: ResourceType
    path: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.path) > self.type.max_depth:
            raise ParseError(
                f"Resource '{self._render()}' is too deep: "
                f"'{self.type.value}' allows at most {self.type.max_depth} segment(s)"
            )
        for segment in self.path:
            if not segment or not _SEGMENT_RE.fullmatch(segment):
                raise ParseError(
                    f"Invalid segment '{segment}' in resource '{self._render()}'"
                )

    # ── Constructors ──────────────────────────────────────────────────────────

    @classmethod
    def parse(cls, text: str) -> "ResourceScope":
        """Parse canonical scope text (``type[/segment]*``).

        The type tag is matched case-insensitively; segments are kept as
        written.

        Raises:
            ParseError: empty text, unknown type tag, empty or illegal segment,
                        or more segments than the type allows.
        """
        if text is None or not text.strip():
            raise ParseError("Resource must not be empty")

        tag, *segments = text.strip().split(_SEPARATOR)
        resource_type = _TYPES_BY_TAG.get(tag.lower())
        if resource_type is None:
            raise ParseError(
                f"Unknown resource type '{tag}' in '{text}'. "
                f"Supported types: {sorted(_TYPES_BY_TAG)}"
            )
        return cls(resource_type, tuple(segments))

    @classmethod
    def root(cls, resource_type: ResourceType) -> "ResourceScope":
        """Return the root scope ("all of type T")."""
        return cls(resource_type)

    @classmethod
    def data(cls, keyspace: Optional[str] = None, table: Optional[str] = None) -> "ResourceScope":
        """Return ``data``, ``data/<keyspace>`` or ``data/<keyspace>/<table>``."""
        if keyspace is None:
            if table is not None:
                raise ParseError("A table scope requires a keyspace")
            return cls(ResourceType.DATA)
        if table is None:
            return cls(ResourceType.DATA, (keyspace,))
        return cls(ResourceType.DATA, (keyspace, table))

    # ── Hierarchy ─────────────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        """Canonical text form, stored verbatim in the whitelist."""
        return self._render()

    @property
    def depth(self) -> int:
        return len(self.path)

    @property
    def is_root(self) -> bool:
        return not self.path

    def parent(self) -> Optional["ResourceScope"]:
        """Return the next less specific scope, or None for a root."""
        if self.is_root:
            return None
        return ResourceScope(self.type, self.path[:-1])

    def ancestors(self) -> tuple["ResourceScope", ...]:
        """Return this scope followed by each ancestor up to the type root."""
        return tuple(
            ResourceScope(self.type, self.path[:length])
            for length in range(len(self.path), -1, -1)
        )

    def is_ancestor_of(self, other: "ResourceScope") -> bool:
        """True iff self appears in other.ancestors() (a scope is its own ancestor)."""
        return (
            self.type == other.type
            and len(self.path) <= len(other.path)
            and other.path[: len(self.path)] == self.path
        )

    def _render(self) -> str:
        return _SEPARATOR.join((self.type.value, *self.path))

    def __str__(self) -> str:
        return self._render()


# ─── Module-level helpers ─────────────────────────────────────────────────────


def parse_resource(text: str) -> ResourceScope:
    """Parse a single resource-scope text. See ResourceScope.parse()."""
    return ResourceScope.parse(text)


def ancestors_of(scope: ResourceScope) -> tuple[ResourceScope, ...]:
    """Scope itself then every ancestor, in strictly decreasing specificity."""
    return scope.ancestors()


def is_ancestor_of(ancestor: ResourceScope, scope: ResourceScope) -> bool:
    return ancestor.is_ancestor_of(scope)
