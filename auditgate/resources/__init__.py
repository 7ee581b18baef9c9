"""auditgate resource scopes.

Public API:
    ResourceType   — type tag enumeration (data, roles, functions, connections)
    ResourceScope  — immutable hierarchical identifier
    parse_resource / ancestors_of / is_ancestor_of — functional helpers
"""
from auditgate.resources.scope import (
    ResourceScope,
    ResourceType,
    ancestors_of,
    is_ancestor_of,
    parse_resource,
)

__all__ = [
    "ResourceScope",
    "ResourceType",
    "ancestors_of",
    "is_ancestor_of",
    "parse_resource",
]
