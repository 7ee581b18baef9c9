"""Whitelist role-option parser.

Turns one administrative option entry, e.g.

    'grant_audit_whitelist_for_select' : 'data/ks/tbl, data/ks2'

into three independently validated parts: the verb (WhitelistOperation), the
target category (OperationCategory) and the resource set. Each step fails with
its own message so an operator sees which axis of the option is wrong.

Grammar (case-insensitive):
    key   := verb "_audit_whitelist_for_" category
    verb  := one of WhitelistOperation values
    value := resource ("," resource)*

The grammar is table driven: verbs and categories come from the enums in
whitelist/models.py.

IMPORT RULES:
  - ``import re2`` ONLY — google-re2 for the key grammar.
"""

from __future__ import annotations

import re2  # google-re2 — NOT stdlib re

from auditgate.constants import RESOURCE_SEPARATOR, WHITELIST_OPTION_INFIX
from auditgate.errors import InvalidRequestError, ParseError
from auditgate.resources.scope import ResourceScope
from auditgate.whitelist.models import OperationCategory, WhitelistOperation

_OPTION_KEY_RE = re2.compile(
    r"(?P<verb>[a-z]+)_" + WHITELIST_OPTION_INFIX + r"_(?P<category>[a-z]+)"
)

_VERBS: dict[str, WhitelistOperation] = {op.value: op for op in WhitelistOperation}

_CATEGORIES: dict[str, OperationCategory] = {
    category.option_suffix: category for category in OperationCategory
}


class WhitelistOptionParser:
    """Stateless parser for whitelist role options."""

    def parse_whitelist_operation(self, key: str) -> WhitelistOperation:
        """Return the verb of a whitelist option key.

        Raises:
            InvalidRequestError: key is not a whitelist option, or the verb is
                                 neither grant nor revoke.
        """
        verb, _ = _split_key(key)
        operation = _VERBS.get(verb)
        if operation is None:
            raise InvalidRequestError(
                f"Invalid whitelist operation '{verb}' in option '{key}'. "
                f"Supported operations: {sorted(_VERBS)}"
            )
        return operation

    def parse_target_operation(self, key: str) -> OperationCategory:
        """Return the operation category a whitelist option key targets.

        Raises:
            InvalidRequestError: key is not a whitelist option, or the category
                                 is not recognized.
        """
        _, category_text = _split_key(key)
        category = _CATEGORIES.get(category_text)
        if category is None:
            raise InvalidRequestError(
                f"Invalid whitelist category '{category_text}' in option '{key}'. "
                f"Supported categories: {sorted(_CATEGORIES)}"
            )
        return category

    def parse_resource(self, value: str) -> frozenset[ResourceScope]:
        """Parse a comma separated list of resource scopes.

        Surrounding whitespace is ignored; duplicates collapse.

        Raises:
            ParseError: empty value, empty element, or malformed resource.
        """
        if value is None or not value.strip():
            raise ParseError("Whitelist resource list must not be empty")

        resources: set[ResourceScope] = set()
        for item in value.split(RESOURCE_SEPARATOR):
            if not item.strip():
                raise ParseError(f"Empty resource in whitelist value '{value}'")
            resources.add(ResourceScope.parse(item))
        return frozenset(resources)


def _split_key(key: str) -> tuple[str, str]:
    """Split an option key into its raw (verb, category) texts."""
    match = _OPTION_KEY_RE.fullmatch(key.strip().lower()) if key else None
    if match is None:
        raise InvalidRequestError(
            f"Invalid whitelist option '{key}'. "
            f"Expected <grant|revoke>_{WHITELIST_OPTION_INFIX}_<category>"
        )
    return match.group("verb"), match.group("category")
