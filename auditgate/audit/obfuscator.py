"""Secret obfuscation for audit operation text.

Statements such as

    CREATE ROLE bob WITH PASSWORD = 'secret' AND LOGIN = true

carry secrets as string literals. Before an entry is built, every password
literal is located and EVERY occurrence of that literal value in the text is
replaced with OBFUSCATION_MARKER — including occurrences outside the PASSWORD
clause (a secret repeated in a comment or another option is still a secret).
The marker has a fixed length so nothing about the secret leaks.

Prepared statements carry the secret as a bound value instead:

    CREATE ROLE bob WITH PASSWORD = ? AND LOGIN = true        ['secret']

find_bound_secrets() maps each bind marker (``?`` or ``:name``) to its
position in the bound values and returns the values bound to a PASSWORD
marker, so the appended values are masked too.

IMPORT RULES:
  - ``import re2`` ONLY — google-re2 (linear time on hostile statement text).
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

import re2  # google-re2 — NOT stdlib re

from auditgate.audit.models import render_bound_values
from auditgate.constants import OBFUSCATION_MARKER

# PASSWORD = '<literal>' with CQL '' escapes inside the literal.
_PASSWORD_LITERAL_RE = re2.compile(r"(?i)\bpassword\s*=\s*'((?:[^']|'')*)'")

# Bind markers outside string literals. Exactly one group matches:
#   pw      marker bound to a PASSWORD clause
#   marker  any other ``?`` or ``:name``
# String literals match without a group so markers inside them are skipped.
_BIND_MARKER_RE = re2.compile(
    r"(?i)'(?:[^']|'')*'"
    r"|\bpassword\s*=\s*(?P<pw>\?|:[a-z_][a-z0-9_]*)"
    r"|(?P<marker>\?|:[a-z_][a-z0-9_]*)"
)


class PasswordObfuscator:
    """Replaces secret literals with a fixed marker."""

    def __init__(self, marker: str = OBFUSCATION_MARKER) -> None:
        self._marker = marker

    def find_secrets(self, text: str) -> set[str]:
        """Return every non-empty password literal (raw and unescaped forms)."""
        secrets: set[str] = set()
        for match in _PASSWORD_LITERAL_RE.finditer(text):
            literal = match.group(1)
            if literal:
                secrets.add(literal)
                secrets.add(literal.replace("''", "'"))
        return secrets

    def find_bound_secrets(self, statement: str, bound_values: Sequence[Any]) -> set[str]:
        """Return the bound values of PASSWORD markers, as written and as rendered.

        A ``:name`` marker repeated in the statement binds the position of its
        first occurrence.
        """
        secrets: set[str] = set()
        positions: dict[str, int] = {}
        for match in _BIND_MARKER_RE.finditer(statement):
            marker = match.group("pw") or match.group("marker")
            if marker is None:
                continue
            if marker == "?":
                position = len(positions)
                positions[f"?{position}"] = position
            else:
                position = positions.setdefault(marker.lower(), len(positions))
            if match.group("pw") is None or position >= len(bound_values):
                continue
            value = bound_values[position]
            if value is None:
                continue
            if isinstance(value, str):
                secrets.add(value)
            # Rendered form, quotes stripped for strings so '' escapes match.
            rendered = render_bound_values([value])[1:-1]
            if isinstance(value, str):
                rendered = rendered[1:-1]
            secrets.add(rendered)
        return {secret for secret in secrets if secret}

    def obfuscate(self, text: str, secrets: Iterable[str] = ()) -> str:
        """Mask password literals found in ``text`` plus any caller-supplied secrets."""
        found = self.find_secrets(text) | {secret for secret in secrets if secret}
        # Longest first so a secret containing another is masked whole.
        for secret in sorted(found, key=len, reverse=True):
            text = text.replace(secret, self._marker)
        return text
