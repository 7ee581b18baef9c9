"""Claimed-identity extraction from SASL PLAIN responses.

The client's initial response has the layout

    [authzid] NUL authcid NUL passwd

The audit layer needs the authcid (the login name) before the wrapped
authenticator has decided whether the password is correct, so that ATTEMPT
and FAILED entries can name who tried. The payload is scanned from the end:
the last NUL marks the start of the password, the one before it the start of
the identity. The password bytes are never decoded, logged or returned.
"""

from __future__ import annotations

_NUL = 0


class AuthenticationError(Exception):
    """Raised when credentials cannot be decoded or authentication fails."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)
        self.message = message


def decode_username_from_sasl(payload: bytes) -> str:
    """Return the authentication identity embedded in a SASL PLAIN payload.

    Raises:
        AuthenticationError: fewer than two NUL separators (identity missing).
    """
    password_consumed = False
    end = len(payload)
    for index in range(len(payload) - 1, -1, -1):
        if payload[index] != _NUL:
            continue
        if password_consumed:
            return payload[index + 1:end].decode("utf-8", errors="replace")
        password_consumed = True
        end = index
    raise AuthenticationError("Authentication ID must not be null")
