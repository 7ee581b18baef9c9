"""Authenticator decorator that audits SASL logins.

AuditAuthenticator wraps the server's real authenticator. Every negotiator it
hands out is wrapped in an AuditSaslNegotiator, which

  1. decodes the claimed login name from the client response BEFORE the
     wrapped negotiator sees it (a malformed payload raises
     AuthenticationError here, after a FAILED entry and without an ATTEMPT), and
  2. when the server asks for the authenticated user, emits ATTEMPT, lets the
     wrapped negotiator decide, then emits SUCCEEDED or FAILED with the same
     timestamp.

The wrapped authenticator's decision is never altered: its user is returned
as-is and its exceptions propagate unchanged after the FAILED entry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

from auditgate.audit.models import Status
from auditgate.auth.credentials import AuthenticationError, decode_username_from_sasl
from auditgate.auth.principal import Principal
from auditgate.utils.logger import clear_client_address, get_logger, set_client_address

if TYPE_CHECKING:
    from auditgate.audit.adapter import AuditAdapter

logger = get_logger(__name__)


# ─── Wrapped interfaces ───────────────────────────────────────────────────────


class SaslNegotiator(Protocol):
    async def evaluate_response(self, client_response: bytes) -> bytes:
        ...

    def is_complete(self) -> bool:
        ...

    async def get_authenticated_user(self) -> Principal:
        ...


class Authenticator(Protocol):
    def require_authentication(self) -> bool:
        ...

    async def setup(self) -> None:
        ...

    def new_sasl_negotiator(self, client_address: str) -> SaslNegotiator:
        ...


# ─── Decorators ───────────────────────────────────────────────────────────────


class AuditAuthenticator:
    """Authenticator that audits every negotiation of the wrapped one."""

    def __init__(self, wrapped: Authenticator, adapter: "AuditAdapter") -> None:
        self._wrapped = wrapped
        self._adapter = adapter

    def require_authentication(self) -> bool:
        return self._wrapped.require_authentication()

    async def setup(self) -> None:
        """Set up the wrapped authenticator, then the audit layer's storage."""
        await self._wrapped.setup()
        await self._adapter.setup()

    def new_sasl_negotiator(self, client_address: str) -> "AuditSaslNegotiator":
        return AuditSaslNegotiator(
            self._wrapped.new_sasl_negotiator(client_address),
            self._adapter,
            client_address,
        )


class AuditSaslNegotiator:
    """Negotiator that records the login attempt and its outcome."""

    def __init__(
        self,
        wrapped: SaslNegotiator,
        adapter: "AuditAdapter",
        client_address: str,
    ) -> None:
        self._wrapped = wrapped
        self._adapter = adapter
        self._client_address = client_address
        self._username: Optional[str] = None

    @property
    def username(self) -> Optional[str]:
        """Login name claimed in the last client response, if any."""
        return self._username

    async def evaluate_response(self, client_response: bytes) -> bytes:
        """Capture the claimed login name, then delegate.

        A response without an identity fails the negotiation on the spot: a
        FAILED entry (user ``<unknown>``) is emitted, no ATTEMPT, and the
        wrapped negotiator never sees the payload.

        Raises:
            AuthenticationError: the response carries no authentication identity.
        """
        try:
            self._username = decode_username_from_sasl(client_response)
        except AuthenticationError:
            await self._adapter.audit_auth(
                self._client_address, None, Status.FAILED, self._adapter.timestamp()
            )
            raise
        return await self._wrapped.evaluate_response(client_response)

    def is_complete(self) -> bool:
        return self._wrapped.is_complete()

    async def get_authenticated_user(self) -> Principal:
        timestamp = self._adapter.timestamp()
        set_client_address(self._client_address)
        try:
            await self._adapter.audit_auth(
                self._client_address, self._username, Status.ATTEMPT, timestamp
            )
            try:
                user = await self._wrapped.get_authenticated_user()
            except Exception as exc:
                logger.info(
                    "authentication_failed",
                    user=self._username,
                    exc_type=type(exc).__name__,
                )
                await self._adapter.audit_auth(
                    self._client_address, self._username, Status.FAILED, timestamp
                )
                raise
            await self._adapter.audit_auth(
                self._client_address, self._username, Status.SUCCEEDED, timestamp
            )
            return user
        finally:
            clear_client_address()
