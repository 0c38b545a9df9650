"""Identity claims and the client-side view of the identity provider."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from jose import JWTError, jwt

from services.selection_cache import JsonFileStorage

logger = logging.getLogger(__name__)

TOKEN_KEY = "identityToken"


@dataclass(frozen=True)
class Identity:
    """An authenticated user as described by the provider's token claims."""

    subject: str
    email: str | None = None
    roles: frozenset[str] = frozenset()
    token: str | None = field(default=None, repr=False, compare=False)

    def has_role(self, role: str) -> bool:
        return role in self.roles


def identity_from_claims(claims: dict[str, Any], token: str | None = None) -> Identity:
    """Build an Identity; roles live under ``app_metadata.roles``."""
    app_metadata = claims.get("app_metadata") or {}
    roles = app_metadata.get("roles") or []
    return Identity(
        subject=str(claims.get("sub", "")),
        email=claims.get("email"),
        roles=frozenset(str(r) for r in roles),
        token=token,
    )


class IdentityWidget(Protocol):
    """The narrow capability the admin gate needs from the identity provider."""

    def current_user(self) -> Identity | None: ...

    def on_login(self, callback: Callable[[Identity], None]) -> Callable[[], None]: ...

    def on_logout(self, callback: Callable[[], None]) -> Callable[[], None]: ...


class StoredIdentity:
    """
    Identity widget backed by a bearer token kept in local storage.

    Tokens are issued elsewhere; claims are read without verifying the
    signature, which is the server's job.
    """

    def __init__(self, storage: JsonFileStorage):
        self.storage = storage
        self._login_listeners: list[Callable[[Identity], None]] = []
        self._logout_listeners: list[Callable[[], None]] = []

    def current_user(self) -> Identity | None:
        token = self.storage.get(TOKEN_KEY)
        if not token:
            return None
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError:
            logger.warning("Stored identity token is malformed, discarding it")
            self.storage.remove(TOKEN_KEY)
            return None
        expires = claims.get("exp")
        if isinstance(expires, (int, float)) and expires < time.time():
            logger.info("Stored identity token has expired")
            return None
        return identity_from_claims(claims, token=token)

    def on_login(self, callback: Callable[[Identity], None]) -> Callable[[], None]:
        self._login_listeners.append(callback)
        return lambda: self._discard(self._login_listeners, callback)

    def on_logout(self, callback: Callable[[], None]) -> Callable[[], None]:
        self._logout_listeners.append(callback)
        return lambda: self._discard(self._logout_listeners, callback)

    @staticmethod
    def _discard(listeners: list, callback: Callable) -> None:
        if callback in listeners:
            listeners.remove(callback)

    def login(self, token: str) -> Identity:
        """Store a token and notify login listeners."""
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            raise ValueError(f"Not a valid identity token: {e}") from e
        self.storage.set(TOKEN_KEY, token)
        identity = identity_from_claims(claims, token=token)
        logger.info(f"Logged in as {identity.email or identity.subject}")
        for callback in list(self._login_listeners):
            callback(identity)
        return identity

    def logout(self) -> None:
        self.storage.remove(TOKEN_KEY)
        logger.info("Logged out")
        for callback in list(self._logout_listeners):
            callback()
