"""Bearer token verification for identity-provider issued tokens."""

import logging
from collections.abc import Callable, Coroutine
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import get_settings
from services.identity import Identity, identity_from_claims

logger = logging.getLogger(__name__)

settings = get_settings()
if not settings.identity_jwt_secret:
    raise ValueError("IDENTITY_JWT_SECRET must be set to verify identity tokens")

bearer_scheme = HTTPBearer(auto_error=False)


def create_identity_token(
    subject: str,
    email: str | None = None,
    roles: list[str] | None = None,
    expires_minutes: int = 60,
) -> str:
    """Mint a token in the identity provider's format (development and tests)."""
    claims: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "app_metadata": {"roles": roles or []},
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    if settings.identity_audience:
        claims["aud"] = settings.identity_audience
    return jwt.encode(claims, settings.identity_jwt_secret, algorithm=settings.identity_jwt_algorithm)


def decode_identity_token(token: str) -> Identity:
    """Verify a token's signature and expiry. Raises JWTError if invalid."""
    options = {"verify_aud": settings.identity_audience is not None}
    payload = jwt.decode(
        token,
        settings.identity_jwt_secret,
        algorithms=[settings.identity_jwt_algorithm],
        audience=settings.identity_audience,
        options=options,
    )
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return identity_from_claims(payload, token=token)


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity:
    """Dependency returning the caller's identity, or 401."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="You must be logged in to update rates.",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or credentials.scheme.lower() != "bearer":
        logger.warning("Unauthorized attempt to update rates: no bearer token")
        raise unauthorized
    try:
        return decode_identity_token(credentials.credentials)
    except JWTError as e:
        logger.warning(f"Unauthorized attempt to update rates: {e}")
        raise unauthorized


def require_role(role: str) -> Callable[..., Coroutine[Any, Any, Identity]]:
    """Build a dependency that requires the caller to hold ``role``."""

    async def dependency(
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        if not identity.has_role(role):
            logger.warning(
                f"Forbidden attempt to update rates: {identity.email or identity.subject} "
                f"does not have the {role} role"
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"You do not have permission to update rates. {role.capitalize()} access required.",
            )
        return identity

    return dependency


require_admin = require_role(settings.admin_role)
