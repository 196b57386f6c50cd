"""Bearer token handling.

Tokens are minted by the external identity provider; this service only needs
the subject (user id) and role. ``create_access_token`` mirrors the provider's
format so tests and the demo seed script can mint compatible tokens.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import jwt

from examprep.core.config import settings


@dataclass(frozen=True)
class AccessClaims:
    user_id: UUID
    role: str


def _secret() -> str:
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET must be set")
    return settings.JWT_SECRET


def create_access_token(user_id: UUID | str, role: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "jti": str(uuid4()),
        "type": "access",
    }
    return jwt.encode(payload, _secret(), algorithm=settings.JWT_ALG)


def decode_access_token(token: str) -> AccessClaims:
    """
    Verify signature and expiry and return the claims this service uses.

    Raises:
        jwt.InvalidTokenError: expired, tampered, wrong type or malformed subject
    """
    try:
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[settings.JWT_ALG],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise jwt.InvalidTokenError("Token has expired") from None

    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Token is not an access token")
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise jwt.InvalidTokenError("Token subject is not a user id") from None
    return AccessClaims(user_id=user_id, role=payload.get("role", ""))
