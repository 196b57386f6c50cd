"""Request dependencies: database session and the authenticated student."""

from typing import Annotated

import jwt
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from examprep.core.app_exceptions import AccessDenied, Unauthorized
from examprep.core.logging import get_logger
from examprep.core.security import decode_access_token
from examprep.db.session import get_db
from examprep.models.user import User

logger = get_logger(__name__)


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    db: Session = Depends(get_db),
) -> User:
    """Dependency to get the current authenticated user from JWT token."""
    if not authorization:
        raise Unauthorized("Authorization header missing")

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid authorization scheme")
    except ValueError:
        raise Unauthorized("Invalid authorization header format. Expected: Bearer <token>") from None

    try:
        claims = decode_access_token(token)
    except jwt.InvalidTokenError as e:
        logger.info("auth_token_rejected", extra={"reason": str(e)})
        raise Unauthorized("Invalid or expired token") from e

    user = db.get(User, claims.user_id)
    if not user:
        raise Unauthorized("User not found")

    if not user.is_active:
        raise AccessDenied("User account is inactive")

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
DbSession = Annotated[Session, Depends(get_db)]
