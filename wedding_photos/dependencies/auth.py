"""
Bearer-token dependencies: who is calling.

Every gallery and upload endpoint requires a signed-in guest. There is no
anonymous fallback.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.database import get_db
from wedding_photos.models.user import User
from wedding_photos.services.auth import AuthService
from wedding_photos.utils.security import decode_access_token

logger = logging.getLogger("wedding_photos.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(reason: str, **context) -> HTTPException:
    logger.warning("Auth failed", extra={"event": "auth", "reason": reason, **context})
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the access token to a stored user.

    Raises:
        HTTPException: 401 when the token is missing, invalid, expired, is a
            sign-in link token, or names an unknown user
    """
    if credentials is None:
        raise _unauthorized("no_token")

    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("invalid_or_expired_token")

    if not claims.sub.isdigit():
        raise _unauthorized("bad_subject")
    user_id = int(claims.sub)

    user = await AuthService(db).get_user_by_id(user_id)
    if user is None:
        raise _unauthorized("user_not_found", user_id=user_id)
    return user


async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """The caller, provided the account has not been disabled (403 otherwise)."""
    if not user.is_active:
        logger.warning(
            "Inactive user rejected",
            extra={"event": "auth", "reason": "inactive", "user_id": user.id},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    return user
