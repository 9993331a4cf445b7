"""
JWT helpers for passwordless sign-in.

Two token kinds share one signing key and are told apart by the "purpose"
claim: short-lived magic-link tokens mailed to the user, and access tokens
used as Bearer credentials.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from wedding_photos.config import get_settings
from wedding_photos.schemas.user import TokenPayload

settings = get_settings()

ACCESS_PURPOSE = "access"
MAGIC_LINK_PURPOSE = "magic_link"


def _encode(claims: dict, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        **claims,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def create_access_token(
    user_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a JWT access token.

    Args:
        user_id: User ID to encode in the token
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    # JWT subject must be a string
    return _encode({"sub": str(user_id), "purpose": ACCESS_PURPOSE}, expires_delta)


def create_magic_link_token(email: str, display_name: Optional[str] = None) -> str:
    """
    Create a sign-in token for an email address.

    Args:
        email: address the link is sent to; becomes the subject
        display_name: optional name applied when the account is first created

    Returns:
        Encoded JWT token string
    """
    claims = {"sub": email.lower(), "purpose": MAGIC_LINK_PURPOSE}
    if display_name:
        claims["display_name"] = display_name
    return _encode(claims, timedelta(minutes=settings.magic_link_expire_minutes))


def decode_token(token: str, purpose: str) -> Optional[TokenPayload]:
    """
    Decode and validate a JWT of the given purpose.

    Args:
        token: JWT token string
        purpose: expected "purpose" claim

    Returns:
        TokenPayload with naive UTC datetimes if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None

    if payload.get("purpose") != purpose or payload.get("sub") is None:
        return None
    if payload.get("iat") is None or payload.get("exp") is None:
        return None

    try:
        return TokenPayload(
            sub=str(payload["sub"]),
            purpose=purpose,
            exp=datetime.fromtimestamp(payload["exp"], timezone.utc).replace(tzinfo=None),
            iat=datetime.fromtimestamp(payload["iat"], timezone.utc).replace(tzinfo=None),
            display_name=payload.get("display_name"),
        )
    except (TypeError, ValueError, ValidationError):
        return None


def decode_access_token(token: str) -> Optional[TokenPayload]:
    """Decode a Bearer access token; None if invalid, expired or of another purpose."""
    return decode_token(token, ACCESS_PURPOSE)
