"""
Authentication service for passwordless (magic link) sign-in.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.config import get_settings
from wedding_photos.database import utcnow
from wedding_photos.models.user import User
from wedding_photos.schemas.user import Token
from wedding_photos.utils.logger import log_error, log_info
from wedding_photos.utils.prometheus_metrics import magic_link_requests_total
from wedding_photos.utils.security import (
    MAGIC_LINK_PURPOSE,
    create_access_token,
    create_magic_link_token,
    decode_token,
)


class AuthService:
    """
    Service for handling user authentication.
    Issues and redeems magic links; accounts are created on first sign-in.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    def issue_magic_link(self, email: str, display_name: Optional[str] = None) -> str:
        """
        Build a sign-in link for an email address.

        Args:
            email: address to sign in
            display_name: name stored when the account is first created

        Returns:
            Link to the front-end confirm page carrying the token
        """
        token = create_magic_link_token(email, display_name)
        magic_link_requests_total.labels(operation="issue", result="success").inc()
        # The address itself is not logged
        log_info("Magic link issued", event="auth", has_display_name=bool(display_name))
        return f"{self.settings.magic_link_base_url}?token={token}"

    async def verify_magic_link(self, token: str) -> Token:
        """
        Redeem a magic link token for an access token.

        Args:
            token: token from the magic link

        Returns:
            Token with a Bearer access token

        Raises:
            ValueError: If the token is invalid, expired, already used, or the
                account is inactive
        """
        payload = decode_token(token, MAGIC_LINK_PURPOSE)
        if payload is None:
            self._reject("invalid_or_expired")
            raise ValueError("Invalid or expired sign-in link")

        email = payload.sub.lower()
        user = await self.get_user_by_email(email)
        if user is None:
            user = User(email=email, display_name=payload.display_name)
            self.db.add(user)
            await self.db.flush()
            log_info("User created", event="auth", user_id=user.id)
        else:
            if not user.is_active:
                self._reject("inactive", user_id=user.id)
                raise ValueError("Account is disabled")
            # iat has second resolution; last_login_at is stored truncated to match
            if user.last_login_at is not None and payload.iat <= user.last_login_at:
                self._reject("already_used", user_id=user.id)
                raise ValueError("Sign-in link has already been used")

        user.last_login_at = utcnow().replace(microsecond=0)
        await self.db.flush()

        magic_link_requests_total.labels(operation="verify", result="success").inc()
        log_info("Login", event="auth", user_id=user.id)
        return Token(access_token=create_access_token(user.id))

    def _reject(self, reason: str, **context) -> None:
        magic_link_requests_total.labels(operation="verify", result="failure").inc()
        log_error("Login failed", event="auth", reason=reason, **context)

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        """
        Get user by ID.

        Args:
            user_id: User ID

        Returns:
            User if found, None otherwise
        """
        result = await self.db.execute(
            select(User).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        result = await self.db.execute(
            select(User).where(User.email == email.lower())
        )
        return result.scalar_one_or_none()
