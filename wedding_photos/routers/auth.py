"""
Authentication router for passwordless sign-in.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_photos.config import get_settings
from wedding_photos.database import get_db
from wedding_photos.dependencies.auth import get_current_active_user
from wedding_photos.middlewares.rate_limit_middleware import get_rate_limit_decorator
from wedding_photos.models.user import User
from wedding_photos.schemas.user import (
    MagicLinkRequest,
    MagicLinkResponse,
    Token,
    UserResponse,
    VerifyMagicLinkRequest,
)
from wedding_photos.services.auth import AuthService
from wedding_photos.utils.logger import log_info, log_warning

router = APIRouter(prefix="/auth", tags=["Authentication"])

settings = get_settings()

magic_link_rate_limit = get_rate_limit_decorator(settings.magic_link_rate_limit)


@router.post(
    "/magic-link",
    response_model=MagicLinkResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request a sign-in link",
)
@magic_link_rate_limit
async def request_magic_link(
    request: Request,
    body: MagicLinkRequest,
    db: AsyncSession = Depends(get_db),
) -> MagicLinkResponse:
    """
    Issue a single-use sign-in link for an email address.

    - **email**: where the link is sent
    - **displayName**: optional name shown in the album title on first sign-in

    The response is the same whether or not the address has an account. In
    DEV the link is also returned in the body so it can be used without a
    mail server.
    """
    link = AuthService(db).issue_magic_link(body.email, body.display_name)
    # TODO: hand the link to a mail sender once one is configured for PRODUCTION
    return MagicLinkResponse(
        expires_in_minutes=settings.magic_link_expire_minutes,
        magic_link=link if settings.is_dev else None,
    )


@router.post(
    "/verify",
    response_model=Token,
    summary="Exchange a sign-in link token for an access token",
)
async def verify_magic_link(
    body: VerifyMagicLinkRequest,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """
    Redeem the token from a sign-in link.

    The account is created on first use. Each link works once.

    Returns a JWT that should be included in the Authorization header
    as `Bearer <token>` for authenticated endpoints.
    """
    try:
        token = await AuthService(db).verify_magic_link(body.token)
    except ValueError as e:
        log_warning("Magic link rejected", event="user_login", error_message=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    await db.commit()
    log_info("User login successful", event="user_login")
    return token


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user profile",
)
async def get_me(
    current_user: User = Depends(get_current_active_user),
) -> UserResponse:
    """
    Get the current authenticated user's profile.

    Requires authentication via Bearer token.
    """
    return UserResponse.model_validate(current_user)
