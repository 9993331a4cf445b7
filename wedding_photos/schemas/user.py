"""
User and sign-in schemas.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from wedding_photos.schemas.base import CamelModel


class MagicLinkRequest(CamelModel):
    email: EmailStr
    display_name: Optional[str] = Field(None, max_length=100)


class MagicLinkResponse(CamelModel):
    message: str = "If the address is valid, a sign-in link has been sent"
    expires_in_minutes: int
    # Only populated in DEV so the link can be used without a mail server
    magic_link: Optional[str] = None


class VerifyMagicLinkRequest(CamelModel):
    token: str


class Token(CamelModel):
    access_token: str
    token_type: str = "bearer"


class UserResponse(CamelModel):
    id: int
    email: EmailStr
    display_name: Optional[str] = None
    is_active: bool
    created_at: datetime


class TokenPayload(BaseModel):
    """Decoded JWT claims."""

    sub: str
    purpose: str
    exp: datetime
    iat: datetime
    display_name: Optional[str] = None
