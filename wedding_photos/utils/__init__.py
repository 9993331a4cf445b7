"""
Utility functions package.
"""
from wedding_photos.utils.security import (
    create_access_token,
    create_magic_link_token,
    decode_access_token,
    decode_token,
)

__all__ = [
    "create_access_token",
    "create_magic_link_token",
    "decode_access_token",
    "decode_token",
]
