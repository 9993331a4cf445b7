"""
Startup configuration validation.

Runs in PRODUCTION only; any error aborts startup.
"""
import logging
from typing import List, Tuple

from sqlalchemy import text

from wedding_photos.config import DEFAULT_DATABASE_URL, Settings, get_settings
from wedding_photos.database import engine

logger = logging.getLogger("wedding_photos.config_validator")

_DEFAULT_JWT_SECRET = "jwt-secret-change-in-production"


async def validate_all_config() -> Tuple[bool, List[str]]:
    """
    Validate settings and connectivity.

    Returns:
        (ok, errors) where errors lists every problem found
    """
    settings = get_settings()
    logger.info("Starting configuration validation", extra={"event": "config"})

    errors: List[str] = []
    errors.extend(_validate_database_config(settings))
    errors.extend(_validate_security_config(settings))
    errors.extend(_validate_media_library_config(settings))

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection: OK", extra={"event": "config"})
    except Exception as e:
        error_msg = f"Database connection failed: {e}"
        errors.append(error_msg)
        logger.error(error_msg, extra={"event": "config"}, exc_info=True)

    if errors:
        logger.error(
            "Configuration validation failed",
            extra={"event": "config", "errors": errors},
        )
    else:
        logger.info("Configuration validation completed successfully", extra={"event": "config"})
    return not errors, errors


def _validate_database_config(settings: Settings) -> List[str]:
    if settings.database_url == DEFAULT_DATABASE_URL:
        logger.warning(
            "DATABASE_URL not set, using local SQLite file",
            extra={"event": "config"},
        )
    return []


def _validate_security_config(settings: Settings) -> List[str]:
    errors: List[str] = []
    if settings.jwt_secret_key == _DEFAULT_JWT_SECRET or len(settings.jwt_secret_key) < 32:
        errors.append("JWT_SECRET_KEY must be set to a random value of at least 32 characters")
    if not settings.magic_link_base_url.startswith("https://"):
        errors.append("MAGIC_LINK_BASE_URL must be an https:// URL")
    return errors


def _validate_media_library_config(settings: Settings) -> List[str]:
    """Google Photos credentials are required; uploads cannot work without them."""
    errors: List[str] = []
    if not settings.google_client_id:
        errors.append("GOOGLE_CLIENT_ID is required")
    if not settings.google_client_secret:
        errors.append("GOOGLE_CLIENT_SECRET is required")
    if not settings.google_refresh_token:
        errors.append("GOOGLE_REFRESH_TOKEN is required")

    if not errors:
        logger.info("Media library configuration: OK", extra={"event": "config"})
    return errors
