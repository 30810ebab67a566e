"""
API authentication.

Admin endpoints use the X-API-KEY header; the scheduled trigger uses a
shared secret in ``Authorization: Bearer <secret>``.
"""

import hmac

from fastapi import Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from src.config.settings import get_settings

# API key header scheme
api_key_header = APIKeyHeader(name="X-API-KEY", auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str:
    """
    Verify API key from X-API-KEY header.

    Args:
        api_key: API key from header

    Returns:
        The validated API key

    Raises:
        HTTPException: If API key is missing or invalid
    """
    settings = get_settings()

    # If no API keys configured, allow all requests (dev mode)
    if not settings.api_keys:
        return "dev-mode"

    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide X-API-KEY header.",
        )

    # Check if key is in the list of valid keys (filter out empty strings)
    valid_keys = [k.strip() for k in settings.api_keys.split(",") if k.strip()]
    if not valid_keys or api_key not in valid_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return api_key


async def verify_cron_secret(authorization: str | None = Header(default=None)) -> None:
    """
    Verify the scheduler's bearer token against CRON_SECRET.

    Unlike the admin keys there is no dev mode: with no secret configured
    the scheduled trigger is closed.

    Raises:
        HTTPException: 401 if the secret is unset, missing, or wrong
    """
    secret = get_settings().cron_secret
    expected = f"Bearer {secret}" if secret else None

    if expected is None or authorization is None or not hmac.compare_digest(
        authorization.encode(), expected.encode(),
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
