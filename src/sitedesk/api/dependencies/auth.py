"""Admin authorization dependencies."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import APIKeyHeader

from src.sitedesk.core.config import get_settings

admin_key_header = APIKeyHeader(name="X-Admin-Key", auto_error=False)


async def require_admin_key(
    api_key: Annotated[str | None, Depends(admin_key_header)],
) -> None:
    """Require the X-Admin-Key header when an admin API key is configured.

    Without a configured key every request is allowed (local development).

    Raises:
        HTTPException: 401 if the key is missing or does not match.
    """
    expected = get_settings().admin_api_key
    if expected is None:
        return
    if api_key is None or not secrets.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin API key",
        )


AdminAccess = Depends(require_admin_key)
