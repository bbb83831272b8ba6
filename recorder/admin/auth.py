"""
auth.py — HTTP Basic guard for the administrative surface.

Ingestion endpoints stay open (pages embedding the recorder cannot hold
credentials); listing, retrieval, the replay view and the admin landing
page all depend on require_admin.
"""
from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from recorder.config import settings

logger = logging.getLogger(__name__)

REALM = "Restricted"

# auto_error=False so a missing header gets the same 401 as a wrong password
_basic = HTTPBasic(realm=REALM, auto_error=False)


def credentials_match(username: str, password: str) -> bool:
    """Constant-time check of both fields; both are always compared."""
    user_ok = secrets.compare_digest(
        username.encode("utf-8"), settings.admin_username.encode("utf-8")
    )
    pass_ok = secrets.compare_digest(
        password.encode("utf-8"), settings.admin_password.encode("utf-8")
    )
    return user_ok and pass_ok


async def require_admin(
    credentials: HTTPBasicCredentials | None = Depends(_basic),
) -> str:
    """FastAPI dependency. Returns the admin username or raises a 401 challenge."""
    if credentials is None or not credentials_match(credentials.username, credentials.password):
        logger.warning("Rejected admin request: invalid or missing credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
        )
    return credentials.username
