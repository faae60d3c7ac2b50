from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from core.config import get_settings

logger = logging.getLogger(__name__)

security = HTTPBasic(auto_error=False, realm="Secure Area")

_warned = False


def require_basic_auth(credentials: Optional[HTTPBasicCredentials] = Depends(security)) -> Optional[str]:
    """Gate every route behind the static username/password pair, when one is configured."""
    global _warned
    settings = get_settings()
    if not settings.auth_enabled:
        if not _warned:
            logger.warning("BASIC_AUTH_USERNAME/BASIC_AUTH_PASSWORD not set; API is unauthenticated")
            _warned = True
        return None
    if credentials is None or not settings.credentials_match(credentials.username, credentials.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": 'Basic realm="Secure Area"'},
        )
    return credentials.username
