from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    basic_auth_username: Optional[str] = None
    basic_auth_password: Optional[str] = None
    mapbox_token: Optional[str] = None
    cache_ttl_seconds: int = 300
    items_per_page: int = 50
    log_level: str = "INFO"
    environment: str = "development"

    @property
    def auth_enabled(self) -> bool:
        return bool(self.basic_auth_username and self.basic_auth_password)

    def credentials_match(self, username: Optional[str], password: Optional[str]) -> bool:
        if not self.auth_enabled:
            return True
        user_ok = secrets.compare_digest((username or "").encode(), (self.basic_auth_username or "").encode())
        pass_ok = secrets.compare_digest((password or "").encode(), (self.basic_auth_password or "").encode())
        return user_ok and pass_ok


def get_settings() -> Settings:
    """Read settings from the environment on every call so tests can patch it."""
    return Settings(
        database_url=_env_str("DATABASE_URL"),
        basic_auth_username=_env_str("BASIC_AUTH_USERNAME"),
        basic_auth_password=_env_str("BASIC_AUTH_PASSWORD"),
        mapbox_token=_env_str("MAPBOX_TOKEN"),
        cache_ttl_seconds=max(1, _env_int("CACHE_TTL_SECONDS", 300)),
        items_per_page=max(1, _env_int("ITEMS_PER_PAGE", 50)),
        log_level=_env_str("LOG_LEVEL") or "INFO",
        environment=_env_str("APP_ENV") or "development",
    )
