"""Read-only access to the dashboard tables.

Thin wrapper around SQLAlchemy: one engine per database URL, ``SELECT *``
per table with a short retry loop, plus the status/connection checks the
UI shows before loading data.
"""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import Any, Callable, Dict, Optional, TypeVar

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRIES = 3
RETRY_DELAY_SECONDS = 1.0

# table -> ORDER BY column (database label)
TABLES: Dict[str, Optional[str]] = {
    "accounts": "ACCOUNT NAME",
    "centers": "CENTER NAME",
    "functions": "CN UNIQUE KEY",
    "services": "CENTER NAME",
    "prospects": "ACCOUNT NAME",
}


class DatabaseNotConfigured(RuntimeError):
    pass


class DataLoadError(RuntimeError):
    pass


# sqlite: "no such table"; Postgres: relation "x" does not exist
MISSING_TABLE_MARKERS = ("no such table", "does not exist", "undefinedtable")


def is_missing_table(exc: BaseException) -> bool:
    if not isinstance(exc, (OperationalError, ProgrammingError)):
        return False
    message = str(exc).lower()
    return any(marker in message for marker in MISSING_TABLE_MARKERS)


@lru_cache(maxsize=4)
def _engine_for(url: str) -> Engine:
    return create_engine(url, pool_pre_ping=True)


def get_engine(settings: Optional[Settings] = None) -> Engine:
    settings = settings or get_settings()
    if not settings.database_url:
        raise DatabaseNotConfigured("DATABASE_URL environment variable is not configured")
    return _engine_for(settings.database_url)


def with_retry(fn: Callable[[], T], *, retries: int = RETRIES, delay: float = RETRY_DELAY_SECONDS, sleep: Callable[[float], None] = time.sleep) -> T:
    """Call ``fn`` up to ``retries`` times, doubling the wait after each failure.

    A missing table is not retried.
    """
    for attempt in range(retries):
        try:
            return fn()
        except SQLAlchemyError as exc:
            logger.warning("Attempt %d/%d failed: %s", attempt + 1, retries, exc)
            if attempt == retries - 1 or is_missing_table(exc):
                raise
            sleep(delay * (2 ** attempt))
    raise DataLoadError("Max retries reached")


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def fetch_table(engine: Engine, table: str, order_by: Optional[str] = None, **retry_kwargs: Any) -> pd.DataFrame:
    sql = f"SELECT * FROM {_quote(table)}"
    if order_by:
        sql += f" ORDER BY {_quote(order_by)}"
    logger.debug("Fetching %s", table)

    def _run() -> pd.DataFrame:
        # pd.read_sql rewraps SQLAlchemy errors as pandas.errors.DatabaseError
        with engine.connect() as conn:
            result = conn.execute(text(sql))
            return pd.DataFrame(result.fetchall(), columns=list(result.keys()))

    try:
        df = with_retry(_run, **retry_kwargs)
    except SQLAlchemyError as exc:
        logger.error("Fetching %s failed: %s", table, exc)
        raise DataLoadError(f"Failed to load {table}: {exc}") from exc
    logger.info("Fetched %d rows from %s", len(df), table)
    return df


def fetch_all_tables(engine: Engine, **retry_kwargs: Any) -> Dict[str, pd.DataFrame]:
    out: Dict[str, pd.DataFrame] = {}
    for table, order_by in TABLES.items():
        try:
            out[table] = fetch_table(engine, table, order_by, **retry_kwargs)
        except DataLoadError:
            # A missing optional table (prospects) must not take the dashboard down.
            if table == "prospects":
                logger.warning("Prospects table unavailable; continuing without it")
                out[table] = pd.DataFrame()
                continue
            raise
    return out


def check_connection(settings: Optional[Settings] = None) -> Dict[str, Any]:
    settings = settings or get_settings()
    if not settings.database_url:
        return {"success": False, "message": "DATABASE_URL environment variable is not configured"}
    try:
        engine = get_engine(settings)
        with_retry(lambda: _select_one(engine))
    except SQLAlchemyError as exc:
        logger.error("Database connection test failed: %s", exc)
        return {"success": False, "message": f"Connection failed: {exc}"}
    return {"success": True, "message": "Database connection successful"}


def _select_one(engine: Engine) -> Any:
    with engine.connect() as conn:
        return conn.execute(text("SELECT 1")).scalar()


def database_status(settings: Optional[Settings] = None, *, cache_size: int = 0) -> Dict[str, Any]:
    settings = settings or get_settings()
    has_connection = False
    error = None
    if settings.database_url:
        try:
            get_engine(settings)
            has_connection = True
        except (SQLAlchemyError, ImportError, ValueError) as exc:
            error = str(exc)
    status: Dict[str, Any] = {
        "has_url": bool(settings.database_url),
        "has_connection": has_connection,
        "url_length": len(settings.database_url or ""),
        "environment": settings.environment,
        "cache_size": cache_size,
    }
    if error:
        status["error"] = error
    return status
