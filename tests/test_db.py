import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, ProgrammingError, SQLAlchemyError

from core.config import Settings
from core.data import cache_size, clear_cache, load_dashboard_data
from core.db import (
    DataLoadError,
    DatabaseNotConfigured,
    check_connection,
    database_status,
    fetch_all_tables,
    fetch_table,
    get_engine,
    is_missing_table,
    with_retry,
)


def test_with_retry_backs_off_exponentially():
    calls = []
    delays = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise SQLAlchemyError("temporarily unavailable")
        return "ok"

    assert with_retry(flaky, sleep=delays.append) == "ok"
    assert delays == [1.0, 2.0]


def test_with_retry_gives_up():
    delays = []

    def broken():
        raise SQLAlchemyError("down")

    with pytest.raises(SQLAlchemyError):
        with_retry(broken, retries=3, sleep=delays.append)
    assert delays == [1.0, 2.0]


def test_get_engine_requires_url():
    with pytest.raises(DatabaseNotConfigured):
        get_engine(Settings())


def test_fetch_table_orders_rows(sqlite_url):
    engine = create_engine(sqlite_url)
    df = fetch_table(engine, "accounts", "ACCOUNT NAME")
    assert df["ACCOUNT NAME"].tolist() == ["Acme Corp", "Beta Ltd", "Delta LLC", "Gamma Inc"]
    delays = []
    with pytest.raises(DataLoadError):
        fetch_table(engine, "no_such_table", sleep=delays.append)
    assert delays == []


class _FlakyEngine:
    """Fails the first connect, then delegates to a real engine."""

    def __init__(self, engine):
        self.engine = engine
        self.attempts = 0

    def connect(self):
        self.attempts += 1
        if self.attempts == 1:
            raise OperationalError("SELECT 1", {}, Exception("connection reset"))
        return self.engine.connect()


def test_fetch_table_retries_transient_errors(sqlite_url):
    engine = _FlakyEngine(create_engine(sqlite_url))
    delays = []
    df = fetch_table(engine, "centers", "CENTER NAME", sleep=delays.append)
    assert len(df) == 5
    assert delays == [1.0]


def test_missing_table_errors_are_recognised():
    assert is_missing_table(OperationalError("SELECT", {}, Exception("no such table: prospects")))
    assert is_missing_table(ProgrammingError("SELECT", {}, Exception('relation "prospects" does not exist')))
    assert not is_missing_table(OperationalError("SELECT", {}, Exception("connection reset")))
    assert not is_missing_table(SQLAlchemyError("no such table"))


def test_missing_prospects_table_is_tolerated(tmp_path, raw_tables):
    engine = create_engine(f"sqlite:///{tmp_path / 'partial.sqlite'}")
    for name in ("accounts", "centers", "functions", "services"):
        raw_tables[name].to_sql(name, engine, index=False)
    delays = []
    tables = fetch_all_tables(engine, sleep=delays.append)
    assert tables["prospects"].empty
    assert delays == []
    assert len(tables["centers"]) == 5


def test_check_connection_and_status(sqlite_url):
    assert check_connection(Settings())["success"] is False
    assert check_connection(Settings(database_url=sqlite_url)) == {
        "success": True,
        "message": "Database connection successful",
    }
    status = database_status(Settings(database_url=sqlite_url, environment="test"), cache_size=2)
    assert status["has_url"] and status["has_connection"]
    assert status["url_length"] == len(sqlite_url)
    assert status["environment"] == "test"
    assert status["cache_size"] == 2


def test_load_dashboard_data_is_cached(sqlite_url):
    settings = Settings(database_url=sqlite_url)
    first = load_dashboard_data(settings)
    assert first["row_counts"] == {"accounts": 4, "centers": 5, "functions": 6, "services": 5, "prospects": 4}
    assert load_dashboard_data(settings) is first
    assert cache_size() == 1
    clear_cache()
    assert cache_size() == 0


def test_load_dashboard_data_requires_url():
    with pytest.raises(DatabaseNotConfigured):
        load_dashboard_data(Settings())


def test_empty_database_is_an_error(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.sqlite'}")
    for name in ("accounts", "centers", "functions", "services", "prospects"):
        pd.DataFrame({"X": []}).to_sql(name, engine, index=False)
    with pytest.raises(DataLoadError):
        load_dashboard_data(Settings(database_url=str(engine.url)))
