from pathlib import Path
from typing import Dict

import pandas as pd
import pytest
from sqlalchemy import create_engine

from core.data import build_data_context, clear_cache


def _raw_tables() -> Dict[str, pd.DataFrame]:
    accounts = pd.DataFrame(
        [
            ["Acme Corp", "USA", "Americas", "Tech", "Software", "Enterprise", "MNC", "Member", "10000+", "1000+", "1,500", "New York"],
            ["Beta Ltd", "UK", "EMEA", "Finance", "Banking", "Enterprise", "MNC", "Non-Member", "5000-10000", "500-1000", 800, "London"],
            ["Gamma Inc", "USA", "Americas", "Tech", "Hardware", "Mid-Market", "Startup", "Member", "1000-5000", "100-500", None, ""],
            ["Delta LLC", "India", "APAC", "Health", "Pharma", "Mid-Market", "Domestic", "Non-Member", "100-1000", "0-100", 200, "Delhi"],
        ],
        columns=[
            "ACCOUNT NAME",
            "ACCOUNT COUNTRY",
            "ACCOUNT REGION",
            "ACCOUNT INDUSTRY",
            "ACCOUNT SUB INDUSTRY",
            "ACCOUNT PRIMARY CATEGORY",
            "ACCOUNT PRIMARY NATURE",
            "ACCOUNT NASSCOM STATUS",
            "ACCOUNT EMPLOYEES RANGE",
            "ACCOUNT CENTER EMPLOYEES",
            "ACCOUNT REVNUE",
            "ACCOUNT CITY",
        ],
    )
    centers = pd.DataFrame(
        [
            ["Acme Corp", "C1", "Acme Bangalore", "GCC", "IT", "Bangalore", "Karnataka", "India", "500-1000", "Active Center", 12.97, 77.59],
            ["Acme Corp", "C2", "Acme Pune", "GCC", "IT", "Pune", "Maharashtra", "India", "100-500", "Upcoming", 18.52, 73.85],
            ["Beta Ltd", "C3", "Beta Chennai", "Captive", "Finance", "Chennai", "Tamil Nadu", "India", "500-1000", "Active Center", 13.08, 80.27],
            ["Gamma Inc", "C4", "Gamma Hyderabad", "GCC", "R&D", "Hyderabad", "Telangana", "India", "100-500", "Non Operational", None, None],
            ["Beta Ltd", "C5", "Beta Bangalore", "Captive", "Operations", "Bangalore", "Karnataka", "India", "100-500", "Active Center", 12.98, 77.60],
        ],
        columns=[
            "ACCOUNT NAME",
            "CN UNIQUE KEY",
            "CENTER NAME",
            "CENTER TYPE",
            "CENTER FOCUS",
            "CENTER CITY",
            "CENTER STATE",
            "CENTER COUNTRY",
            "CENTER EMPLOYEES RANGE",
            "CENTER STATUS",
            "LAT",
            "LANG",
        ],
    )
    functions = pd.DataFrame(
        [["C1", "IT"], ["C1", "HR"], ["C2", "IT"], ["C3", "Finance"], ["C4", "IT"], ["C5", "HR"]],
        columns=["CN UNIQUE KEY", "FUNCTION"],
    )
    services = pd.DataFrame(
        [
            ["C1", "Acme Bangalore", "App Dev"],
            ["C2", "Acme Pune", "Infra"],
            ["C3", "Beta Chennai", "Risk"],
            ["C4", "Gamma Hyderabad", "App Dev"],
            ["C5", "Beta Bangalore", "Ops"],
        ],
        columns=["CN UNIQUE KEY", "CENTER NAME", "PRIMARY SERVICE"],
    )
    prospects = pd.DataFrame(
        [
            ["Acme Corp", "Jane", "Doe", "VP Engineering", "Engineering", "VP", "Bangalore"],
            ["Acme Corp", "John", "Roe", "Director HR", "HR", "Director", "Pune"],
            ["Beta Ltd", "Sam", "Lee", "Head of Risk", "Risk", "VP", "Chennai"],
            ["Delta LLC", "Ann", "Kay", "CTO", "Engineering", "CXO", "Delhi"],
        ],
        columns=["ACCOUNT NAME", "FIRST NAME", "LAST NAME", "TITLE", "DEPARTMENT", "LEVEL", "CITY"],
    )
    return {
        "accounts": accounts,
        "centers": centers,
        "functions": functions,
        "services": services,
        "prospects": prospects,
    }


@pytest.fixture
def raw_tables():
    return _raw_tables()


@pytest.fixture
def data_ctx(raw_tables):
    return build_data_context(raw_tables)


@pytest.fixture
def sqlite_url(tmp_path: Path, raw_tables):
    """A sqlite database holding the sample tables under their database labels."""
    url = f"sqlite:///{tmp_path / 'dashboard.sqlite'}"
    engine = create_engine(url)
    for name, df in raw_tables.items():
        df.to_sql(name, engine, index=False)
    engine.dispose()
    return url


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    for name in ("DATABASE_URL", "BASIC_AUTH_USERNAME", "BASIC_AUTH_PASSWORD", "MAPBOX_TOKEN", "CACHE_TTL_SECONDS", "ITEMS_PER_PAGE"):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()
