from __future__ import annotations

import logging
import re
import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Iterable, Mapping, Optional, Tuple

import pandas as pd

from core.config import Settings, get_settings
from core.db import DataLoadError, DatabaseNotConfigured, fetch_all_tables, get_engine
from core.filters import (
    DashboardFilters,
    combine_masks,
    dimension_masks,
    has_prospect_filters,
    keyword_mask,
    normalize_filters,
    revenue_mask,
    search_mask,
)

logger = logging.getLogger(__name__)

DEFAULT_REVENUE_BOUNDS: Tuple[float, float] = (0.0, 1_000_000.0)

ACCOUNT_COLUMNS = {
    "ACCOUNT NAME": "account_name",
    "ACCOUNT NASSCOM STATUS": "nasscom_status",
    "ACCOUNT TYPE": "account_type",
    "ACCOUNT ABOUT": "about",
    "ACCOUNT KEY OFFERINGS": "key_offerings",
    "ACCOUNT CITY": "account_city",
    "ACCOUNT COUNTRY": "account_country",
    "ACCOUNT REGION": "account_region",
    "ACCOUNT INDUSTRY": "industry",
    "ACCOUNT SUB INDUSTRY": "sub_industry",
    "ACCOUNT PRIMARY CATEGORY": "primary_category",
    "ACCOUNT PRIMARY NATURE": "primary_nature",
    "ACCOUNT REVNUE": "revenue",
    "ACCOUNT REVENUE RANGE": "revenue_range",
    "ACCOUNT EMPLOYEES": "employees",
    "ACCOUNT EMPLOYEES RANGE": "employees_range",
    "ACCOUNT CENTER EMPLOYEES": "center_employees",
    "ACCOUNT FORBES": "forbes",
    "ACCOUNT FORTUNE": "fortune",
    "ACCOUNT FIRST CENTER": "first_center",
    "YEARS IN INDIA": "years_in_india",
    "ACCOUNT WEBSITE": "website",
}

CENTER_COLUMNS = {
    "ACCOUNT NAME": "account_name",
    "CN UNIQUE KEY": "cn_unique_key",
    "CENTER STATUS": "center_status",
    "CENTER INC YEAR": "center_inc_year",
    "CENTER NAME": "center_name",
    "CENTER TYPE": "center_type",
    "CENTER FOCUS": "center_focus",
    "CENTER CITY": "center_city",
    "CENTER STATE": "center_state",
    "CENTER COUNTRY": "center_country",
    "CENTER EMPLOYEES": "center_employees",
    "CENTER EMPLOYEES RANGE": "center_employees_range",
    "BUSINESS SGEMENT": "business_segment",
    "BUSINESS SUB-SEGMENT": "business_sub_segment",
    "BOARDLINE NUMBER": "boardline_number",
    "CENTER ACCOUNT WEBSITE": "center_account_website",
    "LAT": "lat",
    "LANG": "lng",
}

FUNCTION_COLUMNS = {
    "CN UNIQUE KEY": "cn_unique_key",
    "FUNCTION": "function",
}

SERVICE_COLUMNS = {
    "CN UNIQUE KEY": "cn_unique_key",
    "CENTER NAME": "center_name",
    "CENTER TYPE": "center_type",
    "CENTER FOCUS": "center_focus",
    "CENTER CITY": "center_city",
    "PRIMARY SERVICE": "primary_service",
    "FOCUS REGION": "focus_region",
    "IT": "it",
    "ER&D": "erd",
    "FnA": "fna",
    "HR": "hr",
    "PROCUREMENT": "procurement",
    "SALES & MARKETING": "sales_marketing",
    "CUSTOMER SUPPORT": "customer_support",
    "OTHERS": "others",
    "SOFTWARE VENDOR": "software_vendor",
    "SOFTWARE IN USE": "software_in_use",
}

PROSPECT_COLUMNS = {
    "ACCOUNT NAME": "account_name",
    "CENTER NAME": "center_name",
    "FIRST NAME": "first_name",
    "LAST NAME": "last_name",
    "TITLE": "title",
    "DEPARTMENT": "department",
    "LEVEL": "level",
    "LINKEDIN LINK": "linkedin_link",
    "EMAIL": "email",
    "CITY": "city",
    "STATE": "state",
    "COUNTRY": "country",
}

ENTITY_COLUMNS: Dict[str, Dict[str, str]] = {
    "accounts": ACCOUNT_COLUMNS,
    "centers": CENTER_COLUMNS,
    "functions": FUNCTION_COLUMNS,
    "services": SERVICE_COLUMNS,
    "prospects": PROSPECT_COLUMNS,
}

# Spelling variants seen in exports of the same tables.
COLUMN_ALIASES = {
    "ACCOUNT REVENUE": "ACCOUNT REVNUE",
    "BUSINESS SEGMENT": "BUSINESS SGEMENT",
    "LNG": "LANG",
    "LONG": "LANG",
}

NUMERIC_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "accounts": ("revenue",),
    "centers": ("lat", "lng"),
}

ENTITIES = tuple(ENTITY_COLUMNS)


def snake_case(label: object) -> str:
    s = re.sub(r"[^0-9a-zA-Z]+", "_", str(label).strip()).strip("_")
    return s.lower()


def display_columns(entity: str) -> Dict[str, str]:
    """snake_case -> database label, for exports and detail views."""
    return {snake: label for label, snake in ENTITY_COLUMNS[entity].items()}


def drop_duplicate_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.loc[:, ~df.columns.duplicated()]


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            series = series.replace({"nan": pd.NA, "None": pd.NA, "NaN": pd.NA, "": pd.NA})
            df[col] = series
    return df


def parse_revenue(value: object) -> float:
    """Numeric revenue in millions; anything unparseable counts as 0."""
    if value is None:
        return 0.0
    try:
        if pd.isna(value):
            return 0.0
    except (TypeError, ValueError):
        pass
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"[,$\s]", "", str(value))
    match = re.match(r"^[-+]?\d*\.?\d+(?:[eE][-+]?\d+)?", cleaned)
    return float(match.group(0)) if match else 0.0


def revenue_bounds(accounts: pd.DataFrame) -> Tuple[float, float]:
    if accounts.empty or "revenue" not in accounts.columns:
        return DEFAULT_REVENUE_BOUNDS
    positive = pd.to_numeric(accounts["revenue"], errors="coerce")
    positive = positive[positive > 0]
    if positive.empty:
        return DEFAULT_REVENUE_BOUNDS
    return float(positive.min()), float(positive.max())


def clean_entity_frame(raw: Optional[pd.DataFrame], entity: str) -> pd.DataFrame:
    mapping = ENTITY_COLUMNS[entity]
    upper_lookup = {label.upper(): snake for label, snake in mapping.items()}
    df = raw.copy() if raw is not None else pd.DataFrame()

    renamed = {}
    for col in df.columns:
        label = str(col).strip().upper()
        label = COLUMN_ALIASES.get(label, label)
        renamed[col] = upper_lookup.get(label, snake_case(col))
    df = drop_duplicate_columns(df.rename(columns=renamed))

    for snake in mapping.values():
        if snake not in df.columns:
            df[snake] = pd.NA

    numeric = NUMERIC_COLUMNS.get(entity, ())
    df = coerce_str_safe(df, [c for c in df.columns if c not in numeric])
    if entity == "accounts":
        df["revenue"] = df["revenue"].map(parse_revenue).astype(float)
    for col in numeric:
        if col != "revenue":
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df.reset_index(drop=True)


def build_data_context(tables: Mapping[str, Optional[pd.DataFrame]]) -> Dict[str, object]:
    data_ctx: Dict[str, object] = {entity: clean_entity_frame(tables.get(entity), entity) for entity in ENTITIES}
    data_ctx["revenue_bounds"] = revenue_bounds(data_ctx["accounts"])  # type: ignore[arg-type]
    data_ctx["row_counts"] = {entity: int(len(data_ctx[entity])) for entity in ENTITIES}  # type: ignore[arg-type]
    data_ctx["loaded_at"] = datetime.now(timezone.utc).isoformat()
    return data_ctx


@lru_cache(maxsize=4)
def _load_dashboard_data_cached(database_url: str, ttl_bucket: int) -> Dict[str, object]:
    engine = get_engine(Settings(database_url=database_url))
    tables = fetch_all_tables(engine)
    if all(df.empty for df in tables.values()):
        raise DataLoadError("No data found in database tables. Please check if your tables contain data.")
    data_ctx = build_data_context(tables)
    logger.info("Loaded dashboard data: %s", data_ctx["row_counts"])
    return data_ctx


def load_dashboard_data(settings: Optional[Settings] = None) -> Dict[str, object]:
    settings = settings or get_settings()
    if not settings.database_url:
        raise DatabaseNotConfigured("Database URL not configured. Please check environment variables.")
    bucket = int(time.time() // settings.cache_ttl_seconds)
    return _load_dashboard_data_cached(settings.database_url, bucket)


def clear_cache() -> None:
    _load_dashboard_data_cached.cache_clear()
    logger.info("Dashboard data cache cleared")


def cache_size() -> int:
    return _load_dashboard_data_cached.cache_info().currsize


def _frame(data_ctx: Mapping[str, object], key: str) -> pd.DataFrame:
    df = data_ctx.get(key)
    if isinstance(df, pd.DataFrame):
        return df
    return clean_entity_frame(None, key)


def prepare_context(filters: dict | DashboardFilters, data_ctx: Mapping[str, object]) -> Dict[str, object]:
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)

    accounts = _frame(data_ctx, "accounts")
    centers = _frame(data_ctx, "centers")
    functions = _frame(data_ctx, "functions")
    services = _frame(data_ctx, "services")
    prospects = _frame(data_ctx, "prospects")

    # 1. accounts by their own dimensions, revenue, keywords and search
    acc_mask = combine_masks(dimension_masks(filt, accounts, "accounts").values(), accounts.index)
    acc_mask &= revenue_mask(accounts["revenue"], filt.account_revenue_range, filt.include_null_revenue)
    acc_mask &= keyword_mask(accounts["account_name"], filt.account_name_keywords)
    acc_mask &= search_mask(accounts["account_name"], filt.search_term)
    filtered_accounts = accounts[acc_mask]
    account_names = set(filtered_accounts["account_name"].dropna())
    accounts_constrained = len(filtered_accounts) != len(accounts)

    # 2. centers by their own dimensions and the surviving accounts
    center_mask = combine_masks(dimension_masks(filt, centers, "centers").values(), centers.index)
    if accounts_constrained:
        center_mask &= centers["account_name"].isin(account_names)
    filtered_centers = centers[center_mask]

    # 3. functions by type, limited to surviving centers
    func_mask = combine_masks(dimension_masks(filt, functions, "functions").values(), functions.index)
    func_mask &= functions["cn_unique_key"].isin(set(filtered_centers["cn_unique_key"].dropna()))
    filtered_functions = functions[func_mask]

    # 4. a function filter narrows centers to those offering a matching function
    if filt.function_types:
        filtered_centers = filtered_centers[
            filtered_centers["cn_unique_key"].isin(set(filtered_functions["cn_unique_key"].dropna()))
        ]

    # 5. prospects by their own dimensions and the surviving accounts
    pros_mask = combine_masks(dimension_masks(filt, prospects, "prospects").values(), prospects.index)
    pros_mask &= keyword_mask(prospects["title"], filt.prospect_title_keywords)
    if accounts_constrained:
        pros_mask &= prospects["account_name"].isin(account_names)
    filtered_prospects = prospects[pros_mask]

    # 6. a prospect filter narrows accounts (and their centers) to those with matching prospects
    if has_prospect_filters(filt):
        with_prospects = set(filtered_prospects["account_name"].dropna())
        filtered_accounts = filtered_accounts[filtered_accounts["account_name"].isin(with_prospects)]
        account_names = set(filtered_accounts["account_name"].dropna())
        filtered_centers = filtered_centers[filtered_centers["account_name"].isin(account_names)]

    # 7. functions and services follow the final centers
    center_keys = set(filtered_centers["cn_unique_key"].dropna())
    filtered_functions = filtered_functions[filtered_functions["cn_unique_key"].isin(center_keys)]
    filtered_services = services[services["cn_unique_key"].isin(center_keys)]

    # 8. only accounts with at least one visible center
    filtered_accounts = filtered_accounts[
        filtered_accounts["account_name"].isin(set(filtered_centers["account_name"].dropna()))
    ]

    # 9. prospects follow the final accounts
    final_account_names = set(filtered_accounts["account_name"].dropna())
    filtered_prospects = filtered_prospects[filtered_prospects["account_name"].isin(final_account_names)]

    logger.debug(
        "Filtered: %d accounts, %d centers, %d functions, %d services, %d prospects",
        len(filtered_accounts),
        len(filtered_centers),
        len(filtered_functions),
        len(filtered_services),
        len(filtered_prospects),
    )

    bounds = data_ctx.get("revenue_bounds") or revenue_bounds(accounts)
    return {
        "filters": filt,
        "filtered_accounts": filtered_accounts,
        "filtered_centers": filtered_centers,
        "filtered_functions": filtered_functions,
        "filtered_services": filtered_services,
        "filtered_prospects": filtered_prospects,
        "accounts": accounts,
        "centers": centers,
        "functions": functions,
        "services": services,
        "prospects": prospects,
        "revenue_bounds": bounds,
        "loaded_at": data_ctx.get("loaded_at"),
    }
