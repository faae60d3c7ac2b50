from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

INCLUDE = "include"
EXCLUDE = "exclude"
FILTER_MODES = (INCLUDE, EXCLUDE)


@dataclass(frozen=True)
class FilterValue:
    value: str
    mode: str = INCLUDE


@dataclass(frozen=True)
class Dimension:
    key: str
    camel: str
    entity: str
    column: str
    label: str


DIMENSIONS: Tuple[Dimension, ...] = (
    Dimension("account_countries", "accountCountries", "accounts", "account_country", "Country"),
    Dimension("account_regions", "accountRegions", "accounts", "account_region", "Region"),
    Dimension("account_industries", "accountIndustries", "accounts", "industry", "Industry"),
    Dimension("account_sub_industries", "accountSubIndustries", "accounts", "sub_industry", "Sub Industry"),
    Dimension("account_primary_categories", "accountPrimaryCategories", "accounts", "primary_category", "Category"),
    Dimension("account_primary_natures", "accountPrimaryNatures", "accounts", "primary_nature", "Nature"),
    Dimension("account_nasscom_statuses", "accountNasscomStatuses", "accounts", "nasscom_status", "NASSCOM"),
    Dimension("account_employees_ranges", "accountEmployeesRanges", "accounts", "employees_range", "Emp Range"),
    Dimension("account_center_employees", "accountCenterEmployees", "accounts", "center_employees", "Center Emp"),
    Dimension("center_types", "centerTypes", "centers", "center_type", "Center Type"),
    Dimension("center_focus", "centerFocus", "centers", "center_focus", "Center Focus"),
    Dimension("center_cities", "centerCities", "centers", "center_city", "Center City"),
    Dimension("center_states", "centerStates", "centers", "center_state", "Center State"),
    Dimension("center_countries", "centerCountries", "centers", "center_country", "Center Country"),
    Dimension("center_employees", "centerEmployees", "centers", "center_employees_range", "Center Employees"),
    Dimension("center_statuses", "centerStatuses", "centers", "center_status", "Center Status"),
    Dimension("function_types", "functionTypes", "functions", "function", "Function"),
    Dimension("prospect_departments", "prospectDepartments", "prospects", "department", "Department"),
    Dimension("prospect_levels", "prospectLevels", "prospects", "level", "Level"),
    Dimension("prospect_cities", "prospectCities", "prospects", "city", "Prospect City"),
)

DIMENSIONS_BY_KEY: Dict[str, Dimension] = {d.key: d for d in DIMENSIONS}

KEYWORD_FIELDS: Dict[str, Tuple[str, str]] = {
    "account_name_keywords": ("accountNameKeywords", "Account Keyword"),
    "prospect_title_keywords": ("prospectTitleKeywords", "Title Keyword"),
}


def dimensions_for(entity: str) -> List[Dimension]:
    return [d for d in DIMENSIONS if d.entity == entity]


@dataclass(frozen=True)
class DashboardFilters:
    account_countries: List[FilterValue] = field(default_factory=list)
    account_regions: List[FilterValue] = field(default_factory=list)
    account_industries: List[FilterValue] = field(default_factory=list)
    account_sub_industries: List[FilterValue] = field(default_factory=list)
    account_primary_categories: List[FilterValue] = field(default_factory=list)
    account_primary_natures: List[FilterValue] = field(default_factory=list)
    account_nasscom_statuses: List[FilterValue] = field(default_factory=list)
    account_employees_ranges: List[FilterValue] = field(default_factory=list)
    account_center_employees: List[FilterValue] = field(default_factory=list)
    center_types: List[FilterValue] = field(default_factory=list)
    center_focus: List[FilterValue] = field(default_factory=list)
    center_cities: List[FilterValue] = field(default_factory=list)
    center_states: List[FilterValue] = field(default_factory=list)
    center_countries: List[FilterValue] = field(default_factory=list)
    center_employees: List[FilterValue] = field(default_factory=list)
    center_statuses: List[FilterValue] = field(default_factory=list)
    function_types: List[FilterValue] = field(default_factory=list)
    prospect_departments: List[FilterValue] = field(default_factory=list)
    prospect_levels: List[FilterValue] = field(default_factory=list)
    prospect_cities: List[FilterValue] = field(default_factory=list)
    account_name_keywords: List[FilterValue] = field(default_factory=list)
    prospect_title_keywords: List[FilterValue] = field(default_factory=list)
    account_revenue_range: Optional[Tuple[float, float]] = None
    include_null_revenue: bool = False
    search_term: str = ""

    def selections(self, key: str) -> List[FilterValue]:
        return list(getattr(self, key))


def _as_selections(values: Optional[Iterable[object]]) -> List[FilterValue]:
    """Accept FilterValue objects, ``{value, mode}`` dicts or bare strings (legacy includes)."""
    if not values or isinstance(values, (str, bytes)):
        return []
    out: List[FilterValue] = []
    seen = set()
    for item in values:
        if isinstance(item, FilterValue):
            value, mode = item.value, item.mode
        elif isinstance(item, dict):
            value, mode = item.get("value"), item.get("mode", INCLUDE)
        else:
            value, mode = item, INCLUDE
        if value is None:
            continue
        value = str(value).strip()
        if not value or value in seen:
            continue
        if mode not in FILTER_MODES:
            mode = INCLUDE
        seen.add(value)
        out.append(FilterValue(value=value, mode=mode))
    return out


def _as_range(value: object) -> Optional[Tuple[float, float]]:
    if value is None or isinstance(value, (str, bytes)):
        return None
    try:
        low, high = (float(v) for v in value)  # type: ignore[union-attr]
    except (TypeError, ValueError):
        return None
    if pd.isna(low) or pd.isna(high):
        return None
    return (min(low, high), max(low, high))


def _pick(raw: dict, key: str, camel: str) -> Any:
    if key in raw:
        return raw.get(key)
    return raw.get(camel)


def normalize_filters(raw: Optional[dict]) -> DashboardFilters:
    if isinstance(raw, DashboardFilters):
        return raw
    raw = raw or {}

    values: Dict[str, Any] = {}
    for dim in DIMENSIONS:
        values[dim.key] = _as_selections(_pick(raw, dim.key, dim.camel))
    for key, (camel, _) in KEYWORD_FIELDS.items():
        values[key] = _as_selections(_pick(raw, key, camel))

    values["account_revenue_range"] = _as_range(_pick(raw, "account_revenue_range", "accountRevenueRange"))
    values["include_null_revenue"] = bool(_pick(raw, "include_null_revenue", "includeNullRevenue") or False)
    search_term = _pick(raw, "search_term", "searchTerm")
    values["search_term"] = str(search_term).strip() if search_term is not None else ""
    return DashboardFilters(**values)


def filters_to_dict(filters: DashboardFilters) -> Dict[str, Any]:
    out = asdict(filters)
    if filters.account_revenue_range is not None:
        out["account_revenue_range"] = list(filters.account_revenue_range)
    return out


def has_prospect_filters(filters: DashboardFilters) -> bool:
    return bool(
        filters.prospect_departments
        or filters.prospect_levels
        or filters.prospect_cities
        or filters.prospect_title_keywords
    )


def count_active_filters(filters: DashboardFilters, revenue_bounds: Optional[Tuple[float, float]] = None) -> int:
    total = sum(len(filters.selections(d.key)) for d in DIMENSIONS)
    total += len(filters.account_name_keywords) + len(filters.prospect_title_keywords)
    if filters.account_revenue_range is not None:
        if revenue_bounds is None or tuple(filters.account_revenue_range) != tuple(revenue_bounds):
            total += 1
    if filters.include_null_revenue:
        total += 1
    return total


def describe_filters(filters: DashboardFilters) -> List[Dict[str, str]]:
    chips: List[Dict[str, str]] = []
    if filters.search_term:
        chips.append({"label": "Search", "value": filters.search_term, "mode": INCLUDE})
    for dim in DIMENSIONS:
        for sel in filters.selections(dim.key):
            chips.append({"label": dim.label, "value": sel.value, "mode": sel.mode})
    for key, (_, label) in KEYWORD_FIELDS.items():
        for sel in filters.selections(key):
            chips.append({"label": label, "value": sel.value, "mode": sel.mode})
    if filters.account_revenue_range is not None:
        low, high = filters.account_revenue_range
        chips.append({"label": "Revenue", "value": f"{low:,.0f} - {high:,.0f}", "mode": INCLUDE})
    if filters.include_null_revenue:
        chips.append({"label": "Revenue", "value": "include missing", "mode": INCLUDE})
    return chips


def _check_list_field(key: str) -> None:
    if key not in DIMENSIONS_BY_KEY and key not in KEYWORD_FIELDS:
        raise KeyError(f"Unknown filter field: {key}")


def add_selection(filters: DashboardFilters, key: str, value: str, mode: str = INCLUDE) -> DashboardFilters:
    _check_list_field(key)
    current = [s for s in filters.selections(key) if s.value != value]
    current.append(FilterValue(value=value, mode=mode if mode in FILTER_MODES else INCLUDE))
    return replace(filters, **{key: current})


def remove_selection(filters: DashboardFilters, key: str, value: str) -> DashboardFilters:
    _check_list_field(key)
    return replace(filters, **{key: [s for s in filters.selections(key) if s.value != value]})


def toggle_mode(filters: DashboardFilters, key: str, value: str) -> DashboardFilters:
    _check_list_field(key)
    toggled = [
        FilterValue(value=s.value, mode=EXCLUDE if s.mode == INCLUDE else INCLUDE) if s.value == value else s
        for s in filters.selections(key)
    ]
    return replace(filters, **{key: toggled})


# ---------- pandas masks ----------

def _all_true(series: pd.Series) -> pd.Series:
    return pd.Series(True, index=series.index, dtype=bool)


def filter_mask(series: pd.Series, selections: Sequence[FilterValue]) -> pd.Series:
    """Excluded values never match; when includes exist the value must be one of them."""
    if not selections:
        return _all_true(series)
    values = series.astype("string")
    includes = [s.value for s in selections if s.mode == INCLUDE]
    excludes = [s.value for s in selections if s.mode == EXCLUDE]
    mask = _all_true(series)
    if includes:
        mask &= values.isin(includes).fillna(False).astype(bool)
    if excludes:
        mask &= ~values.isin(excludes).fillna(False).astype(bool)
    return mask


def _contains(text: pd.Series, needle: str) -> pd.Series:
    return text.str.contains(needle, regex=False).fillna(False).astype(bool)


def keyword_mask(series: pd.Series, keywords: Sequence[FilterValue]) -> pd.Series:
    if not keywords:
        return _all_true(series)
    text = series.astype("string").str.lower().fillna("")
    includes = [k.value.lower() for k in keywords if k.mode == INCLUDE and k.value.strip()]
    excludes = [k.value.lower() for k in keywords if k.mode == EXCLUDE and k.value.strip()]
    mask = _all_true(series)
    for kw in excludes:
        mask &= ~_contains(text, kw)
    if includes:
        any_hit = pd.Series(False, index=series.index, dtype=bool)
        for kw in includes:
            any_hit |= _contains(text, kw)
        mask &= any_hit
    return mask


def revenue_mask(
    revenue: pd.Series,
    revenue_range: Optional[Tuple[float, float]],
    include_null_revenue: bool,
) -> pd.Series:
    """Missing/zero revenue passes only when ``include_null_revenue``; the rest must be in range."""
    numeric = pd.to_numeric(revenue, errors="coerce")
    is_null = numeric.isna() | (numeric == 0)
    in_range = _all_true(revenue)
    if revenue_range is not None:
        low, high = revenue_range
        in_range = ((numeric >= low) & (numeric <= high)).fillna(False).astype(bool)
    return (is_null & include_null_revenue) | (~is_null & in_range)


def search_mask(names: pd.Series, term: str) -> pd.Series:
    term = (term or "").strip().lower()
    if not term:
        return _all_true(names)
    return _contains(names.astype("string").str.lower().fillna(""), term)


def dimension_masks(filters: DashboardFilters, df: pd.DataFrame, entity: str) -> Dict[str, pd.Series]:
    """One mask per dimension of ``entity``; dimensions without selections are left out."""
    masks: Dict[str, pd.Series] = {}
    for dim in dimensions_for(entity):
        selections = filters.selections(dim.key)
        if not selections:
            continue
        series = df[dim.column] if dim.column in df.columns else pd.Series(pd.NA, index=df.index, dtype="string")
        masks[dim.key] = filter_mask(series, selections)
    return masks


def combine_masks(masks: Iterable[pd.Series], index: pd.Index) -> pd.Series:
    out = pd.Series(True, index=index, dtype=bool)
    for mask in masks:
        out &= mask
    return out
