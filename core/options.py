from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from core.data import DEFAULT_REVENUE_BOUNDS, clean_entity_frame
from core.filters import (
    DIMENSIONS,
    DashboardFilters,
    combine_masks,
    dimension_masks,
    dimensions_for,
    keyword_mask,
    normalize_filters,
    revenue_mask,
    search_mask,
)

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 50


def _frame(data_ctx: Mapping[str, object], key: str) -> pd.DataFrame:
    df = data_ctx.get(key)
    return df if isinstance(df, pd.DataFrame) else clean_entity_frame(None, key)


def _faceted_counts(
    df: pd.DataFrame,
    entity: str,
    masks: Dict[str, pd.Series],
) -> Dict[str, pd.Series]:
    """Value counts per dimension, each computed with every mask except its own."""
    out: Dict[str, pd.Series] = {}
    for dim in dimensions_for(entity):
        others = [m for key, m in masks.items() if key != dim.key]
        subset = df.loc[combine_masks(others, df.index), dim.column]
        out[dim.key] = subset.dropna().value_counts()
    return out


def _to_options(counts: pd.Series, selected: Sequence[str]) -> List[Dict[str, object]]:
    items = [(str(value), int(count)) for value, count in counts.items()]
    items.sort(key=lambda kv: (-kv[1], kv[0]))
    options: List[Dict[str, object]] = [{"value": v, "count": c} for v, c in items]
    present = {v for v, _ in items}
    for value in selected:
        if value not in present:
            options.append({"value": value, "count": 0, "disabled": True})
    return options


def compute_available_options(
    filters: dict | DashboardFilters,
    data_ctx: Mapping[str, object],
) -> Dict[str, List[Dict[str, object]]]:
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)

    accounts = _frame(data_ctx, "accounts")
    centers = _frame(data_ctx, "centers")
    functions = _frame(data_ctx, "functions")
    prospects = _frame(data_ctx, "prospects")

    base = search_mask(accounts["account_name"], filt.search_term)
    base &= revenue_mask(accounts["revenue"], filt.account_revenue_range, filt.include_null_revenue)
    base &= keyword_mask(accounts["account_name"], filt.account_name_keywords)
    accounts = accounts[base]

    counts: Dict[str, pd.Series] = {}

    acc_masks = dimension_masks(filt, accounts, "accounts")
    counts.update(_faceted_counts(accounts, "accounts", acc_masks))
    valid_accounts = set(accounts.loc[combine_masks(acc_masks.values(), accounts.index), "account_name"].dropna())

    centers = centers[centers["account_name"].isin(valid_accounts)]
    center_masks = dimension_masks(filt, centers, "centers")
    counts.update(_faceted_counts(centers, "centers", center_masks))
    valid_keys = set(centers.loc[combine_masks(center_masks.values(), centers.index), "cn_unique_key"].dropna())

    functions = functions[functions["cn_unique_key"].isin(valid_keys)]
    counts.update(_faceted_counts(functions, "functions", {}))

    prospects = prospects[prospects["account_name"].isin(valid_accounts)]
    prospects = prospects[keyword_mask(prospects["title"], filt.prospect_title_keywords)]
    counts.update(_faceted_counts(prospects, "prospects", dimension_masks(filt, prospects, "prospects")))

    options = {
        dim.key: _to_options(counts[dim.key], [s.value for s in filt.selections(dim.key)])
        for dim in DIMENSIONS
    }
    logger.debug("Options computed for %d valid accounts, %d valid centers", len(valid_accounts), len(valid_keys))
    return options


def dynamic_revenue_range(filters: dict | DashboardFilters, accounts: pd.DataFrame) -> Tuple[float, float]:
    """Revenue bounds of the accounts the non-revenue account filters leave."""
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters)
    if accounts.empty:
        return DEFAULT_REVENUE_BOUNDS
    mask = combine_masks(dimension_masks(filt, accounts, "accounts").values(), accounts.index)
    mask &= search_mask(accounts["account_name"], filt.search_term)
    revenue = pd.to_numeric(accounts.loc[mask, "revenue"], errors="coerce")
    revenue = revenue[revenue > 0]
    if revenue.empty:
        return DEFAULT_REVENUE_BOUNDS
    return float(revenue.min()), float(revenue.max())


def clamp_revenue_range(
    revenue_range: Optional[Tuple[float, float]],
    bounds: Tuple[float, float],
) -> Tuple[float, float]:
    """Intersect a selected range with ``bounds``; ``None`` or a disjoint range yields the bounds."""
    low_bound, high_bound = bounds
    if revenue_range is None:
        return bounds
    low = max(float(revenue_range[0]), low_bound)
    high = min(float(revenue_range[1]), high_bound)
    if low > high:
        return bounds
    return low, high


def suggest_account_names(
    names: Iterable[object],
    query: str,
    selected: Iterable[str] = (),
    limit: int = SUGGESTION_LIMIT,
) -> List[str]:
    query = (query or "").strip().lower()
    if not query or limit < 1:
        return []
    taken = {str(s) for s in selected}
    seen = set()
    prefix: List[str] = []
    contains: List[str] = []
    for raw in names:
        if raw is None or pd.isna(raw):
            continue
        name = str(raw)
        if name in seen or name in taken:
            continue
        seen.add(name)
        lowered = name.lower()
        if lowered.startswith(query):
            prefix.append(name)
        elif query in lowered:
            contains.append(name)
    return (prefix + contains)[:limit]
