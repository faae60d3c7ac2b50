from __future__ import annotations

import math
from typing import Dict, Optional

import pandas as pd

SORT_DIRECTIONS = ("asc", "desc")


def total_pages(total: int, per_page: int) -> int:
    if per_page <= 0:
        return 1
    return max(1, math.ceil(total / per_page))


def clamp_page(page: int, total: int, per_page: int) -> int:
    return min(max(1, int(page)), total_pages(total, per_page))


def paginate(df: pd.DataFrame, page: int, per_page: int) -> pd.DataFrame:
    """Rows of the 1-based ``page``; out-of-range pages are clamped."""
    if per_page <= 0:
        return df
    page = clamp_page(page, len(df), per_page)
    start = (page - 1) * per_page
    return df.iloc[start : start + per_page]


def page_info(page: int, total: int, per_page: int) -> Dict[str, int]:
    if total <= 0:
        return {"start_item": 0, "end_item": 0, "total_items": 0}
    page = clamp_page(page, total, per_page)
    start = (page - 1) * per_page + 1
    end = min(page * per_page, total)
    return {"start_item": start, "end_item": end, "total_items": total}


def sort_frame(df: pd.DataFrame, column: Optional[str], direction: str = "asc") -> pd.DataFrame:
    """Sort by ``column``; numeric columns numerically, text case-insensitively, missing values last."""
    if not column or column not in df.columns or df.empty:
        return df
    ascending = direction != "desc"
    series = df[column]
    numeric = pd.to_numeric(series, errors="coerce")
    if numeric.notna().sum() == series.notna().sum():
        key = numeric
    else:
        key = series.astype("string").str.lower()
    order = key.sort_values(ascending=ascending, na_position="last", kind="mergesort").index
    return df.loc[order]


def table_payload(
    df: pd.DataFrame,
    *,
    page: int = 1,
    per_page: int = 50,
    sort_column: Optional[str] = None,
    sort_direction: str = "asc",
) -> Dict[str, object]:
    ordered = sort_frame(df, sort_column, sort_direction)
    current = clamp_page(page, len(ordered), per_page)
    return {
        "rows": paginate(ordered, current, per_page).to_dict(orient="records"),
        "page": current,
        "per_page": per_page,
        "total_pages": total_pages(len(ordered), per_page),
        "page_info": page_info(current, len(ordered), per_page),
        "sort": {"column": sort_column, "direction": sort_direction},
    }
