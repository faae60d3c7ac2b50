from __future__ import annotations

from typing import Any, Dict, List, Optional

import pandas as pd

STATUS_COLORS = {
    "Active Center": "green",
    "Upcoming": "yellow",
    "Non Operational": "red",
}
DEFAULT_STATUS_COLOR = "gray"


def status_color(status: Optional[str]) -> str:
    return STATUS_COLORS.get((status or "").strip(), DEFAULT_STATUS_COLOR)


def _clean(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    return value


def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [{k: _clean(v) for k, v in row.items()} for row in df.to_dict(orient="records")]


def _first(df: pd.DataFrame) -> Optional[Dict[str, Any]]:
    records = _records(df.head(1))
    return records[0] if records else None


def _frame(ctx: Dict[str, Any], key: str) -> pd.DataFrame:
    df = ctx.get(key)
    return df if isinstance(df, pd.DataFrame) else pd.DataFrame()


def _matching(df: pd.DataFrame, column: str, value: Any) -> pd.DataFrame:
    if df.empty or column not in df.columns:
        return df.iloc[0:0]
    if value is None:
        return df.iloc[0:0]
    return df[(df[column] == value).fillna(False).astype(bool)]


def location_label(account: Dict[str, Any]) -> str:
    """"city, country" from whatever parts exist; falls back to the region."""
    parts = [str(account[k]) for k in ("account_city", "account_country") if account.get(k)]
    if parts:
        return ", ".join(parts)
    return str(account.get("account_region") or "")


def account_details(name: str, ctx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    account = _first(_matching(_frame(ctx, "accounts"), "account_name", name))
    if account is None:
        return None

    centers = _matching(_frame(ctx, "filtered_centers"), "account_name", name)
    prospects = _matching(_frame(ctx, "filtered_prospects"), "account_name", name)
    services = _frame(ctx, "filtered_services")
    if not services.empty:
        services = services[services["cn_unique_key"].isin(set(centers["cn_unique_key"].dropna()))]

    center_rows = _records(centers)
    for row in center_rows:
        row["status_color"] = status_color(row.get("center_status"))

    return {
        "account": account,
        "location": location_label(account),
        "centers": center_rows,
        "prospects": _records(prospects),
        "services": _records(services),
        "counts": {
            "centers": len(center_rows),
            "prospects": int(len(prospects)),
            "services": int(len(services)),
        },
    }


def center_details(key: str, ctx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    center = _first(_matching(_frame(ctx, "centers"), "cn_unique_key", key))
    if center is None:
        return None
    functions = _matching(_frame(ctx, "functions"), "cn_unique_key", key)
    services = _matching(_frame(ctx, "services"), "cn_unique_key", key)
    account = _first(_matching(_frame(ctx, "accounts"), "account_name", center.get("account_name")))
    return {
        "center": center,
        "status_color": status_color(center.get("center_status")),
        "account": account,
        "functions": sorted({str(f) for f in functions["function"].dropna()}) if not functions.empty else [],
        "services": _records(services),
    }


def prospect_details(account_name: str, first_name: str, last_name: str, ctx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    prospects = _matching(_frame(ctx, "prospects"), "account_name", account_name)
    if not prospects.empty:
        prospects = prospects[
            (prospects["first_name"].fillna("") == (first_name or ""))
            & (prospects["last_name"].fillna("") == (last_name or ""))
        ]
    prospect = _first(prospects)
    if prospect is None:
        return None
    full_name = " ".join(p for p in (prospect.get("first_name"), prospect.get("last_name")) if p)
    return {
        "prospect": prospect,
        "full_name": full_name,
        "account": _first(_matching(_frame(ctx, "accounts"), "account_name", account_name)),
    }
