from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

CHART_COLORS = [
    "#3b82f6",
    "#10b981",
    "#f59e0b",
    "#ef4444",
    "#8b5cf6",
    "#ec4899",
    "#06b6d4",
    "#f97316",
    "#14b8a6",
    "#6366f1",
    "#84cc16",
    "#a855f7",
    "#f43f5e",
    "#22d3ee",
    "#facc15",
]

UNKNOWN = "Unknown"
OTHERS = "Others"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _sorted_counts(df: pd.DataFrame, column: str) -> List[Dict[str, Any]]:
    if df.empty or column not in df.columns:
        return []
    values = df[column].astype("string").fillna(UNKNOWN)
    values = values.mask(values.str.strip() == "", UNKNOWN)
    counts = values.value_counts()
    items = sorted(((str(k), int(v)) for k, v in counts.items()), key=lambda kv: (-kv[1], kv[0]))
    return [{"name": name, "value": value} for name, value in items]


def count_by(df: pd.DataFrame, column: str, top: Optional[int] = 10) -> List[Dict[str, Any]]:
    """``[{name, value}]`` row counts per value, missing values grouped as "Unknown"."""
    items = _sorted_counts(df, column)
    return items[:top] if top else items


def count_top_with_others(df: pd.DataFrame, column: str, top: int = 5) -> List[Dict[str, Any]]:
    items = _sorted_counts(df, column)
    if len(items) <= top:
        return items
    head = items[:top]
    rest = sum(item["value"] for item in items[top:])
    if rest > 0:
        head.append({"name": OTHERS, "value": rest})
    return head


def function_counts(functions: pd.DataFrame, center_keys: Iterable[str], top: int = 10) -> List[Dict[str, Any]]:
    keys = set(center_keys)
    if functions.empty:
        return []
    subset = functions[functions["cn_unique_key"].isin(keys)]
    return count_by(subset, "function", top=top)


def pie_chart(data: List[Dict[str, Any]], title: str = "") -> alt.Chart:
    df = pd.DataFrame(data, columns=["name", "value"])
    total = float(df["value"].sum()) if not df.empty else 0.0
    df["share"] = df["value"] / total if total else 0.0
    return (
        alt.Chart(df, title=title)
        .mark_arc(innerRadius=50, stroke="#ffffff")
        .encode(
            theta=alt.Theta("value:Q", stack=True),
            color=alt.Color(
                "name:N",
                title=None,
                sort=list(df["name"]),
                scale=alt.Scale(domain=list(df["name"]), range=CHART_COLORS[: max(len(df), 1)]),
            ),
            order=alt.Order("value:Q", sort="descending"),
            tooltip=[
                alt.Tooltip("name:N", title="Name"),
                alt.Tooltip("value:Q", title="Count", format=","),
                alt.Tooltip("share:Q", title="Share", format=".1%"),
            ],
        )
    )


def chart_payload(data: List[Dict[str, Any]], title: str) -> Dict[str, Any]:
    """Chart data plus its Vega-Lite spec, as the metrics payloads carry them."""
    return {"title": title, "data": data, "spec": to_vega_spec(pie_chart(data, title))}
