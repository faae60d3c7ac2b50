from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from core.charts import chart_payload, count_by, count_top_with_others, function_counts
from core.filters import DashboardFilters, filters_to_dict
from core.tables import table_payload


def compute_centers(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    per_page: int = 50,
    sort_column: Optional[str] = "center_name",
    sort_direction: str = "asc",
) -> Dict[str, Any]:
    centers: pd.DataFrame = ctx.get("filtered_centers", pd.DataFrame())
    functions: pd.DataFrame = ctx.get("filtered_functions", pd.DataFrame())

    center_keys = centers["cn_unique_key"].dropna() if "cn_unique_key" in centers.columns else []
    charts = {
        "center_type": chart_payload(count_by(centers, "center_type"), "Center Type"),
        "employees_range": chart_payload(count_by(centers, "center_employees_range"), "Employees Range"),
        "city": chart_payload(count_top_with_others(centers, "center_city"), "Center City"),
        "functions": chart_payload(function_counts(functions, center_keys), "Functions"),
    }
    return {
        "filters": filters_to_dict(filters),
        "count": int(len(centers)),
        "function_count": int(len(functions)),
        "charts": charts,
        "table": table_payload(
            centers,
            page=page,
            per_page=per_page,
            sort_column=sort_column,
            sort_direction=sort_direction,
        ),
    }
