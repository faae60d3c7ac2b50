from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from core.charts import chart_payload, count_by
from core.filters import DashboardFilters, filters_to_dict
from core.tables import table_payload


def compute_prospects(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    per_page: int = 50,
    sort_column: Optional[str] = None,
    sort_direction: str = "asc",
) -> Dict[str, Any]:
    prospects: pd.DataFrame = ctx.get("filtered_prospects", pd.DataFrame())
    return {
        "filters": filters_to_dict(filters),
        "count": int(len(prospects)),
        "charts": {
            "department": chart_payload(count_by(prospects, "department"), "Department"),
            "level": chart_payload(count_by(prospects, "level"), "Level"),
        },
        "table": table_payload(
            prospects,
            page=page,
            per_page=per_page,
            sort_column=sort_column,
            sort_direction=sort_direction,
        ),
    }
