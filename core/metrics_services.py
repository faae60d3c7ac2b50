from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from core.charts import chart_payload, count_by
from core.filters import DashboardFilters, filters_to_dict
from core.tables import table_payload


def compute_services(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    per_page: int = 50,
    sort_column: Optional[str] = "center_name",
    sort_direction: str = "asc",
) -> Dict[str, Any]:
    services: pd.DataFrame = ctx.get("filtered_services", pd.DataFrame())
    return {
        "filters": filters_to_dict(filters),
        "count": int(len(services)),
        "charts": {"primary_service": chart_payload(count_by(services, "primary_service"), "Primary Service")},
        "table": table_payload(
            services,
            page=page,
            per_page=per_page,
            sort_column=sort_column,
            sort_direction=sort_direction,
        ),
    }
