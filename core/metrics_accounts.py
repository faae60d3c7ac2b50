from __future__ import annotations

from typing import Any, Dict, Optional

import pandas as pd

from core.charts import chart_payload, count_by
from core.filters import DashboardFilters, filters_to_dict
from core.tables import table_payload

ACCOUNT_CHARTS = (
    ("region", "account_region", "Region"),
    ("primary_nature", "primary_nature", "Primary Nature"),
    ("revenue_range", "revenue_range", "Revenue Range"),
    ("employees_range", "employees_range", "Employees Range"),
)


def compute_accounts(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    *,
    page: int = 1,
    per_page: int = 50,
    sort_column: Optional[str] = "account_name",
    sort_direction: str = "asc",
) -> Dict[str, Any]:
    accounts: pd.DataFrame = ctx.get("filtered_accounts", pd.DataFrame())

    charts = {key: chart_payload(count_by(accounts, column), title) for key, column, title in ACCOUNT_CHARTS}
    return {
        "filters": filters_to_dict(filters),
        "count": int(len(accounts)),
        "charts": charts,
        "table": table_payload(
            accounts,
            page=page,
            per_page=per_page,
            sort_column=sort_column,
            sort_direction=sort_direction,
        ),
    }
