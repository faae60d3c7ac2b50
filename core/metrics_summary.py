from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from core.data import ENTITIES
from core.filters import DashboardFilters, count_active_filters, describe_filters, filters_to_dict


def compute_summary(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    counts: Dict[str, Dict[str, int]] = {}
    for entity in ENTITIES:
        filtered: pd.DataFrame = ctx.get(f"filtered_{entity}", pd.DataFrame())
        total: pd.DataFrame = ctx.get(entity, pd.DataFrame())
        counts[entity] = {"filtered": int(len(filtered)), "total": int(len(total))}

    bounds = ctx.get("revenue_bounds")
    return {
        "filters": filters_to_dict(filters),
        "counts": counts,
        "active_filters": count_active_filters(filters, tuple(bounds) if bounds else None),
        "chips": describe_filters(filters),
    }
