from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Dict, Optional

import pandas as pd

from core.data import ENTITIES, display_columns
from core.filters import filters_to_dict, normalize_filters

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SHEET_NAMES = {
    "accounts": "Accounts",
    "centers": "Centers",
    "functions": "Functions",
    "services": "Services",
    "prospects": "Prospects",
}


def with_database_labels(df: pd.DataFrame, entity: str) -> pd.DataFrame:
    labels = display_columns(entity)
    return df.rename(columns={c: labels.get(c, c) for c in df.columns})


def _write(sheets: Dict[str, pd.DataFrame]) -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for sheet_name, df in sheets.items():
            df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()


def export_frame(df: pd.DataFrame, entity: str) -> bytes:
    if entity not in SHEET_NAMES:
        raise ValueError(f"Unknown export entity: {entity}")
    logger.info("Exporting %d %s rows", len(df), entity)
    return _write({SHEET_NAMES[entity]: with_database_labels(df, entity)})


def export_all(ctx: Dict[str, Any]) -> bytes:
    sheets = {}
    for entity in ENTITIES:
        df = ctx.get(f"filtered_{entity}")
        if not isinstance(df, pd.DataFrame):
            df = pd.DataFrame()
        sheets[SHEET_NAMES[entity]] = with_database_labels(df, entity)
    logger.info("Exporting all data: %s", {name: len(df) for name, df in sheets.items()})
    return _write(sheets)


def export_workbook(ctx: Dict[str, Any], entity: str) -> bytes:
    """One entity's sheet, or every sheet for ``"all"``."""
    if entity == "all":
        return export_all(ctx)
    return export_frame(ctx.get(f"filtered_{entity}", pd.DataFrame()), entity)


def filters_signature(filters: Any) -> str:
    """Stable text key for a filter state; equal filters give equal keys."""
    return json.dumps(filters_to_dict(normalize_filters(filters)), sort_keys=True)


def export_filename(prefix: str, now: Optional[datetime] = None) -> str:
    """``{prefix}-YYYY-MM-DDTHH-MM-SS.xlsx`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    return f"{prefix}-{now.strftime('%Y-%m-%dT%H-%M-%S')}.xlsx"
