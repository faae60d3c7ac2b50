from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Literal, Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.auth import require_basic_auth
from api.schemas import (
    AccountDetailsRequest,
    CenterDetailsRequest,
    DashboardFiltersModel,
    ProspectDetailsRequest,
    SavedFilterRequest,
    SuggestRequest,
)
from core.config import Settings, get_settings
from core.data import cache_size, clear_cache, load_dashboard_data, prepare_context
from core.db import DatabaseNotConfigured, DataLoadError, check_connection, database_status, get_engine
from core.details import account_details, center_details, prospect_details
from core.export import XLSX_MIME, export_filename, export_workbook
from core.filters import DashboardFilters, filters_to_dict, normalize_filters
from core.geo import compute_map
from core.logging_config import setup_logging
from core.metrics_accounts import compute_accounts
from core.metrics_centers import compute_centers
from core.metrics_prospects import compute_prospects
from core.metrics_services import compute_services
from core.metrics_summary import compute_summary
from core.options import clamp_revenue_range, compute_available_options, dynamic_revenue_range, suggest_account_names
from core.saved_filters import SavedFilterNotFound, SavedFilterStore

setup_logging(get_settings().log_level)

app = FastAPI(title="Center Intelligence API", version="0.1.0", dependencies=[Depends(require_basic_auth)])
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SortDirection = Literal["asc", "desc"]
ExportEntity = Literal["accounts", "centers", "functions", "services", "prospects", "all"]


def _filters_from_model(model: Optional[DashboardFiltersModel]) -> DashboardFilters:
    if model is None:
        return normalize_filters({})
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(name: str, exc: Exception) -> JSONResponse:
    if isinstance(exc, (DatabaseNotConfigured, DataLoadError)):
        logger.error("%s failed: %s", name, exc)
        code = 503
    elif isinstance(exc, SavedFilterNotFound):
        return JSONResponse(status_code=404, content={"error": f"Saved filter {exc.args[0]} not found", "type": type(exc).__name__})
    elif isinstance(exc, ValueError):
        code = 400
    else:
        logger.exception("%s failed", name)
        code = 500
    return JSONResponse(status_code=code, content={"error": str(exc), "type": type(exc).__name__})


def _not_found(message: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": message, "type": "NotFound"})


def _context(filters: Optional[DashboardFiltersModel]):
    data_ctx = load_dashboard_data()
    f = _filters_from_model(filters)
    return f, data_ctx, prepare_context(f, data_ctx)


@lru_cache(maxsize=4)
def _store_for(database_url: str) -> SavedFilterStore:
    return SavedFilterStore(get_engine(Settings(database_url=database_url)))


def _store() -> SavedFilterStore:
    settings = get_settings()
    if not settings.database_url:
        raise DatabaseNotConfigured("DATABASE_URL environment variable is not configured")
    return _store_for(settings.database_url)


def _saved_payload(item: dict) -> dict:
    return {**item, "filters": filters_to_dict(item["filters"])}


@app.get("/meta/status")
def meta_status():
    try:
        return _json(database_status(cache_size=cache_size()))
    except Exception as exc:
        return _error("meta_status", exc)


@app.get("/meta/connection")
def meta_connection():
    try:
        return _json(check_connection())
    except Exception as exc:
        return _error("meta_connection", exc)


@app.post("/meta/cache/clear")
def meta_cache_clear():
    try:
        clear_cache()
        return _json({"cleared": True, "cache_size": cache_size()})
    except Exception as exc:
        return _error("meta_cache_clear", exc)


@app.post("/options")
def options(filters: Optional[DashboardFiltersModel] = None):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        revenue_range = dynamic_revenue_range(f, data_ctx["accounts"])
        return _json(
            {
                "filters": filters_to_dict(f),
                "options": compute_available_options(f, data_ctx),
                "revenue_bounds": data_ctx["revenue_bounds"],
                "revenue_range": revenue_range,
                "selected_revenue_range": clamp_revenue_range(f.account_revenue_range, revenue_range),
            }
        )
    except Exception as exc:
        return _error("options", exc)


@app.post("/suggest/accounts")
def suggest_accounts(body: SuggestRequest):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(body.filters)
        selected = [s.value for s in f.account_name_keywords]
        names = suggest_account_names(data_ctx["accounts"]["account_name"], body.query, selected, limit=body.limit)
        return _json({"query": body.query, "names": names})
    except Exception as exc:
        return _error("suggest_accounts", exc)


@app.post("/summary")
def summary(filters: Optional[DashboardFiltersModel] = None):
    try:
        f, _, ctx = _context(filters)
        return _json(compute_summary(f, ctx))
    except Exception as exc:
        return _error("summary", exc)


@app.post("/accounts")
def accounts(
    filters: Optional[DashboardFiltersModel] = None,
    page: int = Query(default=1, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=1000),
    sort_column: Optional[str] = Query(default="account_name"),
    sort_direction: SortDirection = Query(default="asc"),
):
    try:
        f, _, ctx = _context(filters)
        return _json(
            compute_accounts(
                f,
                ctx,
                page=page,
                per_page=per_page or get_settings().items_per_page,
                sort_column=sort_column,
                sort_direction=sort_direction,
            )
        )
    except Exception as exc:
        return _error("accounts", exc)


@app.post("/centers")
def centers(
    filters: Optional[DashboardFiltersModel] = None,
    page: int = Query(default=1, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=1000),
    sort_column: Optional[str] = Query(default="center_name"),
    sort_direction: SortDirection = Query(default="asc"),
):
    try:
        f, _, ctx = _context(filters)
        return _json(
            compute_centers(
                f,
                ctx,
                page=page,
                per_page=per_page or get_settings().items_per_page,
                sort_column=sort_column,
                sort_direction=sort_direction,
            )
        )
    except Exception as exc:
        return _error("centers", exc)


@app.post("/services")
def services(
    filters: Optional[DashboardFiltersModel] = None,
    page: int = Query(default=1, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=1000),
    sort_column: Optional[str] = Query(default="center_name"),
    sort_direction: SortDirection = Query(default="asc"),
):
    try:
        f, _, ctx = _context(filters)
        return _json(
            compute_services(
                f,
                ctx,
                page=page,
                per_page=per_page or get_settings().items_per_page,
                sort_column=sort_column,
                sort_direction=sort_direction,
            )
        )
    except Exception as exc:
        return _error("services", exc)


@app.post("/prospects")
def prospects(
    filters: Optional[DashboardFiltersModel] = None,
    page: int = Query(default=1, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=1000),
    sort_column: Optional[str] = Query(default=None),
    sort_direction: SortDirection = Query(default="asc"),
):
    try:
        f, _, ctx = _context(filters)
        return _json(
            compute_prospects(
                f,
                ctx,
                page=page,
                per_page=per_page or get_settings().items_per_page,
                sort_column=sort_column,
                sort_direction=sort_direction,
            )
        )
    except Exception as exc:
        return _error("prospects", exc)


@app.post("/map")
def centers_map(filters: Optional[DashboardFiltersModel] = None):
    try:
        f, _, ctx = _context(filters)
        return _json(compute_map(f, ctx))
    except Exception as exc:
        return _error("map", exc)


@app.post("/details/account")
def details_account(body: AccountDetailsRequest):
    try:
        _, _, ctx = _context(body.filters)
        details = account_details(body.account_name, ctx)
        if details is None:
            return _not_found(f"Account {body.account_name!r} not found")
        return _json(details)
    except Exception as exc:
        return _error("details_account", exc)


@app.post("/details/center")
def details_center(body: CenterDetailsRequest):
    try:
        _, _, ctx = _context(body.filters)
        details = center_details(body.cn_unique_key, ctx)
        if details is None:
            return _not_found(f"Center {body.cn_unique_key!r} not found")
        return _json(details)
    except Exception as exc:
        return _error("details_center", exc)


@app.post("/details/prospect")
def details_prospect(body: ProspectDetailsRequest):
    try:
        _, _, ctx = _context(body.filters)
        details = prospect_details(body.account_name, body.first_name, body.last_name, ctx)
        if details is None:
            return _not_found(f"Prospect {body.first_name} {body.last_name} at {body.account_name!r} not found")
        return _json(details)
    except Exception as exc:
        return _error("details_prospect", exc)


@app.post("/export/{entity}")
def export_entity(entity: ExportEntity, filters: Optional[DashboardFiltersModel] = None):
    try:
        _, _, ctx = _context(filters)
        content = export_workbook(ctx, entity)
        filename = export_filename("dashboard-export" if entity == "all" else f"{entity}-export")
    except Exception as exc:
        return _error("export", exc)
    return Response(
        content=content,
        media_type=XLSX_MIME,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.get("/saved-filters")
def saved_filters_list():
    try:
        return _json({"saved_filters": [_saved_payload(item) for item in _store().list()]})
    except Exception as exc:
        return _error("saved_filters_list", exc)


@app.post("/saved-filters")
def saved_filters_create(body: SavedFilterRequest):
    try:
        item = _store().save(body.name, _filters_from_model(body.filters))
        return JSONResponse(status_code=201, content=jsonable_encoder(_saved_payload(item)))
    except Exception as exc:
        return _error("saved_filters_create", exc)


@app.get("/saved-filters/{filter_id}")
def saved_filters_get(filter_id: int):
    try:
        return _json(_saved_payload(_store().get(filter_id)))
    except Exception as exc:
        return _error("saved_filters_get", exc)


@app.put("/saved-filters/{filter_id}")
def saved_filters_update(filter_id: int, body: SavedFilterRequest):
    try:
        return _json(_saved_payload(_store().update(filter_id, body.name, _filters_from_model(body.filters))))
    except Exception as exc:
        return _error("saved_filters_update", exc)


@app.delete("/saved-filters/{filter_id}")
def saved_filters_delete(filter_id: int):
    try:
        _store().delete(filter_id)
        return _json({"deleted": filter_id})
    except Exception as exc:
        return _error("saved_filters_delete", exc)
