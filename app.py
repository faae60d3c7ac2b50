import json
import logging
from contextlib import contextmanager
from typing import Dict, List, Optional

import altair as alt
import pandas as pd
import pydeck as pdk
import streamlit as st
from sqlalchemy.exc import SQLAlchemyError

from core.charts import pie_chart
from core.config import Settings, get_settings
from core.data import clear_cache, load_dashboard_data, prepare_context
from core.db import DataLoadError, DatabaseNotConfigured, database_status, get_engine
from core.details import account_details, center_details, prospect_details
from core.export import XLSX_MIME, export_filename, export_workbook, filters_signature
from core.filters import (
    EXCLUDE,
    INCLUDE,
    KEYWORD_FIELDS,
    DashboardFilters,
    FilterValue,
    count_active_filters,
    describe_filters,
    dimensions_for,
    normalize_filters,
)
from core.geo import compute_map
from core.logging_config import setup_logging
from core.metrics_accounts import compute_accounts
from core.metrics_centers import compute_centers
from core.metrics_prospects import compute_prospects
from core.metrics_services import compute_services
from core.metrics_summary import compute_summary
from core.options import clamp_revenue_range, compute_available_options, dynamic_revenue_range, suggest_account_names
from core.saved_filters import SavedFilterNotFound, SavedFilterStore, saved_filter_label

alt.data_transformers.disable_max_rows()

settings = get_settings()
setup_logging(settings.log_level)
logger = logging.getLogger("dashboard")

FILTER_GROUPS = (
    ("accounts", "Account filters"),
    ("centers", "Center filters"),
    ("functions", "Function filters"),
    ("prospects", "Prospect filters"),
)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        .chip.exclude {background: #fef2f2;border-color: #fecaca;color: #991b1b;text-decoration: line-through;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"<div class='card'><div class='card-header'><div class='card-title'>{title}</div></div>",
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: DashboardFilters) -> str:
    chips = describe_filters(filters)
    if not chips:
        return "<span class='chip'>No filters applied</span>"
    return "".join(
        f"<span class='chip {'exclude' if c['mode'] == EXCLUDE else ''}'>{c['label']}: {c['value']}</span>" for c in chips
    )


def render_page_header(title: str, breadcrumb: str, filters: DashboardFilters, ctx: Dict):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        st.download_button(
            "Export all data",
            data=workbook_for("all", filters, ctx),
            file_name=export_filename("dashboard-export"),
            mime=XLSX_MIME,
        )
    st.markdown(f"<div class='chip-row'>{format_filter_summary(filters)}</div>", unsafe_allow_html=True)


def require_login():
    """Same static credentials as the API; skipped when none are configured."""
    if not settings.auth_enabled or st.session_state.get("_authenticated"):
        return
    st.title("Sign in")
    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")
    if submitted:
        if settings.credentials_match(username, password):
            st.session_state["_authenticated"] = True
            st.rerun()
        st.error("Invalid username or password.")
    st.stop()


def render_load_error(exc: Exception):
    st.error(str(exc))
    c1, c2, _ = st.columns([1, 1, 6])
    if c1.button("Retry"):
        st.rerun()
    if c2.button("Clear cache"):
        clear_cache()
        st.rerun()
    with st.expander("Connection details"):
        st.json(database_status())
    st.stop()


# ---------- filter state ----------
def applied_filters() -> DashboardFilters:
    if "filters" not in st.session_state:
        st.session_state["filters"] = normalize_filters({})
    return st.session_state["filters"]


def set_filters(filters: DashboardFilters):
    st.session_state["filters"] = filters
    # widget keys carry a version so a reset/load repopulates them
    st.session_state["form_version"] = st.session_state.get("form_version", 0) + 1


# ---------- exports ----------
@st.cache_data(show_spinner=False, max_entries=32)
def build_workbook(entity: str, filters_sig: str, loaded_at: str) -> bytes:
    """Keyed on the applied filters and the data load time; reruns reuse the bytes."""
    data_ctx = load_dashboard_data(settings)
    ctx = prepare_context(normalize_filters(json.loads(filters_sig)), data_ctx)
    return export_workbook(ctx, entity)


def workbook_for(entity: str, filters: DashboardFilters, ctx: Dict) -> bytes:
    return build_workbook(entity, filters_signature(filters), str(ctx.get("loaded_at") or ""))


def _split_keywords(text: str) -> List[str]:
    return [k.strip() for k in (text or "").split(",") if k.strip()]


def _dimension_inputs(dim, options: List[Dict], filters: DashboardFilters, version: int):
    counts = {o["value"]: o["count"] for o in options}
    values = [o["value"] for o in options]
    selected = filters.selections(dim.key)
    fmt = lambda v: f"{v} ({counts.get(v, 0)})"
    include = st.multiselect(
        dim.label,
        options=values,
        default=[s.value for s in selected if s.mode == INCLUDE and s.value in values],
        format_func=fmt,
        key=f"{dim.key}_include_{version}",
    )
    exclude = st.multiselect(
        f"Exclude {dim.label.lower()}",
        options=values,
        default=[s.value for s in selected if s.mode == EXCLUDE and s.value in values],
        format_func=fmt,
        key=f"{dim.key}_exclude_{version}",
    )
    return [FilterValue(v, INCLUDE) for v in include] + [FilterValue(v, EXCLUDE) for v in exclude if v not in include]


def render_filter_sidebar(data_ctx: Dict) -> None:
    filters = applied_filters()
    version = st.session_state.get("form_version", 0)
    options = compute_available_options(filters, data_ctx)
    revenue_bounds = dynamic_revenue_range(filters, data_ctx["accounts"])

    st.markdown("### Filters")
    active = count_active_filters(filters, data_ctx["revenue_bounds"])
    st.caption(f"{active} active filter{'s' if active != 1 else ''}")

    with st.form(f"filters_{version}"):
        raw: Dict = {}
        raw["search_term"] = st.text_input("Search accounts", value=filters.search_term, key=f"search_{version}")
        for entity, title in FILTER_GROUPS:
            with st.expander(title, expanded=entity == "accounts"):
                for dim in dimensions_for(entity):
                    raw[dim.key] = _dimension_inputs(dim, options[dim.key], filters, version)

        with st.expander("Revenue and keywords", expanded=False):
            low, high = revenue_bounds
            if low < high:
                raw["account_revenue_range"] = st.slider(
                    "Revenue (M)",
                    min_value=float(low),
                    max_value=float(high),
                    value=clamp_revenue_range(filters.account_revenue_range, revenue_bounds),
                    key=f"revenue_{version}",
                )
            else:
                st.caption(f"Revenue: {low:,.0f}M")
                raw["account_revenue_range"] = filters.account_revenue_range
            raw["include_null_revenue"] = st.checkbox(
                "Include accounts without revenue", value=filters.include_null_revenue, key=f"null_rev_{version}"
            )
            for key, (_, label) in KEYWORD_FIELDS.items():
                current = filters.selections(key)
                inc = st.text_input(
                    f"{label}s (comma-separated)",
                    value=", ".join(s.value for s in current if s.mode == INCLUDE),
                    key=f"{key}_inc_{version}",
                )
                exc = st.text_input(
                    f"Exclude {label.lower()}s",
                    value=", ".join(s.value for s in current if s.mode == EXCLUDE),
                    key=f"{key}_exc_{version}",
                )
                raw[key] = [{"value": v, "mode": INCLUDE} for v in _split_keywords(inc)] + [
                    {"value": v, "mode": EXCLUDE} for v in _split_keywords(exc)
                ]
        applied = st.form_submit_button("Apply filters", type="primary")

    if applied:
        # an untouched slider at the full range means "no revenue filter"
        if raw.get("account_revenue_range") and tuple(raw["account_revenue_range"]) == tuple(revenue_bounds) and filters.account_revenue_range is None:
            raw["account_revenue_range"] = None
        set_filters(normalize_filters(raw))
        st.rerun()
    if st.button("Reset filters"):
        set_filters(normalize_filters({}))
        st.rerun()


@st.cache_resource
def saved_filter_store(database_url: str) -> SavedFilterStore:
    return SavedFilterStore(get_engine(Settings(database_url=database_url)))


def render_saved_filters() -> None:
    st.markdown("### Saved filters")
    if not settings.database_url:
        st.caption("Saved filters need DATABASE_URL.")
        return
    try:
        store = saved_filter_store(settings.database_url)
        saved = store.list()
    except SQLAlchemyError as exc:
        logger.error("Saved filters unavailable: %s", exc)
        st.warning(f"Saved filters unavailable: {exc}")
        return

    if saved:
        by_label = {saved_filter_label(item): item for item in saved}
        choice = st.selectbox("Saved", options=list(by_label))
        c1, c2 = st.columns(2)
        if c1.button("Load"):
            set_filters(by_label[choice]["filters"])
            st.rerun()
        if c2.button("Delete"):
            try:
                store.delete(by_label[choice]["id"])
            except SavedFilterNotFound:
                st.warning("That filter was already deleted.")
            st.rerun()
    else:
        st.caption("No saved filters yet.")

    name = st.text_input("Name for current filters", key="saved_filter_name")
    if st.button("Save current filters"):
        try:
            store.save(name, applied_filters())
            st.success(f"Saved '{name.strip()}'.")
            st.rerun()
        except ValueError as exc:
            st.error(str(exc))


# ---------- pages ----------
def render_charts(charts: Dict[str, Dict]):
    items = list(charts.values())
    for start in range(0, len(items), 2):
        cols = st.columns(2)
        for col, chart in zip(cols, items[start : start + 2]):
            with col:
                with card(chart["title"]):
                    if chart["data"]:
                        st.altair_chart(pie_chart(chart["data"], chart["title"]), use_container_width=True)
                    else:
                        st.info("No data for the current filters.")


def table_controls(entity: str, columns: List[str], default_sort: Optional[str]) -> Dict:
    c1, c2, c3 = st.columns([3, 2, 2])
    sort_options = ["(none)"] + columns
    index = sort_options.index(default_sort) if default_sort in sort_options else 0
    sort_column = c1.selectbox("Sort by", options=sort_options, index=index, key=f"{entity}_sort")
    sort_direction = c2.radio("Direction", options=["asc", "desc"], horizontal=True, key=f"{entity}_dir")
    page = c3.number_input("Page", min_value=1, value=1, step=1, key=f"{entity}_page")
    return {
        "page": int(page),
        "per_page": settings.items_per_page,
        "sort_column": None if sort_column == "(none)" else sort_column,
        "sort_direction": sort_direction,
    }


def render_table(entity: str, payload: Dict, filters: DashboardFilters, ctx: Dict):
    table = payload["table"]
    info = table["page_info"]
    st.dataframe(pd.DataFrame(table["rows"]), hide_index=True, use_container_width=True)
    st.caption(
        f"Showing {info['start_item']}-{info['end_item']} of {info['total_items']} "
        f"(page {table['page']} of {table['total_pages']})"
    )
    st.download_button(
        f"Export {entity}",
        data=workbook_for(entity, filters, ctx),
        file_name=export_filename(f"{entity}-export"),
        mime=XLSX_MIME,
        key=f"{entity}_export",
    )


def render_account_detail(name: str, ctx: Dict):
    details = account_details(name, ctx)
    if details is None:
        st.info("Account not found.")
        return
    account = details["account"]
    st.markdown(f"**{account['account_name']}**  ·  {details['location']}")
    st.write({k: v for k, v in account.items() if v not in (None, "")})
    counts = details["counts"]
    t1, t2, t3 = st.tabs(
        [f"Centers ({counts['centers']})", f"Prospects ({counts['prospects']})", f"Services ({counts['services']})"]
    )
    with t1:
        st.dataframe(pd.DataFrame(details["centers"]), hide_index=True)
    with t2:
        st.dataframe(pd.DataFrame(details["prospects"]), hide_index=True)
    with t3:
        st.dataframe(pd.DataFrame(details["services"]), hide_index=True)


def render_accounts_tab(filters: DashboardFilters, ctx: Dict):
    view = st.radio("View", ["Charts", "Data"], horizontal=True, key="accounts_view")
    accounts = ctx["filtered_accounts"]
    if view == "Charts":
        render_charts(compute_accounts(filters, ctx)["charts"])
        return
    controls = table_controls("accounts", list(accounts.columns), "account_name")
    payload = compute_accounts(filters, ctx, **controls)
    render_table("accounts", payload, filters, ctx)

    with st.expander("Account details"):
        query = st.text_input("Find account", key="account_lookup")
        names = suggest_account_names(accounts["account_name"], query) if query else [r["account_name"] for r in payload["table"]["rows"]]
        if names:
            render_account_detail(st.selectbox("Account", options=names, key="account_pick"), ctx)
        else:
            st.caption("No matching accounts.")


def render_map(filters: DashboardFilters, ctx: Dict):
    try:
        payload = compute_map(filters, ctx, settings)
        for message in payload["errors"]:
            st.warning(message)
        if payload["clusters"]:
            points = pd.DataFrame(payload["clusters"])
            points["radius"] = 8000 + 40000 * points["count"] / payload["max_count"]
            layer = pdk.Layer(
                "ScatterplotLayer",
                data=points,
                get_position="[lng, lat]",
                get_radius="radius",
                get_fill_color=[59, 130, 246, 160],
                pickable=True,
            )
            view_state = pdk.ViewState(**payload["view_state"])
            deck = pdk.Deck(
                layers=[layer],
                initial_view_state=view_state,
                tooltip={"text": "{city}: {count} centers"},
                map_provider="mapbox" if payload["has_token"] else "carto",
                api_keys={"mapbox": settings.mapbox_token} if payload["has_token"] else None,
            )
            st.pydeck_chart(deck)
            st.dataframe(points[["city", "count"]].sort_values("count", ascending=False), hide_index=True)
    except Exception as exc:
        logger.exception("Map rendering failed")
        st.error(f"Map failed to load: {exc}")
        if st.button("Retry map"):
            st.rerun()


def render_centers_tab(filters: DashboardFilters, ctx: Dict):
    view = st.radio("View", ["Charts", "Data", "Map"], horizontal=True, key="centers_view")
    centers = ctx["filtered_centers"]
    if view == "Charts":
        render_charts(compute_centers(filters, ctx)["charts"])
        return
    if view == "Map":
        render_map(filters, ctx)
        return
    controls = table_controls("centers", list(centers.columns), "center_name")
    payload = compute_centers(filters, ctx, **controls)
    render_table("centers", payload, filters, ctx)
    st.download_button(
        "Export functions",
        data=workbook_for("functions", filters, ctx),
        file_name=export_filename("functions-export"),
        mime=XLSX_MIME,
    )

    rows = payload["table"]["rows"]
    if rows:
        with st.expander("Center details"):
            labels = {f"{r['center_name']} ({r['cn_unique_key']})": r["cn_unique_key"] for r in rows}
            details = center_details(labels[st.selectbox("Center", options=list(labels))], ctx)
            if details:
                st.markdown(f"**{details['center']['center_name']}**  ·  status: :{details['status_color']}[{details['center'].get('center_status') or 'Unknown'}]")
                st.write({k: v for k, v in details["center"].items() if v not in (None, "")})
                st.markdown("**Functions:** " + (", ".join(details["functions"]) or "none"))
                st.dataframe(pd.DataFrame(details["services"]), hide_index=True)


def render_services_tab(filters: DashboardFilters, ctx: Dict):
    view = st.radio("View", ["Charts", "Data"], horizontal=True, key="services_view")
    services = ctx["filtered_services"]
    if view == "Charts":
        render_charts(compute_services(filters, ctx)["charts"])
        return
    controls = table_controls("services", list(services.columns), "center_name")
    render_table("services", compute_services(filters, ctx, **controls), filters, ctx)


def render_prospects_tab(filters: DashboardFilters, ctx: Dict):
    view = st.radio("View", ["Charts", "Data"], horizontal=True, key="prospects_view")
    prospects = ctx["filtered_prospects"]
    if view == "Charts":
        render_charts(compute_prospects(filters, ctx)["charts"])
        return
    controls = table_controls("prospects", list(prospects.columns), None)
    payload = compute_prospects(filters, ctx, **controls)
    render_table("prospects", payload, filters, ctx)

    rows = payload["table"]["rows"]
    if rows:
        with st.expander("Prospect details"):
            labels = {
                f"{r.get('first_name') or ''} {r.get('last_name') or ''} · {r['account_name']}": r for r in rows
            }
            row = labels[st.selectbox("Prospect", options=list(labels))]
            details = prospect_details(row["account_name"], row.get("first_name") or "", row.get("last_name") or "", ctx)
            if details:
                st.markdown(f"**{details['full_name']}**, {details['prospect'].get('title') or ''}")
                st.write({k: v for k, v in details["prospect"].items() if v not in (None, "")})


def render_summary(filters: DashboardFilters, ctx: Dict):
    summary = compute_summary(filters, ctx)
    cols = st.columns(5)
    for col, (entity, counts) in zip(cols, summary["counts"].items()):
        col.metric(entity.title(), f"{counts['filtered']:,}", f"of {counts['total']:,}", delta_color="off")


# ---------- UI setup ----------
st.set_page_config(page_title="Center Intelligence Dashboard", layout="wide")
inject_base_styles()
require_login()
st.title("Center Intelligence Dashboard")
st.caption("Accounts, centers, functions, services and prospects with include/exclude filters.")

try:
    data_ctx = load_dashboard_data(settings)
except (DatabaseNotConfigured, DataLoadError) as exc:
    logger.error("Dashboard data unavailable: %s", exc)
    render_load_error(exc)

with st.sidebar:
    render_filter_sidebar(data_ctx)
    st.markdown("---")
    render_saved_filters()
    st.markdown("---")
    if st.button("Refresh data"):
        clear_cache()
        st.rerun()

filters = applied_filters()
ctx = prepare_context(filters, data_ctx)
render_page_header("Overview", "Home / Dashboard", filters, ctx)
render_summary(filters, ctx)

tab_accounts, tab_centers, tab_services, tab_prospects = st.tabs(["Accounts", "Centers", "Services", "Prospects"])
with tab_accounts:
    render_accounts_tab(filters, ctx)
with tab_centers:
    render_centers_tab(filters, ctx)
with tab_services:
    render_services_tab(filters, ctx)
with tab_prospects:
    render_prospects_tab(filters, ctx)
