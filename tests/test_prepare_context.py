import pandas as pd

from core.data import (
    DEFAULT_REVENUE_BOUNDS,
    build_data_context,
    clean_entity_frame,
    parse_revenue,
    prepare_context,
    revenue_bounds,
)


def _names(df: pd.DataFrame, column: str) -> list:
    return sorted(df[column].dropna().tolist())


def _assert_consistent(ctx) -> None:
    accounts = set(ctx["filtered_accounts"]["account_name"])
    center_keys = set(ctx["filtered_centers"]["cn_unique_key"])
    # centers whose account is absent from the accounts table can only show up unattached
    unlisted = set(ctx["centers"]["account_name"]) - set(ctx["accounts"]["account_name"])
    assert set(ctx["filtered_centers"]["account_name"]) <= accounts | unlisted
    assert set(ctx["filtered_functions"]["cn_unique_key"]) <= center_keys
    assert set(ctx["filtered_services"]["cn_unique_key"]) <= center_keys
    assert accounts <= set(ctx["filtered_centers"]["account_name"])
    assert set(ctx["filtered_prospects"]["account_name"]) <= accounts


def test_cleaning_maps_labels_and_parses_revenue(data_ctx):
    accounts = data_ctx["accounts"]
    assert "account_name" in accounts.columns
    assert "revenue" in accounts.columns
    revenue = dict(zip(accounts["account_name"], accounts["revenue"]))
    assert revenue["Acme Corp"] == 1500.0
    assert revenue["Gamma Inc"] == 0.0
    assert pd.isna(accounts.loc[accounts["account_name"] == "Gamma Inc", "account_city"]).all()
    assert data_ctx["revenue_bounds"] == (200.0, 1500.0)
    assert data_ctx["row_counts"]["centers"] == 5


def test_missing_table_gives_empty_frame_with_columns():
    frame = clean_entity_frame(None, "prospects")
    assert frame.empty
    assert {"account_name", "title", "department"} <= set(frame.columns)


def test_parse_revenue_and_default_bounds():
    assert parse_revenue("$2,400.5") == 2400.5
    assert parse_revenue("n/a") == 0.0
    assert parse_revenue(None) == 0.0
    assert revenue_bounds(pd.DataFrame({"revenue": [0.0, None]})) == DEFAULT_REVENUE_BOUNDS


def test_default_filters_hide_null_revenue_and_centerless_accounts(data_ctx):
    ctx = prepare_context({}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp", "Beta Ltd"]
    assert _names(ctx["filtered_centers"], "cn_unique_key") == ["C1", "C2", "C3", "C5"]
    assert len(ctx["filtered_functions"]) == 5
    assert len(ctx["filtered_services"]) == 4
    assert _names(ctx["filtered_prospects"], "first_name") == ["Jane", "John", "Sam"]
    assert ctx["loaded_at"] == data_ctx["loaded_at"]
    _assert_consistent(ctx)


def test_include_null_revenue_brings_back_account(data_ctx):
    ctx = prepare_context({"include_null_revenue": True}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp", "Beta Ltd", "Gamma Inc"]
    assert len(ctx["filtered_centers"]) == 5
    _assert_consistent(ctx)


def test_center_filter_constrains_accounts_and_prospects(data_ctx):
    ctx = prepare_context({"center_types": ["Captive"]}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Beta Ltd"]
    assert _names(ctx["filtered_centers"], "cn_unique_key") == ["C3", "C5"]
    assert _names(ctx["filtered_functions"], "function") == ["Finance", "HR"]
    assert _names(ctx["filtered_prospects"], "first_name") == ["Sam"]
    _assert_consistent(ctx)


def test_function_filter_constrains_centers(data_ctx):
    ctx = prepare_context({"function_types": ["IT"]}, data_ctx)
    assert _names(ctx["filtered_centers"], "cn_unique_key") == ["C1", "C2"]
    assert _names(ctx["filtered_functions"], "function") == ["IT", "IT"]
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp"]
    _assert_consistent(ctx)


def test_prospect_filter_constrains_accounts_and_centers(data_ctx):
    ctx = prepare_context({"prospect_departments": ["Risk"]}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Beta Ltd"]
    assert _names(ctx["filtered_centers"], "cn_unique_key") == ["C3", "C5"]
    assert _names(ctx["filtered_prospects"], "first_name") == ["Sam"]
    _assert_consistent(ctx)


def test_exclude_and_keyword_filters(data_ctx):
    ctx = prepare_context({"account_countries": [{"value": "USA", "mode": "exclude"}]}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Beta Ltd"]

    ctx = prepare_context({"account_name_keywords": ["ACME"]}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp"]

    ctx = prepare_context({"prospect_title_keywords": [{"value": "vp", "mode": "include"}]}, data_ctx)
    assert _names(ctx["filtered_prospects"], "first_name") == ["Jane"]
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp"]


def test_search_and_revenue_range(data_ctx):
    ctx = prepare_context({"search_term": "beta"}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Beta Ltd"]

    ctx = prepare_context({"account_revenue_range": [1000, 2000]}, data_ctx)
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp"]


def test_no_match_yields_empty_frames(data_ctx):
    ctx = prepare_context({"center_cities": ["Atlantis"]}, data_ctx)
    for key in ("filtered_accounts", "filtered_centers", "filtered_functions", "filtered_services", "filtered_prospects"):
        assert ctx[key].empty


def test_empty_tables_are_tolerated():
    ctx = prepare_context({}, build_data_context({}))
    assert ctx["filtered_accounts"].empty
    assert ctx["revenue_bounds"] == DEFAULT_REVENUE_BOUNDS


def test_prospects_of_unlisted_accounts_stay_hidden(raw_tables):
    raw_tables["accounts"] = raw_tables["accounts"][raw_tables["accounts"]["ACCOUNT NAME"] == "Acme Corp"]
    centers = raw_tables["centers"]
    orphan_center = ["Orphan Co", "C9", "Orphan Pune", "GCC", "IT", "Pune", "Maharashtra", "India", "0-100", "Active Center", 18.5, 73.8]
    raw_tables["centers"] = pd.concat([centers, pd.DataFrame([orphan_center], columns=centers.columns)], ignore_index=True)
    prospects = raw_tables["prospects"]
    orphan_prospect = ["Orphan Co", "Pat", "Poe", "CIO", "IT", "CXO", "Pune"]
    raw_tables["prospects"] = pd.concat([prospects, pd.DataFrame([orphan_prospect], columns=prospects.columns)], ignore_index=True)

    ctx = prepare_context({}, build_data_context(raw_tables))
    assert _names(ctx["filtered_accounts"], "account_name") == ["Acme Corp"]
    assert "C9" in set(ctx["filtered_centers"]["cn_unique_key"])
    assert _names(ctx["filtered_prospects"], "first_name") == ["Jane", "John"]
    _assert_consistent(ctx)
