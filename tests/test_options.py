from core.data import DEFAULT_REVENUE_BOUNDS
from core.options import (
    clamp_revenue_range,
    compute_available_options,
    dynamic_revenue_range,
    suggest_account_names,
)


def _counts(options, key):
    return [(o["value"], o["count"]) for o in options[key]]


def test_options_sorted_by_count_then_value(data_ctx):
    options = compute_available_options({}, data_ctx)
    # Gamma Inc (no revenue) is outside the base set
    assert _counts(options, "account_countries") == [("India", 1), ("UK", 1), ("USA", 1)]
    assert _counts(options, "center_types") == [("Captive", 2), ("GCC", 2)]
    assert _counts(options, "function_types") == [("HR", 2), ("IT", 2), ("Finance", 1)]
    assert _counts(options, "prospect_levels") == [("VP", 2), ("CXO", 1), ("Director", 1)]


def test_own_dimension_is_left_out_of_its_counts(data_ctx):
    options = compute_available_options({"center_types": ["Captive"]}, data_ctx)
    assert _counts(options, "center_types") == [("Captive", 2), ("GCC", 2)]
    assert _counts(options, "function_types") == [("Finance", 1), ("HR", 1)]
    assert _counts(options, "center_cities") == [("Bangalore", 1), ("Chennai", 1)]


def test_account_selection_narrows_center_options(data_ctx):
    options = compute_available_options({"account_countries": ["UK"]}, data_ctx)
    assert _counts(options, "account_countries") == [("India", 1), ("UK", 1), ("USA", 1)]
    assert _counts(options, "center_types") == [("Captive", 2)]
    assert _counts(options, "prospect_departments") == [("Risk", 1)]


def test_selected_value_without_matches_stays_visible(data_ctx):
    options = compute_available_options({"center_types": ["Remote"]}, data_ctx)
    assert options["center_types"][-1] == {"value": "Remote", "count": 0, "disabled": True}


def test_dynamic_revenue_range(data_ctx):
    accounts = data_ctx["accounts"]
    assert dynamic_revenue_range({}, accounts) == (200.0, 1500.0)
    assert dynamic_revenue_range({"account_countries": ["USA"]}, accounts) == (1500.0, 1500.0)
    assert dynamic_revenue_range({"search_term": "gamma"}, accounts) == DEFAULT_REVENUE_BOUNDS


def test_clamp_revenue_range():
    assert clamp_revenue_range(None, (10.0, 20.0)) == (10.0, 20.0)
    assert clamp_revenue_range((0.0, 15.0), (10.0, 20.0)) == (10.0, 15.0)
    assert clamp_revenue_range((30.0, 40.0), (10.0, 20.0)) == (10.0, 20.0)


def test_suggest_account_names_prefix_first():
    names = ["Beta Acme", "Acme Corp", "acme labs", "Other", "Acme Corp", None]
    assert suggest_account_names(names, "acme") == ["Acme Corp", "acme labs", "Beta Acme"]
    assert suggest_account_names(names, "acme", selected=["Acme Corp"]) == ["acme labs", "Beta Acme"]
    assert suggest_account_names(names, "acme", limit=1) == ["Acme Corp"]
    assert suggest_account_names(names, "  ") == []
    assert suggest_account_names(names, "acme", limit=0) == []
    assert suggest_account_names(names, "acme", limit=-1) == []
