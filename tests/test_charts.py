import pandas as pd

from core.charts import CHART_COLORS, chart_payload, count_by, count_top_with_others, function_counts, pie_chart, to_vega_spec


def test_palette_has_fifteen_colors():
    assert len(CHART_COLORS) == 15
    assert CHART_COLORS[0] == "#3b82f6"


def test_count_by_groups_missing_as_unknown():
    df = pd.DataFrame({"region": ["APAC", None, "EMEA", "APAC", ""]})
    assert count_by(df, "region") == [
        {"name": "APAC", "value": 2},
        {"name": "Unknown", "value": 2},
        {"name": "EMEA", "value": 1},
    ]
    assert count_by(df, "missing_column") == []


def test_count_by_keeps_top_ten():
    df = pd.DataFrame({"city": [f"city-{i:02d}" for i in range(12)]})
    assert len(count_by(df, "city")) == 10


def test_top_with_others_bucket():
    cities = ["A"] * 5 + ["B"] * 4 + ["C"] * 3 + ["D"] * 2 + ["E"] + ["F"] + ["G"]
    data = count_top_with_others(pd.DataFrame({"center_city": cities}), "center_city")
    assert [d["name"] for d in data] == ["A", "B", "C", "D", "E", "Others"]
    assert data[-1]["value"] == 2

    short = count_top_with_others(pd.DataFrame({"center_city": ["A", "B"]}), "center_city")
    assert [d["name"] for d in short] == ["A", "B"]


def test_function_counts_limited_to_center_keys(data_ctx):
    data = function_counts(data_ctx["functions"], ["C1", "C3"])
    assert data == [{"name": "Finance", "value": 1}, {"name": "HR", "value": 1}, {"name": "IT", "value": 1}]


def test_pie_chart_spec_is_serializable():
    spec = to_vega_spec(pie_chart([{"name": "A", "value": 3}, {"name": "B", "value": 1}], "Split"))
    assert spec["mark"]["type"] == "arc"
    assert spec["encoding"]["theta"]["field"] == "value"
    payload = chart_payload([], "Empty")
    assert payload["data"] == []
    assert "spec" in payload
