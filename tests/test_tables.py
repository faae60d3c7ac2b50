import pandas as pd

from core.tables import page_info, paginate, sort_frame, table_payload, total_pages


def test_total_pages():
    assert total_pages(0, 50) == 1
    assert total_pages(50, 50) == 1
    assert total_pages(51, 50) == 2


def test_paginate_is_one_based_and_clamped():
    df = pd.DataFrame({"n": range(7)})
    assert paginate(df, 1, 3)["n"].tolist() == [0, 1, 2]
    assert paginate(df, 3, 3)["n"].tolist() == [6]
    assert paginate(df, 99, 3)["n"].tolist() == [6]
    assert paginate(df, 0, 3)["n"].tolist() == [0, 1, 2]


def test_page_info():
    assert page_info(2, 7, 3) == {"start_item": 4, "end_item": 6, "total_items": 7}
    assert page_info(1, 0, 3) == {"start_item": 0, "end_item": 0, "total_items": 0}


def test_sort_frame_numeric_text_and_missing():
    df = pd.DataFrame({"name": ["beta", "Alpha", None, "gamma"], "size": [10, 2, None, 33]})
    assert sort_frame(df, "name", "asc")["name"].tolist()[:3] == ["Alpha", "beta", "gamma"]
    assert pd.isna(sort_frame(df, "name", "desc")["name"].tolist()[-1])
    assert sort_frame(df, "size", "desc")["size"].tolist()[:3] == [33, 10, 2]
    assert sort_frame(df, "nope").equals(df)


def test_table_payload_shape():
    df = pd.DataFrame({"n": range(5)})
    payload = table_payload(df, page=2, per_page=2, sort_column="n", sort_direction="desc")
    assert [r["n"] for r in payload["rows"]] == [2, 1]
    assert payload["total_pages"] == 3
    assert payload["page_info"] == {"start_item": 3, "end_item": 4, "total_items": 5}
