import pandas as pd

from core.config import Settings
from core.data import prepare_context
from core.filters import normalize_filters
from core.geo import DEFAULT_VIEW, city_clusters, compute_map, initial_view_state, to_geojson


def test_city_clusters_keep_first_coordinate(data_ctx):
    clusters = city_clusters(data_ctx["centers"])
    by_city = {c["city"]: c for c in clusters}
    assert set(by_city) == {"Bangalore", "Pune", "Chennai"}
    assert by_city["Bangalore"]["count"] == 2
    assert by_city["Bangalore"]["lat"] == 12.97


def test_zero_coordinates_are_skipped():
    centers = pd.DataFrame({"center_city": ["X"], "lat": [0.0], "lng": [77.0]})
    assert city_clusters(centers) == []


def test_initial_view_state():
    assert initial_view_state([]) == DEFAULT_VIEW
    view = initial_view_state([{"lat": 10.0, "lng": 70.0}, {"lat": 20.0, "lng": 80.0}])
    assert view == {"latitude": 15.0, "longitude": 75.0, "zoom": 4}


def test_geojson_points_are_lng_lat():
    geo = to_geojson([{"city": "Pune", "lat": 18.5, "lng": 73.8, "count": 1}])
    assert geo["type"] == "FeatureCollection"
    assert geo["features"][0]["geometry"]["coordinates"] == [73.8, 18.5]


def test_compute_map_reports_missing_token(data_ctx):
    f = normalize_filters({})
    ctx = prepare_context(f, data_ctx)
    payload = compute_map(f, ctx, Settings())
    assert not payload["has_token"]
    assert payload["errors"]
    assert payload["max_count"] == 2

    payload = compute_map(f, ctx, Settings(mapbox_token="pk.test"))
    assert payload["has_token"]
    assert payload["errors"] == []
