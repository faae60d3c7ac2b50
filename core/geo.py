from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from core.config import Settings, get_settings
from core.filters import DashboardFilters, filters_to_dict

logger = logging.getLogger(__name__)

DEFAULT_VIEW = {"latitude": 20.5937, "longitude": 78.9629, "zoom": 4}
MISSING_TOKEN_MESSAGE = "Mapbox token missing: set MAPBOX_TOKEN in the environment to use Mapbox map tiles."


def city_clusters(centers: pd.DataFrame) -> List[Dict[str, Any]]:
    """Centers with usable coordinates grouped by city; the first coordinate seen for a city is kept."""
    if centers.empty or not {"lat", "lng", "center_city"}.issubset(centers.columns):
        return []
    lat = pd.to_numeric(centers["lat"], errors="coerce")
    lng = pd.to_numeric(centers["lng"], errors="coerce")
    # zero is treated as "no coordinate"
    valid = lat.notna() & lng.notna() & (lat != 0) & (lng != 0)
    if not valid.any():
        return []

    df = pd.DataFrame(
        {
            "city": centers.loc[valid, "center_city"].astype("string").fillna("Unknown"),
            "lat": lat[valid],
            "lng": lng[valid],
        }
    )
    grouped = df.groupby("city", sort=False).agg(lat=("lat", "first"), lng=("lng", "first"), count=("lat", "size"))
    return [
        {"city": str(city), "lat": float(row.lat), "lng": float(row.lng), "count": int(row["count"])}
        for city, row in grouped.iterrows()
    ]


def initial_view_state(clusters: List[Dict[str, Any]]) -> Dict[str, float]:
    if not clusters:
        return dict(DEFAULT_VIEW)
    return {
        "latitude": sum(c["lat"] for c in clusters) / len(clusters),
        "longitude": sum(c["lng"] for c in clusters) / len(clusters),
        "zoom": 4,
    }


def to_geojson(clusters: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"city": c["city"], "count": c["count"]},
                "geometry": {"type": "Point", "coordinates": [c["lng"], c["lat"]]},
            }
            for c in clusters
        ],
    }


def compute_map(
    filters: DashboardFilters,
    ctx: Dict[str, Any],
    settings: Optional[Settings] = None,
) -> Dict[str, Any]:
    settings = settings or get_settings()
    centers: pd.DataFrame = ctx.get("filtered_centers", pd.DataFrame())
    clusters = city_clusters(centers)
    payload: Dict[str, Any] = {
        "filters": filters_to_dict(filters),
        "clusters": clusters,
        "max_count": max([c["count"] for c in clusters] + [1]),
        "view_state": initial_view_state(clusters),
        "geojson": to_geojson(clusters),
        "has_token": bool(settings.mapbox_token),
        "errors": [],
    }
    if not settings.mapbox_token:
        payload["errors"].append(MISSING_TOKEN_MESSAGE)
    if not clusters and not centers.empty:
        payload["errors"].append("Centers don't have latitude and longitude information.")
    logger.debug("Map: %d clusters from %d centers", len(clusters), len(centers))
    return payload
