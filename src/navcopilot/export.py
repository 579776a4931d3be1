"""
GeoJSON export of routes, corridors, alerts and heatmap samples.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence
import json
import logging

from shapely.geometry import LineString, Point, Polygon, mapping

from .geometry import GeoPoint
from .models import HeatmapSample, TrafficAlert, TrafficIntensity
from .optimizer import RankedRoute
from .route import Route

logger = logging.getLogger(__name__)

Feature = Dict[str, Any]

INTENSITY_COLORS = {
    TrafficIntensity.NONE: "#4caf50",
    TrafficIntensity.LIGHT: "#ffeb3b",
    TrafficIntensity.MODERATE: "#ff9800",
    TrafficIntensity.HEAVY: "#f44336",
    TrafficIntensity.SEVERE: "#8b0000",
}


def _lnglat(points: Iterable[GeoPoint]) -> List[tuple]:
    # GeoJSON coordinate order is longitude, latitude
    return [(p.longitude, p.latitude) for p in points]


def _feature(geometry, properties: Dict[str, Any]) -> Feature:
    return {"type": "Feature", "geometry": mapping(geometry), "properties": properties}


def route_feature(route: Route, rank: Optional[int] = None, ranked: Optional[RankedRoute] = None) -> Feature:
    coords = _lnglat(route.points)
    if len(coords) == 1:
        coords = coords * 2
    properties: Dict[str, Any] = {
        "kind": "route",
        "distance": route.distance,
        "duration": route.duration,
        "summary": route.summary,
        "source": str(route.source),
        "steps": [step.instruction for step in route.steps],
    }
    if rank is not None:
        properties["rank"] = rank
    if ranked is not None:
        properties.update(
            score=ranked.score,
            traffic_penalty=ranked.traffic_penalty,
            estimated_time_with_traffic=ranked.estimated_time_with_traffic,
            justification=ranked.justification,
        )
    return _feature(LineString(coords), properties)


def corridor_feature(route: Route, half_width: float, max_vertices: int = 50) -> Optional[Feature]:
    ring = route.corridor(half_width, max_vertices)
    if len(ring) < 4:
        return None
    return _feature(Polygon(_lnglat(ring)), {"kind": "corridor", "half_width": half_width})


def alert_feature(alert: TrafficAlert) -> Feature:
    location = alert.location
    return _feature(
        Point(location.longitude, location.latitude),
        {
            "kind": "alert",
            "category": alert.category.value,
            "message": alert.message,
            "severity": alert.severity,
            "severity_level": alert.severity_level,
            "places": [place.name for place in alert.places],
        },
    )


def heatmap_features(sample: HeatmapSample) -> List[Feature]:
    return [
        _feature(
            Point(point.location.longitude, point.location.latitude),
            {
                "kind": "traffic",
                "intensity": str(point.intensity),
                "speed_ratio": point.speed_ratio,
                "color": INTENSITY_COLORS[point.intensity],
            },
        )
        for point in sample.points
    ]


def feature_collection(
    ranked_routes: Sequence[RankedRoute] = (),
    alerts: Sequence[TrafficAlert] = (),
    heatmap: Optional[HeatmapSample] = None,
    corridor_half_width: Optional[float] = None,
    track: Sequence[GeoPoint] = (),
    corridor_max_vertices: int = 50,
) -> Dict[str, Any]:
    """
    Assemble a GeoJSON FeatureCollection.

    Routes are emitted in rank order; the corridor, when requested, is drawn
    around the top-ranked route only, downsampled to at most
    corridor_max_vertices path points.
    """
    features: List[Feature] = []
    for rank, ranked in enumerate(ranked_routes, start=1):
        features.append(route_feature(ranked.route, rank, ranked))
    if corridor_half_width is not None and ranked_routes:
        corridor = corridor_feature(
            ranked_routes[0].route, corridor_half_width, corridor_max_vertices
        )
        if corridor is not None:
            features.append(corridor)
    features.extend(alert_feature(alert) for alert in alerts)
    if heatmap is not None:
        features.extend(heatmap_features(heatmap))
    if len(track) >= 2:
        features.append(_feature(LineString(_lnglat(track)), {"kind": "track"}))
    return {"type": "FeatureCollection", "features": features}


def write_geojson(collection: Dict[str, Any], filename: str) -> None:
    with open(filename, "w", encoding="utf-8") as f:
        json.dump(collection, f, indent=2)
    logger.debug(f"Wrote {len(collection['features'])} features to {filename}")
