"""
Nearby place discovery and congestion alerts.

Places that attract crowds (markets, schools, transit hubs) are looked up
around a point and grouped into TrafficAlerts whose severity is the mean
congestion impact of their category.
"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Protocol
import asyncio
import logging

from . import geodesy
from .config import NavigationConfig
from .errors import BackendUnavailable, MalformedResponse, NoResult
from .geometry import GeoPoint
from .models import NearbyPlace, PlaceCategory, TrafficAlert

logger = logging.getLogger(__name__)

# Place types queried one by one against the nearby-search backend
SEARCH_TYPES = [
    "school",
    "university",
    "shopping_mall",
    "cafe",
    "restaurant",
    "supermarket",
    "market",
    "store",
    "hospital",
    "parking",
    "bus_station",
    "train_station",
    "subway_station",
]


class PlaceSearchBackend(Protocol):
    def nearby_search(self, center: GeoPoint, radius: float, place_type: str) -> Dict[str, Any]: ...


def parse_place(data: Dict[str, Any], center: GeoPoint) -> NearbyPlace:
    """
    Decode one nearby-search result.

    Raises:
        MalformedResponse: If the id, name or location is missing or invalid
    """
    try:
        location_data = data["geometry"]["location"]
        location = GeoPoint(
            latitude=float(location_data["lat"]), longitude=float(location_data["lng"])
        )
        rating = data.get("rating")
        ratings_total = data.get("user_ratings_total")
        return NearbyPlace(
            place_id=str(data["place_id"]),
            name=str(data["name"]),
            location=location,
            category=PlaceCategory.from_tags(data.get("types") or []),
            distance=geodesy.distance(center, location),
            rating=float(rating) if rating is not None else None,
            user_ratings_total=int(ratings_total) if ratings_total is not None else None,
            vicinity=data.get("vicinity"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Malformed place result: {e!r}") from e


def deduplicate_places(places: Iterable[NearbyPlace]) -> List[NearbyPlace]:
    """Keep the first occurrence of each place id, sorted by distance from the query center."""
    unique: Dict[str, NearbyPlace] = {}
    for place in places:
        unique.setdefault(place.place_id, place)
    return sorted(unique.values(), key=lambda p: p.distance)


def analyze_alerts(
    center: GeoPoint,
    places: Iterable[NearbyPlace],
    cluster_radius: float = 500.0,
    significance: float = 0.4,
) -> List[TrafficAlert]:
    """
    Group places near a center by category and turn significant groups into alerts.

    Args:
        center: Point the alerts are analyzed around
        places: Candidate places
        cluster_radius: Only places within this distance (meters) of the center count
        significance: Minimum mean impact for a cluster to become an alert

    Returns:
        Alerts sorted by severity, highest first
    """
    clusters: Dict[PlaceCategory, List[NearbyPlace]] = defaultdict(list)
    for place in places:
        if geodesy.distance(center, place.location) <= cluster_radius:
            clusters[place.category].append(place)

    alerts = []
    for category, members in clusters.items():
        alert = TrafficAlert(category=category, places=tuple(members))
        if alert.severity >= significance:
            alerts.append(alert)
        else:
            logger.debug(
                f"Ignoring {len(members)} {category} place(s): severity {alert.severity:.2f} below {significance}"
            )

    alerts.sort(key=lambda a: a.severity, reverse=True)
    return alerts


class PlaceTrafficAnalyzer:
    """Finds crowd-attracting places and derives traffic alerts from them."""

    def __init__(self, client: PlaceSearchBackend, config: Optional[NavigationConfig] = None):
        self.client = client
        self.config = config or NavigationConfig()

    def _search_type(self, center: GeoPoint, radius: float, place_type: str) -> List[NearbyPlace]:
        """Query one place type; a failed query yields no places."""
        try:
            payload = self.client.nearby_search(center, radius, place_type)
        except NoResult:
            logger.debug(f"No {place_type} places within {radius:.0f} m of {center}")
            return []
        except BackendUnavailable as e:
            logger.warning(f"Place search for {place_type} failed: {e}")
            return []

        places = []
        for result in payload.get("results") or []:
            try:
                places.append(parse_place(result, center))
            except MalformedResponse as e:
                logger.debug(f"Dropping {place_type} result: {e}")
        return places

    async def find_nearby(
        self,
        center: GeoPoint,
        radius: Optional[float] = None,
        place_types: Optional[List[str]] = None,
    ) -> List[NearbyPlace]:
        """
        Find places around a center, one backend query per place type.

        Queries are issued sequentially with a short spacing to stay under the
        backend rate limit. Failed types are skipped.

        Returns:
            Unique places sorted by distance from the center
        """
        radius = self.config.place_search_radius if radius is None else radius
        types = SEARCH_TYPES if place_types is None else place_types

        found: List[NearbyPlace] = []
        for i, place_type in enumerate(types):
            if i > 0 and self.config.place_request_spacing > 0:
                await asyncio.sleep(self.config.place_request_spacing)
            found.extend(await asyncio.to_thread(self._search_type, center, radius, place_type))

        places = deduplicate_places(found)
        logger.debug(f"Found {len(places)} unique places within {radius:.0f} m of {center}")
        return places

    def analyze_alerts(
        self,
        center: GeoPoint,
        places: Iterable[NearbyPlace],
        cluster_radius: Optional[float] = None,
    ) -> List[TrafficAlert]:
        """Alerts for the places around a center, using the configured thresholds."""
        return analyze_alerts(
            center,
            places,
            self.config.alert_cluster_radius if cluster_radius is None else cluster_radius,
            self.config.alert_significance,
        )

    async def alerts_near(self, center: GeoPoint, radius: Optional[float] = None) -> List[TrafficAlert]:
        """Find places around a center and analyze them in one call."""
        places = await self.find_nearby(center, radius)
        return self.analyze_alerts(center, places)

    async def alerts_for_trip(self, origin: GeoPoint, destination: GeoPoint) -> List[TrafficAlert]:
        """Alerts around both trip ends, origin first, each end sorted by severity."""
        alerts = await self.alerts_near(origin)
        alerts.extend(await self.alerts_near(destination))
        return alerts
