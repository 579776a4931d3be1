#!/usr/bin/env python3
"""Value types shared across the navigation engine."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from .geometry import GeoPoint


class RouteSource(Enum):
    """Where a route's geometry came from."""

    BACKEND = "backend"
    FALLBACK = "fallback"

    def __str__(self) -> str:
        return self.value


class Maneuver(Enum):
    """Maneuver categories reported for route steps."""

    DEPART = "depart"
    STRAIGHT = "straight"
    TURN_LEFT = "turn-left"
    TURN_RIGHT = "turn-right"
    TURN_SLIGHT_LEFT = "turn-slight-left"
    TURN_SLIGHT_RIGHT = "turn-slight-right"
    TURN_SHARP_LEFT = "turn-sharp-left"
    TURN_SHARP_RIGHT = "turn-sharp-right"
    UTURN_LEFT = "uturn-left"
    UTURN_RIGHT = "uturn-right"
    KEEP_LEFT = "keep-left"
    KEEP_RIGHT = "keep-right"
    FORK_LEFT = "fork-left"
    FORK_RIGHT = "fork-right"
    RAMP_LEFT = "ramp-left"
    RAMP_RIGHT = "ramp-right"
    MERGE = "merge"
    ROUNDABOUT_LEFT = "roundabout-left"
    ROUNDABOUT_RIGHT = "roundabout-right"
    FERRY = "ferry"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_backend(cls, value: Optional[str], index: int = 0) -> "Maneuver":
        """
        Map a backend maneuver string to a Maneuver.

        Backends omit the maneuver on the first step of a leg and on plain
        "continue" steps, so a missing value means DEPART for the first step
        and STRAIGHT otherwise. Unknown values map to OTHER.
        """
        if not value:
            return cls.DEPART if index == 0 else cls.STRAIGHT
        try:
            return cls(value.lower())
        except ValueError:
            return cls.OTHER


class PlaceCategory(Enum):
    """Closed set of place categories with a known congestion impact."""

    SCHOOL = "school"
    UNIVERSITY = "university"
    SHOPPING_MALL = "shopping_mall"
    CAFE = "cafe"
    RESTAURANT = "restaurant"
    MARKET = "market"
    STORE = "store"
    HOSPITAL = "hospital"
    PARKING = "parking"
    BUS_STATION = "bus_station"
    TRAIN_STATION = "train_station"
    OTHER = "other"

    def __str__(self) -> str:
        return self.value.replace("_", " ")

    @property
    def impact(self) -> float:
        """Congestion impact coefficient in [0, 1]."""
        return CATEGORY_IMPACT[self]

    @classmethod
    def from_tags(cls, tags: Sequence[str]) -> "PlaceCategory":
        """Categorize a place by the first of its tags with a known category."""
        for tag in tags:
            category = TAG_CATEGORIES.get(str(tag).lower())
            if category is not None:
                return category
        return cls.OTHER


CATEGORY_IMPACT: Dict[PlaceCategory, float] = {
    PlaceCategory.SCHOOL: 0.8,
    PlaceCategory.UNIVERSITY: 0.8,
    PlaceCategory.SHOPPING_MALL: 0.7,
    PlaceCategory.CAFE: 0.5,
    PlaceCategory.RESTAURANT: 0.5,
    PlaceCategory.MARKET: 0.9,
    PlaceCategory.STORE: 0.3,
    PlaceCategory.HOSPITAL: 0.6,
    PlaceCategory.PARKING: 0.4,
    PlaceCategory.BUS_STATION: 0.85,
    PlaceCategory.TRAIN_STATION: 0.85,
    PlaceCategory.OTHER: 0.2,
}

TAG_CATEGORIES: Dict[str, PlaceCategory] = {
    "school": PlaceCategory.SCHOOL,
    "primary_school": PlaceCategory.SCHOOL,
    "secondary_school": PlaceCategory.SCHOOL,
    "university": PlaceCategory.UNIVERSITY,
    "college": PlaceCategory.UNIVERSITY,
    "shopping_mall": PlaceCategory.SHOPPING_MALL,
    "mall": PlaceCategory.SHOPPING_MALL,
    "cafe": PlaceCategory.CAFE,
    "bakery": PlaceCategory.CAFE,
    "restaurant": PlaceCategory.RESTAURANT,
    "meal_takeaway": PlaceCategory.RESTAURANT,
    "market": PlaceCategory.MARKET,
    "supermarket": PlaceCategory.MARKET,
    "grocery_or_supermarket": PlaceCategory.MARKET,
    "store": PlaceCategory.STORE,
    "convenience_store": PlaceCategory.STORE,
    "clothing_store": PlaceCategory.STORE,
    "department_store": PlaceCategory.STORE,
    "electronics_store": PlaceCategory.STORE,
    "hardware_store": PlaceCategory.STORE,
    "shoe_store": PlaceCategory.STORE,
    "hospital": PlaceCategory.HOSPITAL,
    "parking": PlaceCategory.PARKING,
    "bus_station": PlaceCategory.BUS_STATION,
    "bus_stop": PlaceCategory.BUS_STATION,
    "transit_station": PlaceCategory.BUS_STATION,
    "train_station": PlaceCategory.TRAIN_STATION,
    "subway_station": PlaceCategory.TRAIN_STATION,
    "light_rail_station": PlaceCategory.TRAIN_STATION,
}


class AlertTemplate(NamedTuple):
    """Message phrasing for one category; plural is used above plural_above members."""

    singular: str
    plural: str
    plural_above: int = 1

    def render(self, count: int) -> str:
        template = self.plural if count > self.plural_above else self.singular
        return template.format(count=count)


ALERT_TEMPLATES: Dict[PlaceCategory, AlertTemplate] = {
    PlaceCategory.SCHOOL: AlertTemplate(
        "School/College nearby - Traffic may be heavy during school hours",
        "{count} educational institutions nearby - High traffic expected",
    ),
    PlaceCategory.UNIVERSITY: AlertTemplate(
        "School/College nearby - Traffic may be heavy during school hours",
        "{count} educational institutions nearby - High traffic expected",
    ),
    PlaceCategory.SHOPPING_MALL: AlertTemplate(
        "Shopping mall nearby - Expect traffic congestion",
        "{count} shopping malls nearby - Heavy traffic area",
    ),
    PlaceCategory.CAFE: AlertTemplate(
        "Food establishments nearby",
        "{count} food establishments nearby - Moderate traffic",
        plural_above=3,
    ),
    PlaceCategory.RESTAURANT: AlertTemplate(
        "Food establishments nearby",
        "{count} food establishments nearby - Moderate traffic",
        plural_above=3,
    ),
    PlaceCategory.MARKET: AlertTemplate(
        "Market nearby - Heavy traffic expected",
        "{count} markets nearby - Very high traffic area",
    ),
    PlaceCategory.STORE: AlertTemplate(
        "Shop nearby - Minor traffic impact",
        "{count} shops nearby - Minor traffic impact",
    ),
    PlaceCategory.HOSPITAL: AlertTemplate(
        "Hospital nearby - Moderate traffic",
        "{count} hospitals nearby - Moderate traffic",
    ),
    PlaceCategory.PARKING: AlertTemplate(
        "Parking area nearby - Vehicles entering and leaving",
        "{count} parking areas nearby - Vehicles entering and leaving",
    ),
    PlaceCategory.BUS_STATION: AlertTemplate(
        "Public transport hub nearby - High traffic area",
        "{count} public transport hubs nearby - High traffic area",
    ),
    PlaceCategory.TRAIN_STATION: AlertTemplate(
        "Public transport hub nearby - High traffic area",
        "{count} public transport hubs nearby - High traffic area",
    ),
    PlaceCategory.OTHER: AlertTemplate(
        "Multiple places nearby - Traffic may be affected",
        "Multiple places nearby - Traffic may be affected",
    ),
}


class RouteStep(NamedTuple):
    """One maneuver-level instruction within a route."""

    index: int
    instruction: str
    maneuver: Maneuver
    distance: float  # meters
    duration: float  # seconds
    distance_text: str
    duration_text: str
    end_location: GeoPoint


@dataclass(frozen=True)
class NearbyPlace:
    """A point of interest returned by the place-search backend."""

    place_id: str
    name: str
    location: GeoPoint
    category: PlaceCategory
    distance: float  # meters from the query center
    rating: Optional[float] = None
    user_ratings_total: Optional[int] = None
    vicinity: Optional[str] = None

    @property
    def traffic_impact(self) -> float:
        return self.category.impact


@dataclass(frozen=True)
class TrafficAlert:
    """
    A location-anchored congestion warning derived from a cluster of places.

    Location, severity and message are computed from the contributing places
    and cannot be set directly.
    """

    category: PlaceCategory
    places: Tuple[NearbyPlace, ...]

    def __post_init__(self):
        if not self.places:
            raise ValueError("A traffic alert needs at least one contributing place")

    @property
    def location(self) -> GeoPoint:
        """Arithmetic mean of the contributing place coordinates."""
        count = len(self.places)
        return GeoPoint(
            latitude=sum(p.location.latitude for p in self.places) / count,
            longitude=sum(p.location.longitude for p in self.places) / count,
        )

    @property
    def severity(self) -> float:
        """Mean congestion impact of the contributing places."""
        return sum(p.traffic_impact for p in self.places) / len(self.places)

    @property
    def message(self) -> str:
        return ALERT_TEMPLATES[self.category].render(len(self.places))

    @property
    def severity_level(self) -> str:
        if self.severity >= 0.8:
            return "High"
        if self.severity >= 0.5:
            return "Medium"
        return "Low"


class TrafficIntensity(Enum):
    """Five-level ordinal classification of traffic speed degradation."""

    NONE = 0
    LIGHT = 1
    MODERATE = 2
    HEAVY = 3
    SEVERE = 4

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def from_speed_ratio(cls, speed_ratio: float) -> "TrafficIntensity":
        if speed_ratio >= 0.9:
            return cls.NONE
        if speed_ratio >= 0.7:
            return cls.LIGHT
        if speed_ratio >= 0.5:
            return cls.MODERATE
        if speed_ratio >= 0.3:
            return cls.HEAVY
        return cls.SEVERE


class TrafficDataPoint(NamedTuple):
    """A sampled traffic reading; intensity is derived from the speed ratio."""

    location: GeoPoint
    speed_ratio: float  # 1.0 = free flow, 0.0 = stopped

    @property
    def intensity(self) -> TrafficIntensity:
        return TrafficIntensity.from_speed_ratio(self.speed_ratio)


class HeatmapSample(NamedTuple):
    """The result of one heatmap sampling cycle."""

    center: GeoPoint
    radius: float
    points: List[TrafficDataPoint]
    probes_attempted: int

    @property
    def average_intensity(self) -> Optional[TrafficIntensity]:
        """Rounded mean intensity index, or None when no probe succeeded."""
        return average_intensity(self.points)


def average_intensity(points: Sequence[TrafficDataPoint]) -> Optional[TrafficIntensity]:
    """
    Aggregate sampled points into an area-level intensity.

    The mean of the ordinal indices is rounded half up.
    """
    if not points:
        return None
    mean = sum(point.intensity.value for point in points) / len(points)
    return TrafficIntensity(int(mean + 0.5))


class SessionState(Enum):
    """Lifecycle states of a navigation session."""

    IDLE = "idle"
    ROUTE_PREVIEW = "route_preview"
    NAVIGATING = "navigating"
    REROUTING = "rerouting"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.CANCELLED)
