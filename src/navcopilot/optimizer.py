"""
Traffic-aware ranking of alternative routes.
"""

from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple
import logging

from .config import NavigationConfig
from .models import TrafficAlert
from .route import Route

logger = logging.getLogger(__name__)

STANDARD_JUSTIFICATION = "Standard route"
OPTIMAL_JUSTIFICATION = "Optimal route"
SHORTEST_PATH_SUFFIX = " - Shortest path"


class RankedRoute(NamedTuple):
    """A route with its composite score and the alerts that affect it."""

    route: Route
    score: float
    alerts: Tuple[TrafficAlert, ...]
    traffic_penalty: float
    estimated_time_with_traffic: float  # seconds
    justification: str


def composite_score(
    distance: float,
    estimated_time: float,
    traffic_penalty: float,
    config: Optional[NavigationConfig] = None,
) -> float:
    """
    Score a route; higher is better.

    Distance and time are normalized to (0, 1] as 1 / (1 + x / scale).
    """
    config = config or NavigationConfig()
    normalized_distance = 1.0 / (1.0 + distance / config.distance_scale)
    normalized_time = 1.0 / (1.0 + estimated_time / config.time_scale)
    return (
        config.distance_weight * normalized_distance
        + config.time_weight * normalized_time
        - config.penalty_weight * traffic_penalty
    )


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" + ("s" if count != 1 else "")


class RouteOptimizer:
    """Ranks candidate routes by distance, time and nearby congestion."""

    def __init__(self, config: Optional[NavigationConfig] = None):
        self.config = config or NavigationConfig()

    def affecting_alerts(self, route: Route, alerts: Iterable[TrafficAlert]) -> List[TrafficAlert]:
        """Alerts whose location lies within the alert proximity of the route polyline."""
        if route.is_fallback:
            return []
        return [
            alert
            for alert in alerts
            if route.distance_to(alert.location) < self.config.alert_proximity
        ]

    def justify(self, route: Route, affecting: int, total: int) -> str:
        avoided = total - affecting
        if avoided > 0:
            reason = f"Route avoids {_plural(avoided, 'high-traffic area')}"
        elif affecting > 0:
            reason = f"Route passes {_plural(affecting, 'high-traffic area')}"
        else:
            reason = OPTIMAL_JUSTIFICATION
        if route.distance < self.config.short_route_threshold:
            reason += SHORTEST_PATH_SUFFIX
        return reason

    def evaluate(self, route: Route, alerts: Sequence[TrafficAlert]) -> RankedRoute:
        affecting = self.affecting_alerts(route, alerts)
        penalty = sum(alert.severity * self.config.penalty_per_severity for alert in affecting)
        estimated_time = route.duration * (1.0 + penalty)
        return RankedRoute(
            route=route,
            score=composite_score(route.distance, estimated_time, penalty, self.config),
            alerts=tuple(affecting),
            traffic_penalty=penalty,
            estimated_time_with_traffic=estimated_time,
            justification=self.justify(route, len(affecting), len(alerts)),
        )

    def rank(self, routes: Sequence[Route], alerts: Sequence[TrafficAlert] = ()) -> List[RankedRoute]:
        """
        Rank routes by composite score, best first.

        If scoring fails the routes are ranked by raw duration instead, with
        a generic justification.
        """
        alerts = list(alerts)
        try:
            ranked = [self.evaluate(route, alerts) for route in routes]
        except Exception as e:
            logger.warning(f"Route scoring failed ({e!r}); ranking by duration")
            return self.rank_by_duration(routes)

        ranked.sort(key=lambda r: r.score, reverse=True)
        for i, r in enumerate(ranked):
            logger.debug(
                f"Rank {i + 1}: {r.route.distance:.0f} m, {r.estimated_time_with_traffic:.0f} s, "
                f"penalty {r.traffic_penalty:.2f}, score {r.score:.4f} ({r.justification})"
            )
        return ranked

    def rank_by_duration(self, routes: Sequence[Route]) -> List[RankedRoute]:
        return [
            RankedRoute(
                route=route,
                score=0.0,
                alerts=(),
                traffic_penalty=0.0,
                estimated_time_with_traffic=route.duration,
                justification=STANDARD_JUSTIFICATION,
            )
            for route in sorted(routes, key=lambda r: r.duration)
        ]
