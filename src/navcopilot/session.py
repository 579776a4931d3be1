#!/usr/bin/env python3
"""
Navigation session state machine.

A session owns the active route set, tracks the agent's progress along the
selected route, and keeps it fresh: deviations and a periodic timer trigger
rerouting, and debounced heatmap and search requests are sampled in the
background. All mutation happens in the transition methods below, on a
single event loop.
"""

from typing import Callable, Dict, List, NamedTuple, Optional, Tuple
import asyncio
import logging
import time

from . import geodesy
from .config import NavigationConfig
from .errors import StaleResponse
from .events import (
    EtaDistanceUpdated,
    EventBus,
    HeatmapUpdated,
    RerouteTriggered,
    RouteSetUpdated,
    SearchResultsUpdated,
    SessionStateChanged,
    StepAdvanced,
)
from .geocoding import Geocoder, PlaceSuggestion
from .geometry import GeoPoint
from .heatmap import TrafficHeatmapSampler
from .metrics import SessionMetrics
from .models import HeatmapSample, RouteStep, SessionState, TrafficAlert
from .optimizer import RankedRoute, RouteOptimizer
from .places import PlaceTrafficAnalyzer
from .route import Route
from .route_provider import RouteProvider
from .scheduler import TaskScheduler

logger = logging.getLogger(__name__)

PERIODIC_REROUTE = "periodic-reroute"
REROUTE = "reroute"
HEATMAP = "heatmap"
SEARCH = "search"

# Kinds of background command; a new command of a kind makes older results of that kind stale
ROUTE_KIND = "route"
HEATMAP_KIND = "heatmap"
SEARCH_KIND = "search"

TRANSITIONS: Dict[SessionState, Tuple[SessionState, ...]] = {
    SessionState.IDLE: (SessionState.ROUTE_PREVIEW, SessionState.CANCELLED),
    SessionState.ROUTE_PREVIEW: (
        SessionState.ROUTE_PREVIEW,
        SessionState.NAVIGATING,
        SessionState.IDLE,
        SessionState.CANCELLED,
    ),
    SessionState.NAVIGATING: (
        SessionState.ROUTE_PREVIEW,
        SessionState.REROUTING,
        SessionState.IDLE,
        SessionState.COMPLETED,
        SessionState.CANCELLED,
    ),
    SessionState.REROUTING: (
        SessionState.ROUTE_PREVIEW,
        SessionState.NAVIGATING,
        SessionState.IDLE,
        SessionState.COMPLETED,
        SessionState.CANCELLED,
    ),
    SessionState.COMPLETED: (),
    SessionState.CANCELLED: (),
}


class Guidance(NamedTuple):
    """Direction and distance from the current position to the next maneuver point."""

    target: GeoPoint
    bearing: float  # degrees from true north
    distance: float  # meters
    relative_bearing: Optional[float]  # degrees relative to the agent's heading, when known
    instruction: str


class NavigationSession:
    """
    Live navigation state for one agent.

    Lifecycle: IDLE -> ROUTE_PREVIEW -> NAVIGATING -> (REROUTING) ->
    NAVIGATING -> COMPLETED or CANCELLED. Transition methods return False
    and leave the session untouched when called in a state that does not
    allow them.
    """

    def __init__(
        self,
        route_provider: RouteProvider,
        optimizer: Optional[RouteOptimizer] = None,
        analyzer: Optional[PlaceTrafficAnalyzer] = None,
        heatmap_sampler: Optional[TrafficHeatmapSampler] = None,
        geocoder: Optional[Geocoder] = None,
        config: Optional[NavigationConfig] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or NavigationConfig()
        self.route_provider = route_provider
        self.optimizer = optimizer or RouteOptimizer(self.config)
        self.analyzer = analyzer
        self.heatmap_sampler = heatmap_sampler
        self.geocoder = geocoder
        self.events = events or EventBus()
        self.scheduler = TaskScheduler()
        self.metrics = SessionMetrics()
        self.clock = clock

        self.state = SessionState.IDLE
        self.destination: Optional[GeoPoint] = None
        self.ranked_routes: List[RankedRoute] = []
        self.alerts: List[TrafficAlert] = []
        self.selected_index = 0
        self.step_index = 0
        self.last_position: Optional[GeoPoint] = None
        self.heading: Optional[float] = None
        self.last_reroute_at: Optional[float] = None
        self.deviated = False
        self.remaining_distance: Optional[float] = None
        self.eta: Optional[float] = None
        self.heatmap: Optional[HeatmapSample] = None
        self.heatmap_center: Optional[GeoPoint] = None
        self.search_results: List[PlaceSuggestion] = []
        self._generations: Dict[str, int] = {ROUTE_KIND: 0, HEATMAP_KIND: 0, SEARCH_KIND: 0}

    # -- read-only views ------------------------------------------------------

    @property
    def active_route(self) -> Optional[Route]:
        if not self.ranked_routes:
            return None
        return self.ranked_routes[self.selected_index].route

    @property
    def current_step(self) -> Optional[RouteStep]:
        route = self.active_route
        if route is None or not route.steps:
            return None
        return route.steps[min(self.step_index, len(route.steps) - 1)]

    @property
    def is_active(self) -> bool:
        return self.state in (SessionState.NAVIGATING, SessionState.REROUTING)

    # -- internals ------------------------------------------------------------

    def _transition(self, new_state: SessionState) -> bool:
        if new_state not in TRANSITIONS[self.state]:
            logger.warning(f"Ignoring transition {self.state} -> {new_state}")
            return False
        previous = self.state
        self.state = new_state
        logger.debug(f"Session {previous} -> {new_state}")
        self.events.publish(SessionStateChanged(previous=previous, current=new_state))
        return True

    def _next_generation(self, kind: str) -> int:
        self._generations[kind] += 1
        return self._generations[kind]

    def _ensure_current(self, kind: str, generation: int) -> None:
        """
        Raises:
            StaleResponse: If a newer command of the same kind was issued since generation
        """
        if self._generations[kind] != generation:
            raise StaleResponse(
                f"{kind} response {generation} superseded by {self._generations[kind]}"
            )

    def _discard(self, e: StaleResponse) -> None:
        self.metrics.stale_responses += 1
        logger.debug(f"Discarding stale response: {e}")

    def _publish_routes(self) -> None:
        self.events.publish(
            RouteSetUpdated(
                routes=tuple(self.ranked_routes),
                selected_index=self.selected_index,
                alerts=tuple(self.alerts),
            )
        )

    def _count_fallbacks(self, routes: List[Route]) -> None:
        self.metrics.fallback_routes += sum(1 for route in routes if route.is_fallback)

    def _release(self) -> None:
        """Drop timers, in-flight work and trip state."""
        self.scheduler.cancel_all()
        for kind in self._generations:
            self._next_generation(kind)
        self.destination = None
        self.ranked_routes = []
        self.alerts = []
        self.selected_index = 0
        self.step_index = 0
        self.deviated = False
        self.remaining_distance = None
        self.eta = None
        self.last_reroute_at = None

    # -- route selection --------------------------------------------------------

    async def set_destination(self, destination: GeoPoint, origin: Optional[GeoPoint] = None) -> bool:
        """
        Plan routes to a destination and preview the best one.

        Routes come from the route provider with alternatives, alerts from the
        place analyzer around both trip ends, and the optimizer's top-ranked
        route becomes active. A navigation in progress is suspended.

        Args:
            destination: Where to go
            origin: Where to start; defaults to the last known position

        Returns:
            True when the new route set was applied
        """
        if self.state.is_terminal:
            logger.warning(f"Cannot set a destination on a {self.state} session")
            return False
        origin = origin or self.last_position
        if origin is None:
            logger.warning("Cannot plan a route without an origin or a known position")
            return False

        generation = self._next_generation(ROUTE_KIND)
        if self.is_active:
            self.scheduler.cancel(PERIODIC_REROUTE)
            self.scheduler.cancel(REROUTE)
            self._transition(SessionState.ROUTE_PREVIEW)

        routes = await self.route_provider.fetch_routes(origin, destination, want_alternatives=True)
        alerts: List[TrafficAlert] = []
        if self.analyzer is not None:
            alerts = await self.analyzer.alerts_for_trip(origin, destination)

        try:
            self._ensure_current(ROUTE_KIND, generation)
        except StaleResponse as e:
            self._discard(e)
            return False
        if not routes:
            logger.warning(f"No route to {destination}")
            return False

        self._count_fallbacks(routes)
        self.destination = destination
        self.alerts = alerts
        self.ranked_routes = self.optimizer.rank(routes, alerts)
        self.selected_index = 0
        self.step_index = 0
        self.deviated = False
        self.remaining_distance = None
        self.eta = None
        if self.last_position is None:
            self.last_position = origin

        self._transition(SessionState.ROUTE_PREVIEW)
        self._publish_routes()
        logger.info(
            f"Planned {len(self.ranked_routes)} route(s) to {destination}; "
            f"best: {self.ranked_routes[0].justification}"
        )
        return True

    def select_route(self, index: int) -> bool:
        """Make another ranked alternative the active route while previewing."""
        if self.state != SessionState.ROUTE_PREVIEW:
            logger.warning(f"Cannot select a route while {self.state}")
            return False
        if not 0 <= index < len(self.ranked_routes):
            logger.warning(f"No route alternative {index} (have {len(self.ranked_routes)})")
            return False
        self.selected_index = index
        self._publish_routes()
        return True

    # -- navigation lifecycle ---------------------------------------------------

    def start_navigation(self) -> bool:
        """Begin following the active route and arm the periodic reroute timer."""
        if self.state != SessionState.ROUTE_PREVIEW or self.active_route is None:
            logger.warning(f"Cannot start navigation while {self.state}")
            return False
        self._transition(SessionState.NAVIGATING)
        self.step_index = 0
        self.deviated = False
        self.last_reroute_at = self.clock()
        self.scheduler.schedule_periodic(
            PERIODIC_REROUTE, self.config.reroute_interval, self._periodic_reroute
        )
        return True

    def stop(self) -> bool:
        """Abandon the trip and return to IDLE."""
        if self.state not in (
            SessionState.ROUTE_PREVIEW,
            SessionState.NAVIGATING,
            SessionState.REROUTING,
        ):
            logger.warning(f"Cannot stop while {self.state}")
            return False
        self._release()
        self._transition(SessionState.IDLE)
        return True

    def complete(self) -> bool:
        """Mark the trip as finished and release session resources."""
        if not self.is_active:
            logger.warning(f"Cannot complete while {self.state}")
            return False
        self._transition(SessionState.COMPLETED)
        self._release()
        self.remaining_distance = 0.0
        self.eta = 0.0
        return True

    def cancel(self) -> bool:
        """End the session for good and release its resources."""
        if self.state.is_terminal:
            return False
        self._transition(SessionState.CANCELLED)
        self._release()
        return True

    # -- progress ---------------------------------------------------------------

    def on_position_update(
        self, position: GeoPoint, heading: Optional[float] = None
    ) -> Optional[EtaDistanceUpdated]:
        """
        Track a new position against the active route.

        Advances the step index, detects deviation (triggering at most one
        reroute per excursion off the route), recomputes the remaining
        distance and ETA, and completes the trip on arrival.

        Returns:
            The progress update that was published, or None when not navigating
        """
        self.last_position = position
        if heading is not None:
            self.heading = heading
        self.metrics.position_updates += 1

        route = self.active_route
        if not self.is_active or route is None:
            return None

        self._advance_step(route, position)

        deviation = route.distance_to(position)
        if deviation > self.config.deviation_threshold:
            if not self.deviated:
                self.deviated = True
                self._trigger_reroute("deviation", deviation)
        else:
            self.deviated = False

        remaining, _ = route.remaining_distance(position)
        speed = route.average_speed or self.config.fallback_speed_mps
        self.remaining_distance = remaining
        self.eta = remaining / speed

        update = EtaDistanceUpdated(
            remaining_distance=remaining,
            eta=self.eta,
            step_index=self.step_index,
            deviation=deviation,
        )
        self.events.publish(update)

        if (
            self.state == SessionState.NAVIGATING
            and geodesy.distance(position, route.destination) <= self.config.arrival_threshold
        ):
            logger.info(f"Arrived at {route.destination}")
            self.complete()

        return update

    def _advance_step(self, route: Route, position: GeoPoint) -> None:
        index, step_distance = route.nearest_step(position)
        if index is None:
            return
        if index > self.step_index and step_distance < self.config.step_snap_threshold:
            self.step_index = index
            self.metrics.step_advances += 1
            self.events.publish(StepAdvanced(step_index=index, step=route.steps[index]))

    def guidance(self, heading: Optional[float] = None) -> Optional[Guidance]:
        """
        Bearing and distance from the last position to the next maneuver point.

        Args:
            heading: The agent's heading in degrees; defaults to the last reported one
        """
        route = self.active_route
        if self.last_position is None or route is None:
            return None
        step = self.current_step
        target = step.end_location if step is not None else route.destination
        bearing = geodesy.bearing(self.last_position, target)
        heading = self.heading if heading is None else heading
        return Guidance(
            target=target,
            bearing=bearing,
            distance=geodesy.distance(self.last_position, target),
            relative_bearing=geodesy.angle_difference(heading, bearing) if heading is not None else None,
            instruction=step.instruction if step is not None else "",
        )

    # -- rerouting --------------------------------------------------------------

    def _trigger_reroute(self, reason: str, deviation: Optional[float] = None) -> None:
        logger.info(
            f"Rerouting ({reason}"
            + (f", {deviation:.0f} m off route)" if deviation is not None else ")")
        )
        self.events.publish(RerouteTriggered(reason=reason, deviation=deviation))
        self.scheduler.schedule(REROUTE, 0, lambda: self.reroute(reason))

    async def _periodic_reroute(self) -> None:
        if self.state != SessionState.NAVIGATING or self.last_position is None:
            return
        self.events.publish(RerouteTriggered(reason="periodic"))
        await self.reroute("periodic")

    async def reroute(self, reason: str = "manual") -> bool:
        """
        Replace the active route with a fresh one from the last known position.

        No alternatives are requested. The step index restarts at 0 on the
        new route.

        Returns:
            True when a new route was applied
        """
        if not self.is_active or self.last_position is None or self.destination is None:
            return False

        generation = self._next_generation(ROUTE_KIND)
        self.metrics.reroutes[reason] += 1
        if self.state == SessionState.NAVIGATING:
            self._transition(SessionState.REROUTING)

        try:
            routes = await self.route_provider.fetch_routes(
                self.last_position, self.destination, want_alternatives=False
            )
        except asyncio.CancelledError:
            self._resume_after_failed_reroute(generation)
            raise
        except Exception:
            logger.exception(f"Reroute ({reason}) failed; keeping the current route")
            self._resume_after_failed_reroute(generation)
            return False

        try:
            self._ensure_current(ROUTE_KIND, generation)
        except StaleResponse as e:
            self._discard(e)
            return False
        if self.state != SessionState.REROUTING:
            return False

        self._count_fallbacks(routes)
        self.ranked_routes = self.optimizer.rank(routes, self.alerts)
        self.selected_index = 0
        self.step_index = 0
        self.last_reroute_at = self.clock()
        self._transition(SessionState.NAVIGATING)
        self._publish_routes()
        return True

    def _resume_after_failed_reroute(self, generation: int) -> None:
        if self.state == SessionState.REROUTING and self._generations[ROUTE_KIND] == generation:
            self._transition(SessionState.NAVIGATING)

    # -- debounced background work ------------------------------------------------

    def request_heatmap(self, center: GeoPoint) -> bool:
        """
        Ask for a heatmap around a center once input has been quiet for a while.

        Requests within heatmap_min_move of the last sampled center are not
        sampled, and they drop any pending or in-flight request, since the
        agent is back where the current heatmap already applies. A newer
        request supersedes a pending or in-flight one.

        Returns:
            True when a sample was scheduled
        """
        if self.heatmap_sampler is None or self.state.is_terminal:
            return False
        if (
            self.heatmap_center is not None
            and geodesy.distance(self.heatmap_center, center) <= self.config.heatmap_min_move
        ):
            logger.debug(f"Heatmap center {center} too close to last sample; skipping")
            self.scheduler.cancel(HEATMAP)
            self._next_generation(HEATMAP_KIND)
            return False

        generation = self._next_generation(HEATMAP_KIND)
        self.scheduler.schedule(
            HEATMAP, self.config.heatmap_debounce, lambda: self._sample_heatmap(center, generation)
        )
        return True

    async def _sample_heatmap(self, center: GeoPoint, generation: int) -> None:
        sample = await self.heatmap_sampler.sample_area(center)
        try:
            self._ensure_current(HEATMAP_KIND, generation)
        except StaleResponse as e:
            self._discard(e)
            return
        self.heatmap = sample
        self.heatmap_center = center
        self.metrics.heatmap_samples += 1
        self.events.publish(HeatmapUpdated(sample=sample))

    def search(self, query: str) -> bool:
        """
        Search for destinations once typing has paused.

        Queries shorter than search_min_length clear the results instead.

        Returns:
            True when a search was scheduled
        """
        if self.geocoder is None or self.state.is_terminal:
            return False

        generation = self._next_generation(SEARCH_KIND)
        query = query.strip()
        if len(query) < self.config.search_min_length:
            self.scheduler.cancel(SEARCH)
            self.search_results = []
            return False

        self.scheduler.schedule(
            SEARCH, self.config.search_debounce, lambda: self._run_search(query, generation)
        )
        return True

    async def _run_search(self, query: str, generation: int) -> None:
        results = await asyncio.to_thread(self.geocoder.autocomplete, query)
        try:
            self._ensure_current(SEARCH_KIND, generation)
        except StaleResponse as e:
            self._discard(e)
            return
        self.metrics.searches += 1
        self.search_results = results
        self.events.publish(SearchResultsUpdated(query=query, results=tuple(results)))
