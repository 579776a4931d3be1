"""
Events published by a navigation session to the presentation layer.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Type
import logging

from .geocoding import PlaceSuggestion
from .models import HeatmapSample, RouteStep, SessionState, TrafficAlert
from .optimizer import RankedRoute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionStateChanged:
    previous: SessionState
    current: SessionState


@dataclass(frozen=True)
class RouteSetUpdated:
    routes: Tuple[RankedRoute, ...]
    selected_index: int
    alerts: Tuple[TrafficAlert, ...]


@dataclass(frozen=True)
class StepAdvanced:
    step_index: int
    step: RouteStep


@dataclass(frozen=True)
class RerouteTriggered:
    reason: str
    deviation: Optional[float] = None  # meters off the route, for deviation reroutes


@dataclass(frozen=True)
class EtaDistanceUpdated:
    remaining_distance: float  # meters
    eta: float  # seconds
    step_index: int
    deviation: float  # meters off the route


@dataclass(frozen=True)
class HeatmapUpdated:
    sample: HeatmapSample


@dataclass(frozen=True)
class SearchResultsUpdated:
    query: str
    results: Tuple[PlaceSuggestion, ...]


Handler = Callable[[object], None]


class EventBus:
    """
    Synchronous in-order event delivery.

    A subscriber that raises is logged and skipped; the remaining
    subscribers still receive the event.
    """

    def __init__(self):
        self._subscribers: List[Tuple[Optional[Type], Handler]] = []

    def subscribe(self, handler: Handler, event_type: Optional[Type] = None) -> Callable[[], None]:
        """
        Register a handler for one event type, or for every event.

        Returns:
            A callable that removes the subscription
        """
        entry = (event_type, handler)
        self._subscribers.append(entry)

        def unsubscribe():
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: object) -> None:
        for event_type, handler in list(self._subscribers):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(f"Subscriber {handler!r} failed on {type(event).__name__}")
