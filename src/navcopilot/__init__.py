#!/usr/bin/env python3
"""
navcopilot - A hyperlocal navigation copilot engine.

This package plans driveable routes, ranks alternatives against local
congestion signals, samples live traffic around a point, and tracks
turn-by-turn progress with automatic rerouting.
"""
import importlib.metadata

__version__ = importlib.metadata.version("navcopilot")

# Import main classes for public API
from .config import NavigationConfig
from .errors import (
    BackendUnavailable,
    MalformedResponse,
    NavigationError,
    NoResult,
    StaleResponse,
)
from .geometry import GeoPoint
from .models import (
    NearbyPlace,
    PlaceCategory,
    RouteSource,
    RouteStep,
    SessionState,
    TrafficAlert,
    TrafficDataPoint,
    TrafficIntensity,
)
from .route import Route
from .route_provider import RouteProvider
from .places import PlaceTrafficAnalyzer
from .heatmap import TrafficHeatmapSampler
from .optimizer import RankedRoute, RouteOptimizer
from .session import NavigationSession

__all__ = [
    "NavigationConfig",
    "BackendUnavailable",
    "MalformedResponse",
    "NavigationError",
    "NoResult",
    "StaleResponse",
    "GeoPoint",
    "NearbyPlace",
    "PlaceCategory",
    "RouteSource",
    "RouteStep",
    "SessionState",
    "TrafficAlert",
    "TrafficDataPoint",
    "TrafficIntensity",
    "Route",
    "RouteProvider",
    "PlaceTrafficAnalyzer",
    "TrafficHeatmapSampler",
    "RankedRoute",
    "RouteOptimizer",
    "NavigationSession",
]
