import os
from dataclasses import dataclass

GOOGLE_MAPS_API_KEY_ENV = "GOOGLE_MAPS_API_KEY"


@dataclass
class NavigationConfig:
    """Tunable settings for the navigation engine."""

    # Backends
    api_key: str = ""
    directions_url: str = "https://maps.googleapis.com/maps/api/directions/json"
    nearby_search_url: str = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
    geocoding_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    autocomplete_url: str = "https://maps.googleapis.com/maps/api/place/autocomplete/json"
    place_details_url: str = "https://maps.googleapis.com/maps/api/place/details/json"
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_base_delay: float = 2.0
    travel_mode: str = "driving"

    # Routing fallback
    fallback_point_count: int = 50
    fallback_speed_mps: float = 13.9

    # Route corridor
    corridor_half_width: float = 17.0
    corridor_max_vertices: int = 50

    # Places and alerts
    place_search_radius: float = 3000.0
    alert_cluster_radius: float = 500.0
    alert_significance: float = 0.4
    place_request_spacing: float = 0.1

    # Heatmap
    heatmap_radius: float = 3000.0
    heatmap_spacing: float = 500.0
    probe_distance: float = 100.0
    probe_batch_size: int = 5
    probe_batch_pause: float = 0.1

    # Optimizer
    distance_weight: float = 0.4
    time_weight: float = 0.4
    penalty_weight: float = 0.2
    alert_proximity: float = 200.0
    penalty_per_severity: float = 0.3
    distance_scale: float = 10000.0
    time_scale: float = 3600.0
    short_route_threshold: float = 1000.0

    # Session
    step_snap_threshold: float = 100.0
    deviation_threshold: float = 50.0
    arrival_threshold: float = 25.0
    reroute_interval: float = 30.0
    heatmap_debounce: float = 2.0
    heatmap_min_move: float = 200.0
    search_debounce: float = 0.4
    search_min_length: int = 2

    @classmethod
    def from_env(cls, **overrides) -> "NavigationConfig":
        """Build a config whose API key comes from the environment."""
        overrides.setdefault("api_key", os.environ.get(GOOGLE_MAPS_API_KEY_ENV, ""))
        return cls(**overrides)
