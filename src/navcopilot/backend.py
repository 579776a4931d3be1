"""
HTTP client for the directions, place-search and geocoding backends.

The client speaks the Google Maps web service JSON dialect. It only knows
about transport, retries and status codes; turning payloads into routes,
places and traffic readings is left to the engine components.
"""

from typing import Any, Dict, Optional
import logging
import time

import requests

from .config import NavigationConfig
from .errors import BackendUnavailable, NoResult
from .geometry import GeoPoint

logger = logging.getLogger(__name__)

OK_STATUS = "OK"
ZERO_RESULTS_STATUS = "ZERO_RESULTS"


def _format_location(point: GeoPoint) -> str:
    return f"{point.latitude},{point.longitude}"


def _is_retryable_error(e: requests.exceptions.HTTPError) -> bool:
    """Check if an HTTP error is retryable."""
    if e.response is not None and hasattr(e.response, "status_code"):
        return e.response.status_code == 429 or e.response.status_code >= 500
    error_msg = str(e).lower()
    return any(code in error_msg for code in ["429", "500", "502", "503", "504"])


class GoogleMapsClient:
    """
    Backend adapter for the maps web services.

    Sole responsibility:
    - Talk to the backend over HTTP
    - Retry rate-limited and server errors with exponential backoff
    - Turn transport failures and non-OK statuses into BackendUnavailable
    """

    def __init__(
        self,
        config: Optional[NavigationConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or NavigationConfig()
        self.session = session or requests.Session()

        if not self.config.api_key:
            logger.warning("No maps API key configured; backend requests will likely be denied")

    def get_json(
        self,
        url: str,
        params: Dict[str, Any],
        max_retries: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        GET a backend endpoint and return its decoded JSON body.

        Retries with exponential backoff on 429 (rate limit) and 5xx errors.

        Args:
            url: Endpoint URL
            params: Query parameters (the API key is added)
            max_retries: Retry budget; defaults to the configured value

        Returns:
            The decoded JSON payload, whose status is OK

        Raises:
            NoResult: If the backend answered ZERO_RESULTS
            BackendUnavailable: On transport failure, HTTP error or any other non-OK status
        """
        retries = self.config.max_retries if max_retries is None else max_retries
        query = dict(params, key=self.config.api_key)
        attempt = 0

        while True:
            try:
                response = self.session.get(url, params=query, timeout=self.config.request_timeout)
                response.raise_for_status()
                data = response.json()
                break
            except requests.exceptions.HTTPError as e:
                status_code = e.response.status_code if e.response is not None else None
                if _is_retryable_error(e) and attempt < retries:
                    delay = self.config.retry_base_delay * (2**attempt)
                    error_type = (
                        "Server error"
                        if status_code and status_code >= 500
                        else "Rate limited"
                    )
                    logger.warning(
                        f"{error_type} ({status_code or 'unknown'}), retrying in {delay:.0f}s (attempt {attempt + 1} of {retries + 1})"
                    )
                    time.sleep(delay)
                    attempt += 1
                    continue
                raise BackendUnavailable(f"HTTP error from {url}: {e}", str(status_code)) from e
            except requests.exceptions.RequestException as e:
                raise BackendUnavailable(f"Could not reach {url}: {e}") from e
            except ValueError as e:
                raise BackendUnavailable(f"Response from {url} is not JSON: {e}") from e

        if not isinstance(data, dict):
            raise BackendUnavailable(f"Unexpected payload type {type(data).__name__} from {url}")

        status = data.get("status")
        if status == ZERO_RESULTS_STATUS:
            raise NoResult(f"No results from {url}")
        if status != OK_STATUS:
            message = data.get("error_message", "Unknown error")
            raise BackendUnavailable(message, status)

        return data

    def directions(
        self,
        origin: GeoPoint,
        destination: GeoPoint,
        alternatives: bool = False,
        live_traffic: bool = False,
        max_retries: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Request driving directions.

        Args:
            origin: Start position
            destination: End position
            alternatives: Ask for alternative routes
            live_traffic: Ask for live-traffic timing (duration_in_traffic)
            max_retries: Retry budget override

        Returns:
            The raw directions payload
        """
        params: Dict[str, Any] = {
            "origin": _format_location(origin),
            "destination": _format_location(destination),
            "mode": self.config.travel_mode,
            "alternatives": "true" if alternatives else "false",
        }
        if live_traffic:
            params["departure_time"] = "now"
            params["traffic_model"] = "best_guess"
        return self.get_json(self.config.directions_url, params, max_retries)

    def nearby_search(self, center: GeoPoint, radius: float, place_type: str) -> Dict[str, Any]:
        """Search for places of one type within a radius of a center."""
        params = {
            "location": _format_location(center),
            "radius": int(radius),
            "type": place_type,
        }
        return self.get_json(self.config.nearby_search_url, params)

    def geocode(self, address: str) -> Dict[str, Any]:
        """Resolve a free-text address."""
        return self.get_json(self.config.geocoding_url, {"address": address})

    def autocomplete(self, query: str) -> Dict[str, Any]:
        """Suggest places matching partial input."""
        return self.get_json(self.config.autocomplete_url, {"input": query, "types": "geocode"})

    def place_details(self, place_id: str) -> Dict[str, Any]:
        """Fetch the geometry of a place by id."""
        return self.get_json(
            self.config.place_details_url, {"place_id": place_id, "fields": "geometry"}
        )
