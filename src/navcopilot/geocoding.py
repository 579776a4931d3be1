"""
Turning free-text input into destinations.
"""

from typing import Any, Dict, List, NamedTuple, Optional, Protocol
import logging

from .errors import BackendUnavailable, MalformedResponse, NoResult
from .geometry import GeoPoint

logger = logging.getLogger(__name__)


class GeocodingBackend(Protocol):
    def geocode(self, address: str) -> Dict[str, Any]: ...

    def autocomplete(self, query: str) -> Dict[str, Any]: ...

    def place_details(self, place_id: str) -> Dict[str, Any]: ...


class PlaceSuggestion(NamedTuple):
    """An autocomplete prediction."""

    description: str
    place_id: str


def _geometry_location(data: Dict[str, Any]) -> GeoPoint:
    try:
        location = data["geometry"]["location"]
        return GeoPoint(latitude=float(location["lat"]), longitude=float(location["lng"]))
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedResponse(f"Result has no usable location: {e!r}") from e


class Geocoder:
    """Address lookup, place autocomplete and place resolution."""

    def __init__(self, client: GeocodingBackend):
        self.client = client

    def geocode(self, address: str) -> Optional[GeoPoint]:
        """Location of the best match for an address, or None."""
        try:
            results = self.client.geocode(address).get("results") or []
            if not results:
                return None
            return _geometry_location(results[0])
        except NoResult:
            logger.debug(f"No geocoding result for {address!r}")
        except (BackendUnavailable, MalformedResponse) as e:
            logger.warning(f"Geocoding {address!r} failed: {e}")
        return None

    def autocomplete(self, query: str) -> List[PlaceSuggestion]:
        """Predictions for partial input; empty on failure."""
        try:
            predictions = self.client.autocomplete(query).get("predictions") or []
        except NoResult:
            return []
        except BackendUnavailable as e:
            logger.warning(f"Autocomplete for {query!r} failed: {e}")
            return []

        suggestions = []
        for prediction in predictions:
            try:
                suggestions.append(
                    PlaceSuggestion(
                        description=str(prediction["description"]),
                        place_id=str(prediction["place_id"]),
                    )
                )
            except (KeyError, TypeError) as e:
                logger.debug(f"Dropping malformed prediction: {e!r}")
        return suggestions

    def resolve(self, place_id: str) -> Optional[GeoPoint]:
        """Location of a place by id, or None."""
        try:
            result = self.client.place_details(place_id).get("result")
            if not result:
                return None
            return _geometry_location(result)
        except NoResult:
            logger.debug(f"Place {place_id!r} not found")
        except (BackendUnavailable, MalformedResponse) as e:
            logger.warning(f"Resolving place {place_id!r} failed: {e}")
        return None
