"""
Encoded polyline codec.

Implements the variable-length, delta-encoded coordinate string format used
by directions backends (five decimal digits of precision by default).
"""

from typing import Iterable, List
import logging

from .geometry import GeoPoint
from .errors import MalformedResponse

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 5


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode(points: Iterable[GeoPoint], precision: int = DEFAULT_PRECISION) -> str:
    """
    Encode a sequence of points as a polyline string.

    Args:
        points: Points to encode
        precision: Number of decimal digits preserved

    Returns:
        The encoded polyline
    """
    factor = 10**precision
    output = []
    prev_lat = prev_lng = 0

    for point in points:
        lat = int(round(point.latitude * factor))
        lng = int(round(point.longitude * factor))
        output.append(_encode_value(lat - prev_lat))
        output.append(_encode_value(lng - prev_lng))
        prev_lat, prev_lng = lat, lng

    return "".join(output)


def decode(encoded: str, precision: int = DEFAULT_PRECISION) -> List[GeoPoint]:
    """
    Decode a polyline string into points.

    Args:
        encoded: The encoded polyline
        precision: Number of decimal digits the string was encoded with

    Returns:
        List of decoded GeoPoints (empty for an empty string)

    Raises:
        MalformedResponse: If the string is truncated or contains invalid characters
    """
    factor = float(10**precision)
    points: List[GeoPoint] = []
    index = 0
    lat = lng = 0
    length = len(encoded)

    while index < length:
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                if index >= length:
                    raise MalformedResponse(f"Truncated polyline at offset {index}")
                byte = ord(encoded[index]) - 63
                index += 1
                if byte < 0 or byte > 0x3F:
                    raise MalformedResponse(
                        f"Invalid polyline character {encoded[index - 1]!r} at offset {index - 1}"
                    )
                result |= (byte & 0x1F) << shift
                shift += 5
                if byte < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)

        lat += deltas[0]
        lng += deltas[1]
        points.append(GeoPoint(latitude=lat / factor, longitude=lng / factor))

    return points
