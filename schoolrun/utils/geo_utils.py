"""
Geospatial utility functions.
Handles coordinate validation and great-circle distances. All distances in
this project are kilometers.
"""

import math
from typing import Iterable, Optional, Tuple

from ..core.exceptions import InvalidCoordinatesError

# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0


def is_valid_coordinate(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """True when both values are finite numbers inside the WGS84 ranges."""
    if latitude is None or longitude is None:
        return False
    try:
        lat, lon = float(latitude), float(longitude)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat) or math.isnan(lon) or math.isinf(lat) or math.isinf(lon):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def validate_coordinates(latitude: Optional[float], longitude: Optional[float]) -> None:
    """Raise InvalidCoordinatesError unless the pair is usable for distance math."""
    if not is_valid_coordinate(latitude, longitude):
        raise InvalidCoordinatesError(latitude, longitude)


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great circle distance between two points using Haversine formula.
    Returns distance in kilometers.

    Callers are expected to have validated the coordinates; NaN input is
    not checked here.
    """
    lat1, lon1, lat2, lon2 = map(math.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push a marginally above 1 for antipodal points
    c = 2 * math.asin(math.sqrt(min(1.0, a)))

    return c * EARTH_RADIUS_KM


def path_length_km(points: Iterable[Tuple[float, float]]) -> float:
    """Sum of consecutive haversine distances along a sequence of (lat, lon) points."""
    total = 0.0
    previous = None
    for point in points:
        if previous is not None:
            total += distance_km(previous[0], previous[1], point[0], point[1])
        previous = point
    return total
