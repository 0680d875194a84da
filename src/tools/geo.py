"""Geographic helpers"""

import math

from src.constants import EARTH_RADIUS_KM
from src.models.transaction import Location


def haversine_km(a: Location, b: Location) -> float:
    """Great-circle distance between two points in kilometres"""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    delta_lat = math.radians(b.lat - a.lat)
    delta_lon = math.radians(b.lon - a.lon)

    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def location_cell(lat: float, lon: float, precision: int = 2) -> str:
    """Grid cell key used to group transactions at the same place"""
    return f"{round(lat, precision):.{precision}f}:{round(lon, precision):.{precision}f}"


def clip01(value: float) -> float:
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))
