"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Sequence

from shapely.geometry import MultiPoint

from ..models.domain import Coordinates, MapBounds

EARTH_RADIUS_MILES = 3958.8
EARTH_RADIUS_KM = 6371.0


def _central_angle(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in miles using the Haversine formula."""

    return EARTH_RADIUS_MILES * _central_angle(lat1, lon1, lat2, lon2)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return EARTH_RADIUS_KM * _central_angle(lat1, lon1, lat2, lon2)


def distance_between(start: Coordinates, end: Coordinates) -> float:
    return haversine_miles(start.latitude, start.longitude, end.latitude, end.longitude)


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the initial bearing from (lat1, lon1) to (lat2, lon2)."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)
    y = math.sin(delta_lambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda)
    bearing = math.degrees(math.atan2(y, x))
    return (bearing + 360) % 360


def estimated_travel_minutes(distance_miles: float, speed_mph: float = 25.0, traffic_factor: float = 1.0) -> float:
    """Straight-line travel time; ``traffic_factor`` > 1 pads the estimate."""

    if speed_mph <= 0:
        raise ValueError("speed_mph must be positive")
    return distance_miles / speed_mph * 60 * traffic_factor


def route_distance(start: Coordinates, stops: Sequence[Coordinates]) -> float:
    """Sum of consecutive legs start -> stop1 -> stop2 -> ..."""

    total = 0.0
    previous = start
    for stop in stops:
        total += distance_between(previous, stop)
        previous = stop
    return total


def map_bounds(coordinates: Sequence[Coordinates], padding: float = 0.1) -> MapBounds | None:
    """Center point and padded span that fits every coordinate on a map."""

    if not coordinates:
        return None
    points = MultiPoint([(coord.longitude, coord.latitude) for coord in coordinates])
    min_lon, min_lat, max_lon, max_lat = points.bounds
    center = Coordinates(latitude=(min_lat + max_lat) / 2, longitude=(min_lon + max_lon) / 2)
    # a single point still needs a visible span
    latitude_delta = max((max_lat - min_lat) * (1 + padding * 2), 0.01)
    longitude_delta = max((max_lon - min_lon) * (1 + padding * 2), 0.01)
    return MapBounds(center=center, latitude_delta=latitude_delta, longitude_delta=longitude_delta)
