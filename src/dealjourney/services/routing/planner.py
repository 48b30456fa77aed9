"""Vendor-proximity route planning.

Stops are ordered with a greedy nearest-neighbour walk from the start
location. This is not an optimal tour, but journeys are capped at a handful
of stops and optimality is not a product requirement.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...data.vendor_repository import VendorDirectory
from ...errors import LocationUnavailableError, NoEligibleVendorsError
from ...models.domain import Coordinates, DealType, Itinerary, Vendor, normalize_vendor_id
from ..geospatial import bearing_degrees, distance_between, estimated_travel_minutes, map_bounds
from ..location import LocationProvider
from ..redemption.ledger import RedemptionLedger
from .models import Directions, RouteLeg

logger = logging.getLogger(__name__)


def _validate_coordinates(location: Coordinates) -> Coordinates:
    if location is None:
        raise ValueError("A start location is required.")
    if not -90 <= location.latitude <= 90 or not -180 <= location.longitude <= 180:
        raise ValueError(f"Invalid coordinates: ({location.latitude}, {location.longitude})")
    return location


def nearest_neighbor_order(start: Coordinates, vendors: Sequence[Vendor]) -> list[Vendor]:
    """Repeatedly visit the closest unvisited vendor; ties go to the earlier candidate."""

    remaining = list(vendors)
    ordered: list[Vendor] = []
    current = start
    while remaining:
        best_index = 0
        best_distance = distance_between(current, remaining[0].coordinates)
        for index in range(1, len(remaining)):
            candidate_distance = distance_between(current, remaining[index].coordinates)
            if candidate_distance < best_distance:
                best_index = index
                best_distance = candidate_distance
        vendor = remaining.pop(best_index)
        ordered.append(vendor)
        current = vendor.coordinates
    return ordered


def route_legs(start: Coordinates, vendors: Sequence[Vendor]) -> list[RouteLeg]:
    legs: list[RouteLeg] = []
    previous = start
    cumulative = 0.0
    for sequence, vendor in enumerate(vendors, start=1):
        leg = distance_between(previous, vendor.coordinates)
        cumulative += leg
        legs.append(
            RouteLeg(
                vendor_id=vendor.id,
                sequence=sequence,
                distance_from_prev=leg,
                cumulative_distance=cumulative,
            )
        )
        previous = vendor.coordinates
    return legs


class RoutePlanner:
    def __init__(
        self,
        vendor_directory: VendorDirectory,
        ledger: RedemptionLedger,
        *,
        location_provider: Optional[LocationProvider] = None,
        average_speed_mph: float | None = None,
        max_stops: int | None = None,
        traffic_factor: float | None = None,
    ) -> None:
        self.vendor_directory = vendor_directory
        self.ledger = ledger
        self.location_provider = location_provider
        self.average_speed_mph = average_speed_mph or settings.average_speed_mph
        self.max_stops = max_stops or settings.max_stops
        self.traffic_factor = traffic_factor or settings.directions_traffic_factor

    async def _resolve_start(self, start_location: Optional[Coordinates]) -> Coordinates:
        if start_location is not None:
            return _validate_coordinates(start_location)
        if self.location_provider is None:
            raise LocationUnavailableError("No start location given and no location provider configured.")
        location = await self.location_provider.get_current_location()
        if location is None:
            raise LocationUnavailableError("Unable to get current location.")
        return location

    async def plan(
        self,
        deal_type: DealType | str,
        start_location: Optional[Coordinates] = None,
        max_vendors: int | None = None,
        max_distance_miles: float | None = None,
        exclude_vendor_ids: Iterable[object] = (),
    ) -> Itinerary:
        deal_type = DealType.parse(deal_type)
        max_vendors = settings.default_max_vendors if max_vendors is None else max_vendors
        if not 1 <= max_vendors <= self.max_stops:
            raise ValueError(f"max_vendors must be between 1 and {self.max_stops}")
        if max_distance_miles is not None and max_distance_miles <= 0:
            raise ValueError("max_distance_miles must be positive")
        start = await self._resolve_start(start_location)
        excluded = {normalize_vendor_id(vendor_id) for vendor_id in exclude_vendor_ids}

        logger.info(
            f"Creating {deal_type.value} route: max_vendors={max_vendors}, "
            f"max_distance={max_distance_miles}, excluded={len(excluded)}"
        )
        vendors = await asyncio.to_thread(self.vendor_directory.get_all_vendors)
        candidates = [
            vendor.with_distance(distance_between(start, vendor.coordinates))
            for vendor in vendors
            if vendor.id not in excluded and vendor.coordinates is not None
        ]
        if max_distance_miles is not None:
            candidates = [vendor for vendor in candidates if vendor.distance <= max_distance_miles]

        selection = await self.ledger.filter_eligible(candidates, deal_type)
        used_fallback = False
        if not selection:
            logger.warning(
                f"No vendors with {deal_type.value} deals found, falling back to "
                f"{len(candidates)} vendors with coordinates"
            )
            selection = candidates
            used_fallback = True
        if not selection:
            raise NoEligibleVendorsError(deal_type.value)

        nearest = sorted(selection, key=lambda vendor: vendor.distance)[:max_vendors]
        ordered = nearest_neighbor_order(start, nearest)
        legs = route_legs(start, ordered)
        total_distance = legs[-1].cumulative_distance if legs else 0.0
        coordinates = [start, *(vendor.coordinates for vendor in ordered)]

        itinerary = Itinerary(
            deal_type=deal_type,
            vendors=ordered,
            total_distance=total_distance,
            # whole-route estimates carry no traffic buffer, unlike directions_to()
            estimated_time_minutes=estimated_travel_minutes(total_distance, self.average_speed_mph),
            coordinates=coordinates,
            start_location=start,
            used_fallback=used_fallback,
            bounds=map_bounds(coordinates),
        )
        logger.info(
            f"Route created with {len(ordered)} stops, {total_distance:.2f} mi, "
            f"~{itinerary.estimated_time_minutes:.0f} min{' (fallback)' if used_fallback else ''}"
        )
        return itinerary

    async def directions_to(
        self,
        destination: Coordinates,
        start_location: Optional[Coordinates] = None,
    ) -> Directions:
        """Straight-line directions for a single leg, padded for traffic and stops."""
        destination = _validate_coordinates(destination)
        start = await self._resolve_start(start_location)
        distance = distance_between(start, destination)
        bearing = bearing_degrees(start.latitude, start.longitude, destination.latitude, destination.longitude)
        minutes = estimated_travel_minutes(distance, self.average_speed_mph, self.traffic_factor)
        return Directions(
            distance=distance,
            bearing=bearing,
            estimated_time=math.ceil(minutes),
            coordinates=[start, destination],
        )
