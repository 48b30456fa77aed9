"""Route planning request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Coordinates, Itinerary, Vendor
from ..services.routing.models import Directions


class CoordinatesModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinates:
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    @classmethod
    def from_domain(cls, coordinates: Coordinates) -> "CoordinatesModel":
        return cls(latitude=coordinates.latitude, longitude=coordinates.longitude)


class RoutePlanRequest(BaseModel):
    deal_type: str
    max_vendors: Optional[int] = Field(default=None, ge=1, description="Defaults to the configured maximum (5).")
    max_distance_miles: Optional[float] = Field(default=None, gt=0)
    start_location: Optional[CoordinatesModel] = Field(
        default=None,
        description="Starting point. When omitted the configured location provider is used.",
    )
    exclude_vendor_ids: List[str] = Field(default_factory=list)


class RouteVendorModel(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    coordinates: CoordinatesModel
    distance: Optional[float] = None
    is_partner: bool = False

    @classmethod
    def from_domain(cls, vendor: Vendor) -> "RouteVendorModel":
        return cls(
            id=vendor.id,
            name=vendor.name,
            address=vendor.address,
            coordinates=CoordinatesModel.from_domain(vendor.coordinates),
            distance=vendor.distance,
            is_partner=vendor.is_partner,
        )


class MapBoundsModel(BaseModel):
    center: CoordinatesModel
    latitude_delta: float
    longitude_delta: float


class RoutePlanResponse(BaseModel):
    deal_type: str
    vendors: List[RouteVendorModel]
    total_distance: float
    estimated_time_minutes: float
    coordinates: List[CoordinatesModel]
    used_fallback: bool
    bounds: Optional[MapBoundsModel] = None

    @classmethod
    def from_domain(cls, itinerary: Itinerary) -> "RoutePlanResponse":
        bounds = None
        if itinerary.bounds is not None:
            bounds = MapBoundsModel(
                center=CoordinatesModel.from_domain(itinerary.bounds.center),
                latitude_delta=itinerary.bounds.latitude_delta,
                longitude_delta=itinerary.bounds.longitude_delta,
            )
        return cls(
            deal_type=itinerary.deal_type.value,
            vendors=[RouteVendorModel.from_domain(vendor) for vendor in itinerary.vendors],
            total_distance=itinerary.total_distance,
            estimated_time_minutes=itinerary.estimated_time_minutes,
            coordinates=[CoordinatesModel.from_domain(coord) for coord in itinerary.coordinates],
            used_fallback=itinerary.used_fallback,
            bounds=bounds,
        )


class DirectionsRequest(BaseModel):
    destination: CoordinatesModel
    start_location: Optional[CoordinatesModel] = None


class DirectionsResponse(BaseModel):
    distance: float
    bearing: float
    estimated_time: int
    coordinates: List[CoordinatesModel]

    @classmethod
    def from_domain(cls, directions: Directions) -> "DirectionsResponse":
        return cls(
            distance=directions.distance,
            bearing=directions.bearing,
            estimated_time=directions.estimated_time,
            coordinates=[CoordinatesModel.from_domain(coord) for coord in directions.coordinates],
        )
