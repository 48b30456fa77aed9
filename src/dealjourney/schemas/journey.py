"""Journey request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Journey
from .routing import CoordinatesModel, RoutePlanRequest


class JourneyStartRequest(RoutePlanRequest):
    pass


class CheckInRequest(BaseModel):
    check_in_type: str = Field(default="qr", description="qr, location or manual")


class JourneyStopModel(BaseModel):
    vendor_id: str
    name: str
    address: Optional[str] = None
    coordinates: Optional[CoordinatesModel] = None
    distance: Optional[float] = None
    checked_in: bool = False
    check_in_type: Optional[str] = None


class JourneyModel(BaseModel):
    deal_type: str
    state: str
    vendors: List[JourneyStopModel]
    current_vendor_index: int
    total_vendors: int
    max_distance: Optional[float] = None
    total_distance: float
    estimated_time: float
    created_at: datetime
    completed_at: Optional[datetime] = None
    points_earned: Optional[int] = None
    is_finished: bool

    @classmethod
    def from_domain(cls, journey: Journey, state: str) -> "JourneyModel":
        return cls(
            deal_type=journey.deal_type.value,
            state=state,
            vendors=[
                JourneyStopModel(
                    vendor_id=stop.vendor_id,
                    name=stop.name,
                    address=stop.address,
                    coordinates=CoordinatesModel.from_domain(stop.coordinates) if stop.coordinates else None,
                    distance=stop.distance,
                    checked_in=stop.checked_in,
                    check_in_type=stop.check_in_type,
                )
                for stop in journey.vendors
            ],
            current_vendor_index=journey.current_vendor_index,
            total_vendors=journey.total_vendors,
            max_distance=journey.max_distance,
            total_distance=journey.total_distance,
            estimated_time=journey.estimated_time,
            created_at=journey.created_at,
            completed_at=journey.completed_at,
            points_earned=journey.points_earned,
            is_finished=journey.is_empty,
        )


class JourneyCommandResponse(BaseModel):
    """Result of advance/skip: ``journey`` is null once there is nowhere left to go."""

    complete: bool
    journey: Optional[JourneyModel] = None


class JourneyHistoryResponse(BaseModel):
    count: int
    journeys: List[dict]
