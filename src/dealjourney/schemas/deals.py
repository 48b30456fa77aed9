"""Deal and redemption request/response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.domain import Deal


class DealModel(BaseModel):
    id: str
    vendor_id: str
    deal_type: str
    is_active: bool
    day: Optional[str] = None
    active_days: List[str] = Field(default_factory=list)
    title: Optional[str] = None
    discount: Optional[str] = None
    description: Optional[str] = None
    restrictions: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @classmethod
    def from_domain(cls, deal: Deal) -> "DealModel":
        record = deal.to_record()
        return cls(
            id=deal.id,
            vendor_id=deal.vendor_id,
            deal_type=deal.deal_type.value,
            is_active=deal.is_active,
            day=deal.day.value if deal.day else None,
            active_days=record.get("activeDays", []),
            title=deal.title,
            discount=deal.discount,
            description=deal.description,
            restrictions=list(deal.restrictions),
            start_date=deal.start_date,
            end_date=deal.end_date,
        )


class DealListResponse(BaseModel):
    count: int
    deals: List[DealModel]


class CacheStatusResponse(BaseModel):
    loaded: bool
    refreshed: Optional[bool] = None
    last_updated: Optional[datetime] = None
    counts: dict[str, int] = Field(default_factory=dict)


class RedemptionRequest(BaseModel):
    vendor_id: str = Field(..., min_length=1)
    deal_type: str
    redemption_id: Optional[str] = Field(default=None, description="Caller-supplied id; generated when omitted.")


class RedemptionResponse(BaseModel):
    recorded: bool


class EligibilityResponse(BaseModel):
    vendor_id: str
    deal_type: str
    can_redeem: bool
