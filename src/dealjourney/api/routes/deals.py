"""Deal cache and redemption endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_container
from ...schemas.deals import (
    CacheStatusResponse,
    DealListResponse,
    DealModel,
    EligibilityResponse,
    RedemptionRequest,
    RedemptionResponse,
)
from ...services.container import EngineContainer

router = APIRouter(tags=["deals"])


def _cache_status(container: EngineContainer, refreshed: Optional[bool] = None) -> CacheStatusResponse:
    cache = container.deal_cache
    return CacheStatusResponse(
        loaded=cache.is_loaded(),
        refreshed=refreshed,
        last_updated=cache.last_updated,
        counts=cache.count_by_type(),
    )


@router.get("/deals", response_model=DealListResponse)
def list_deals(
    type: Optional[str] = Query(default=None, description="birthday, daily, special, everyday or multi_day"),
    day: Optional[str] = Query(default=None, description="Day of week, e.g. monday"),
    vendor_id: Optional[str] = Query(default=None),
    active_only: bool = Query(default=True),
    limit: Optional[int] = Query(default=None, ge=0),
    container: EngineContainer = Depends(get_container),
) -> DealListResponse:
    try:
        deals = container.deal_cache.query(
            type=type,
            day=day,
            vendor_id=vendor_id,
            active_only=active_only,
            limit=limit,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return DealListResponse(count=len(deals), deals=[DealModel.from_domain(deal) for deal in deals])


@router.get("/deals/status", response_model=CacheStatusResponse)
def cache_status(container: EngineContainer = Depends(get_container)) -> CacheStatusResponse:
    return _cache_status(container)


@router.post("/deals/refresh", response_model=CacheStatusResponse)
async def refresh_deals(
    force: bool = Query(default=True, description="Bypass the local snapshot and hit the catalog."),
    container: EngineContainer = Depends(get_container),
) -> CacheStatusResponse:
    refreshed = await container.deal_cache.load(force=force)
    return _cache_status(container, refreshed=refreshed)


@router.get("/vendors/{vendor_id}/deals/today", response_model=DealListResponse)
def vendor_deals_today(
    vendor_id: str,
    day: Optional[str] = Query(default=None, description="Defaults to today"),
    container: EngineContainer = Depends(get_container),
) -> DealListResponse:
    try:
        deals = container.deal_cache.todays_deals_for_vendor(vendor_id, day=day)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return DealListResponse(count=len(deals), deals=[DealModel.from_domain(deal) for deal in deals])


@router.post("/redemptions", response_model=RedemptionResponse, status_code=status.HTTP_201_CREATED)
async def record_redemption(
    payload: RedemptionRequest,
    container: EngineContainer = Depends(get_container),
) -> RedemptionResponse:
    recorded = await container.ledger.record(payload.vendor_id, payload.deal_type, payload.redemption_id)
    if not recorded:
        logging.error(f"Redemption for vendor {payload.vendor_id} could not be stored")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record redemption",
        )
    return RedemptionResponse(recorded=True)


@router.get("/redemptions/eligibility", response_model=EligibilityResponse)
async def redemption_eligibility(
    vendor_id: str = Query(..., min_length=1),
    deal_type: str = Query(...),
    container: EngineContainer = Depends(get_container),
) -> EligibilityResponse:
    allowed = await container.ledger.can_redeem(vendor_id, deal_type)
    return EligibilityResponse(vendor_id=vendor_id, deal_type=deal_type, can_redeem=allowed)
