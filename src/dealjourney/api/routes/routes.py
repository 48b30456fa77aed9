"""Route planning endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_container
from ...errors import CatalogError, LocationUnavailableError, NoEligibleVendorsError
from ...models.domain import Itinerary
from ...schemas.routing import DirectionsRequest, DirectionsResponse, RoutePlanRequest, RoutePlanResponse
from ...services.container import EngineContainer

router = APIRouter(prefix="/routes", tags=["routes"])


async def plan_itinerary(container: EngineContainer, payload: RoutePlanRequest) -> Itinerary:
    """Run the planner for ``payload``, translating engine errors to HTTP errors."""
    try:
        return await container.planner.plan(
            deal_type=payload.deal_type,
            start_location=payload.start_location.to_domain() if payload.start_location else None,
            max_vendors=payload.max_vendors,
            max_distance_miles=payload.max_distance_miles,
            exclude_vendor_ids=payload.exclude_vendor_ids,
        )
    except NoEligibleVendorsError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except LocationUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except CatalogError as exc:
        logging.error(f"Vendor directory unavailable: {exc}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error planning route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan route: {str(exc)}",
        ) from exc


@router.post("/plan", response_model=RoutePlanResponse, status_code=status.HTTP_200_OK)
async def plan_route(
    payload: RoutePlanRequest,
    container: EngineContainer = Depends(get_container),
) -> RoutePlanResponse:
    itinerary = await plan_itinerary(container, payload)
    return RoutePlanResponse.from_domain(itinerary)


@router.post("/directions", response_model=DirectionsResponse, status_code=status.HTTP_200_OK)
async def directions(
    payload: DirectionsRequest,
    container: EngineContainer = Depends(get_container),
) -> DirectionsResponse:
    try:
        result = await container.planner.directions_to(
            payload.destination.to_domain(),
            payload.start_location.to_domain() if payload.start_location else None,
        )
    except LocationUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error computing directions: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to compute directions: {str(exc)}",
        ) from exc
    return DirectionsResponse.from_domain(result)
