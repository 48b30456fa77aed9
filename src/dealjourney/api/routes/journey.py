"""Journey endpoints: plan-and-start, progress commands, history."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..dependencies import get_container
from ...models.domain import Journey
from ...schemas.journey import (
    CheckInRequest,
    JourneyCommandResponse,
    JourneyHistoryResponse,
    JourneyModel,
    JourneyStartRequest,
)
from ...services.container import EngineContainer
from .routes import plan_itinerary

router = APIRouter(prefix="/journey", tags=["journey"])


def _model(container: EngineContainer, journey: Optional[Journey]) -> Optional[JourneyModel]:
    if journey is None:
        return None
    return JourneyModel.from_domain(journey, state=container.journeys.state.value)


def _require_current(container: EngineContainer) -> Journey:
    journey = container.journeys.current()
    if journey is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active journey")
    return journey


@router.post("", response_model=JourneyModel, status_code=status.HTTP_201_CREATED)
async def start_journey(
    payload: JourneyStartRequest,
    container: EngineContainer = Depends(get_container),
) -> JourneyModel:
    itinerary = await plan_itinerary(container, payload)
    journey = await container.journeys.start(itinerary, payload.deal_type, payload.max_distance_miles)
    return _model(container, journey)


@router.get("", response_model=JourneyModel)
def current_journey(container: EngineContainer = Depends(get_container)) -> JourneyModel:
    return _model(container, _require_current(container))


@router.post("/advance", response_model=JourneyCommandResponse)
async def advance(container: EngineContainer = Depends(get_container)) -> JourneyCommandResponse:
    _require_current(container)
    journey = await container.journeys.advance()
    if journey is None:
        return JourneyCommandResponse(complete=True, journey=_model(container, container.journeys.current()))
    return JourneyCommandResponse(complete=False, journey=_model(container, journey))


@router.post("/skip", response_model=JourneyCommandResponse)
async def skip(container: EngineContainer = Depends(get_container)) -> JourneyCommandResponse:
    _require_current(container)
    journey = await container.journeys.skip()
    return JourneyCommandResponse(complete=journey is None or journey.is_empty, journey=_model(container, journey))


@router.post("/check-in", response_model=JourneyModel)
async def check_in(
    payload: CheckInRequest,
    container: EngineContainer = Depends(get_container),
) -> JourneyModel:
    _require_current(container)
    journey = await container.journeys.check_in(payload.check_in_type)
    if journey is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Journey has no stops left")
    return _model(container, journey)


@router.post("/complete", response_model=JourneyModel)
async def complete(container: EngineContainer = Depends(get_container)) -> JourneyModel:
    _require_current(container)
    journey = await container.journeys.complete()
    return _model(container, journey)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def abandon(container: EngineContainer = Depends(get_container)) -> Response:
    await container.journeys.abandon()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/history", response_model=JourneyHistoryResponse)
async def history(
    limit: int = Query(default=20, ge=1, le=100),
    container: EngineContainer = Depends(get_container),
) -> JourneyHistoryResponse:
    journeys = await container.journeys.history(limit)
    return JourneyHistoryResponse(count=len(journeys), journeys=journeys)
