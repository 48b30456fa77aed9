"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_container
from ...services.container import EngineContainer

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/engine", status_code=status.HTTP_200_OK)
def health_engine(container: EngineContainer = Depends(get_container)) -> dict:
    cache = container.deal_cache
    return {
        "deal_cache_loaded": cache.is_loaded(),
        "deal_cache_updated": cache.last_updated.isoformat() if cache.last_updated else None,
        "deal_counts": cache.count_by_type(),
        "journey_state": container.journeys.state.value,
    }
