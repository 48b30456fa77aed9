"""FastAPI dependencies resolving the shared engine services."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..services.container import EngineContainer


def get_container(request: Request) -> EngineContainer:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Engine not initialised")
    return container
