"""Location providers consumed by route planning and directions."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from ..config import settings
from ..models.domain import Coordinates

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    async def get_current_location(self) -> Optional[Coordinates]: ...


class PositionSource(Protocol):
    """Device positioning backend (GPS, network, browser geolocation)."""

    async def current_position(self) -> Optional[Coordinates]: ...

    async def last_known_position(self) -> Optional[Coordinates]: ...


class StaticLocationProvider:
    """Always reports the same coordinates (servers, tests, emulators)."""

    def __init__(self, location: Optional[Coordinates]) -> None:
        self.location = location

    async def get_current_location(self) -> Optional[Coordinates]:
        return self.location


class DeviceLocationProvider:
    """Bounded wait on the device position, falling back to the last known fix."""

    def __init__(
        self,
        source: PositionSource,
        timeout_seconds: float | None = None,
        default_location: Optional[Coordinates] = None,
    ) -> None:
        self.source = source
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.location_timeout_seconds
        if default_location is None and settings.use_default_location:
            default_location = Coordinates(settings.default_latitude, settings.default_longitude)
        self.default_location = default_location

    async def get_current_location(self) -> Optional[Coordinates]:
        try:
            location = await asyncio.wait_for(self.source.current_position(), timeout=self.timeout_seconds)
            if location is None:
                raise ValueError("Invalid location data received")
            logger.info(f"Obtained current location ({location.latitude:.5f}, {location.longitude:.5f})")
            return location
        except asyncio.TimeoutError:
            logger.warning(f"Location request timed out after {self.timeout_seconds:.0f}s, using last known location")
        except Exception as exc:
            logger.error(f"Error during location acquisition: {exc}")
        return await self.get_last_known_location()

    async def get_last_known_location(self) -> Optional[Coordinates]:
        try:
            location = await self.source.last_known_position()
        except Exception as exc:
            logger.error(f"Error getting last known location: {exc}")
            location = None
        if location is not None:
            logger.info("Using last known location")
            return location
        if self.default_location is not None:
            logger.warning("No last known location, using configured default location")
            return self.default_location
        return None
