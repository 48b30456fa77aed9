"""Construction and wiring of the shared engine services.

One ``EngineContainer`` is built at process start and passed to whoever needs
the cache, ledger, planner or journey machine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from ..config import settings
from ..data.deal_repository import DealCatalogRepository, SupabaseDealRepository
from ..data.vendor_repository import SupabaseVendorDirectory, VendorDirectory
from ..models.domain import Coordinates, utcnow
from ..persistence.storage import FileKeyValueStore, KeyValueStore
from .deals.cache import DealIndexCache
from .journey.state_machine import JourneyStateMachine
from .location import DeviceLocationProvider, LocationProvider, PositionSource, StaticLocationProvider
from .redemption.ledger import RedemptionLedger
from .routing.planner import RoutePlanner

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EngineContainer:
    store: KeyValueStore
    vendor_directory: VendorDirectory
    deal_cache: DealIndexCache
    ledger: RedemptionLedger
    planner: RoutePlanner
    journeys: JourneyStateMachine
    location_provider: LocationProvider

    @classmethod
    def build(
        cls,
        *,
        store: Optional[KeyValueStore] = None,
        deal_repository: Optional[DealCatalogRepository] = None,
        vendor_directory: Optional[VendorDirectory] = None,
        location_provider: Optional[LocationProvider] = None,
        position_source: Optional[PositionSource] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "EngineContainer":
        store = store or FileKeyValueStore()
        vendor_directory = vendor_directory or SupabaseVendorDirectory()
        if location_provider is None:
            default = None
            if settings.use_default_location:
                default = Coordinates(settings.default_latitude, settings.default_longitude)
            if position_source is not None:
                location_provider = DeviceLocationProvider(position_source, default_location=default)
            else:
                location_provider = StaticLocationProvider(default)

        deal_cache = DealIndexCache(deal_repository or SupabaseDealRepository(), store, clock=clock)
        ledger = RedemptionLedger(store, cache=deal_cache, clock=clock)
        planner = RoutePlanner(vendor_directory, ledger, location_provider=location_provider)
        journeys = JourneyStateMachine(store, clock=clock)
        return cls(
            store=store,
            vendor_directory=vendor_directory,
            deal_cache=deal_cache,
            ledger=ledger,
            planner=planner,
            journeys=journeys,
            location_provider=location_provider,
        )

    async def startup(self) -> None:
        if not await self.deal_cache.load():
            logger.warning("Deal cache could not be loaded at startup")
        await self.journeys.load()

    async def shutdown(self) -> None:
        task = self.deal_cache.background_task
        if task is not None and not task.done():
            task.cancel()
