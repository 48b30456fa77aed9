"""Journey progress tracking with durable, time-limited persistence.

The state machine is the only writer of journey state. Callers receive deep
copies, so mutating a returned ``Journey`` has no effect on the tracked one.

Mutations are applied in call order but are not serialized against each
other: two overlapping ``advance()`` calls can both read the same index
before either persists. Callers must wait for one mutation to settle before
issuing the next.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Optional

from ...config import settings
from ...models.domain import DealType, Itinerary, Journey, JourneyStop, utcnow
from ...persistence.storage import (
    CURRENT_JOURNEY_KEY,
    CURRENT_ROUTE_DATA_KEY,
    JOURNEY_HISTORY_KEY,
    KeyValueStore,
    read_json,
    write_json,
)

logger = logging.getLogger(__name__)


class JourneyState(str, Enum):
    NO_JOURNEY = "no_journey"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class JourneyStateMachine:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta | None = None,
        history_limit: int | None = None,
        points_per_stop: int | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.ttl = ttl or timedelta(hours=settings.journey_ttl_hours)
        self.history_limit = history_limit or settings.journey_history_limit
        self.points_per_stop = settings.points_per_stop if points_per_stop is None else points_per_stop
        self._journey: Optional[Journey] = None
        self._route_data: Optional[dict[str, Any]] = None
        self._state = JourneyState.NO_JOURNEY
        self._history_lock = asyncio.Lock()

    # -- read views ----------------------------------------------------

    @property
    def state(self) -> JourneyState:
        return self._state

    @property
    def is_finished(self) -> bool:
        """True when there is nothing left to visit, even before ``complete()``."""
        return self._journey is None or self._journey.is_empty

    def current(self) -> Optional[Journey]:
        return copy.deepcopy(self._journey)

    def route_data(self) -> Optional[dict[str, Any]]:
        return copy.deepcopy(self._route_data)

    async def history(self, limit: int | None = None) -> list[dict[str, Any]]:
        limit = self.history_limit if limit is None else limit
        try:
            history = await read_json(self.store, JOURNEY_HISTORY_KEY, default=[])
        except Exception as exc:
            logger.error(f"Error getting journey history: {exc}")
            return []
        if not isinstance(history, list):
            return []
        return history[: max(limit, 0)]

    # -- persistence ---------------------------------------------------

    async def _persist(self, include_route: bool = False) -> bool:
        if self._journey is None:
            return False
        try:
            await write_json(self.store, CURRENT_JOURNEY_KEY, self._journey.to_record())
            if include_route and self._route_data is not None:
                await write_json(self.store, CURRENT_ROUTE_DATA_KEY, self._route_data)
        except Exception as exc:
            # in-memory state stays ahead of storage; a crash now loses this step
            logger.error(f"Failed to persist current journey: {exc}")
            return False
        return True

    async def _discard(self) -> None:
        self._journey = None
        self._route_data = None
        for key in (CURRENT_JOURNEY_KEY, CURRENT_ROUTE_DATA_KEY):
            try:
                await self.store.remove(key)
            except Exception as exc:
                logger.error(f"Failed to remove '{key}' from storage: {exc}")

    async def _append_history(self, record: dict[str, Any]) -> None:
        async with self._history_lock:
            try:
                history = await read_json(self.store, JOURNEY_HISTORY_KEY, default=[])
                if not isinstance(history, list):
                    history = []
                history.insert(0, record)
                await write_json(self.store, JOURNEY_HISTORY_KEY, history[: self.history_limit])
            except Exception as exc:
                logger.error(f"Error adding journey to history: {exc}")
                return
        logger.debug(f"Added journey to history ({min(len(history), self.history_limit)} entries)")

    # -- lifecycle -----------------------------------------------------

    async def load(self) -> Optional[Journey]:
        """Restore the persisted journey unless it is older than the TTL."""
        try:
            record = await read_json(self.store, CURRENT_JOURNEY_KEY)
        except Exception as exc:
            logger.error(f"Failed to read persisted journey: {exc}")
            return None
        if record is None:
            self._state = JourneyState.NO_JOURNEY
            return None

        try:
            journey = Journey.from_record(record)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning(f"Discarding unreadable persisted journey: {exc}")
            await self.clear()
            return None

        if self.clock() - journey.created_at > self.ttl:
            logger.info("Clearing expired journey data")
            await self.clear()
            return None

        if not journey.vendors:
            journey.current_vendor_index = 0
        elif not 0 <= journey.current_vendor_index < len(journey.vendors):
            journey.current_vendor_index = min(max(journey.current_vendor_index, 0), len(journey.vendors) - 1)

        try:
            route_data = await read_json(self.store, CURRENT_ROUTE_DATA_KEY)
        except Exception as exc:
            logger.warning(f"Could not read cached route data: {exc}")
            route_data = None

        self._journey = journey
        self._route_data = route_data if isinstance(route_data, dict) else None
        self._state = JourneyState.ACTIVE
        logger.info(
            f"Loaded current journey from storage: {len(journey.vendors)} stops, "
            f"index {journey.current_vendor_index}"
        )
        return self.current()

    async def start(
        self,
        itinerary: Itinerary,
        deal_type: DealType | str | None = None,
        max_distance: float | None = None,
    ) -> Journey:
        """Begin tracking ``itinerary``, replacing any journey already in progress."""
        deal_type = DealType.parse(deal_type or itinerary.deal_type)
        if self._journey is not None:
            logger.info("Replacing existing journey with a new one")
        stops = [JourneyStop.from_vendor(vendor) for vendor in itinerary.vendors]
        self._journey = Journey(
            deal_type=deal_type,
            vendors=stops,
            created_at=self.clock(),
            current_vendor_index=0,
            max_distance=max_distance,
            total_vendors=len(stops),
            start_location=itinerary.start_location,
            total_distance=itinerary.total_distance,
            estimated_time=itinerary.estimated_time_minutes,
        )
        self._route_data = itinerary.route_data()
        self._state = JourneyState.ACTIVE
        await self._persist(include_route=True)
        logger.info(f"Started {deal_type.value} journey with {len(stops)} stops")
        return self.current()

    async def advance(self) -> Optional[Journey]:
        """Move to the next stop. Returns None (and changes nothing) on the last stop."""
        journey = self._journey
        if journey is None:
            return None
        if journey.current_vendor_index < len(journey.vendors) - 1:
            journey.current_vendor_index += 1
            await self._persist()
            logger.info(f"Advanced to stop {journey.current_vendor_index + 1} of {len(journey.vendors)}")
            return self.current()
        logger.info("Journey is complete, no more vendors")
        return None

    async def skip(self) -> Optional[Journey]:
        """Drop the current stop from the itinerary entirely."""
        journey = self._journey
        if journey is None:
            return None
        index = journey.current_vendor_index
        if journey.vendors:
            del journey.vendors[index]
        journey.total_vendors = len(journey.vendors)
        if index >= len(journey.vendors):
            journey.current_vendor_index = len(journey.vendors) - 1
            if journey.current_vendor_index < 0:
                journey.current_vendor_index = 0
                journey.vendors = []
                journey.total_vendors = 0
        await self._persist()
        logger.info(f"Skipped stop, {len(journey.vendors)} remaining, index {journey.current_vendor_index}")
        return self.current()

    async def check_in(self, check_in_type: str = "qr") -> Optional[Journey]:
        """Mark the current stop as checked in. Repeated check-ins are no-ops."""
        journey = self._journey
        if journey is None or journey.current_stop is None:
            return None
        stop = journey.current_stop
        if not stop.checked_in:
            stop.checked_in = True
            stop.check_in_type = check_in_type
            stop.check_in_timestamp = self.clock()
            await self._persist()
            logger.info(f"Checked in at vendor {stop.vendor_id} via {check_in_type}")
        return self.current()

    async def complete(self) -> Optional[Journey]:
        """Finish the journey, record it in history and clear the current state.

        Points are awarded for stops before the current one; the stop the user
        is standing on does not count as visited.
        """
        journey = self._journey
        if journey is None:
            return None
        journey.completed_at = self.clock()
        journey.points_earned = journey.current_vendor_index * self.points_per_stop

        summary = journey.to_record()
        route_data = self._route_data or {}
        summary["totalDistance"] = route_data.get("totalDistance", journey.total_distance)
        summary["totalTime"] = route_data.get("estimatedTime", journey.estimated_time)
        await self._append_history(summary)

        completed = copy.deepcopy(journey)
        await self._discard()
        self._state = JourneyState.COMPLETED
        logger.info(
            f"Journey completed: {completed.current_vendor_index} of {completed.total_vendors} visited, "
            f"{completed.points_earned} points"
        )
        return completed

    async def abandon(self) -> None:
        """Throw the journey away without recording history."""
        had_journey = self._journey is not None
        await self._discard()
        self._state = JourneyState.ABANDONED if had_journey else JourneyState.NO_JOURNEY
        logger.info("Current journey abandoned" if had_journey else "No journey to abandon")

    async def clear(self) -> None:
        await self._discard()
        self._state = JourneyState.NO_JOURNEY
        logger.info("Current journey cleared")
