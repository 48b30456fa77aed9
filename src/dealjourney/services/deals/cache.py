"""In-memory multi-index cache over the deal catalog.

The cache keeps three indices built in one pass over the flattened deal list:
deals by type, deals by day of week (daily deals for that day plus every
multi-day deal active on it) and deals by vendor id. A refresh builds a
complete new ``DealIndex`` off to the side and swaps it in with a single
assignment, so queries never see a half-built index.

The flattened list is snapshotted to durable storage together with a
timestamp. ``load()`` prefers that snapshot and refreshes in the background
once it is older than the expiration window.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from ...config import settings
from ...data.deal_repository import DealCatalogRepository
from ...models.domain import DayOfWeek, Deal, DealType, normalize_vendor_id, parse_timestamp, utcnow
from ...persistence.storage import (
    DEALS_CACHE_KEY,
    DEALS_CACHE_TIMESTAMP_KEY,
    KeyValueStore,
    read_json,
    write_json,
)
from ...schemas.records import normalize_deal, normalize_deals

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEvent:
    type: str  # "init" | "update"
    count: int


CacheSubscriber = Callable[[CacheEvent], None]


@dataclass(slots=True)
class DealIndex:
    deals: tuple[Deal, ...] = ()
    by_type: dict[DealType, list[Deal]] = field(default_factory=lambda: {t: [] for t in DealType})
    by_day: dict[DayOfWeek, list[Deal]] = field(default_factory=lambda: {d: [] for d in DayOfWeek})
    by_vendor: dict[str, list[Deal]] = field(default_factory=dict)

    @classmethod
    def build(cls, deals: Iterable[Deal]) -> "DealIndex":
        index = cls()
        seen: set[str] = set()
        unique: list[Deal] = []
        for deal in deals:
            if deal.id in seen:
                continue
            seen.add(deal.id)
            unique.append(deal)
            index.by_type[deal.deal_type].append(deal)
            if deal.deal_type is DealType.DAILY and deal.day is not None:
                index.by_day[deal.day].append(deal)
            elif deal.deal_type is DealType.MULTI_DAY:
                for day in DayOfWeek:
                    if day in deal.active_days:
                        index.by_day[day].append(deal)
            index.by_vendor.setdefault(deal.vendor_id, []).append(deal)
        index.deals = tuple(unique)
        return index


def _vendor_keys(vendor_id: Any) -> list[str]:
    """Raw, string and numeric spellings of a vendor id, in lookup order."""

    keys: list[str] = []
    candidates: list[Any] = [vendor_id]
    try:
        number = float(str(vendor_id).strip())
        if number.is_integer():
            candidates.append(int(number))
        candidates.append(number)
    except ValueError:
        pass
    for candidate in candidates:
        if isinstance(candidate, str):
            key = candidate
        else:
            try:
                key = normalize_vendor_id(candidate)
            except ValueError:
                continue
        if key not in keys:
            keys.append(key)
    return keys


def _coerce_deals(items: Iterable[Any]) -> list[Deal]:
    deals: list[Deal] = []
    raw: list[Any] = []
    for item in items or []:
        if isinstance(item, Deal):
            deals.append(item)
        else:
            raw.append(item)
    if raw:
        deals.extend(normalize_deals(raw))
    return deals


class DealIndexCache:
    def __init__(
        self,
        repository: DealCatalogRepository,
        store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        expiration: timedelta | None = None,
    ) -> None:
        self.repository = repository
        self.store = store
        self.clock = clock
        self.expiration = expiration or timedelta(hours=settings.cache_expiration_hours)
        self._subscribers: list[CacheSubscriber] = []
        self._background_task: Optional[asyncio.Task] = None
        self.reset()

    def reset(self) -> None:
        """Drop the in-memory indices. Subscribers and configuration are kept."""
        self._index = DealIndex()
        self._loaded = False
        self._last_update: Optional[datetime] = None

    # -- subscriptions -------------------------------------------------

    def subscribe(self, callback: CacheSubscriber) -> Callable[[], None]:
        if not callable(callback):
            logger.warning("Invalid deal cache subscriber callback")
            return lambda: None
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, event: CacheEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Error in deal cache subscriber")

    # -- state ---------------------------------------------------------

    def is_loaded(self) -> bool:
        return self._loaded

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_update

    @property
    def background_task(self) -> Optional[asyncio.Task]:
        return self._background_task

    def count_by_type(self) -> dict[str, int]:
        return {deal_type.value: len(self._index.by_type[deal_type]) for deal_type in DealType}

    async def _snapshot_timestamp(self) -> Optional[datetime]:
        raw = await self.store.get(DEALS_CACHE_TIMESTAMP_KEY)
        if not raw:
            return None
        return parse_timestamp(raw.strip())

    def _is_stale(self, timestamp: Optional[datetime]) -> bool:
        if timestamp is None:
            return True
        return self.clock() - timestamp > self.expiration

    async def needs_refresh(self) -> bool:
        if not self._loaded:
            return True
        try:
            return self._is_stale(await self._snapshot_timestamp())
        except Exception as exc:
            logger.warning(f"Error checking if deal cache needs refresh: {exc}")
            return True

    # -- loading -------------------------------------------------------

    async def load(self, force: bool = False) -> bool:
        """Make sure the cache is populated. Never raises; returns success."""
        try:
            logger.info(f"Loading deals into cache (force={force})")
            if not force and self._loaded and self._index.deals and not await self.needs_refresh():
                logger.info(f"Using existing deal cache ({len(self._index.deals)} deals)")
                return True

            if not force:
                deals, timestamp = await self._read_snapshot()
                if deals:
                    self._install(DealIndex.build(deals))
                    self._notify(CacheEvent(type="init", count=len(self._index.deals)))
                    logger.info(f"Loaded deals from storage snapshot: {self.count_by_type()}")
                    if self._is_stale(timestamp):
                        self._schedule_background_refresh()
                    return True

            if not await self.refresh(background=False):
                logger.error("Failed to refresh deal cache")
                return False
            return True
        except Exception:
            logger.exception("Error loading deals")
            return False

    async def _read_snapshot(self) -> tuple[list[Deal], Optional[datetime]]:
        try:
            records = await read_json(self.store, DEALS_CACHE_KEY, default=[])
            timestamp = await self._snapshot_timestamp()
        except Exception as exc:
            logger.error(f"Error loading deals from storage: {exc}")
            return [], None
        if not isinstance(records, list):
            logger.warning("Deal snapshot is not a list, ignoring it")
            return [], None
        return normalize_deals(records), timestamp

    def _schedule_background_refresh(self) -> None:
        if self._background_task is not None and not self._background_task.done():
            return
        task = asyncio.get_running_loop().create_task(self.refresh(background=True))
        task.add_done_callback(self._log_background_result)
        self._background_task = task

    @staticmethod
    def _log_background_result(task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Background deal refresh was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background deal refresh failed: {exc}")
        elif not task.result():
            logger.warning("Background deal refresh failed, keeping stale snapshot")

    async def wait_for_background(self) -> Optional[bool]:
        """Await the pending background refresh, if any, and return its result."""
        task = self._background_task
        if task is None:
            return None
        return await task

    async def refresh(self, background: bool = False) -> bool:
        try:
            index = await self._fetch_index()
        except Exception as exc:
            logger.error(f"Error refreshing deal cache: {exc}")
            if self._loaded and self._index.deals:
                logger.warning(
                    f"Keeping previously loaded deals after failed {'background ' if background else ''}refresh"
                )
            else:
                self._loaded = False
            return False

        now = self._install(index)
        try:
            await write_json(self.store, DEALS_CACHE_KEY, [deal.to_record() for deal in index.deals])
            await self.store.set(DEALS_CACHE_TIMESTAMP_KEY, str(int(now.timestamp() * 1000)))
        except Exception as exc:
            logger.warning(f"Deal cache refreshed but snapshot could not be saved: {exc}")

        self._notify(CacheEvent(type="update", count=len(index.deals)))
        logger.info(
            f"Deal cache loaded successfully: {len(index.deals)} deals, "
            f"{len(index.by_vendor)} vendors, {self.count_by_type()}"
        )
        return True

    async def force_refresh(self) -> bool:
        return await self.refresh(background=False)

    def _install(self, index: DealIndex) -> datetime:
        now = self.clock()
        self._index = index
        self._loaded = True
        self._last_update = now
        return now

    async def _fetch(self, method: Callable[..., Iterable[Any]], *args: Any) -> list[Deal]:
        return _coerce_deals(await asyncio.to_thread(method, *args))

    async def _fetch_index(self) -> DealIndex:
        repo = self.repository
        birthday = await self._fetch(repo.get_birthday_deals)
        daily: list[Deal] = []
        multi_day: list[Deal] = []
        multi_day_ids: set[str] = set()
        for day in DayOfWeek:
            daily.extend(await self._fetch(repo.get_daily_deals, day))
            for deal in await self._fetch(repo.get_multi_day_deals, day):
                # one multi-day deal comes back once per active day
                if deal.id not in multi_day_ids:
                    multi_day_ids.add(deal.id)
                    multi_day.append(deal)
        special = await self._fetch(repo.get_special_deals)
        everyday = await self._fetch(repo.get_everyday_deals)
        return DealIndex.build([*birthday, *daily, *multi_day, *special, *everyday])

    async def get_by_id(self, deal_id: str) -> Optional[Deal]:
        """Cached deal by id, falling back to the catalog."""
        for deal in self._index.deals:
            if deal.id == str(deal_id):
                return deal
        try:
            found = await asyncio.to_thread(self.repository.get_by_id, str(deal_id))
        except Exception as exc:
            logger.error(f"Error fetching deal {deal_id} from catalog: {exc}")
            return None
        if found is None or isinstance(found, Deal):
            return found
        return normalize_deal(found)

    # -- queries -------------------------------------------------------

    def _vendor_bucket(self, index: DealIndex, vendor_id: Any) -> list[Deal]:
        for key in _vendor_keys(vendor_id):
            bucket = index.by_vendor.get(key)
            if bucket:
                return bucket
        return []

    def has_vendor(self, vendor_id: Any) -> bool:
        return bool(self._vendor_bucket(self._index, vendor_id))

    def query(
        self,
        type: DealType | str | None = None,
        day: DayOfWeek | str | None = None,
        vendor_id: Any = None,
        active_only: bool = True,
        limit: int | None = None,
    ) -> list[Deal]:
        deal_type = DealType.parse(type) if type is not None else None
        day_of_week = DayOfWeek.parse(day) if day is not None else None
        if limit is not None and limit < 0:
            raise ValueError("limit must not be negative")
        if not self._loaded:
            logger.warning("Deal cache not loaded, returning empty list")
            return []

        index = self._index
        if vendor_id is not None:
            deals: Iterable[Deal] = self._vendor_bucket(index, vendor_id)
            if deal_type is not None:
                deals = [deal for deal in deals if deal.deal_type is deal_type]
            if day_of_week is not None:
                deals = [deal for deal in deals if deal.applies_on(day_of_week)]
        elif deal_type is DealType.DAILY and day_of_week is not None:
            deals = [deal for deal in index.by_day[day_of_week] if deal.deal_type is DealType.DAILY]
        elif deal_type is DealType.MULTI_DAY and day_of_week is not None:
            deals = [deal for deal in index.by_type[DealType.MULTI_DAY] if day_of_week in deal.active_days]
        elif deal_type is not None:
            deals = index.by_type[deal_type]
        elif day_of_week is not None:
            deals = index.by_day[day_of_week]
        else:
            deals = index.deals

        if active_only:
            deals = [deal for deal in deals if deal.is_active is not False]
        result = list(deals)
        if limit is not None:
            result = result[:limit]
        return result

    def deals_for_vendor(
        self,
        vendor_id: Any,
        type: DealType | str | None = None,
        day: DayOfWeek | str | None = None,
    ) -> list[Deal]:
        """Deals for one vendor; daily lookups also carry the vendor's everyday deals."""
        deal_type = DealType.parse(type) if type is not None else None
        deals = self.query(type=deal_type, day=day, vendor_id=vendor_id)
        if deal_type is DealType.DAILY:
            deals.extend(self.query(type=DealType.EVERYDAY, vendor_id=vendor_id))
        return deals

    def todays_deals_for_vendor(self, vendor_id: Any, day: DayOfWeek | str | None = None) -> list[Deal]:
        """Daily, multi-day and everyday deals a vendor offers on ``day`` (default today)."""
        day_of_week = DayOfWeek.parse(day) if day is not None else DayOfWeek.today(self.clock())
        return [
            *self.query(type=DealType.DAILY, day=day_of_week, vendor_id=vendor_id),
            *self.query(type=DealType.MULTI_DAY, day=day_of_week, vendor_id=vendor_id),
            *self.query(type=DealType.EVERYDAY, vendor_id=vendor_id),
        ]
