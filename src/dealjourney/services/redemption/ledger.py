"""Redemption ledger: append-only log of redemptions and per-type cooldown checks."""

from __future__ import annotations

import asyncio
import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from ...errors import CorruptRecordError
from ...models.domain import DealType, RedemptionEvent, Vendor, normalize_vendor_id, utcnow
from ...persistence.storage import REDEMPTIONS_KEY, KeyValueStore, read_json, write_json
from ..deals.cache import DealIndexCache
from ..deals.eligibility import vendor_has_deal_type

logger = logging.getLogger(__name__)

STANDARD_RULE = "standard"

REDEMPTION_RULES: dict[str, timedelta] = {
    DealType.BIRTHDAY.value: timedelta(hours=24 * 365),
    DealType.DAILY.value: timedelta(hours=24),
    DealType.SPECIAL.value: timedelta(hours=24),
    STANDARD_RULE: timedelta(hours=24),
}


def cooldown_for(deal_type: str, override: Optional[timedelta] = None) -> timedelta:
    if override is not None and deal_type == DealType.SPECIAL.value:
        return override
    return REDEMPTION_RULES.get(deal_type, REDEMPTION_RULES[STANDARD_RULE])


def _deal_type_key(deal_type: DealType | str) -> str:
    return deal_type.value if isinstance(deal_type, DealType) else str(deal_type)


class RedemptionLedger:
    """Eligibility is a UX gate, not a security boundary: storage errors fail open.

    The log is never pruned; events older than the longest cooldown are simply ignored.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        cache: Optional[DealIndexCache] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.cache = cache
        self.clock = clock
        self._write_lock = asyncio.Lock()

    async def _read_events(self) -> list[RedemptionEvent]:
        records = await read_json(self.store, REDEMPTIONS_KEY, default=[])
        events: list[RedemptionEvent] = []
        for record in records if isinstance(records, list) else []:
            try:
                events.append(RedemptionEvent.from_record(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping malformed redemption record: {exc}")
        return events

    async def events(self) -> list[RedemptionEvent]:
        try:
            return await self._read_events()
        except Exception as exc:
            logger.error(f"Failed to get redemptions: {exc}")
            return []

    async def record(
        self,
        vendor_id: Any,
        deal_type: DealType | str,
        redemption_id: str | None = None,
    ) -> bool:
        """Append a redemption stamped with the current time. Not idempotent by id."""
        async with self._write_lock:
            try:
                try:
                    records = await read_json(self.store, REDEMPTIONS_KEY, default=[])
                except CorruptRecordError as exc:
                    logger.error(f"Redemption log is unreadable, starting a new one: {exc}")
                    records = []
                if not isinstance(records, list):
                    records = []
                event = RedemptionEvent(
                    id=redemption_id or uuid.uuid4().hex,
                    vendor_id=normalize_vendor_id(vendor_id),
                    deal_type=_deal_type_key(deal_type),
                    timestamp=self.clock(),
                )
                records.append(event.to_record())
                await write_json(self.store, REDEMPTIONS_KEY, records)
            except Exception as exc:
                logger.error(f"Failed to record redemption for vendor {vendor_id}: {exc}")
                return False
        logger.info(f"Deal redemption recorded: vendor={event.vendor_id} type={event.deal_type} id={event.id}")
        return True

    async def last_redemption(self, vendor_id: Any, deal_type: DealType | str) -> Optional[RedemptionEvent]:
        wanted_vendor = normalize_vendor_id(vendor_id)
        wanted_type = _deal_type_key(deal_type)
        matches = [
            event
            for event in await self._read_events()
            if event.vendor_id == wanted_vendor and event.deal_type == wanted_type
        ]
        if not matches:
            return None
        return max(matches, key=lambda event: event.timestamp)

    async def can_redeem(
        self,
        vendor_id: Any,
        deal_type: DealType | str,
        override_period: Optional[timedelta] = None,
    ) -> bool:
        try:
            last = await self.last_redemption(vendor_id, deal_type)
        except Exception as exc:
            logger.error(f"Error checking redemption eligibility, allowing redemption: {exc}")
            return True
        if last is None:
            return True

        cooldown = cooldown_for(_deal_type_key(deal_type), override_period)
        elapsed = self.clock() - last.timestamp
        if elapsed > cooldown:
            return True
        hours_left = math.ceil((cooldown - elapsed).total_seconds() / 3600)
        logger.info(
            f"Deal redemption blocked due to recent use: vendor={last.vendor_id} "
            f"type={last.deal_type} last={last.timestamp.isoformat()} hours_remaining={hours_left}"
        )
        return False

    def vendor_has_deal_type(self, vendor: Vendor, deal_type: DealType | str) -> bool:
        return vendor_has_deal_type(vendor, deal_type, self.clock(), cache=self.cache)

    async def filter_eligible(self, vendors: Iterable[Vendor], deal_type: DealType | str) -> list[Vendor]:
        """Vendors that advertise ``deal_type`` today and are past its cooldown, in input order."""
        eligible: list[Vendor] = []
        for vendor in vendors or []:
            if not self.vendor_has_deal_type(vendor, deal_type):
                continue
            if await self.can_redeem(vendor.id, deal_type):
                eligible.append(vendor)
            else:
                logger.info(f"Vendor {vendor.id} ({vendor.name}) filtered due to recent {_deal_type_key(deal_type)} redemption")
        return eligible

    async def clear(self) -> bool:
        try:
            await self.store.remove(REDEMPTIONS_KEY)
        except Exception as exc:
            logger.error(f"Failed to clear redemption history: {exc}")
            return False
        logger.info("Redemption history cleared")
        return True
