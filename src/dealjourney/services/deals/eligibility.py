"""Static "does this vendor currently advertise this deal type" predicate.

Shared by the redemption ledger and the route planner so both agree on what
counts as a vendor offering a deal today. The deal cache is authoritative;
the summary embedded on the vendor record is only consulted when the cache
has no entries for that vendor.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from ...models.domain import DayOfWeek, DealType, Vendor
from ...schemas.records import coerce_timestamp
from .cache import DealIndexCache


def _payload_currently_valid(payload: dict[str, Any], now: datetime) -> bool:
    try:
        start = coerce_timestamp(payload.get("startDate"))
        end = coerce_timestamp(payload.get("endDate"))
    except (TypeError, ValueError):
        return False
    if start is not None and now < start:
        return False
    if end is not None and now > end:
        return False
    return True


def _summary_offers(vendor: Vendor, deal_type: DealType, day: DayOfWeek, now: datetime) -> bool:
    deals = vendor.deals
    if deal_type is DealType.BIRTHDAY:
        return deals.birthday is not None
    if deal_type is DealType.DAILY:
        return bool(deals.daily.get(day.value))
    if deal_type is DealType.SPECIAL:
        return any(_payload_currently_valid(payload, now) for payload in deals.special)
    if deal_type is DealType.EVERYDAY:
        return bool(deals.everyday)
    if deal_type is DealType.MULTI_DAY:
        for payload in deals.multi_day:
            active_days = payload.get("activeDays")
            if not active_days or day.value in [str(item).lower() for item in active_days]:
                return True
    return False


def vendor_has_deal_type(
    vendor: Vendor,
    deal_type: DealType | str,
    now: datetime,
    cache: Optional[DealIndexCache] = None,
    day: DayOfWeek | None = None,
) -> bool:
    deal_type = DealType.parse(deal_type)
    day = day or DayOfWeek.today(now)
    if cache is not None and cache.is_loaded() and cache.has_vendor(vendor.id):
        deals = cache.query(type=deal_type, day=day, vendor_id=vendor.id)
        return any(deal.is_currently_valid(now) for deal in deals)
    return _summary_offers(vendor, deal_type, day, now)
