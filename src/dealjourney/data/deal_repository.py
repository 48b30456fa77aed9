"""Deal catalog repository backed by the Supabase ``deals`` table."""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import CatalogError
from ..models.domain import DayOfWeek, Deal, DealType
from ..schemas.records import normalize_deal, normalize_deals

logger = logging.getLogger(__name__)


class DealCatalogRepository(Protocol):
    """Read access to the remote deal catalog. Failures raise."""

    def get_birthday_deals(self) -> list[Deal]: ...

    def get_daily_deals(self, day: DayOfWeek | str) -> list[Deal]: ...

    def get_multi_day_deals(self, day: DayOfWeek | str) -> list[Deal]: ...

    def get_special_deals(self) -> list[Deal]: ...

    def get_everyday_deals(self) -> list[Deal]: ...

    def get_by_id(self, deal_id: str) -> Optional[Deal]: ...


class SupabaseDealRepository:
    """Queries active deals by type, day and id."""

    def __init__(self, client: Any = None, table: str | None = None) -> None:
        self._client = client
        self.table = table or settings.deals_table

    @property
    def client(self) -> Any:
        client = self._client or get_supabase_client()
        if client is None:
            raise CatalogError("Deal catalog is not configured (missing Supabase credentials)")
        return client

    def _active_of_type(self, deal_type: DealType) -> Any:
        return (
            self.client.table(self.table)
            .select("*")
            .eq("dealType", deal_type.value)
            .eq("isActive", True)
        )

    def _execute(self, query: Any, description: str) -> list[dict]:
        try:
            response = query.execute()
        except Exception as exc:
            raise CatalogError(f"Failed to load {description}: {exc}") from exc
        rows = response.data or []
        logger.info(f"Found {len(rows)} {description} in catalog")
        return rows

    def get_birthday_deals(self) -> list[Deal]:
        return normalize_deals(self._execute(self._active_of_type(DealType.BIRTHDAY), "birthday deals"))

    def get_daily_deals(self, day: DayOfWeek | str) -> list[Deal]:
        day = DayOfWeek.parse(day)
        query = self._active_of_type(DealType.DAILY).eq("day", day.value)
        return normalize_deals(self._execute(query, f"daily deals for {day.value}"))

    def get_multi_day_deals(self, day: DayOfWeek | str) -> list[Deal]:
        day = DayOfWeek.parse(day)
        query = self._active_of_type(DealType.MULTI_DAY).contains("activeDays", [day.value])
        deals = normalize_deals(self._execute(query, f"multi-day deals for {day.value}"))
        return [deal for deal in deals if day in deal.active_days]

    def get_special_deals(self) -> list[Deal]:
        return normalize_deals(self._execute(self._active_of_type(DealType.SPECIAL), "special deals"))

    def get_everyday_deals(self) -> list[Deal]:
        return normalize_deals(self._execute(self._active_of_type(DealType.EVERYDAY), "everyday deals"))

    def get_by_id(self, deal_id: str) -> Optional[Deal]:
        query = self.client.table(self.table).select("*").eq("id", str(deal_id)).limit(1)
        rows = self._execute(query, f"deal {deal_id}")
        if not rows:
            logger.info(f"No deal found with ID: {deal_id}")
            return None
        return normalize_deal(rows[0])
