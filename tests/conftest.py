from datetime import datetime, timedelta, timezone

import pytest

from dealjourney.errors import CatalogError
from dealjourney.models.domain import Coordinates, DayOfWeek, DealType, Vendor, VendorDealSummary
from dealjourney.persistence.storage import MemoryKeyValueStore
from dealjourney.schemas.records import normalize_deals

# 2024-01-01 was a Monday
MONDAY_NOON = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
ANCHORAGE = Coordinates(61.2181, -149.9003)


class MutableClock:
    def __init__(self, now: datetime = MONDAY_NOON) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeDealRepository:
    def __init__(self, records=None) -> None:
        self.records = list(records or [])
        self.fail = False
        self.calls = 0

    def _deals(self, deal_type: DealType):
        self.calls += 1
        if self.fail:
            raise CatalogError("catalog offline")
        return [deal for deal in normalize_deals(self.records) if deal.deal_type is deal_type and deal.is_active]

    def get_birthday_deals(self):
        return self._deals(DealType.BIRTHDAY)

    def get_daily_deals(self, day):
        day = DayOfWeek.parse(day)
        return [deal for deal in self._deals(DealType.DAILY) if deal.day is day]

    def get_multi_day_deals(self, day):
        day = DayOfWeek.parse(day)
        return [deal for deal in self._deals(DealType.MULTI_DAY) if day in deal.active_days]

    def get_special_deals(self):
        return self._deals(DealType.SPECIAL)

    def get_everyday_deals(self):
        return self._deals(DealType.EVERYDAY)

    def get_by_id(self, deal_id):
        for deal in normalize_deals(self.records):
            if deal.id == str(deal_id):
                return deal
        return None


class FakeVendorDirectory:
    def __init__(self, vendors=None) -> None:
        self.vendors = list(vendors or [])

    def get_all_vendors(self):
        return list(self.vendors)


def _vendor(vid: str, lat: float, lon: float, birthday: bool = True) -> Vendor:
    return Vendor(
        id=vid,
        name=f"Vendor {vid.upper()}",
        coordinates=Coordinates(lat, lon),
        address=f"{vid.upper()} Street, Anchorage",
        deals=VendorDealSummary(birthday={"description": "Free dessert"} if birthday else None),
    )


def anchorage_vendors() -> list[Vendor]:
    return [
        _vendor("a", 61.2250, -149.8950),
        _vendor("b", 61.2350, -149.8850),
        _vendor("c", 61.2100, -149.9250),
        _vendor("d", 61.1900, -149.8500),
        _vendor("e", 61.2170, -149.9010, birthday=False),
    ]


SAMPLE_DEALS = [
    {"id": "d1", "vendorId": "v1", "dealType": "daily", "day": "monday", "title": "Monday tacos"},
    {"id": "d2", "vendorId": "v2", "dealType": "multi_day", "activeDays": ["monday", "tuesday"], "title": "Early week"},
    {"id": "d3", "vendorId": "v2", "dealType": "everyday", "title": "Happy hour"},
    {"id": "d4", "vendorId": "v3", "dealType": "birthday", "title": "Free cake"},
]


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def deal_repository() -> FakeDealRepository:
    return FakeDealRepository(SAMPLE_DEALS)


@pytest.fixture
def vendor_directory() -> FakeVendorDirectory:
    return FakeVendorDirectory(anchorage_vendors())
