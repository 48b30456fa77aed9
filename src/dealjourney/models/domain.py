"""Domain models for deals, vendors, redemptions and journeys."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional


class DealType(str, Enum):
    BIRTHDAY = "birthday"
    DAILY = "daily"
    SPECIAL = "special"
    EVERYDAY = "everyday"
    MULTI_DAY = "multi_day"

    @classmethod
    def parse(cls, value: "DealType | str") -> "DealType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"Invalid deal type '{value}'. Expected one of: {allowed}") from exc


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def parse(cls, value: "DayOfWeek | str") -> "DayOfWeek":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            raise ValueError(f"Invalid day: {value}") from exc

    @classmethod
    def today(cls, now: datetime | None = None) -> "DayOfWeek":
        """Day of week for ``now`` (local time of the datetime given)."""
        moment = now or datetime.now()
        return list(cls)[moment.weekday()]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings, epoch milliseconds or datetimes into aware UTC datetimes."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        moment = datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.isdigit():
            moment = datetime.fromtimestamp(int(text) / 1000.0, tz=timezone.utc)
        else:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def normalize_vendor_id(value: Any) -> str:
    """Canonical string form of a vendor id that may arrive as str, int or float."""

    if isinstance(value, bool):
        raise ValueError(f"Invalid vendor id: {value!r}")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    if not text:
        raise ValueError("Vendor id must not be empty.")
    return text


@dataclass(frozen=True, slots=True)
class Coordinates:
    latitude: float
    longitude: float

    def to_record(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "Coordinates":
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


@dataclass(frozen=True, slots=True)
class Deal:
    """A promotional offer as indexed by the deal cache. Never mutated once built."""

    id: str
    vendor_id: str
    deal_type: DealType
    is_active: bool = True
    day: Optional[DayOfWeek] = None
    active_days: frozenset[DayOfWeek] = frozenset()
    title: Optional[str] = None
    discount: Optional[str] = None
    description: Optional[str] = None
    restrictions: tuple[str, ...] = ()
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def is_currently_valid(self, now: datetime) -> bool:
        """Special deals outside their date window are kept but not eligible."""
        if self.deal_type is not DealType.SPECIAL:
            return True
        if self.start_date is not None and now < self.start_date:
            return False
        if self.end_date is not None and now > self.end_date:
            return False
        return True

    def applies_on(self, day: DayOfWeek) -> bool:
        if self.deal_type is DealType.DAILY:
            return self.day is day
        if self.deal_type is DealType.MULTI_DAY:
            return day in self.active_days
        return True

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "vendorId": self.vendor_id,
            "dealType": self.deal_type.value,
            "isActive": self.is_active,
            "title": self.title,
            "discount": self.discount,
            "description": self.description,
            "restrictions": list(self.restrictions),
        }
        if self.day is not None:
            record["day"] = self.day.value
        if self.active_days:
            record["activeDays"] = [day.value for day in DayOfWeek if day in self.active_days]
        if self.start_date is not None:
            record["startDate"] = format_timestamp(self.start_date)
        if self.end_date is not None:
            record["endDate"] = format_timestamp(self.end_date)
        return record


@dataclass(frozen=True, slots=True)
class VendorDealSummary:
    """Deal payloads embedded on a vendor record, used when the cache has nothing for it."""

    birthday: Optional[dict] = None
    daily: Mapping[str, tuple[dict, ...]] = field(default_factory=dict)
    special: tuple[dict, ...] = ()
    everyday: tuple[dict, ...] = ()
    multi_day: tuple[dict, ...] = ()


@dataclass(frozen=True, slots=True)
class Vendor:
    id: str
    name: str
    coordinates: Optional[Coordinates]
    address: Optional[str] = None
    is_partner: bool = False
    deals: VendorDealSummary = field(default_factory=VendorDealSummary)
    distance: Optional[float] = None

    def with_distance(self, distance: float) -> "Vendor":
        return replace(self, distance=distance)

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isPartner": self.is_partner,
            "location": {
                "address": self.address,
                "coordinates": self.coordinates.to_record() if self.coordinates else None,
            },
            "distance": self.distance,
        }


@dataclass(frozen=True, slots=True)
class RedemptionEvent:
    id: str
    vendor_id: str
    deal_type: str
    timestamp: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "vendorId": self.vendor_id,
            "dealType": self.deal_type,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "RedemptionEvent":
        timestamp = parse_timestamp(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"Redemption {data.get('id')} has no timestamp")
        return cls(
            id=str(data.get("id")),
            vendor_id=normalize_vendor_id(data["vendorId"]),
            deal_type=str(data["dealType"]),
            timestamp=timestamp,
        )


@dataclass(slots=True)
class JourneyStop:
    vendor_id: str
    name: str
    coordinates: Optional[Coordinates]
    address: Optional[str] = None
    distance: Optional[float] = None
    checked_in: bool = False
    check_in_type: Optional[str] = None
    check_in_timestamp: Optional[datetime] = None

    @classmethod
    def from_vendor(cls, vendor: Vendor) -> "JourneyStop":
        return cls(
            vendor_id=vendor.id,
            name=vendor.name,
            coordinates=vendor.coordinates,
            address=vendor.address,
            distance=vendor.distance,
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.vendor_id,
            "name": self.name,
            "location": {
                "address": self.address,
                "coordinates": self.coordinates.to_record() if self.coordinates else None,
            },
            "distance": self.distance,
            "checkedIn": self.checked_in,
            "checkInType": self.check_in_type,
            "checkInTimestamp": format_timestamp(self.check_in_timestamp),
        }

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "JourneyStop":
        location = data.get("location") or {}
        coordinates = location.get("coordinates")
        return cls(
            vendor_id=normalize_vendor_id(data["id"]),
            name=str(data.get("name") or ""),
            coordinates=Coordinates.from_record(coordinates) if coordinates else None,
            address=location.get("address"),
            distance=data.get("distance"),
            checked_in=bool(data.get("checkedIn", False)),
            check_in_type=data.get("checkInType"),
            check_in_timestamp=parse_timestamp(data.get("checkInTimestamp")),
        )


@dataclass(slots=True)
class Journey:
    """A multi-stop itinerary the user is working through."""

    deal_type: DealType
    vendors: list[JourneyStop]
    created_at: datetime
    current_vendor_index: int = 0
    max_distance: Optional[float] = None
    total_vendors: int = 0
    start_location: Optional[Coordinates] = None
    total_distance: float = 0.0
    estimated_time: float = 0.0
    completed_at: Optional[datetime] = None
    points_earned: Optional[int] = None

    @property
    def current_stop(self) -> Optional[JourneyStop]:
        if not self.vendors:
            return None
        return self.vendors[self.current_vendor_index]

    @property
    def is_empty(self) -> bool:
        return not self.vendors

    def to_record(self) -> dict[str, Any]:
        return {
            "dealType": self.deal_type.value,
            "vendors": [stop.to_record() for stop in self.vendors],
            "currentVendorIndex": self.current_vendor_index,
            "maxDistance": self.max_distance,
            "totalVendors": self.total_vendors,
            "startLocation": self.start_location.to_record() if self.start_location else None,
            "totalDistance": self.total_distance,
            "estimatedTime": self.estimated_time,
            "createdAt": format_timestamp(self.created_at),
            "completedAt": format_timestamp(self.completed_at),
            "pointsEarned": self.points_earned,
        }

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> "Journey":
        created_at = parse_timestamp(data.get("createdAt"))
        if created_at is None:
            raise ValueError("Journey record has no createdAt")
        vendors = [JourneyStop.from_record(item) for item in data.get("vendors") or []]
        start = data.get("startLocation")
        return cls(
            deal_type=DealType.parse(data["dealType"]),
            vendors=vendors,
            created_at=created_at,
            current_vendor_index=int(data.get("currentVendorIndex", 0)),
            max_distance=data.get("maxDistance"),
            total_vendors=int(data.get("totalVendors", len(vendors))),
            start_location=Coordinates.from_record(start) if start else None,
            total_distance=float(data.get("totalDistance") or 0.0),
            estimated_time=float(data.get("estimatedTime") or 0.0),
            completed_at=parse_timestamp(data.get("completedAt")),
            points_earned=data.get("pointsEarned"),
        )


@dataclass(frozen=True, slots=True)
class MapBounds:
    center: Coordinates
    latitude_delta: float
    longitude_delta: float


@dataclass(slots=True)
class Itinerary:
    """Ordered, distance-annotated planner output. Derived; never persisted on its own."""

    deal_type: DealType
    vendors: list[Vendor]
    total_distance: float
    estimated_time_minutes: float
    coordinates: list[Coordinates]
    start_location: Coordinates
    used_fallback: bool = False
    bounds: Optional[MapBounds] = None

    def route_data(self) -> dict[str, Any]:
        return {
            "totalDistance": self.total_distance,
            "estimatedTime": self.estimated_time_minutes,
            "coordinates": [coord.to_record() for coord in self.coordinates],
            "usedFallback": self.used_fallback,
        }
