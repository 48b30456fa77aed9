"""Normalization of deal and vendor records arriving from the catalog, the vendor directory or local snapshots.

Upstream records are loosely shaped: vendor ids arrive as strings or numbers,
deal payloads are sometimes bare strings, timestamps come as ISO strings,
epoch milliseconds or Firestore-style ``{"seconds": ...}`` maps. Everything is
coerced here so the rest of the package only sees the dataclasses in
``models.domain``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..models.domain import (
    Coordinates,
    DayOfWeek,
    Deal,
    DealType,
    Vendor,
    VendorDealSummary,
    normalize_vendor_id,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


def coerce_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            return None
        return parse_timestamp(float(seconds) * 1000.0)
    return parse_timestamp(value)


def _coerce_payload(value: Any) -> Optional[dict]:
    if value is None or value == "" or value is False:
        return None
    if isinstance(value, dict):
        return dict(value)
    return {"description": str(value)}


def _coerce_payload_list(value: Any) -> tuple[dict, ...]:
    if value is None:
        return ()
    items = value if isinstance(value, (list, tuple)) else [value]
    payloads = (_coerce_payload(item) for item in items)
    return tuple(payload for payload in payloads if payload is not None)


class DealRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    vendor_id: str = Field(alias="vendorId")
    deal_type: DealType = Field(alias="dealType")
    day: Optional[DayOfWeek] = None
    active_days: list[DayOfWeek] = Field(default_factory=list, alias="activeDays")
    is_active: bool = Field(default=True, alias="isActive")
    title: Optional[str] = None
    discount: Optional[str] = None
    description: Optional[str] = None
    restrictions: list[str] = Field(default_factory=list)
    start_date: Optional[datetime] = Field(default=None, alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")

    @field_validator("id", "vendor_id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        if value is None:
            raise ValueError("identifier is required")
        return normalize_vendor_id(value)

    @field_validator("deal_type", mode="before")
    @classmethod
    def _normalize_deal_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @field_validator("day", mode="before")
    @classmethod
    def _normalize_day(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("active_days", mode="before")
    @classmethod
    def _normalize_active_days(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [item.strip().lower() if isinstance(item, str) else item for item in value]

    @field_validator("is_active", mode="before")
    @classmethod
    def _default_active(cls, value: Any) -> Any:
        return True if value is None else value

    @field_validator("title", "discount", "description", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("restrictions", mode="before")
    @classmethod
    def _normalize_restrictions(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalize_dates(cls, value: Any) -> Optional[datetime]:
        return coerce_timestamp(value)

    @model_validator(mode="after")
    def _check_day_shape(self) -> "DealRecord":
        if self.deal_type is DealType.DAILY and self.day is None:
            raise ValueError("daily deals require a day")
        if self.deal_type is DealType.MULTI_DAY and not self.active_days:
            raise ValueError("multi_day deals require at least one active day")
        return self

    def to_domain(self) -> Deal:
        is_daily = self.deal_type is DealType.DAILY
        is_multi_day = self.deal_type is DealType.MULTI_DAY
        is_special = self.deal_type is DealType.SPECIAL
        return Deal(
            id=self.id,
            vendor_id=self.vendor_id,
            deal_type=self.deal_type,
            is_active=self.is_active,
            day=self.day if is_daily else None,
            active_days=frozenset(self.active_days) if is_multi_day else frozenset(),
            title=self.title,
            discount=self.discount,
            description=self.description,
            restrictions=tuple(self.restrictions),
            start_date=self.start_date if is_special else None,
            end_date=self.end_date if is_special else None,
        )


class CoordinatesRecord(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    @model_validator(mode="before")
    @classmethod
    def _accept_short_keys(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return {"latitude": value[0], "longitude": value[1]}
        if isinstance(value, dict) and "latitude" not in value:
            return {
                "latitude": value.get("lat"),
                "longitude": value.get("lng", value.get("lon")),
            }
        return value


class LocationRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    address: Optional[str] = None
    coordinates: Optional[CoordinatesRecord] = None

    @field_validator("coordinates", mode="before")
    @classmethod
    def _drop_empty(cls, value: Any) -> Any:
        return value or None


class VendorRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str = ""
    location: Optional[LocationRecord] = None
    is_partner: bool = Field(default=False, alias="isPartner")
    deals: Optional[dict[str, Any]] = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        if value is None:
            raise ValueError("vendor id is required")
        return normalize_vendor_id(value)

    @field_validator("is_partner", mode="before")
    @classmethod
    def _default_partner(cls, value: Any) -> Any:
        return False if value is None else value

    def _summary(self) -> VendorDealSummary:
        deals = self.deals or {}
        raw_daily = deals.get("daily") or {}
        daily: dict[str, tuple[dict, ...]] = {}
        if isinstance(raw_daily, dict):
            for day, payloads in raw_daily.items():
                try:
                    key = DayOfWeek.parse(day).value
                except ValueError:
                    logger.warning(f"Ignoring daily deals for unknown day '{day}' on vendor {self.id}")
                    continue
                daily[key] = _coerce_payload_list(payloads)
        return VendorDealSummary(
            birthday=_coerce_payload(deals.get("birthday")),
            daily=daily,
            special=_coerce_payload_list(deals.get("special")),
            everyday=_coerce_payload_list(deals.get("everyday")),
            multi_day=_coerce_payload_list(deals.get("multi_day", deals.get("multiDay"))),
        )

    def to_domain(self) -> Vendor:
        location = self.location or LocationRecord()
        coordinates = None
        if location.coordinates is not None:
            coordinates = Coordinates(
                latitude=location.coordinates.latitude,
                longitude=location.coordinates.longitude,
            )
        return Vendor(
            id=self.id,
            name=self.name,
            coordinates=coordinates,
            address=location.address,
            is_partner=self.is_partner,
            deals=self._summary(),
        )


def normalize_deal(record: Any) -> Deal:
    """Validate a single raw deal record. Raises ``ValueError`` on malformed input."""

    if not isinstance(record, dict):
        raise ValueError(f"Deal record must be a mapping, got {type(record).__name__}")
    try:
        return DealRecord.model_validate(record).to_domain()
    except ValidationError as exc:
        raise ValueError(f"Invalid deal record {record.get('id')!r}: {exc}") from exc


def normalize_deals(records: Iterable[Any]) -> list[Deal]:
    """Normalize many deal records, dropping (and logging) the ones that do not validate."""

    deals: list[Deal] = []
    for record in records or []:
        try:
            deals.append(normalize_deal(record))
        except ValueError as exc:
            logger.warning(f"Skipping invalid deal record: {exc}")
    return deals


def normalize_vendors(records: Iterable[Any]) -> list[Vendor]:
    vendors: list[Vendor] = []
    for record in records or []:
        if not isinstance(record, dict):
            logger.warning(f"Skipping vendor record of type {type(record).__name__}")
            continue
        try:
            vendors.append(VendorRecord.model_validate(record).to_domain())
        except ValidationError as exc:
            logger.warning(f"Skipping invalid vendor record {record.get('id')!r}: {exc}")
    return vendors
