"""Domain errors raised by the deal journey engine."""

from __future__ import annotations


class DealJourneyError(Exception):
    """Base class for errors surfaced to callers of the engine."""


class NoEligibleVendorsError(DealJourneyError):
    """Route planning found nothing to show, even after relaxing the deal-type filter."""

    def __init__(self, deal_type: str, message: str | None = None) -> None:
        self.deal_type = deal_type
        super().__init__(message or f"No eligible vendors found for a {deal_type} route. Try different options.")


class LocationUnavailableError(DealJourneyError):
    """Neither a current nor a last-known location could be obtained."""


class CatalogError(DealJourneyError):
    """The remote deal catalog or vendor directory could not be read."""


class StorageError(DealJourneyError):
    """Durable local storage rejected a read or write."""


class CorruptRecordError(StorageError):
    """A stored value exists but cannot be decoded."""
