"""Vendor directory with database-first approach, falling back to a JSON file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional, Protocol

from ..config import settings
from ..db.supabase import get_supabase_client
from ..errors import CatalogError
from ..models.domain import Vendor, normalize_vendor_id
from ..schemas.records import normalize_vendors


class VendorDirectory(Protocol):
    def get_all_vendors(self) -> list[Vendor]: ...


def _load_vendors_from_database(client: Any, table: str) -> list[Vendor] | None:
    """Load vendors from Supabase. Returns None if database not available or empty."""
    if client is None:
        return None

    try:
        response = client.table(table).select("*").execute()
    except Exception as e:
        logging.debug(f"Vendor query failed, falling back to file: {e}")
        return None
    if not response.data:
        return None
    vendors = normalize_vendors(response.data)
    return vendors or None


def _load_vendors_from_file(source: Path | None = None) -> list[Vendor]:
    """Load vendors from a JSON array (or ``{"vendors": [...]}``) file."""
    path = source or settings.vendors_file
    if not path.exists():
        raise FileNotFoundError(f"Vendor file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    records = payload.get("vendors", []) if isinstance(payload, dict) else payload
    if not isinstance(records, list):
        raise ValueError(f"Vendor file '{path}' must contain a list of vendors.")
    return normalize_vendors(records)


class SupabaseVendorDirectory:
    def __init__(self, client: Any = None, table: str | None = None, fallback_file: Path | None = None) -> None:
        self._client = client
        self.table = table or settings.vendors_table
        self.fallback_file = fallback_file

    def get_all_vendors(self) -> list[Vendor]:
        """Get vendors from the database first, fall back to the local file if needed."""
        client = self._client or get_supabase_client()
        db_vendors = _load_vendors_from_database(client, self.table)
        if db_vendors:
            return db_vendors

        try:
            vendors = _load_vendors_from_file(self.fallback_file)
        except (OSError, ValueError) as exc:
            raise CatalogError(f"Vendor directory unavailable: {exc}") from exc
        logging.info(f"Loaded {len(vendors)} vendors from fallback file")
        return vendors

    def get_by_id(self, vendor_id: Any) -> Optional[Vendor]:
        wanted = normalize_vendor_id(vendor_id)
        for vendor in self.get_all_vendors():
            if vendor.id == wanted:
                return vendor
        return None
