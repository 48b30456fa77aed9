"""Durable key/value storage used for deal snapshots, redemptions and journeys."""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any, Optional, Protocol

from ..config import settings
from ..errors import CorruptRecordError, StorageError

DEALS_CACHE_KEY = "deals_cache"
DEALS_CACHE_TIMESTAMP_KEY = "deals_cache_timestamp"
REDEMPTIONS_KEY = "deal_redemptions"
CURRENT_JOURNEY_KEY = "current_journey"
CURRENT_ROUTE_DATA_KEY = "current_route_data"
JOURNEY_HISTORY_KEY = "journey_history"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(Protocol):
    """Simple string store with no transactions."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """In-process store; nothing survives a restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileKeyValueStore:
    """One UTF-8 file per key under ``<data_root>/storage``."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.storage_root = self.root / "storage"
        self.storage_root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.storage_root / f"{key}.txt"

    def _read(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as handle:
            return handle.read()

    def _write(self, path: Path, value: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            handle.write(value)
        tmp_path.replace(path)

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return await asyncio.to_thread(self._read, path)
        except OSError as exc:
            raise StorageError(f"Failed to read '{key}': {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, value)
        except OSError as exc:
            raise StorageError(f"Failed to write '{key}': {exc}") from exc

    async def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, True)
        except OSError as exc:
            raise StorageError(f"Failed to remove '{key}': {exc}") from exc


async def read_json(store: KeyValueStore, key: str, default: Any = None) -> Any:
    """Read and decode a JSON value; a missing key yields ``default``."""

    raw = await store.get(key)
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CorruptRecordError(f"Stored value for '{key}' is not valid JSON: {exc}") from exc


async def write_json(store: KeyValueStore, key: str, data: Any) -> None:
    await store.set(key, json.dumps(data, ensure_ascii=False))
