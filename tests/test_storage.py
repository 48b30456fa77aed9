import asyncio
from pathlib import Path

import pytest

from dealjourney.errors import StorageError
from dealjourney.persistence.storage import (
    DEALS_CACHE_KEY,
    FileKeyValueStore,
    MemoryKeyValueStore,
    read_json,
    write_json,
)


def test_file_store_writes_one_file_per_key(tmp_path: Path) -> None:
    store = FileKeyValueStore(root=tmp_path)

    asyncio.run(store.set(DEALS_CACHE_KEY, "[]"))

    path = tmp_path / "storage" / "deals_cache.txt"
    assert path.read_text(encoding="utf-8") == "[]"
    assert asyncio.run(store.get(DEALS_CACHE_KEY)) == "[]"
    assert not list((tmp_path / "storage").glob("*.tmp"))


def test_file_store_missing_and_removed_keys(tmp_path: Path) -> None:
    store = FileKeyValueStore(root=tmp_path)

    async def scenario():
        assert await store.get("journey_history") is None
        await store.set("journey_history", "[1]")
        await store.remove("journey_history")
        await store.remove("journey_history")
        return await store.get("journey_history")

    assert asyncio.run(scenario()) is None


def test_file_store_rejects_unsafe_keys(tmp_path: Path) -> None:
    store = FileKeyValueStore(root=tmp_path)
    with pytest.raises(ValueError):
        asyncio.run(store.set("../escape", "x"))


def test_json_helpers(tmp_path: Path) -> None:
    store = FileKeyValueStore(root=tmp_path)

    async def scenario():
        await write_json(store, "current_journey", {"dealType": "birthday", "vendors": []})
        return await read_json(store, "current_journey"), await read_json(store, "missing", default=[])

    value, missing = asyncio.run(scenario())
    assert value == {"dealType": "birthday", "vendors": []}
    assert missing == []


def test_read_json_raises_storage_error_on_corrupt_value() -> None:
    store = MemoryKeyValueStore({"deal_redemptions": "{not json"})
    with pytest.raises(StorageError):
        asyncio.run(read_json(store, "deal_redemptions"))
