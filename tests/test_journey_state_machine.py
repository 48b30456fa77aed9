import asyncio
import json

from dealjourney.errors import StorageError
from dealjourney.models.domain import Coordinates, DealType, Itinerary, Vendor
from dealjourney.persistence.storage import (
    CURRENT_JOURNEY_KEY,
    CURRENT_ROUTE_DATA_KEY,
    JOURNEY_HISTORY_KEY,
    MemoryKeyValueStore,
)
from dealjourney.services.journey.state_machine import JourneyState, JourneyStateMachine

START = Coordinates(61.2181, -149.9003)


class ReadOnlyStore(MemoryKeyValueStore):
    async def set(self, key, value):
        raise StorageError("read-only filesystem")


class SlowStore(MemoryKeyValueStore):
    async def get(self, key):
        await asyncio.sleep(0.01)
        return await super().get(key)


def _itinerary(stops: int = 3, total_distance: float = 3.0) -> Itinerary:
    vendors = [
        Vendor(
            id=f"v{i + 1}",
            name=f"Vendor {i + 1}",
            coordinates=Coordinates(61.22 + i * 0.01, -149.90),
            address=f"{i + 1} Main St",
            distance=0.5 * (i + 1),
        )
        for i in range(stops)
    ]
    return Itinerary(
        deal_type=DealType.BIRTHDAY,
        vendors=vendors,
        total_distance=total_distance,
        estimated_time_minutes=7.2,
        coordinates=[START, *(vendor.coordinates for vendor in vendors)],
        start_location=START,
    )


def _machine(store, clock) -> JourneyStateMachine:
    return JourneyStateMachine(store, clock=clock)


def test_start_persists_journey_and_route(store, clock):
    machine = _machine(store, clock)

    journey = asyncio.run(machine.start(_itinerary(), max_distance=5.0))

    assert machine.state is JourneyState.ACTIVE
    assert journey.current_vendor_index == 0
    assert journey.total_vendors == 3
    assert journey.current_stop.vendor_id == "v1"
    record = json.loads(store.data[CURRENT_JOURNEY_KEY])
    assert record["dealType"] == "birthday"
    assert record["maxDistance"] == 5.0
    assert record["createdAt"] == "2024-01-01T12:00:00Z"
    assert [stop["id"] for stop in record["vendors"]] == ["v1", "v2", "v3"]
    assert json.loads(store.data[CURRENT_ROUTE_DATA_KEY])["totalDistance"] == 3.0


def test_advance_stops_at_last_vendor(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))

    assert asyncio.run(machine.advance()).current_vendor_index == 1
    assert asyncio.run(machine.advance()).current_vendor_index == 2
    assert asyncio.run(machine.advance()) is None
    assert machine.current().current_vendor_index == 2


def test_skip_removes_current_stop(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))
    asyncio.run(machine.advance())

    journey = asyncio.run(machine.skip())
    assert [stop.vendor_id for stop in journey.vendors] == ["v1", "v3"]
    assert journey.current_vendor_index == 1
    assert journey.total_vendors == 2

    journey = asyncio.run(machine.skip())
    assert [stop.vendor_id for stop in journey.vendors] == ["v1"]
    assert journey.current_vendor_index == 0


def test_skip_single_stop_leaves_empty_finished_journey(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary(stops=1)))

    journey = asyncio.run(machine.skip())

    assert journey.vendors == []
    assert journey.current_vendor_index == 0
    assert journey.current_stop is None
    assert machine.is_finished
    assert machine.state is JourneyState.ACTIVE


def test_check_in_is_idempotent(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))

    first = asyncio.run(machine.check_in("qr"))
    clock.advance(minutes=10)
    second = asyncio.run(machine.check_in("manual"))

    assert first.current_stop.checked_in
    assert second.current_stop.check_in_type == "qr"
    assert second.current_stop.check_in_timestamp == first.current_stop.check_in_timestamp
    assert json.loads(store.data[CURRENT_JOURNEY_KEY])["vendors"][0]["checkedIn"] is True


def test_complete_awards_points_for_visited_stops_and_records_history(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))
    asyncio.run(machine.advance())
    asyncio.run(machine.advance())
    clock.advance(hours=1)

    completed = asyncio.run(machine.complete())

    assert completed.points_earned == 20
    assert completed.completed_at == clock()
    assert machine.state is JourneyState.COMPLETED
    assert machine.current() is None
    assert CURRENT_JOURNEY_KEY not in store.data
    assert CURRENT_ROUTE_DATA_KEY not in store.data

    history = asyncio.run(machine.history())
    assert len(history) == 1
    assert history[0]["pointsEarned"] == 20
    assert history[0]["totalDistance"] == 3.0
    assert history[0]["totalTime"] == 7.2
    assert history[0]["completedAt"] == "2024-01-01T13:00:00Z"


def test_history_keeps_newest_twenty(store, clock):
    machine = _machine(store, clock)

    for i in range(25):
        asyncio.run(machine.start(_itinerary(stops=1, total_distance=float(i))))
        asyncio.run(machine.complete())

    history = json.loads(store.data[JOURNEY_HISTORY_KEY])
    assert len(history) == 20
    assert history[0]["totalDistance"] == 24.0
    assert history[-1]["totalDistance"] == 5.0
    assert len(asyncio.run(machine.history(limit=3))) == 3


def test_reload_within_ttl_restores_progress(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))
    asyncio.run(machine.advance())
    clock.advance(hours=23)

    restored_machine = _machine(store, clock)
    restored = asyncio.run(restored_machine.load())

    assert restored is not None
    assert restored.current_vendor_index == 1
    assert [stop.vendor_id for stop in restored.vendors] == ["v1", "v2", "v3"]
    assert restored.created_at == machine.current().created_at
    assert restored_machine.state is JourneyState.ACTIVE
    assert restored_machine.route_data()["estimatedTime"] == 7.2


def test_reload_after_ttl_clears_journey(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))
    clock.advance(hours=24, seconds=1)

    restored_machine = _machine(store, clock)

    assert asyncio.run(restored_machine.load()) is None
    assert restored_machine.state is JourneyState.NO_JOURNEY
    assert CURRENT_JOURNEY_KEY not in store.data


def test_unreadable_journey_is_discarded(clock):
    store = MemoryKeyValueStore({CURRENT_JOURNEY_KEY: json.dumps({"vendors": []})})
    machine = _machine(store, clock)

    assert asyncio.run(machine.load()) is None
    assert CURRENT_JOURNEY_KEY not in store.data


def test_out_of_range_index_is_clamped_on_load(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.start(_itinerary()))
    record = json.loads(store.data[CURRENT_JOURNEY_KEY])
    record["currentVendorIndex"] = 9
    store.data[CURRENT_JOURNEY_KEY] = json.dumps(record)

    restored = asyncio.run(_machine(store, clock).load())

    assert restored.current_vendor_index == 2


def test_abandon_discards_without_history(store, clock):
    machine = _machine(store, clock)
    asyncio.run(machine.abandon())
    assert machine.state is JourneyState.NO_JOURNEY

    asyncio.run(machine.start(_itinerary()))
    asyncio.run(machine.abandon())

    assert machine.state is JourneyState.ABANDONED
    assert machine.current() is None
    assert asyncio.run(machine.history()) == []


def test_returned_journeys_are_copies(store, clock):
    machine = _machine(store, clock)
    journey = asyncio.run(machine.start(_itinerary()))

    journey.vendors.clear()
    journey.current_vendor_index = 2

    assert len(machine.current().vendors) == 3
    assert machine.current().current_vendor_index == 0


def test_commands_without_journey_are_no_ops(store, clock):
    machine = _machine(store, clock)

    assert asyncio.run(machine.advance()) is None
    assert asyncio.run(machine.skip()) is None
    assert asyncio.run(machine.check_in()) is None
    assert asyncio.run(machine.complete()) is None
    assert machine.is_finished


def test_storage_write_failures_keep_journey_in_memory(clock):
    machine = _machine(ReadOnlyStore(), clock)

    started = asyncio.run(machine.start(_itinerary()))
    assert started.current_vendor_index == 0

    advanced = asyncio.run(machine.advance())
    assert advanced.current_vendor_index == 1
    assert machine.current().current_vendor_index == 1

    checked = asyncio.run(machine.check_in("manual"))
    assert checked.current_stop.checked_in
    assert machine.current().current_stop.check_in_type == "manual"

    skipped = asyncio.run(machine.skip())
    assert [stop.vendor_id for stop in skipped.vendors] == ["v1", "v3"]
    assert machine.current().total_vendors == 2
    assert machine.state is JourneyState.ACTIVE


def test_concurrent_history_appends_are_all_kept(clock):
    store = SlowStore()
    machine = _machine(store, clock)

    async def scenario():
        await asyncio.gather(
            machine._append_history({"dealType": "daily"}),
            machine._append_history({"dealType": "birthday"}),
        )

    asyncio.run(scenario())

    history = json.loads(store.data[JOURNEY_HISTORY_KEY])
    assert sorted(entry["dealType"] for entry in history) == ["birthday", "daily"]
