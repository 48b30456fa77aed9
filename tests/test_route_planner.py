import asyncio
import math
from dataclasses import replace

import pytest

from dealjourney.errors import LocationUnavailableError, NoEligibleVendorsError
from dealjourney.models.domain import Coordinates
from dealjourney.services.geospatial import haversine_miles
from dealjourney.services.location import StaticLocationProvider
from dealjourney.services.redemption.ledger import RedemptionLedger
from dealjourney.services.routing.planner import RoutePlanner, nearest_neighbor_order

ANCHORAGE = Coordinates(61.2181, -149.9003)


def _planner(vendor_directory, store, clock, location=None) -> RoutePlanner:
    ledger = RedemptionLedger(store, clock=clock)
    return RoutePlanner(
        vendor_directory,
        ledger,
        location_provider=StaticLocationProvider(location),
        average_speed_mph=25,
        max_stops=10,
        traffic_factor=1.2,
    )


def _miles(a: Coordinates, b: Coordinates) -> float:
    return haversine_miles(a.latitude, a.longitude, b.latitude, b.longitude)


def test_birthday_route_picks_three_nearest_in_nearest_neighbor_order(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)

    itinerary = asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_vendors=3))

    # c is closer to the start than b, but b is closer to a
    assert [vendor.id for vendor in itinerary.vendors] == ["a", "b", "c"]
    assert not itinerary.used_fallback

    by_id = {vendor.id: vendor.coordinates for vendor in vendor_directory.vendors}
    expected_total = (
        _miles(ANCHORAGE, by_id["a"]) + _miles(by_id["a"], by_id["b"]) + _miles(by_id["b"], by_id["c"])
    )
    assert itinerary.total_distance == pytest.approx(expected_total)
    assert itinerary.estimated_time_minutes == pytest.approx(expected_total / 25 * 60)
    assert itinerary.coordinates == [ANCHORAGE, by_id["a"], by_id["b"], by_id["c"]]
    assert itinerary.vendors[0].distance == pytest.approx(_miles(ANCHORAGE, by_id["a"]))
    assert itinerary.bounds is not None


def test_route_never_exceeds_max_vendors(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)

    for max_vendors in range(1, 6):
        itinerary = asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_vendors=max_vendors))
        assert len(itinerary.vendors) == min(max_vendors, 4)


def test_invalid_arguments_are_rejected(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)

    with pytest.raises(ValueError):
        asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_vendors=0))
    with pytest.raises(ValueError):
        asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_vendors=11))
    with pytest.raises(ValueError):
        asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_distance_miles=0))
    with pytest.raises(ValueError):
        asyncio.run(planner.plan("weekly", start_location=ANCHORAGE))
    with pytest.raises(ValueError):
        asyncio.run(planner.plan("birthday", start_location=Coordinates(95.0, 0.0)))


def test_falls_back_to_all_vendors_when_none_offer_the_deal(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)

    itinerary = asyncio.run(planner.plan("special", start_location=ANCHORAGE, max_vendors=2))

    assert itinerary.used_fallback
    assert [vendor.id for vendor in itinerary.vendors] == ["e", "a"]


def test_no_vendors_in_range_raises(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)

    with pytest.raises(NoEligibleVendorsError, match="Try different options"):
        asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_distance_miles=0.01))


def test_distance_filter_and_exclusions(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)

    nearby = asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_distance_miles=1.1))
    assert {vendor.id for vendor in nearby.vendors} == {"a", "c"}
    assert all(vendor.distance <= 1.1 for vendor in nearby.vendors)

    excluded = asyncio.run(
        planner.plan("birthday", start_location=ANCHORAGE, max_vendors=3, exclude_vendor_ids=["a"])
    )
    assert {vendor.id for vendor in excluded.vendors} == {"b", "c", "d"}


def test_recent_redemptions_remove_vendors(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)
    asyncio.run(planner.ledger.record("a", "birthday"))

    itinerary = asyncio.run(planner.plan("birthday", start_location=ANCHORAGE, max_vendors=3))

    assert "a" not in [vendor.id for vendor in itinerary.vendors]
    assert len(itinerary.vendors) == 3


def test_start_location_comes_from_provider(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock, location=ANCHORAGE)
    itinerary = asyncio.run(planner.plan("birthday", max_vendors=1))
    assert itinerary.start_location == ANCHORAGE
    assert [vendor.id for vendor in itinerary.vendors] == ["a"]

    without_location = _planner(vendor_directory, store, clock)
    with pytest.raises(LocationUnavailableError):
        asyncio.run(without_location.plan("birthday"))


def test_nearest_neighbor_ties_keep_input_order(vendor_directory):
    first = vendor_directory.vendors[0]
    twin = replace(first, id="a2")

    ordered = nearest_neighbor_order(ANCHORAGE, [twin, first])

    assert [vendor.id for vendor in ordered] == ["a2", "a"]


def test_directions_pad_estimate_for_traffic(vendor_directory, store, clock):
    planner = _planner(vendor_directory, store, clock)
    start = Coordinates(61.0, -150.0)
    destination = Coordinates(61.5, -150.0)

    directions = asyncio.run(planner.directions_to(destination, start_location=start))

    distance = _miles(start, destination)
    assert directions.distance == pytest.approx(distance)
    assert directions.estimated_time == math.ceil(distance / 25 * 60 * 1.2) == 100
    assert directions.bearing == pytest.approx(0.0, abs=1e-6)
    assert directions.coordinates == [start, destination]
