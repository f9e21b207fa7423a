"""
Pytest fixtures for LoadMatch tests. Uses a deterministic fake resolver so
distances are exact and no coordinate table is involved.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from loadmatch.data.sample import sample_dataset
from loadmatch.geo.resolver import LocationKey, LocationResolver


FIXED_NOW = datetime(2025, 11, 5, 12, 0, 0, tzinfo=timezone.utc)


class FakeResolver(LocationResolver):
    """
    Places every known location on a line; distance is |position a - position b| miles.

    Unknown texts resolve to None. Texts listed in `failing` raise.
    """

    def __init__(self, positions: dict, failing: tuple = ()):
        self.positions = positions
        self.failing = set(failing)
        self.calls = []

    def resolve(self, location_text):
        self.calls.append(location_text)
        if location_text in self.failing:
            raise RuntimeError(f"geocoder unavailable for {location_text}")
        position = self.positions.get(location_text)
        if position is None:
            return None
        return LocationKey(lat=0.0, lng=float(position), label=location_text)

    def distance(self, a, b):
        return abs(a.lng - b.lng)


@pytest.fixture(autouse=True)
def reset_loadmatch_logging():
    """Drop handlers installed by setup_logging() (CLI runs bind them to captured streams)."""
    yield
    logger = logging.getLogger("loadmatch")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers = []
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_resolver():
    return FakeResolver({
        "Dallas, TX": 0,
        "Fort Worth, TX": 30,
        "Houston, TX": 240,
        "Austin, TX": 195,
        "Chicago, IL": 800,
        "St. Louis, MO": 500,
    })


@pytest.fixture
def resolver_cls():
    return FakeResolver


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sample_data():
    return sample_dataset()


@pytest.fixture
def load_l1():
    return {
        "id": "L1",
        "origin": "Dallas, TX",
        "destination": "Atlanta, GA",
        "equipment": "Reefer",
        "weight": 42000,
        "pickupDate": "2025-11-05",
    }


@pytest.fixture
def truck_t1():
    return {
        "id": "T1",
        "location": "Fort Worth, TX",
        "equipment": "Reefer",
        "availableDate": "2025-11-05",
        "vehicleType": "Truck",
        "capacity": 45000,
    }


@pytest.fixture
def counters():
    return {
        "activeShipments": 1284,
        "previousShipments": 1190,
        "quoteRequests": 342,
        "avgResponseTimeMinutes": 4.2,
        "availableVehicles": 86,
        "utilizationPercent": 78.4,
        "uptimePercent": 99.95,
        "avgFreightCost": 2.41,
        "previousFreightCost": 2.55,
        "processingTimeMinutes": 3.8,
        "previousProcessingTimeMinutes": 5.1,
        "aiRoiPercent": 312.0,
        "previousAiRoiPercent": 287.0,
        "previousMatchAccuracy": 50.0,
        "forecastPairs": [[100, 110], [200, 190], [0, 5]],
        "subsystems": [{"name": "Matching Engine", "utilization": 64, "latencyMs": 120}],
        "systemStatus": [
            {"system": "Load Matching API", "status": "operational", "latencyMs": 118,
             "throughputPerMinute": 240, "uptimePercent": 99.98},
        ],
    }
