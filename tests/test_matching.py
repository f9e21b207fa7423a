"""
Pytest tests for load/vehicle matching (scoring, engine, exclusive assignment).

Distances come from the FakeResolver in conftest: Dallas -> Fort Worth is
exactly 30 miles, Dallas -> Houston exactly 240 miles.
"""

from __future__ import annotations

import logging
import threading
import time

import pytest

from loadmatch.data.models import Load, Match, Vehicle
from loadmatch.exceptions import ConfigurationError
from loadmatch.matching import MatchConfig, MatchEngine, assign_exclusive
from loadmatch.matching.scoring import capacity_score, date_score, location_score, passes_hard_filters
from loadmatch.utils.config import ConfigLoader


def _truck(truck_t1, **overrides):
    return dict(truck_t1, **overrides)


# --- Sub-scores ---


def test_location_score_halves_at_scale_factor():
    config = MatchConfig()
    assert location_score(0, config) == 1.0
    assert location_score(250, config) == pytest.approx(0.5)
    assert location_score(None, config) == 0.5


def test_date_score_decays_over_lookahead():
    config = MatchConfig()
    assert date_score(0, config) == 1.0
    assert date_score(7, config) == 0.0
    assert date_score(10, config) == 0.0
    assert date_score(1, config) == pytest.approx(6 / 7)


@pytest.mark.parametrize(
    "weight,capacity,expected",
    [
        (35000, 100000, 0.5),       # u = 0.35, below band: u / 0.7
        (70000, 100000, 1.0),       # lower edge of band
        (80000, 100000, 1.0),
        (90000, 100000, 1.0),       # upper edge of band
        (95000, 100000, 0.5),       # halfway between 0.9 and 1.0
        (100000, 100000, 0.0),      # full truck
    ],
)
def test_capacity_score_band(weight, capacity, expected):
    score, utilization = capacity_score(weight, capacity, MatchConfig())
    assert score == pytest.approx(expected)
    assert utilization == pytest.approx(weight / capacity)


def test_capacity_score_unknown_is_neutral():
    assert capacity_score(42000, None, MatchConfig()) == (0.5, None)


# --- Engine ---


def test_l1_t1_score_and_reason(fake_resolver, load_l1, truck_t1):
    """Same-day Reefer 30 miles away: 0.4/1.12 + 0.3 + 0.2*(2/3)."""
    result = MatchEngine(resolver=fake_resolver).compute_matches([load_l1], [truck_t1])

    assert len(result.matches) == 1
    match = result.matches[0]
    assert (match.load_id, match.vehicle_id) == ("L1", "T1")
    assert match.match_score == pytest.approx(0.7905, abs=1e-4)
    assert match.match_score > 0.5
    assert match.reason.startswith("Reefer match; dominant factors: location proximity (30 mi from origin")
    assert "scale 250 mi" in match.reason
    assert "date fit (available same day)" in match.reason
    assert "93% utilization" in match.reason


@pytest.mark.parametrize(
    "overrides",
    [
        {"equipment": "Flatbed"},
        {"capacity": 40000},
        {"availableDate": "2025-11-06"},
    ],
)
def test_hard_filters_exclude_pair(fake_resolver, load_l1, truck_t1, overrides):
    """Equipment mismatch, over capacity and late availability are never matched."""
    result = MatchEngine(resolver=fake_resolver).compute_matches(
        [load_l1], [_truck(truck_t1, **overrides)]
    )
    assert result.matches == []
    assert result.skipped == []


def test_vehicle_class_suitability_is_opt_in(fake_resolver, load_l1, truck_t1):
    """A plane cannot carry a Reefer load once class suitability is enforced."""
    plane = _truck(truck_t1, id="P1", vehicleType="Plane")

    default = MatchEngine(resolver=fake_resolver).compute_matches([load_l1], [plane, truck_t1])
    assert [m.vehicle_id for m in default.matches] == ["P1", "T1"]

    strict = MatchEngine(
        resolver=fake_resolver, config=MatchConfig(enforce_vehicle_class=True)
    ).compute_matches([load_l1], [plane, truck_t1])
    assert [m.vehicle_id for m in strict.matches] == ["T1"]


@pytest.mark.parametrize(
    "vehicle_class,equipment,allowed",
    [
        ("Truck", "Dry Van", True),
        ("Truck", "Container", False),
        ("Plane", "Palletized", True),
        ("Plane", "Bulk", False),
        ("Ship", "Container", True),
        ("Ship", "Tanker", False),
    ],
)
def test_passes_hard_filters_vehicle_class(load_l1, truck_t1, vehicle_class, equipment, allowed):
    load = Load.from_dict(dict(load_l1, equipment=equipment))
    vehicle = Vehicle.from_dict(_truck(truck_t1, equipment=equipment, vehicleType=vehicle_class))
    ok, why = passes_hard_filters(load, vehicle, MatchConfig(enforce_vehicle_class=True))
    assert ok is allowed
    if not allowed:
        assert why == f"{vehicle_class} cannot carry {equipment}"
    assert passes_hard_filters(load, vehicle) == (True, None)


def test_ranking_by_score_then_vehicle_id(fake_resolver, load_l1, truck_t1):
    trucks = [
        _truck(truck_t1, id="T9", location="Houston, TX"),
        _truck(truck_t1, id="T5"),
        _truck(truck_t1, id="T2"),
    ]
    result = MatchEngine(resolver=fake_resolver).compute_matches([load_l1], trucks)
    assert [m.vehicle_id for m in result.matches] == ["T2", "T5", "T9"]


def test_loads_keep_input_order(fake_resolver, load_l1, truck_t1):
    load_l2 = dict(load_l1, id="L2", origin="Chicago, IL")
    result = MatchEngine(resolver=fake_resolver).compute_matches([load_l2, load_l1], [truck_t1])
    assert [m.load_id for m in result.matches] == ["L2", "L1"]


@pytest.mark.parametrize("priority,boost", [("Urgent", 0.1), ("Express", 0.05), ("Standard", 0.0)])
def test_priority_boost_only_for_best_candidate(fake_resolver, load_l1, truck_t1, priority, boost):
    load_l1["priority"] = priority
    trucks = [truck_t1, _truck(truck_t1, id="T2", location="Houston, TX")]
    result = MatchEngine(resolver=fake_resolver).compute_matches([load_l1], trucks)

    scores = {m.vehicle_id: m.match_score for m in result.matches}
    assert scores["T1"] == pytest.approx(0.7905 + boost, abs=1e-4)
    assert scores["T2"] == pytest.approx(0.6374, abs=1e-4)
    if boost:
        assert "priority boost" in result.matches[0].reason
        assert "priority boost" not in result.matches[1].reason


def test_priority_boost_tie_goes_to_lower_vehicle_id(fake_resolver, load_l1, truck_t1):
    load_l1["priority"] = "Urgent"
    trucks = [_truck(truck_t1, id="T7"), _truck(truck_t1, id="T3")]
    result = MatchEngine(resolver=fake_resolver).compute_matches([load_l1], trucks)
    assert [m.vehicle_id for m in result.matches] == ["T3", "T7"]
    assert result.matches[0].match_score > result.matches[1].match_score


def test_empty_inputs(fake_resolver, load_l1, truck_t1):
    engine = MatchEngine(resolver=fake_resolver)
    assert engine.compute_matches([], [truck_t1]).matches == []
    assert engine.compute_matches([load_l1], []).matches == []
    assert engine.compute_matches([], []).matches == []


def test_invalid_records_are_skipped(fake_resolver, load_l1, truck_t1):
    bad_load = dict(load_l1, id="LX", weight=-1)
    bad_truck = dict(truck_t1, id="TX", equipment="Teleporter")
    result = MatchEngine(resolver=fake_resolver).compute_matches(
        [bad_load, load_l1], [truck_t1, bad_truck]
    )

    assert [(m.load_id, m.vehicle_id) for m in result.matches] == [("L1", "T1")]
    assert {(s.record_id, s.kind) for s in result.skipped} == {("LX", "load"), ("TX", "vehicle")}
    assert result.loads_count == 1
    assert result.vehicles_count == 1


def test_unresolved_location_is_neutral(fake_resolver, load_l1, truck_t1):
    load_l1["origin"] = "Nowhere, ZZ"
    result = MatchEngine(resolver=fake_resolver).compute_matches([load_l1], [truck_t1])
    match = result.matches[0]
    assert match.match_score == pytest.approx(0.2 + 0.3 + 0.2 * (2 / 3), abs=1e-4)
    assert "distance unknown" in match.reason


def test_resolver_failure_degrades(resolver_cls, load_l1, truck_t1, caplog):
    """A raising resolver yields the neutral location score instead of aborting."""
    resolver = resolver_cls({"Dallas, TX": 0, "Fort Worth, TX": 30}, failing=("Fort Worth, TX",))
    with caplog.at_level(logging.WARNING, logger="loadmatch"):
        result = MatchEngine(resolver=resolver).compute_matches([load_l1], [truck_t1])

    assert result.matches[0].match_score == pytest.approx(0.6333, abs=1e-4)
    assert "Resolver failed for 'Fort Worth, TX'" in caplog.text


def test_resolver_timeout_degrades(resolver_cls, load_l1, truck_t1):
    class SlowResolver(resolver_cls):
        def resolve(self, location_text):
            if location_text == "Fort Worth, TX":
                time.sleep(0.5)
            return super().resolve(location_text)

    resolver = SlowResolver({"Dallas, TX": 0, "Fort Worth, TX": 30})
    engine = MatchEngine(resolver=resolver, config=MatchConfig(resolver_timeout_seconds=0.05))
    result = engine.compute_matches([load_l1], [truck_t1])

    assert result.matches[0].match_score == pytest.approx(0.6333, abs=1e-4)


def test_resolver_timeouts_share_one_deadline(resolver_cls, load_l1, truck_t1):
    """Several hung lookups cost one timeout in total, not one each."""
    release = threading.Event()

    class HangingResolver(resolver_cls):
        def resolve(self, location_text):
            if location_text.startswith("Depot"):
                release.wait(5)
            return super().resolve(location_text)

    trucks = [_truck(truck_t1, id=f"T{i}", location=f"Depot {i}") for i in range(8)]
    resolver = HangingResolver({"Dallas, TX": 0})
    engine = MatchEngine(
        resolver=resolver,
        config=MatchConfig(resolver_timeout_seconds=0.2, resolver_workers=9),
    )

    started = time.monotonic()
    try:
        result = engine.compute_matches([load_l1], trucks)
        elapsed = time.monotonic() - started
    finally:
        release.set()

    assert elapsed < 1.0
    assert len(result.matches) == 8
    assert all(m.match_score == pytest.approx(0.6333, abs=1e-4) for m in result.matches)


def test_each_location_resolved_once(fake_resolver, load_l1, truck_t1):
    loads = [load_l1, dict(load_l1, id="L2"), dict(load_l1, id="L3")]
    trucks = [truck_t1, _truck(truck_t1, id="T2")]
    MatchEngine(resolver=fake_resolver).compute_matches(loads, trucks)
    assert sorted(fake_resolver.calls) == ["Dallas, TX", "Fort Worth, TX"]


def test_engine_accepts_model_instances(fake_resolver, load_l1, truck_t1):
    result = MatchEngine(resolver=fake_resolver).compute_matches(
        [Load.from_dict(load_l1)], [Vehicle.from_dict(truck_t1)]
    )
    assert len(result.matches) == 1


def test_sample_dataset_properties(sample_data):
    """Built-in city table: scores in range, equipment always equal, L2 never with T3."""
    result = MatchEngine().compute_matches(sample_data["loads"], sample_data["trucks"])

    loads = {load["id"]: load for load in sample_data["loads"]}
    trucks = {truck["id"]: truck for truck in sample_data["trucks"]}

    assert result.matches
    for match in result.matches:
        assert 0.0 <= match.match_score <= 1.0
        assert loads[match.load_id]["equipment"] == trucks[match.vehicle_id]["equipment"]
        assert (match.load_id, match.vehicle_id) != ("L2", "T3")

    l1_t1 = [m for m in result.matches if (m.load_id, m.vehicle_id) == ("L1", "T1")]
    assert l1_t1 and l1_t1[0].match_score > 0.5


def test_matching_is_deterministic(sample_data):
    engine = MatchEngine()
    first = engine.compute_matches(sample_data["loads"], sample_data["trucks"]).matches
    second = engine.compute_matches(sample_data["loads"], sample_data["trucks"]).matches
    assert first == second


# --- Exclusive assignment ---


def test_assign_exclusive_greedy():
    matches = [
        Match("L1", "T1", 0.9, ""),
        Match("L1", "T2", 0.8, ""),
        Match("L2", "T1", 0.85, ""),
        Match("L2", "T2", 0.7, ""),
    ]
    assigned = assign_exclusive(matches)
    assert [(m.load_id, m.vehicle_id) for m in assigned] == [("L1", "T1"), ("L2", "T2")]

    assigned = assign_exclusive(matches, min_score=0.75)
    assert [(m.load_id, m.vehicle_id) for m in assigned] == [("L1", "T1")]


# --- Configuration ---


@pytest.mark.parametrize(
    "kwargs",
    [
        {"location_weight": 0.5},
        {"location_weight": -0.1, "date_weight": 0.8},
        {"scale_factor_miles": 0},
        {"lookahead_days": 0},
        {"utilization_low": 0.95},
        {"neutral_location_score": 1.5},
        {"resolver_workers": 0},
    ],
)
def test_match_config_rejects_invalid_values(kwargs):
    with pytest.raises(ConfigurationError):
        MatchConfig(**kwargs)


def test_match_config_from_config():
    loader = ConfigLoader.from_dict({
        "matching": {
            "weights": {"location": 0.5, "date": 0.2, "capacity": 0.2, "priority": 0.1},
            "scale_factor_miles": 100,
            "utilization_band": [0.6, 0.85],
            "resolver": {"timeout_seconds": 1.5},
            "enforce_vehicle_class": True,
        }
    })
    config = MatchConfig.from_config(loader)
    assert config.enforce_vehicle_class is True
    assert MatchConfig().enforce_vehicle_class is False
    assert config.location_weight == 0.5
    assert config.scale_factor_miles == 100.0
    assert (config.utilization_low, config.utilization_high) == (0.6, 0.85)
    assert config.resolver_timeout_seconds == 1.5
    assert config.lookahead_days == 7


def test_match_config_from_config_bad_weights():
    loader = ConfigLoader.from_dict({"matching": {"weights": {"location": 0.9}}})
    with pytest.raises(ConfigurationError, match="sum to 1.0"):
        MatchConfig.from_config(loader)
