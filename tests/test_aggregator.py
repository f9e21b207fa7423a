"""
Tests for analytics and dashboard snapshot aggregation.

A fixed clock keeps 'updatedAt' and derived activity timestamps stable.
"""

from __future__ import annotations

import pytest

from loadmatch.analytics import (
    AggregatorConfig,
    AnalyticsAggregator,
    AnomalyDetector,
    match_accuracy,
    rank_alerts,
)
from loadmatch.data.aggregators import DataAggregator
from loadmatch.data.models import (
    AnomalyType,
    InsightAnomaly,
    LaneVolumeSeries,
    Match,
    OperationalCounters,
    Severity,
)
from loadmatch.exceptions import ConfigurationError
from loadmatch.utils.config import ConfigLoader


DALLAS_ATLANTA = "Dallas, TX → Atlanta, GA"
HOUSTON_PHOENIX = "Houston, TX → Phoenix, AZ"


@pytest.fixture
def lanes():
    return [
        LaneVolumeSeries(lane=DALLAS_ATLANTA, volumes=(100.0, 160.0)),
        LaneVolumeSeries(lane=HOUSTON_PHOENIX, volumes=(200.0, 190.0)),
    ]


@pytest.fixture
def matches():
    return [
        Match("L1", "T1", 0.8, "Reefer match"),
        Match("L1", "T2", 0.4, "Reefer match"),
        Match("L2", "T1", 0.3, "Flatbed match"),
    ]


@pytest.fixture
def op_counters(counters):
    return OperationalCounters.from_dict(dict(counters, totalLoads=4))


@pytest.fixture
def aggregator(fixed_clock):
    return AnalyticsAggregator(clock=fixed_clock)


def _anomaly(lane, severity, change, kind=AnomalyType.SPIKE):
    return InsightAnomaly(lane=lane, type=kind, severity=severity, percent_change=change, message=lane)


# --- Match accuracy ---


def test_match_accuracy_is_exact():
    """Loads without any acceptable match count against accuracy."""
    matches = [Match("L1", "T1", 0.8, ""), Match("L2", "T1", 0.49, "")]
    assert match_accuracy(matches, total_loads=3) == pytest.approx(100 / 3)


def test_match_accuracy_counts_each_load_once(matches):
    assert match_accuracy(matches + [Match("L1", "T3", 0.9, "")], total_loads=4) == 25.0


def test_match_accuracy_without_total_uses_distinct_loads(matches):
    assert match_accuracy(matches, total_loads=None) == 50.0


def test_match_accuracy_zero_loads():
    assert match_accuracy([], total_loads=0) == 0.0
    assert match_accuracy([], total_loads=None) == 0.0


# --- Alerts ---


def test_rank_alerts_ordering():
    anomalies = [
        _anomaly("low", Severity.LOW, 5.0, AnomalyType.STABLE),
        _anomaly("B", Severity.HIGH, 55.0),
        _anomaly("medium", Severity.MEDIUM, -30.0, AnomalyType.DROP),
        _anomaly("D", Severity.HIGH, -80.0, AnomalyType.DROP),
        _anomaly("A", Severity.HIGH, 55.0),
    ]
    ranked = rank_alerts(anomalies, limit=4)
    assert [a.lane for a in ranked] == ["D", "A", "B", "medium"]


# --- Lane tables ---


def test_weekly_totals_unlabelled(lanes):
    df = DataAggregator().weekly_totals(lanes)
    assert df["week"].tolist() == ["t-1", "t"]
    assert df["totalLoads"].tolist() == [300, 350]
    assert df["movingAverage"].tolist() == [300, 325]


def test_weekly_totals_labelled_and_truncated():
    weeks = ["2025-01-06", "2025-01-13", "2025-01-20"]
    lanes = [
        LaneVolumeSeries(lane="A → B", volumes=(10.0, 20.0, 30.0), periods=tuple(weeks)),
        LaneVolumeSeries(lane="C → D", volumes=(1.0, 2.0, 3.0), periods=tuple(weeks)),
    ]
    df = DataAggregator(moving_average_window=2).weekly_totals(lanes, last_n=2)
    assert df["week"].tolist() == ["2025-01-13", "2025-01-20"]
    assert df["totalLoads"].tolist() == [22, 33]
    assert df["movingAverage"].tolist() == [22, 28]


def test_lane_performance_trends(lanes):
    rows = {row["lane"]: row for row in DataAggregator().lane_performance(lanes)}
    assert rows[DALLAS_ATLANTA]["trend"] == "up"
    assert rows[DALLAS_ATLANTA]["origin"] == "Dallas, TX"
    assert rows[HOUSTON_PHOENIX]["trend"] == "down"
    assert rows[HOUSTON_PHOENIX]["changePercent"] == -5.0


# --- Analytics snapshot ---


def test_analytics_snapshot(aggregator, matches, op_counters, lanes):
    anomalies = AnomalyDetector().detect_anomalies(lanes)
    snapshot = aggregator.build_analytics_snapshot(matches, anomalies, op_counters, lanes)

    assert set(snapshot) == {
        "kpis", "volumeTrends", "laneBreakdown", "systemPerformance",
        "forecastAccuracy", "insights", "updatedAt",
    }

    kpis = snapshot["kpis"]
    assert kpis["matchAccuracy"] == {"value": 25.0, "unit": "percent", "changePercent": -50.0, "trend": "down"}
    assert kpis["avgFreightCost"] == {"value": 2.4, "unit": "usd", "changePercent": -5.5, "trend": "down"}
    assert kpis["processingTime"]["trend"] == "down"
    assert kpis["aiRoi"]["changePercent"] == 8.7
    assert kpis["aiRoi"]["trend"] == "up"

    assert snapshot["volumeTrends"][-1] == {"week": "t", "totalLoads": 350, "movingAverage": 325}
    assert [row["lane"] for row in snapshot["laneBreakdown"]] == [HOUSTON_PHOENIX, DALLAS_ATLANTA]
    assert snapshot["laneBreakdown"][1] == {
        "lane": DALLAS_ATLANTA,
        "origin": "Dallas, TX",
        "destination": "Atlanta, GA",
        "current": 160,
        "previous": 100,
        "changePercent": 60.0,
    }

    assert snapshot["systemPerformance"]["uptimePercent"] == pytest.approx(99.95)
    assert snapshot["systemPerformance"]["subsystems"] == [
        {"name": "Matching Engine", "utilization": 64, "latencyMs": 120}
    ]
    assert snapshot["forecastAccuracy"] == {"mae": 8.3, "mape": 7.5, "rmse": 8.7, "rating": "strong"}
    assert [i["title"] for i in snapshot["insights"]] == [
        "Lane Momentum", "Fleet Utilization", "Match Coverage", "AI Alert",
    ]
    assert snapshot["updatedAt"] == "2025-11-05T12:00:00.000Z"


def test_analytics_snapshot_with_empty_inputs(aggregator):
    snapshot = aggregator.build_analytics_snapshot([], [])
    assert snapshot["kpis"]["matchAccuracy"]["value"] == 0.0
    assert snapshot["volumeTrends"] == []
    assert snapshot["laneBreakdown"] == []
    assert snapshot["insights"] == []
    assert snapshot["forecastAccuracy"]["rating"] == "excellent"


def test_lane_breakdown_is_truncated(fixed_clock):
    lanes = [LaneVolumeSeries(lane=f"City{i} → Hub", volumes=(100.0, 100.0 + i)) for i in range(10)]
    aggregator = AnalyticsAggregator(clock=fixed_clock)
    snapshot = aggregator.build_analytics_snapshot([], [], lanes=lanes)
    assert len(snapshot["laneBreakdown"]) == 6
    assert snapshot["laneBreakdown"][0]["lane"] == "City9 → Hub"


# --- Dashboard snapshot ---


def test_dashboard_snapshot(aggregator, matches, op_counters, lanes):
    anomalies = AnomalyDetector().detect_anomalies(lanes)
    snapshot = aggregator.build_dashboard_snapshot(matches, anomalies, op_counters, lanes)

    assert set(snapshot) == {
        "stats", "utilization", "laneHighlights", "recentActivity",
        "systemStatus", "alerts", "updatedAt",
    }
    assert snapshot["stats"] == {
        "activeShipments": 1284,
        "quoteRequests": 342,
        "matchRate": 25.0,
        "avgResponseTimeMinutes": 4.2,
    }
    assert snapshot["utilization"] == {
        "availableVehicles": 86,
        "utilizationPercent": 78.4,
        "idleVehicles": 19,
    }

    highlights = snapshot["laneHighlights"]
    assert [(h["lane"], h["weeklyLoads"], h["trend"]) for h in highlights] == [
        (HOUSTON_PHOENIX, 190, "down"),
        (DALLAS_ATLANTA, 160, "up"),
    ]

    activity = snapshot["recentActivity"]
    assert [a["id"] for a in activity] == ["activity-0", "activity-1"]
    assert activity[1]["timestamp"] == "2025-11-05T11:56:00.000Z"
    assert set(activity[0]) == {"id", "type", "action", "detail", "timestamp", "status"}

    assert snapshot["systemStatus"][0]["system"] == "Load Matching API"
    assert snapshot["alerts"]["count"] == 2
    assert snapshot["alerts"]["topAlerts"][0]["lane"] == DALLAS_ATLANTA
    assert snapshot["alerts"]["topAlerts"][0]["severity"] == "high"


def test_dashboard_uses_supplied_activity(aggregator, op_counters):
    op_counters.recent_activity = [{"id": "a1", "type": "quote", "action": "Quote sent",
                                    "detail": "x", "timestamp": "t", "status": "success"}]
    snapshot = aggregator.build_dashboard_snapshot([], [], op_counters)
    assert snapshot["recentActivity"] == op_counters.recent_activity


def test_top_alerts_limit(fixed_clock):
    anomalies = [_anomaly(f"L{i}", Severity.HIGH, 60.0 + i) for i in range(8)]
    aggregator = AnalyticsAggregator(AggregatorConfig(top_alerts=3), clock=fixed_clock)
    alerts = aggregator.build_dashboard_snapshot([], anomalies)["alerts"]
    assert alerts["count"] == 8
    assert [a["lane"] for a in alerts["topAlerts"]] == ["L7", "L6", "L5"]


# --- Configuration ---


@pytest.mark.parametrize(
    "kwargs",
    [{"top_alerts": 0}, {"min_acceptable_score": 1.5}, {"lane_breakdown_size": 0}, {"trend_threshold": -1}],
)
def test_invalid_aggregator_config(kwargs):
    with pytest.raises(ConfigurationError):
        AggregatorConfig(**kwargs)


def test_aggregator_config_from_config():
    loader = ConfigLoader.from_dict({"analytics": {"top_alerts": 3, "min_acceptable_score": 0.6}})
    config = AggregatorConfig.from_config(loader)
    assert config.top_alerts == 3
    assert config.min_acceptable_score == 0.6
    assert config.lane_breakdown_size == 6
