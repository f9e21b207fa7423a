"""Snapshot orchestration

This module implements the SnapshotBuilder class that wires the location
resolver, match engine, anomaly detector and analytics aggregator from a
single configuration and produces the payloads consumed by the CLI and
any JSON-speaking caller.
"""

import time
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from loadmatch.analytics.aggregator import AggregatorConfig, AnalyticsAggregator, iso_timestamp, utc_now
from loadmatch.analytics.anomaly import AnomalyDetector, AnomalyThresholds
from loadmatch.data.models import InsightAnomaly, LaneVolumeSeries, OperationalCounters, parse_records
from loadmatch.geo.resolver import CityTableResolver, LocationResolver
from loadmatch.matching.engine import MatchEngine, MatchResult, assign_exclusive
from loadmatch.matching.scoring import MatchConfig
from loadmatch.utils.config import ConfigLoader
from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


CountersInput = Optional[Union[OperationalCounters, Mapping[str, Any]]]


class SnapshotBuilder:
    """
    Main orchestrator for match responses and snapshots

    Coordinates:
    1. Load/vehicle matching (MatchEngine)
    2. Lane anomaly detection (AnomalyDetector)
    3. Analytics and dashboard aggregation (AnalyticsAggregator)
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        config_path: Optional[str] = None,
        resolver: Optional[LocationResolver] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize snapshot builder

        Args:
            config: Loaded configuration (takes precedence over config_path)
            config_path: Path to config YAML file (optional; defaults are
                used when neither config nor config_path is given)
            resolver: Location resolver (default: built-in city table)
            clock: Callable returning the current UTC datetime

        Raises:
            ConfigurationError: If any configured constant is invalid
        """
        if config is None and config_path is not None:
            config = ConfigLoader(config_path)
        self.config = config

        self.match_config = MatchConfig.from_config(config)
        self.thresholds = AnomalyThresholds.from_config(config)
        self.aggregator_config = AggregatorConfig.from_config(config)
        self.clock = clock if clock is not None else utc_now

        self.resolver = resolver if resolver is not None else CityTableResolver()
        self.engine = MatchEngine(resolver=self.resolver, config=self.match_config)
        self.detector = AnomalyDetector(self.thresholds)
        self.aggregator = AnalyticsAggregator(
            config=self.aggregator_config,
            clock=self.clock,
            lane_window=self.thresholds.window
        )

    def run_matching(self, loads: Sequence[Any], trucks: Sequence[Any]) -> MatchResult:
        return self.engine.compute_matches(loads, trucks)

    def match(self, loads: Sequence[Any], trucks: Sequence[Any], exclusive: bool = False) -> Dict:
        """
        Build the match response payload

        Args:
            loads: Load instances or raw load mappings
            trucks: Vehicle instances or raw vehicle mappings
            exclusive: Keep at most one match per load and per vehicle
                (greedy assignment over the ranked candidates)

        Returns:
            {'matches': [...], 'metadata': {loadsCount, trucksCount,
            matchesCount, processingTime, timestamp, skipped}}
        """
        start = time.perf_counter()
        result = self.run_matching(loads, trucks)
        matches = assign_exclusive(result.matches) if exclusive else result.matches
        elapsed_ms = (time.perf_counter() - start) * 1000

        return {
            'matches': [m.to_dict() for m in matches],
            'metadata': {
                'loadsCount': result.loads_count,
                'trucksCount': result.vehicles_count,
                'matchesCount': len(matches),
                'processingTime': f"{elapsed_ms:.0f}ms",
                'timestamp': iso_timestamp(self.clock()),
                'skipped': [record.to_dict() for record in result.skipped],
            },
        }

    def anomalies(self, lanes: Sequence[Any]) -> List[InsightAnomaly]:
        return self.detector.detect_anomalies(lanes)

    def analytics(
        self,
        loads: Sequence[Any],
        trucks: Sequence[Any],
        lanes: Sequence[Any] = (),
        counters: CountersInput = None
    ) -> Dict:
        """Build the analytics snapshot from raw inputs"""
        result, anomalies, parsed_lanes, counters = self._prepare(loads, trucks, lanes, counters)
        return self.aggregator.build_analytics_snapshot(
            result.matches, anomalies, counters, parsed_lanes
        )

    def dashboard(
        self,
        loads: Sequence[Any],
        trucks: Sequence[Any],
        lanes: Sequence[Any] = (),
        counters: CountersInput = None
    ) -> Dict:
        """Build the dashboard snapshot from raw inputs"""
        result, anomalies, parsed_lanes, counters = self._prepare(loads, trucks, lanes, counters)
        return self.aggregator.build_dashboard_snapshot(
            result.matches, anomalies, counters, parsed_lanes
        )

    def _prepare(self, loads, trucks, lanes, counters):
        """
        Run matching and anomaly detection for a snapshot

        Counters without total_loads take the number of valid input loads,
        so loads without any candidate count against match accuracy.
        """
        result = self.run_matching(loads, trucks)

        parsed_lanes, skipped = parse_records(lanes, LaneVolumeSeries, 'series')
        for record in skipped:
            logger.warning(f"Skipping lane series '{record.record_id}': {record.reason}")
        anomalies = self.detector.detect_anomalies(parsed_lanes)

        if counters is None or isinstance(counters, Mapping):
            counters = OperationalCounters.from_dict(counters)
        if counters.total_loads is None:
            counters = replace(counters, total_loads=result.loads_count)

        return result, anomalies, parsed_lanes, counters

    def __repr__(self) -> str:
        return (
            f"SnapshotBuilder(config={self.config!r}, resolver={self.resolver!r}, "
            f"window={self.thresholds.window})"
        )
