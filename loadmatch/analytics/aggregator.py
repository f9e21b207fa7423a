"""Analytics and dashboard snapshot aggregation

Combines match results, lane anomalies and caller-supplied operational
counters into the two read models consumed by the presentation layer.
Everything here is a pure function of its inputs plus the clock used
for 'updatedAt'.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from loadmatch.analytics.metrics import forecast_accuracy
from loadmatch.data.aggregators import DataAggregator
from loadmatch.data.models import (
    SEVERITY_RANK,
    InsightAnomaly,
    LaneVolumeSeries,
    Match,
    OperationalCounters,
)
from loadmatch.exceptions import ConfigurationError
from loadmatch.utils.config import ConfigLoader
from loadmatch.utils.logging_config import get_logger
from loadmatch.utils.numeric import relative_change, round_half_up


logger = get_logger(__name__)


ACTIVITY_TYPES = ['quote', 'match', 'forecast', 'document']
ACTIVITY_STATUSES = ['success', 'success', 'info', 'info']


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and 'Z' suffix"""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class AggregatorConfig:
    """
    Snapshot aggregation settings

    Attributes:
        min_acceptable_score: Match score a load needs to count as matched
        top_alerts: Number of alerts in the dashboard alert summary
        lane_breakdown_size: Lanes listed in the analytics lane breakdown
        lane_highlight_size: Lanes listed in the dashboard highlights
        volume_window: Periods kept in volume trends
        moving_average_window: Periods in the volume moving average
        trend_threshold: |change| in percent for an up/down lane trend
        activity_size: Derived recent-activity entries
    """

    min_acceptable_score: float = 0.5
    top_alerts: int = 5
    lane_breakdown_size: int = 6
    lane_highlight_size: int = 5
    volume_window: int = 26
    moving_average_window: int = 4
    trend_threshold: float = 3.0
    activity_size: int = 4

    def __post_init__(self):
        if not 0 <= self.min_acceptable_score <= 1:
            raise ConfigurationError(
                f"analytics.min_acceptable_score must be within [0, 1], got {self.min_acceptable_score}"
            )
        for name in ('top_alerts', 'lane_breakdown_size', 'lane_highlight_size',
                     'volume_window', 'moving_average_window'):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"analytics.{name} must be >= 1")
        if self.trend_threshold < 0:
            raise ConfigurationError("analytics.trend_threshold must be >= 0")
        if self.activity_size < 0:
            raise ConfigurationError("analytics.activity_size must be >= 0")

    @classmethod
    def from_config(cls, config: Optional[ConfigLoader]) -> 'AggregatorConfig':
        if config is None:
            return cls()
        defaults = cls()
        try:
            return cls(**{
                name: type(getattr(defaults, name))(config.get(f'analytics.{name}', getattr(defaults, name)))
                for name in cls.__dataclass_fields__
            })
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"invalid analytics configuration: {e}") from e


def match_accuracy(
    matches: Sequence[Match],
    total_loads: Optional[int],
    min_score: float = 0.5
) -> float:
    """
    Percentage of loads with at least one match scoring >= min_score

    Args:
        matches: Match list
        total_loads: Number of input loads; None falls back to the
            distinct load ids present in matches
        min_score: Minimum acceptable score

    Returns:
        Percentage in [0, 100]; 0 when there are no loads
    """
    if total_loads is None:
        total_loads = len({m.load_id for m in matches})
    if total_loads <= 0:
        return 0.0

    matched = len({m.load_id for m in matches if m.match_score >= min_score})
    return min(100.0, matched / total_loads * 100)


def rank_alerts(anomalies: Sequence[InsightAnomaly], limit: int) -> List[InsightAnomaly]:
    """Severity (high first), then |percentChange| descending, then lane"""
    ordered = sorted(
        anomalies,
        key=lambda a: (SEVERITY_RANK[a.severity], -abs(a.percent_change), a.lane)
    )
    return ordered[:limit]


def _kpi(value: float, unit: str, previous: float, lower_is_better: bool,
         decimals: Optional[int] = 1) -> Dict:
    change = round_half_up(relative_change(value, previous), 1)
    if lower_is_better:
        trend = 'down' if change <= 0 else 'up'
    else:
        trend = 'up' if change >= 0 else 'down'
    return {
        'value': value if decimals is None else round_half_up(value, decimals),
        'unit': unit,
        'changePercent': change,
        'trend': trend,
    }


class AnalyticsAggregator:
    """
    Build AnalyticsSnapshot and DashboardSnapshot payloads

    Inputs:
    - matches from MatchEngine
    - anomalies from AnomalyDetector
    - OperationalCounters supplied by the caller
    - optional lane series for volume trends and lane tables
    """

    def __init__(
        self,
        config: Optional[AggregatorConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        lane_window: int = 1
    ):
        """
        Initialize aggregator

        Args:
            config: Aggregation settings
            clock: Callable returning the current UTC datetime
            lane_window: Periods compared on each side for lane tables
                (keep equal to the anomaly detector window)
        """
        self.config = config if config is not None else AggregatorConfig()
        self.clock = clock if clock is not None else utc_now
        self.lane_window = lane_window
        self.data_aggregator = DataAggregator(
            moving_average_window=self.config.moving_average_window,
            trend_threshold=self.config.trend_threshold
        )

    def build_analytics_snapshot(
        self,
        matches: Sequence[Match],
        anomalies: Sequence[InsightAnomaly],
        counters: Optional[OperationalCounters] = None,
        lanes: Sequence[LaneVolumeSeries] = ()
    ) -> Dict:
        """
        Build the analytics snapshot

        Returns:
            Dict with kpis, volumeTrends, laneBreakdown, systemPerformance,
            forecastAccuracy, insights and updatedAt
        """
        counters = counters if counters is not None else OperationalCounters()
        accuracy = match_accuracy(matches, counters.total_loads, self.config.min_acceptable_score)

        kpis = {
            'avgFreightCost': _kpi(counters.avg_freight_cost, 'usd',
                                   counters.previous_freight_cost, lower_is_better=True),
            'matchAccuracy': _kpi(accuracy, 'percent',
                                  counters.previous_match_accuracy, lower_is_better=False, decimals=None),
            'processingTime': _kpi(counters.processing_time_minutes, 'minutes',
                                   counters.previous_processing_time_minutes, lower_is_better=True),
            'aiRoi': _kpi(counters.ai_roi_percent, 'percent',
                          counters.previous_ai_roi_percent, lower_is_better=False),
        }

        df_weekly = self.data_aggregator.weekly_totals(lanes, last_n=self.config.volume_window)
        volume_trends = [
            {
                'week': row['week'],
                'totalLoads': _as_number(row['totalLoads']),
                'movingAverage': _as_number(row['movingAverage']),
            }
            for row in df_weekly.to_dict('records')
        ]

        performance = self._lane_rows(lanes)
        lane_breakdown = [
            {
                'lane': row['lane'],
                'origin': row['origin'],
                'destination': row['destination'],
                'current': row['current'],
                'previous': row['previous'],
                'changePercent': row['changePercent'],
            }
            for row in performance[:self.config.lane_breakdown_size]
        ]

        snapshot = {
            'kpis': kpis,
            'volumeTrends': volume_trends,
            'laneBreakdown': lane_breakdown,
            'systemPerformance': {
                'uptimePercent': round_half_up(counters.uptime_percent, 2),
                'subsystems': [
                    {
                        'name': row.get('name'),
                        'utilization': row.get('utilization'),
                        'latencyMs': row.get('latencyMs', row.get('latency_ms')),
                    }
                    for row in counters.subsystems
                ],
            },
            'forecastAccuracy': forecast_accuracy(counters.forecast_pairs),
            'insights': self._insights(matches, anomalies, counters, performance, accuracy),
            'updatedAt': iso_timestamp(self.clock()),
        }

        logger.info(
            f"Analytics snapshot: match accuracy {accuracy:.1f}%, "
            f"{len(lane_breakdown)} lanes, {len(volume_trends)} periods"
        )

        return snapshot

    def build_dashboard_snapshot(
        self,
        matches: Sequence[Match],
        anomalies: Sequence[InsightAnomaly],
        counters: Optional[OperationalCounters] = None,
        lanes: Sequence[LaneVolumeSeries] = ()
    ) -> Dict:
        """
        Build the dashboard snapshot

        Returns:
            Dict with stats, utilization, laneHighlights, recentActivity,
            systemStatus, alerts and updatedAt
        """
        counters = counters if counters is not None else OperationalCounters()
        accuracy = match_accuracy(matches, counters.total_loads, self.config.min_acceptable_score)
        now = self.clock()

        utilization_percent = round_half_up(counters.utilization_percent, 1)
        idle = max(0, round(counters.available_vehicles * (1 - counters.utilization_percent / 100)))

        lane_highlights = [
            {
                'lane': row['lane'],
                'origin': row['origin'],
                'destination': row['destination'],
                'weeklyLoads': row['current'],
                'changePercent': row['changePercent'],
                'trend': row['trend'],
            }
            for row in self._lane_rows(lanes)[:self.config.lane_highlight_size]
        ]

        if counters.recent_activity:
            recent_activity = [dict(row) for row in counters.recent_activity]
        else:
            recent_activity = self._derive_activity(lane_highlights, now)

        top_alerts = rank_alerts(anomalies, self.config.top_alerts)

        snapshot = {
            'stats': {
                'activeShipments': int(counters.active_shipments),
                'quoteRequests': int(counters.quote_requests),
                'matchRate': accuracy,
                'avgResponseTimeMinutes': round_half_up(counters.avg_response_time_minutes, 1),
            },
            'utilization': {
                'availableVehicles': int(counters.available_vehicles),
                'utilizationPercent': utilization_percent,
                'idleVehicles': idle,
            },
            'laneHighlights': lane_highlights,
            'recentActivity': recent_activity,
            'systemStatus': [self._status_row(row) for row in counters.system_status],
            'alerts': {
                'count': len(anomalies),
                'topAlerts': [a.to_dict() for a in top_alerts],
            },
            'updatedAt': iso_timestamp(now),
        }

        logger.info(
            f"Dashboard snapshot: match rate {snapshot['stats']['matchRate']}%, "
            f"{len(anomalies)} alerts"
        )

        return snapshot

    def _lane_rows(self, lanes: Sequence[LaneVolumeSeries]) -> List[Dict]:
        rows = self.data_aggregator.lane_performance(lanes, window=self.lane_window)
        return sorted(rows, key=lambda row: (-row['current'], row['lane']))

    @staticmethod
    def _status_row(row: Dict) -> Dict:
        return {
            'system': row.get('system', row.get('name')),
            'status': row.get('status', 'operational'),
            'latencyMs': row.get('latencyMs', row.get('latency_ms', 0)),
            'throughputPerMinute': row.get('throughputPerMinute', row.get('throughput_per_minute', 0)),
            'uptimePercent': row.get('uptimePercent', row.get('uptime_percent', 100.0)),
        }

    def _derive_activity(self, highlights: List[Dict], now: datetime) -> List[Dict]:
        """Recent activity feed built from the busiest lanes, 4 minutes apart"""
        activity = []
        for index, lane in enumerate(highlights[:self.config.activity_size]):
            change = lane['changePercent']
            if change == 0:
                change_text = 'stable demand'
            else:
                change_text = f"{change:+g}% {'increase' if change > 0 else 'decrease'}"

            activity.append({
                'id': f"activity-{index}",
                'type': ACTIVITY_TYPES[index % len(ACTIVITY_TYPES)],
                'action': f"{lane['lane']} updated",
                'detail': f"{change_text} · {lane['weeklyLoads']:,} weekly loads",
                'timestamp': iso_timestamp(now - timedelta(minutes=4 * index)),
                'status': ACTIVITY_STATUSES[index % len(ACTIVITY_STATUSES)],
            })
        return activity

    def _insights(
        self,
        matches: Sequence[Match],
        anomalies: Sequence[InsightAnomaly],
        counters: OperationalCounters,
        performance: List[Dict],
        accuracy: float
    ) -> List[Dict]:
        insights = []

        if performance:
            top_lane = performance[0]
            direction = 'up' if top_lane['changePercent'] >= 0 else 'down'
            insights.append({
                'title': 'Lane Momentum',
                'description': (
                    f"{top_lane['lane']} demand {direction} {top_lane['changePercent']:+g}% "
                    f"compared to the prior period."
                ),
            })

        if counters.available_vehicles:
            idle = max(0, round(counters.available_vehicles * (1 - counters.utilization_percent / 100)))
            insights.append({
                'title': 'Fleet Utilization',
                'description': (
                    f"Utilization running at {round_half_up(counters.utilization_percent, 1)}% "
                    f"with {idle} idle assets available."
                ),
            })

        if matches:
            insights.append({
                'title': 'Match Coverage',
                'description': (
                    f"{round_half_up(accuracy, 1)}% of loads have a match scoring at least "
                    f"{self.config.min_acceptable_score:g}."
                ),
            })

        top_alerts = rank_alerts(anomalies, 1)
        if top_alerts:
            insights.append({'title': 'AI Alert', 'description': top_alerts[0].message})

        return insights


def _as_number(value):
    """Convert numpy scalars to int when integral, float otherwise"""
    value = float(value)
    return int(value) if value.is_integer() else value
