"""Lane anomaly detection and snapshot analytics"""

from .anomaly import AnomalyDetector, AnomalyThresholds
from .metrics import calculate_metrics, accuracy_rating, forecast_accuracy
from .aggregator import AnalyticsAggregator, AggregatorConfig, match_accuracy, rank_alerts

__all__ = [
    'AnomalyDetector',
    'AnomalyThresholds',
    'calculate_metrics',
    'accuracy_rating',
    'forecast_accuracy',
    'AnalyticsAggregator',
    'AggregatorConfig',
    'match_accuracy',
    'rank_alerts'
]
