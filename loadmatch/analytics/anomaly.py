"""Lane volume anomaly detection

Classifies the change between the current and previous period of each
lane as a spike, drop or stable movement and grades its severity.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from loadmatch.data.models import (
    AnomalyType,
    InsightAnomaly,
    LaneVolumeSeries,
    Severity,
    parse_records,
)
from loadmatch.exceptions import ConfigurationError
from loadmatch.utils.config import ConfigLoader
from loadmatch.utils.numeric import percent_change
from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


@dataclass(frozen=True)
class AnomalyThresholds:
    """
    Classification and severity thresholds (in percent)

    |change| < stable_threshold is stable; severity is low below
    medium_threshold, medium up to and including high_threshold, and
    high above it.
    """

    stable_threshold: float = 10.0
    medium_threshold: float = 20.0
    high_threshold: float = 50.0
    window: int = 1

    def __post_init__(self):
        if self.stable_threshold <= 0:
            raise ConfigurationError("anomaly.stable_threshold must be > 0")
        if not self.stable_threshold <= self.medium_threshold <= self.high_threshold:
            raise ConfigurationError(
                "anomaly thresholds must satisfy stable <= medium <= high, got "
                f"{self.stable_threshold}/{self.medium_threshold}/{self.high_threshold}"
            )
        if self.window < 1:
            raise ConfigurationError("anomaly.window must be >= 1")

    @classmethod
    def from_config(cls, config: Optional[ConfigLoader]) -> 'AnomalyThresholds':
        if config is None:
            return cls()
        defaults = cls()
        try:
            return cls(
                stable_threshold=float(config.get('anomaly.stable_threshold', defaults.stable_threshold)),
                medium_threshold=float(config.get('anomaly.medium_threshold', defaults.medium_threshold)),
                high_threshold=float(config.get('anomaly.high_threshold', defaults.high_threshold)),
                window=int(config.get('anomaly.window', defaults.window)),
            )
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"invalid anomaly configuration: {e}") from e


class AnomalyDetector:
    """Detect volume spikes and drops per lane"""

    def __init__(self, thresholds: Optional[AnomalyThresholds] = None):
        """
        Initialize detector

        Args:
            thresholds: Classification thresholds (default: 10/20/50, window 1)
        """
        self.thresholds = thresholds if thresholds is not None else AnomalyThresholds()

    def detect_anomalies(self, series: Sequence[Any]) -> List[InsightAnomaly]:
        """
        Classify every lane with at least two periods

        Args:
            series: LaneVolumeSeries instances or raw lane mappings

        Returns:
            One InsightAnomaly per eligible lane, in input order
        """
        lanes, skipped = parse_records(series, LaneVolumeSeries, 'series')
        for record in skipped:
            logger.warning(f"Skipping lane series '{record.record_id}': {record.reason}")

        anomalies = []
        for lane in lanes:
            anomaly = self.classify(lane)
            if anomaly is not None:
                anomalies.append(anomaly)

        flagged = sum(1 for a in anomalies if a.type != AnomalyType.STABLE)
        logger.info(f"Analyzed {len(anomalies)}/{len(lanes)} lanes: {flagged} flagged")

        return anomalies

    def compare_periods(self, series: LaneVolumeSeries) -> Optional[Tuple[float, float]]:
        """
        Current and previous volume for a lane

        With window 1 these are the last two volumes. Larger windows compare
        the mean of the last `window` periods against the mean of the
        `window` periods before them (shrinking on short histories).

        Returns:
            (current, previous), or None if fewer than two periods exist
        """
        volumes = series.volumes
        if len(volumes) < 2:
            return None

        window = min(self.thresholds.window, len(volumes) // 2)
        current_window = volumes[-window:]
        previous_window = volumes[-2 * window:-window]

        current = sum(current_window) / len(current_window)
        previous = sum(previous_window) / len(previous_window)
        return current, previous

    def classify(self, series: LaneVolumeSeries) -> Optional[InsightAnomaly]:
        """Classify one lane; None when history is insufficient"""
        periods = self.compare_periods(series)
        if periods is None:
            logger.debug(f"Lane '{series.lane}' has fewer than two periods - omitted")
            return None

        current, previous = periods
        change = percent_change(current, previous)
        magnitude = abs(change)

        if magnitude < self.thresholds.stable_threshold:
            kind = AnomalyType.STABLE
        elif change > 0:
            kind = AnomalyType.SPIKE
        else:
            kind = AnomalyType.DROP

        return InsightAnomaly(
            lane=series.lane,
            type=kind,
            severity=self.severity(change),
            percent_change=round(change, 2),
            message=self._message(series.lane, kind, change),
        )

    def severity(self, change: float) -> Severity:
        magnitude = abs(change)
        if magnitude < self.thresholds.medium_threshold:
            return Severity.LOW
        if magnitude <= self.thresholds.high_threshold:
            return Severity.MEDIUM
        return Severity.HIGH

    @staticmethod
    def _message(lane: str, kind: AnomalyType, change: float) -> str:
        if kind == AnomalyType.SPIKE:
            return f"Demand surge on {lane}: volume up {abs(change):.1f}% vs prior period"
        if kind == AnomalyType.DROP:
            return f"Demand decline on {lane}: volume down {abs(change):.1f}% vs prior period"
        return f"Demand stable on {lane} ({change:+.1f}% vs prior period)"
