"""Lane volume aggregation"""

import pandas as pd
from typing import Dict, List, Sequence

from loadmatch.data.models import LaneVolumeSeries, split_lane
from loadmatch.utils.numeric import percent_change
from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


class DataAggregator:
    """
    Aggregate lane volume series into snapshot tables

    Handles:
    - Weekly totals across all lanes (aligned by period label)
    - Trailing moving average of the weekly totals
    - Per-lane current vs previous window comparison
    """

    def __init__(self, moving_average_window: int = 4, trend_threshold: float = 3.0):
        """
        Initialize aggregator

        Args:
            moving_average_window: Periods in the trailing moving average
            trend_threshold: |change| in percent above which a lane trends up/down
        """
        self.moving_average_window = moving_average_window
        self.trend_threshold = trend_threshold

    def to_long_frame(self, lanes: Sequence[LaneVolumeSeries]) -> pd.DataFrame:
        """
        Flatten lane series into a long DataFrame

        Series without period labels are aligned from the end, so the
        last volume of every lane lands on the same period index.

        Returns:
            DataFrame with columns lane, period, period_index, loads
        """
        rows = []
        for series in lanes:
            count = len(series.volumes)
            for i, volume in enumerate(series.volumes):
                rows.append({
                    'lane': series.lane,
                    'period': series.periods[i] if series.periods else None,
                    'period_index': i - count,
                    'loads': volume,
                })

        return pd.DataFrame(rows, columns=['lane', 'period', 'period_index', 'loads'])

    def weekly_totals(self, lanes: Sequence[LaneVolumeSeries], last_n: int = 26) -> pd.DataFrame:
        """
        Total loads per period across lanes with moving average

        Args:
            lanes: Lane series
            last_n: Number of most recent periods to keep

        Returns:
            DataFrame with columns week, totalLoads, movingAverage
        """
        df = self.to_long_frame(lanes)
        if df.empty:
            return pd.DataFrame(columns=['week', 'totalLoads', 'movingAverage'])

        labelled = df['period'].notna().all()
        if labelled:
            df_weekly = df.groupby('period', as_index=False)['loads'].sum()
            df_weekly = df_weekly.sort_values('period')
            df_weekly['week'] = df_weekly['period'].astype(str)
        else:
            df_weekly = df.groupby('period_index', as_index=False)['loads'].sum()
            df_weekly = df_weekly.sort_values('period_index')
            df_weekly['week'] = df_weekly['period_index'].map(lambda i: f"t{i + 1}" if i < -1 else "t")

        df_weekly = df_weekly.tail(last_n).reset_index(drop=True)
        df_weekly['totalLoads'] = df_weekly['loads']
        df_weekly['movingAverage'] = (
            df_weekly['loads']
            .rolling(window=self.moving_average_window, min_periods=1)
            .mean()
            .round(0)
        )

        logger.debug(f"Aggregated {len(lanes)} lanes into {len(df_weekly)} periods")

        return df_weekly[['week', 'totalLoads', 'movingAverage']]

    def lane_performance(self, lanes: Sequence[LaneVolumeSeries], window: int = 1) -> List[Dict]:
        """
        Current vs previous window per lane

        Args:
            lanes: Lane series (lanes with fewer than two periods are skipped)
            window: Periods averaged on each side of the comparison

        Returns:
            List of dicts with lane, origin, destination, current, previous,
            changePercent and trend
        """
        rows = []
        for series in lanes:
            volumes = series.volumes
            if len(volumes) < 2:
                continue

            size = max(1, min(window, len(volumes) // 2))
            current = sum(volumes[-size:]) / size
            previous = sum(volumes[-2 * size:-size]) / size
            change = percent_change(current, previous)

            if change > self.trend_threshold:
                trend = 'up'
            elif change < -self.trend_threshold:
                trend = 'down'
            else:
                trend = 'stable'

            origin, destination = series.origin, series.destination
            if not origin or not destination:
                origin, destination = split_lane(series.lane)

            rows.append({
                'lane': series.lane,
                'origin': origin,
                'destination': destination,
                'current': round(current),
                'previous': round(previous),
                'changePercent': round(change, 1),
                'trend': trend,
            })

        return rows
