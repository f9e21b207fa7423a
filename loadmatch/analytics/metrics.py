"""Forecast accuracy metrics"""

import numpy as np
from typing import Dict, Iterable, Tuple

from loadmatch.utils.logging_config import get_logger


logger = get_logger(__name__)


# Upper MAPE bounds (exclusive) per rating, checked in order
RATING_BANDS = (
    (5.0, 'excellent'),
    (10.0, 'strong'),
    (20.0, 'moderate'),
)
WORST_RATING = 'needs-attention'


def calculate_metrics(pairs: Iterable[Tuple[float, float]]) -> Dict[str, float]:
    """
    Calculate forecast accuracy metrics

    Args:
        pairs: (actual, predicted) volume pairs

    Returns:
        Dictionary with mae, mape (percent), rmse and data_points.
        Empty input yields zeros. Periods with actual == 0 are
        excluded from MAPE only.
    """
    data = np.array([(float(a), float(p)) for a, p in pairs], dtype=float).reshape(-1, 2)

    # Remove NaN values
    data = data[~np.isnan(data).any(axis=1)]

    if len(data) == 0:
        return {'mae': 0.0, 'mape': 0.0, 'rmse': 0.0, 'data_points': 0}

    actuals = data[:, 0]
    predicted = data[:, 1]
    errors = actuals - predicted

    # MAE (Mean Absolute Error)
    mae = np.mean(np.abs(errors))

    # RMSE (Root Mean Squared Error)
    rmse = np.sqrt(np.mean(errors ** 2))

    # MAPE (Mean Absolute Percentage Error), zero actuals excluded
    nonzero = actuals != 0
    if nonzero.any():
        mape = np.mean(np.abs(errors[nonzero] / actuals[nonzero])) * 100
    else:
        mape = 0.0

    return {
        'mae': float(mae),
        'mape': float(mape),
        'rmse': float(rmse),
        'data_points': int(len(data))
    }


def accuracy_rating(mape: float) -> str:
    """Map a MAPE percentage to a rating band"""
    for upper, label in RATING_BANDS:
        if mape < upper:
            return label
    if mape <= RATING_BANDS[-1][0]:
        return RATING_BANDS[-1][1]
    return WORST_RATING


def forecast_accuracy(pairs: Iterable[Tuple[float, float]], decimals: int = 1) -> Dict:
    """
    Forecast accuracy block of the analytics snapshot

    Returns:
        {'mae', 'mape', 'rmse', 'rating'}
    """
    metrics = calculate_metrics(pairs)
    logger.debug(
        f"Forecast accuracy over {metrics['data_points']} points: "
        f"MAPE {metrics['mape']:.2f}%, MAE {metrics['mae']:.2f}"
    )

    # Rating follows the published (rounded) MAPE
    mape = round(metrics['mape'], decimals)
    return {
        'mae': round(metrics['mae'], decimals),
        'mape': mape,
        'rmse': round(metrics['rmse'], decimals),
        'rating': accuracy_rating(mape),
    }
