"""
Tests for forecast accuracy metrics (loadmatch.analytics.metrics).
"""

from __future__ import annotations

import math

import pytest

from loadmatch.analytics.metrics import accuracy_rating, calculate_metrics, forecast_accuracy


def test_known_values_ignore_zero_actual_in_mape():
    """Errors -10, 10, -5: MAE 25/3, RMSE sqrt(75); MAPE only over non-zero actuals."""
    metrics = calculate_metrics([(100, 110), (200, 190), (0, 5)])
    assert metrics["mae"] == pytest.approx(25 / 3)
    assert metrics["rmse"] == pytest.approx(math.sqrt(75))
    assert metrics["mape"] == pytest.approx(7.5)
    assert metrics["data_points"] == 3


def test_empty_input_yields_zeros():
    assert calculate_metrics([]) == {"mae": 0.0, "mape": 0.0, "rmse": 0.0, "data_points": 0}


def test_all_zero_actuals():
    metrics = calculate_metrics([(0, 3), (0, 0)])
    assert metrics["mape"] == 0.0
    assert metrics["mae"] == pytest.approx(1.5)


def test_nan_pairs_are_dropped():
    metrics = calculate_metrics([(100, 110), (float("nan"), 5)])
    assert metrics["data_points"] == 1
    assert metrics["mape"] == pytest.approx(10.0)


@pytest.mark.parametrize(
    "mape,rating",
    [
        (0.0, "excellent"),
        (4.99, "excellent"),
        (5.0, "strong"),
        (9.99, "strong"),
        (10.0, "moderate"),
        (20.0, "moderate"),
        (20.01, "needs-attention"),
    ],
)
def test_accuracy_rating_bands(mape, rating):
    assert accuracy_rating(mape) == rating


def test_forecast_accuracy_block():
    block = forecast_accuracy([(100, 110), (200, 190), (0, 5)])
    assert block == {"mae": 8.3, "mape": 7.5, "rmse": 8.7, "rating": "strong"}


def test_rating_follows_published_mape():
    """A MAPE just under 5 that publishes as 5.0 is rated on 5.0."""
    block = forecast_accuracy([(100, 104.96)])
    assert block["mape"] == 5.0
    assert block["rating"] == "strong"
