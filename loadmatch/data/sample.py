"""Built-in reference dataset

Five loads, five trucks and three weekly lane histories used by the CLI
`--sample` flag, the `sample` command and the tests.
"""

import numpy as np
import pandas as pd
from typing import Dict, List

from loadmatch.data.models import lane_key


SAMPLE_SEED = 42
HISTORY_WEEKS = 104
HISTORY_START = '2023-01-01'
MIN_WEEKLY_LOADS = 50


SAMPLE_LOADS = [
    {'id': 'L1', 'origin': 'Dallas, TX', 'destination': 'Atlanta, GA',
     'equipment': 'Reefer', 'weight': 42000, 'pickupDate': '2025-11-05'},
    {'id': 'L2', 'origin': 'Chicago, IL', 'destination': 'Denver, CO',
     'equipment': 'Flatbed', 'weight': 48000, 'pickupDate': '2025-11-06'},
    {'id': 'L3', 'origin': 'Los Angeles, CA', 'destination': 'Phoenix, AZ',
     'equipment': 'Dry Van', 'weight': 38000, 'pickupDate': '2025-11-05'},
    {'id': 'L4', 'origin': 'Miami, FL', 'destination': 'New York, NY',
     'equipment': 'Reefer', 'weight': 45000, 'pickupDate': '2025-11-07'},
    {'id': 'L5', 'origin': 'Seattle, WA', 'destination': 'Portland, OR',
     'equipment': 'Dry Van', 'weight': 32000, 'pickupDate': '2025-11-06'},
]

SAMPLE_TRUCKS = [
    {'id': 'T1', 'location': 'Fort Worth, TX', 'equipment': 'Reefer',
     'availableDate': '2025-11-05', 'vehicleType': 'Truck', 'capacity': 45000},
    {'id': 'T2', 'location': 'St. Louis, MO', 'equipment': 'Flatbed',
     'availableDate': '2025-11-06', 'vehicleType': 'Truck', 'capacity': 50000},
    {'id': 'T3', 'location': 'Las Vegas, NV', 'equipment': 'Dry Van',
     'availableDate': '2025-11-05', 'vehicleType': 'Truck', 'capacity': 40000},
    {'id': 'T4', 'location': 'Jacksonville, FL', 'equipment': 'Reefer',
     'availableDate': '2025-11-07', 'vehicleType': 'Truck', 'capacity': 45000},
    {'id': 'T5', 'location': 'Tacoma, WA', 'equipment': 'Dry Van',
     'availableDate': '2025-11-06', 'vehicleType': 'Truck', 'capacity': 42000},
]

# (origin, destination, base weekly loads, seasonal amplitude, phase)
SAMPLE_LANES = [
    ('Dallas, TX', 'Atlanta, GA', 150, 30, 0.0),
    ('Chicago, IL', 'Denver, CO', 120, 25, np.pi / 4),
    ('Houston, TX', 'Phoenix, AZ', 180, 40, np.pi / 2),
]

SAMPLE_COUNTERS = {
    'activeShipments': 1284,
    'previousShipments': 1190,
    'quoteRequests': 342,
    'avgResponseTimeMinutes': 4.2,
    'availableVehicles': 86,
    'utilizationPercent': 78.4,
    'uptimePercent': 99.95,
    'avgFreightCost': 2.41,
    'previousFreightCost': 2.55,
    'processingTimeMinutes': 3.8,
    'previousProcessingTimeMinutes': 5.1,
    'aiRoiPercent': 312.0,
    'previousAiRoiPercent': 287.0,
    'previousMatchAccuracy': 55.0,
    'forecastPairs': [
        {'actual': 152, 'predicted': 148},
        {'actual': 160, 'predicted': 171},
        {'actual': 138, 'predicted': 135},
        {'actual': 171, 'predicted': 164},
        {'actual': 149, 'predicted': 151},
    ],
    'subsystems': [
        {'name': 'Matching Engine', 'utilization': 64, 'latencyMs': 120},
        {'name': 'Forecast Service', 'utilization': 48, 'latencyMs': 340},
        {'name': 'Geocoding', 'utilization': 31, 'latencyMs': 85},
    ],
    'systemStatus': [
        {'system': 'Load Matching API', 'status': 'operational', 'latencyMs': 118,
         'throughputPerMinute': 240, 'uptimePercent': 99.98},
        {'system': 'Forecast Pipeline', 'status': 'operational', 'latencyMs': 342,
         'throughputPerMinute': 35, 'uptimePercent': 99.9},
        {'system': 'Geocoding Service', 'status': 'degraded', 'latencyMs': 910,
         'throughputPerMinute': 180, 'uptimePercent': 98.7},
    ],
}


def generate_lane_history(
    base_load: float,
    amplitude: float,
    phase: float,
    weeks: int = HISTORY_WEEKS,
    start: str = HISTORY_START,
    rng: np.random.Generator = None
) -> List[Dict]:
    """
    Generate a weekly load history for one lane

    loads = base + amplitude * sin(2*pi*i/52 + phase) + noise + trend,
    rounded and floored at MIN_WEEKLY_LOADS. Noise is uniform within
    +/-10% of the base load.

    Returns:
        List of {'week': 'YYYY-MM-DD', 'loads': int}
    """
    rng = rng if rng is not None else np.random.default_rng(SAMPLE_SEED)

    index = np.arange(weeks)
    seasonality = amplitude * np.sin(2 * np.pi * index / 52 + phase)
    noise = (rng.random(weeks) - 0.5) * base_load * 0.2
    trend = (index / 52) * base_load * 0.005

    loads = np.maximum(np.round(base_load + seasonality + noise + trend), MIN_WEEKLY_LOADS)
    dates = pd.date_range(start=start, periods=weeks, freq='7D')

    return [
        {'week': week.strftime('%Y-%m-%d'), 'loads': int(value)}
        for week, value in zip(dates, loads)
    ]


def sample_lanes(seed: int = SAMPLE_SEED, weeks: int = HISTORY_WEEKS) -> List[Dict]:
    """Deterministic lane histories for the reference lanes"""
    rng = np.random.default_rng(seed)
    return [
        {
            'lane': lane_key(origin, destination),
            'origin': origin,
            'destination': destination,
            'history': generate_lane_history(base, amplitude, phase, weeks=weeks, rng=rng),
        }
        for origin, destination, base, amplitude, phase in SAMPLE_LANES
    ]


def sample_dataset(seed: int = SAMPLE_SEED) -> Dict:
    """
    Complete reference dataset

    Returns:
        Dict with 'loads', 'trucks', 'lanes' and 'counters' (fresh copies)
    """
    return {
        'loads': [dict(load) for load in SAMPLE_LOADS],
        'trucks': [dict(truck) for truck in SAMPLE_TRUCKS],
        'lanes': sample_lanes(seed),
        'counters': {
            key: [dict(row) for row in value] if isinstance(value, list) else value
            for key, value in SAMPLE_COUNTERS.items()
        },
    }
