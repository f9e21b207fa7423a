"""Domain models, data loading and lane aggregation modules"""

from .models import (
    AnomalyType,
    EquipmentType,
    InsightAnomaly,
    LaneVolumeSeries,
    Load,
    Match,
    OperationalCounters,
    Priority,
    Severity,
    SkippedRecord,
    Vehicle,
    VehicleClass,
)
from .loaders import DataLoader
from .aggregators import DataAggregator

__all__ = [
    'AnomalyType',
    'EquipmentType',
    'InsightAnomaly',
    'LaneVolumeSeries',
    'Load',
    'Match',
    'OperationalCounters',
    'Priority',
    'Severity',
    'SkippedRecord',
    'Vehicle',
    'VehicleClass',
    'DataLoader',
    'DataAggregator',
]
