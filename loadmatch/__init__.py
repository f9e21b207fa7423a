"""
LoadMatch Engine

Load-matching and lane-analytics engine for freight logistics.
Scores load/vehicle pairings, flags lane volume anomalies and builds
analytics and dashboard snapshots for the presentation layer.
"""

__version__ = "1.0.0"
__author__ = "LoadMatch Team"
